# services/galaxies.py
import logging
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cosmicds.models import Galaxy

logger = logging.getLogger(__name__)


async def get_all_galaxies(db: AsyncSession) -> list[Galaxy]:
    stmt = select(Galaxy).where(Galaxy.is_bad.is_(False), Galaxy.is_sample.is_(False)).order_by(Galaxy.id)
    return list((await db.execute(stmt)).scalars().all())


async def get_galaxies_for_types(db: AsyncSession, types: Iterable[str]) -> list[Galaxy]:
    types = [t.strip() for t in types if t and t.strip()]
    if not types:
        return []
    stmt = (
        select(Galaxy)
        .where(Galaxy.is_bad.is_(False), Galaxy.is_sample.is_(False), Galaxy.type.in_(types))
        .order_by(Galaxy.id)
    )
    return list((await db.execute(stmt)).scalars().all())


async def get_sample_galaxy(db: AsyncSession) -> Galaxy | None:
    stmt = select(Galaxy).where(Galaxy.is_sample.is_(True)).order_by(Galaxy.id).limit(1)
    return (await db.execute(stmt)).scalars().first()


async def get_unchecked_spectra_galaxies(db: AsyncSession) -> list[Galaxy]:
    stmt = select(Galaxy).where(Galaxy.spec_checked.is_(False)).order_by(Galaxy.id)
    return list((await db.execute(stmt)).scalars().all())


async def _refresh_loaded(db: AsyncSession, galaxy_id: int, columns: list[str]) -> None:
    # keep an already-loaded Galaxy in step with a row changed by a bulk UPDATE
    cached = db.identity_map.get(db.identity_key(Galaxy, galaxy_id))
    if cached is not None:
        await db.refresh(cached, attribute_names=columns)


async def _increment(db: AsyncSession, galaxy_id: int, column: str) -> bool:
    # Single UPDATE ... SET col = col + 1 so concurrent reports never lose an increment
    col = getattr(Galaxy, column)
    try:
        res = await db.execute(
            update(Galaxy)
            .where(Galaxy.id == galaxy_id)
            .values({column: col + 1})
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not increment %s for galaxy %s", column, galaxy_id)
        return False
    if not res.rowcount:
        return False
    await _refresh_loaded(db, galaxy_id, [column])
    return True


async def mark_galaxy_bad(db: AsyncSession, galaxy_id: int) -> bool:
    return await _increment(db, galaxy_id, "marked_bad")


async def mark_galaxy_spectrum_bad(db: AsyncSession, galaxy_id: int) -> bool:
    return await _increment(db, galaxy_id, "spec_marked_bad")


async def mark_galaxy_tileload_bad(db: AsyncSession, galaxy_id: int) -> bool:
    return await _increment(db, galaxy_id, "tileload_marked_bad")


async def set_galaxy_spectrum_status(db: AsyncSession, galaxy_id: int, good: bool) -> bool:
    try:
        res = await db.execute(
            update(Galaxy)
            .where(Galaxy.id == galaxy_id)
            .values(spec_is_bad=not good, spec_checked=True)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not set spectrum status for galaxy %s", galaxy_id)
        return False
    if not res.rowcount:
        return False
    await _refresh_loaded(db, galaxy_id, ["spec_is_bad", "spec_checked"])
    return True


async def get_new_galaxies(db: AsyncSession) -> list[Galaxy]:
    """Galaxies whose spectra have been reviewed and found good."""
    stmt = (
        select(Galaxy)
        .where(
            Galaxy.spec_checked.is_(True),
            Galaxy.spec_is_bad.is_(False),
            Galaxy.is_bad.is_(False),
            Galaxy.is_sample.is_(False),
        )
        .order_by(Galaxy.id)
    )
    return list((await db.execute(stmt)).scalars().all())
