# services/identity.py
"""Resolve human-facing identifiers (email, classroom code, galaxy name) to rows.

Every lookup returns ``None`` on a miss; nothing here raises for "not found".
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cosmicds.models import Class, Educator, Galaxy, Student
from cosmicds.utils import with_galaxy_suffix


@dataclass(frozen=True)
class GalaxyById:
    id: int


@dataclass(frozen=True)
class GalaxyByName:
    name: str


GalaxyRef = Union[GalaxyById, GalaxyByName]


def galaxy_ref(galaxy_id: Optional[int] = None, galaxy_name: Optional[str] = None) -> GalaxyRef | None:
    """Build a GalaxyRef from loose request input; an id wins over a name."""
    if galaxy_id:
        return GalaxyById(int(galaxy_id))
    if galaxy_name and galaxy_name.strip():
        return GalaxyByName(galaxy_name.strip())
    return None


def galaxy_ref_from_path(identifier: str) -> GalaxyRef | None:
    """Path segments may carry either a numeric id or a galaxy name."""
    identifier = (identifier or "").strip()
    if identifier.isdigit():
        return GalaxyById(int(identifier)) if int(identifier) > 0 else None
    return galaxy_ref(galaxy_name=identifier)


async def _by_email(db: AsyncSession, model, email: str):
    email = (email or "").strip()
    if not email:
        return None
    stmt = select(model).where(func.lower(model.email) == email.lower())
    return (await db.execute(stmt)).scalars().first()


async def find_student_by_email(db: AsyncSession, email: str) -> Student | None:
    return await _by_email(db, Student, email)


async def find_educator_by_email(db: AsyncSession, email: str) -> Educator | None:
    return await _by_email(db, Educator, email)


async def find_student_by_id(db: AsyncSession, student_id: int) -> Student | None:
    return await db.get(Student, student_id)


async def find_educator_by_id(db: AsyncSession, educator_id: int) -> Educator | None:
    return await db.get(Educator, educator_id)


async def find_student_by_username(db: AsyncSession, username: str) -> Student | None:
    stmt = select(Student).where(Student.username == username)
    return (await db.execute(stmt)).scalars().first()


async def find_class_by_code(db: AsyncSession, code: str) -> Class | None:
    code = (code or "").strip()
    if not code:
        return None
    return (await db.execute(select(Class).where(Class.code == code))).scalars().first()


async def get_galaxy_by_id(db: AsyncSession, galaxy_id: int) -> Galaxy | None:
    return await db.get(Galaxy, galaxy_id)


async def get_galaxy_by_name(db: AsyncSession, name: str) -> Galaxy | None:
    return (await db.execute(select(Galaxy).where(Galaxy.name == name))).scalars().first()


async def resolve_galaxy(db: AsyncSession, ref: GalaxyRef | None, *, add_suffix: bool = True) -> Galaxy | None:
    if ref is None:
        return None
    if isinstance(ref, GalaxyById):
        return await get_galaxy_by_id(db, ref.id)
    name = with_galaxy_suffix(ref.name) if add_suffix else ref.name
    galaxy = await get_galaxy_by_name(db, name)
    if galaxy is None and add_suffix and name != ref.name:
        # some rows were loaded without the suffix
        galaxy = await get_galaxy_by_name(db, ref.name)
    return galaxy


async def get_all_students(db: AsyncSession) -> list[Student]:
    return list((await db.execute(select(Student).order_by(Student.id))).scalars().all())


async def get_all_educators(db: AsyncSession) -> list[Educator]:
    return list((await db.execute(select(Educator).order_by(Educator.id))).scalars().all())
