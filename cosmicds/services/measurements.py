# services/measurements.py
"""Create-or-update of Hubble measurements keyed on a composite identity.

Primary measurements are keyed on (student_id, galaxy_id); sample measurements
on (student_id, measurement_number). Callers never see a surrogate row id.
A submission only writes the fields it carries: a measurement accrues values
over several submissions and a later one never erases an earlier field.
The class-level reads at the bottom feed the Hubble fit stage: classmates' complete
measurements and per-student / per-class fits.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from cosmicds.models import (
    MEASUREMENT_FIELDS,
    HubbleMeasurement,
    MeasurementNumber,
    SampleHubbleMeasurement,
    StudentClass,
)
from cosmicds.results import RemoveMeasurementResult, SubmitMeasurementResult
from cosmicds.services.identity import find_student_by_id, get_galaxy_by_id

logger = logging.getLogger(__name__)


def measurement_values(fields: Optional[Mapping[str, Any]]) -> dict:
    """Keep only known payload columns that actually carry a value."""
    return {k: v for k, v in (fields or {}).items() if k in MEASUREMENT_FIELDS and v is not None}


def parse_measurement_number(value) -> MeasurementNumber | None:
    if isinstance(value, MeasurementNumber):
        return value
    try:
        return MeasurementNumber(str(value or "").strip().lower())
    except ValueError:
        return None


async def _exists(db: AsyncSession, model, key: dict) -> bool:
    return (await db.execute(select(model).filter_by(**key))).scalars().first() is not None


async def _upsert(db: AsyncSession, model, key: dict, values: dict):
    """Merge ``values`` into the row at ``key``, inserting it if absent.

    Two writers inserting the same key concurrently both miss the lookup; the
    loser hits the primary-key constraint and goes around once more as an update.
    """
    for attempt in range(2):
        try:
            row = (await db.execute(select(model).filter_by(**key))).scalars().first()
            if row is not None:
                for name, value in values.items():
                    setattr(row, name, value)
                await db.commit()
                return SubmitMeasurementResult.updated, row

            row = model(**key, **values)
            db.add(row)
            await db.commit()
            return SubmitMeasurementResult.created, row
        except IntegrityError:
            await db.rollback()
            if attempt == 0 and await _exists(db, model, key):
                logger.warning("Concurrent insert for %s %s; retrying as update", model.__tablename__, key)
                continue
            logger.exception("Could not upsert %s %s", model.__tablename__, key)
            break
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Store failure while upserting %s %s", model.__tablename__, key)
            break
    return SubmitMeasurementResult.error, None


async def _remove(db: AsyncSession, row) -> RemoveMeasurementResult:
    if row is None:
        return RemoveMeasurementResult.not_found
    try:
        await db.delete(row)
        await db.commit()
    except StaleDataError:
        # someone else deleted it between our read and our delete
        await db.rollback()
        return RemoveMeasurementResult.not_found
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not remove %s row", row.__tablename__)
        return RemoveMeasurementResult.error
    return RemoveMeasurementResult.removed


# ---------------------------------------------
# Primary measurements
# ---------------------------------------------
async def submit_hubble_measurement(
    db: AsyncSession,
    student_id: int,
    galaxy_id: int,
    fields: Optional[Mapping[str, Any]] = None,
) -> tuple[SubmitMeasurementResult, HubbleMeasurement | None]:
    if not student_id or not galaxy_id:
        return SubmitMeasurementResult.bad_request, None
    if await find_student_by_id(db, student_id) is None:
        return SubmitMeasurementResult.no_such_student, None
    if await get_galaxy_by_id(db, galaxy_id) is None:
        return SubmitMeasurementResult.no_such_galaxy, None

    key = {"student_id": student_id, "galaxy_id": galaxy_id}
    result, row = await _upsert(db, HubbleMeasurement, key, measurement_values(fields))
    logger.debug("Hubble measurement %s: %s", key, result.value)
    return result, row


async def get_hubble_measurement(db: AsyncSession, student_id: int, galaxy_id: int) -> HubbleMeasurement | None:
    stmt = select(HubbleMeasurement).where(
        HubbleMeasurement.student_id == student_id,
        HubbleMeasurement.galaxy_id == galaxy_id,
    )
    return (await db.execute(stmt)).scalars().first()


async def get_student_hubble_measurements(db: AsyncSession, student_id: int) -> list[HubbleMeasurement]:
    stmt = (
        select(HubbleMeasurement)
        .where(HubbleMeasurement.student_id == student_id)
        .order_by(HubbleMeasurement.galaxy_id)
    )
    return list((await db.execute(stmt)).scalars().all())


async def get_class_hubble_measurements(
    db: AsyncSession,
    class_id: int,
    exclude_student_id: Optional[int] = None,
) -> list[HubbleMeasurement]:
    """Measurements of every student in a class, optionally leaving one student out."""
    ids = set(
        (await db.execute(select(StudentClass.student_id).where(StudentClass.class_id == class_id))).scalars().all()
    )
    ids.discard(exclude_student_id)
    if not ids:
        return []
    stmt = (
        select(HubbleMeasurement)
        .where(HubbleMeasurement.student_id.in_(ids))
        .order_by(HubbleMeasurement.student_id, HubbleMeasurement.galaxy_id)
    )
    return list((await db.execute(stmt)).scalars().all())


async def remove_hubble_measurement(db: AsyncSession, student_id: int, galaxy_id: int) -> RemoveMeasurementResult:
    if not student_id or not galaxy_id or student_id < 0 or galaxy_id < 0:
        return RemoveMeasurementResult.bad_request
    row = await get_hubble_measurement(db, student_id, galaxy_id)
    return await _remove(db, row)


# ---------------------------------------------
# Sample measurements
# ---------------------------------------------
async def submit_sample_hubble_measurement(
    db: AsyncSession,
    student_id: int,
    measurement_number,
    galaxy_id: int,
    fields: Optional[Mapping[str, Any]] = None,
) -> tuple[SubmitMeasurementResult, SampleHubbleMeasurement | None]:
    number = parse_measurement_number(measurement_number or MeasurementNumber.first)
    if number is None or not student_id or not galaxy_id:
        return SubmitMeasurementResult.bad_request, None
    if await find_student_by_id(db, student_id) is None:
        return SubmitMeasurementResult.no_such_student, None
    galaxy = await get_galaxy_by_id(db, galaxy_id)
    if galaxy is None:
        return SubmitMeasurementResult.no_such_galaxy, None
    if not galaxy.is_sample:
        return SubmitMeasurementResult.bad_request, None

    key = {"student_id": student_id, "measurement_number": number}
    values = measurement_values(fields)
    values["galaxy_id"] = galaxy_id
    return await _upsert(db, SampleHubbleMeasurement, key, values)


async def get_sample_hubble_measurement(
    db: AsyncSession, student_id: int, measurement_number
) -> SampleHubbleMeasurement | None:
    number = parse_measurement_number(measurement_number)
    if number is None:
        return None
    stmt = select(SampleHubbleMeasurement).where(
        SampleHubbleMeasurement.student_id == student_id,
        SampleHubbleMeasurement.measurement_number == number,
    )
    return (await db.execute(stmt)).scalars().first()


async def get_sample_hubble_measurements(db: AsyncSession, student_id: int) -> list[SampleHubbleMeasurement]:
    stmt = (
        select(SampleHubbleMeasurement)
        .where(SampleHubbleMeasurement.student_id == student_id)
        .order_by(SampleHubbleMeasurement.measurement_number)
    )
    return list((await db.execute(stmt)).scalars().all())


async def get_all_sample_hubble_measurements(db: AsyncSession, filter_null: bool = True) -> list[SampleHubbleMeasurement]:
    stmt = select(SampleHubbleMeasurement)
    if filter_null:
        stmt = stmt.where(
            SampleHubbleMeasurement.velocity_value.isnot(None),
            SampleHubbleMeasurement.est_dist_value.isnot(None),
        )
    stmt = stmt.order_by(SampleHubbleMeasurement.student_id, SampleHubbleMeasurement.measurement_number)
    return list((await db.execute(stmt)).scalars().all())


async def get_all_nth_sample_hubble_measurements(db: AsyncSession, measurement_number) -> list[SampleHubbleMeasurement]:
    number = parse_measurement_number(measurement_number)
    if number is None:
        return []
    stmt = (
        select(SampleHubbleMeasurement)
        .where(SampleHubbleMeasurement.measurement_number == number)
        .order_by(SampleHubbleMeasurement.student_id)
    )
    return list((await db.execute(stmt)).scalars().all())


async def remove_sample_hubble_measurement(
    db: AsyncSession, student_id: int, measurement_number
) -> RemoveMeasurementResult:
    number = parse_measurement_number(measurement_number)
    if number is None or not student_id or student_id < 0:
        return RemoveMeasurementResult.bad_request
    row = await get_sample_hubble_measurement(db, student_id, number)
    return await _remove(db, row)


# ---------------------------------------------
# Class data for the Hubble fit stage
# ---------------------------------------------
HUBBLE_FIT_UNIT = "km / s / Mpc"
AGE_UNIT = "Gyr"
# 1 / (1 km/s/Mpc) expressed in Gyr
HUBBLE_TIME_GYR = 977.792


def _complete(stmt, model):
    return stmt.where(model.velocity_value.isnot(None), model.est_dist_value.isnot(None))


def _from_epoch_ms(last_checked: int) -> datetime:
    return datetime.fromtimestamp(last_checked / 1000, tz=timezone.utc)


async def get_stage_three_measurements(
    db: AsyncSession,
    student_id: int,
    class_id: Optional[int] = None,
    last_checked: Optional[int] = None,
) -> list[HubbleMeasurement]:
    """Complete measurements (velocity and distance set) of a student's classmates.

    Without ``class_id`` every class the student belongs to counts.
    ``last_checked`` is epoch milliseconds; only rows modified after it are returned.
    """
    if class_id is None:
        stmt = select(StudentClass.class_id).where(StudentClass.student_id == student_id)
        class_ids = set((await db.execute(stmt)).scalars().all())
    else:
        class_ids = {class_id}
    if not class_ids:
        return []

    stmt = select(StudentClass.student_id).where(StudentClass.class_id.in_(class_ids))
    ids = set((await db.execute(stmt)).scalars().all())
    ids.discard(student_id)
    if not ids:
        return []

    stmt = _complete(select(HubbleMeasurement), HubbleMeasurement).where(HubbleMeasurement.student_id.in_(ids))
    if last_checked is not None:
        stmt = stmt.where(HubbleMeasurement.last_modified > _from_epoch_ms(last_checked))
    stmt = stmt.order_by(HubbleMeasurement.student_id, HubbleMeasurement.galaxy_id)
    return list((await db.execute(stmt)).scalars().all())


def hubble_fit(points: Iterable[tuple[float, float]]) -> float | None:
    """Least-squares slope of velocity against distance through the origin."""
    sxy = sxx = 0.0
    for distance, velocity in points:
        sxy += distance * velocity
        sxx += distance * distance
    return sxy / sxx if sxx else None


def _fit_summary(rows: list[HubbleMeasurement]) -> dict:
    h0 = hubble_fit((r.est_dist_value, r.velocity_value) for r in rows)
    stamps = [r.last_modified for r in rows if r.last_modified is not None]
    return {
        "hubble_fit_value": h0,
        "hubble_fit_unit": HUBBLE_FIT_UNIT,
        "age_value": HUBBLE_TIME_GYR / h0 if h0 else None,
        "age_unit": AGE_UNIT,
        "measurement_count": len(rows),
        "last_data_update": max(stamps) if stamps else None,
    }


async def get_all_hubble_measurements(db: AsyncSession) -> list[HubbleMeasurement]:
    stmt = _complete(select(HubbleMeasurement), HubbleMeasurement).order_by(
        HubbleMeasurement.student_id, HubbleMeasurement.galaxy_id
    )
    return list((await db.execute(stmt)).scalars().all())


async def _measurements_by_student(db: AsyncSession) -> dict[int, list[HubbleMeasurement]]:
    by_student: dict[int, list[HubbleMeasurement]] = defaultdict(list)
    for row in await get_all_hubble_measurements(db):
        by_student[row.student_id].append(row)
    return by_student


async def get_all_hubble_student_data(db: AsyncSession) -> list[dict]:
    by_student = await _measurements_by_student(db)
    return [{"student_id": sid, **_fit_summary(rows)} for sid, rows in sorted(by_student.items())]


async def get_all_hubble_class_data(db: AsyncSession) -> list[dict]:
    """One fit per class over the complete measurements of all its students."""
    by_student = await _measurements_by_student(db)
    if not by_student:
        return []

    members = await db.execute(
        select(StudentClass.class_id, StudentClass.student_id).where(StudentClass.student_id.in_(list(by_student)))
    )
    by_class: dict[int, list[HubbleMeasurement]] = defaultdict(list)
    for class_id, sid in members.all():
        by_class[class_id].extend(by_student[sid])
    return [{"class_id": cid, **_fit_summary(rows)} for cid, rows in sorted(by_class.items())]
