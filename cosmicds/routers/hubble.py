from __future__ import annotations

from typing import Awaitable, Callable, List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models import MeasurementNumber
from ..results import RemoveMeasurementResult, SubmitMeasurementResult
from ..schemas import (
    ClassDataRead,
    GalaxyMark,
    GalaxyRead,
    MeasurementRead,
    MeasurementSubmit,
    SampleMeasurementRead,
    SampleMeasurementSubmit,
    SpectrumStatus,
    StudentDataRead,
)
from ..services.galaxies import (
    get_all_galaxies,
    get_galaxies_for_types,
    get_new_galaxies,
    get_sample_galaxy,
    get_unchecked_spectra_galaxies,
    mark_galaxy_bad,
    mark_galaxy_spectrum_bad,
    mark_galaxy_tileload_bad,
    set_galaxy_spectrum_status,
)
from ..services.identity import (
    GalaxyByName,
    find_student_by_id,
    galaxy_ref,
    galaxy_ref_from_path,
    resolve_galaxy,
)
from ..services.measurements import (
    get_all_hubble_class_data,
    get_all_hubble_measurements,
    get_all_hubble_student_data,
    get_all_nth_sample_hubble_measurements,
    get_all_sample_hubble_measurements,
    get_class_hubble_measurements,
    get_hubble_measurement,
    get_sample_hubble_measurement,
    get_sample_hubble_measurements,
    get_stage_three_measurements,
    get_student_hubble_measurements,
    remove_hubble_measurement,
    remove_sample_hubble_measurement,
    submit_hubble_measurement,
    submit_sample_hubble_measurement,
)

router = APIRouter(prefix="/hubbles_law", tags=["hubbles_law"])


def _dump(schema, rows):
    return [schema.model_validate(r).model_dump(mode="json") for r in rows]


# -------------------------
# Measurements
# -------------------------
async def _submission_galaxy(db: AsyncSession, data: MeasurementSubmit):
    """Resolve the submitted galaxy, checking the student first.

    Returns ``(None, galaxy)`` when both exist, otherwise the failing result and ``None``.
    """
    if await find_student_by_id(db, data.student_id) is None:
        return SubmitMeasurementResult.no_such_student, None
    galaxy = await resolve_galaxy(db, galaxy_ref(data.galaxy_id, data.galaxy_name))
    if galaxy is None:
        return SubmitMeasurementResult.no_such_galaxy, None
    return None, galaxy


@router.put("/submit-measurement")
async def submit_measurement(data: MeasurementSubmit, db: AsyncSession = Depends(get_db)):
    result, galaxy = await _submission_galaxy(db, data)
    row = None
    if galaxy is not None:
        result, row = await submit_hubble_measurement(db, data.student_id, galaxy.id, data.measurement_fields())
    return JSONResponse(
        status_code=result.status_code(),
        content={
            "measurement": MeasurementRead.model_validate(row).model_dump(mode="json") if row else None,
            "status": result.value,
            "success": result.success(),
        },
    )


@router.put("/sample-measurement")
async def submit_sample_measurement(data: SampleMeasurementSubmit, db: AsyncSession = Depends(get_db)):
    result, galaxy = await _submission_galaxy(db, data)
    row = None
    if galaxy is not None:
        result, row = await submit_sample_hubble_measurement(
            db, data.student_id, data.measurement_number, galaxy.id, data.measurement_fields()
        )
    return JSONResponse(
        status_code=result.status_code(),
        content={
            "measurement": SampleMeasurementRead.model_validate(row).model_dump(mode="json") if row else None,
            "status": result.value,
            "success": result.success(),
        },
    )


@router.delete("/measurement/{student_id}/{galaxy_identifier}")
async def delete_measurement(student_id: int, galaxy_identifier: str, db: AsyncSession = Depends(get_db)):
    galaxy = await resolve_galaxy(db, galaxy_ref_from_path(galaxy_identifier))
    galaxy_id = galaxy.id if galaxy else 0
    if galaxy is None:
        result = RemoveMeasurementResult.bad_request
    else:
        result = await remove_hubble_measurement(db, student_id, galaxy_id)
    return JSONResponse(
        status_code=result.status_code(),
        content={
            "student_id": student_id,
            "galaxy_id": galaxy_id,
            "status": result.value,
            "success": result.success(),
        },
    )


@router.delete("/sample-measurement/{student_id}/{measurement_number}")
async def delete_sample_measurement(student_id: int, measurement_number: str, db: AsyncSession = Depends(get_db)):
    result = await remove_sample_hubble_measurement(db, student_id, measurement_number)
    return JSONResponse(
        status_code=result.status_code(),
        content={"student_id": student_id, "status": result.value, "success": result.success()},
    )


@router.get("/measurements/{student_id}")
async def student_measurements(student_id: int, db: AsyncSession = Depends(get_db)):
    rows = await get_student_hubble_measurements(db, student_id)
    return {"student_id": student_id, "measurements": _dump(MeasurementRead, rows)}


@router.get("/measurements/{student_id}/{galaxy_id}")
async def student_measurement(student_id: int, galaxy_id: int, db: AsyncSession = Depends(get_db)):
    row = await get_hubble_measurement(db, student_id, galaxy_id)
    return JSONResponse(
        status_code=200 if row else 404,
        content={
            "student_id": student_id,
            "galaxy_id": galaxy_id,
            "measurement": MeasurementRead.model_validate(row).model_dump(mode="json") if row else None,
        },
    )


@router.get("/class-measurements/{student_id}/{class_id}")
async def class_measurements(student_id: int, class_id: int, db: AsyncSession = Depends(get_db)):
    rows = await get_class_hubble_measurements(db, class_id, exclude_student_id=student_id)
    return {"student_id": student_id, "class_id": class_id, "measurements": _dump(MeasurementRead, rows)}


@router.get("/stage-3-data/{student_id}/{class_id}")
async def stage_three_class_data(
    student_id: int,
    class_id: int,
    last_checked: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    rows = await get_stage_three_measurements(db, student_id, class_id, last_checked)
    return JSONResponse(
        status_code=200 if rows else 404,
        content={"student_id": student_id, "class_id": class_id, "measurements": _dump(MeasurementRead, rows)},
    )


@router.get("/stage-3-data/{student_id}")
async def stage_three_data(student_id: int, db: AsyncSession = Depends(get_db)):
    rows = await get_stage_three_measurements(db, student_id)
    return JSONResponse(
        status_code=200 if rows else 404,
        content={"student_id": student_id, "class_id": None, "measurements": _dump(MeasurementRead, rows)},
    )


@router.get("/all-data")
async def all_data(db: AsyncSession = Depends(get_db)):
    return {
        "measurements": _dump(MeasurementRead, await get_all_hubble_measurements(db)),
        "student_data": _dump(StudentDataRead, await get_all_hubble_student_data(db)),
        "class_data": _dump(ClassDataRead, await get_all_hubble_class_data(db)),
    }


# -------------------------
# Sample measurements
# -------------------------
@router.get("/sample-measurements")
async def all_sample_measurements(filter_null: bool = Query(True), db: AsyncSession = Depends(get_db)):
    return _dump(SampleMeasurementRead, await get_all_sample_hubble_measurements(db, filter_null))


@router.get("/sample-measurements/{measurement_number}")
async def nth_sample_measurements(measurement_number: MeasurementNumber, db: AsyncSession = Depends(get_db)):
    return _dump(SampleMeasurementRead, await get_all_nth_sample_hubble_measurements(db, measurement_number))


@router.get("/sample-measurements/{student_id}/{measurement_number}")
async def student_sample_measurement(
    student_id: int, measurement_number: MeasurementNumber, db: AsyncSession = Depends(get_db)
):
    row = await get_sample_hubble_measurement(db, student_id, measurement_number)
    return JSONResponse(
        status_code=200 if row else 404,
        content={
            "student_id": student_id,
            "measurement": SampleMeasurementRead.model_validate(row).model_dump(mode="json") if row else None,
        },
    )


@router.get("/student-sample-measurements/{student_id}")
async def student_sample_measurements(student_id: int, db: AsyncSession = Depends(get_db)):
    rows = await get_sample_hubble_measurements(db, student_id)
    return {"student_id": student_id, "measurements": _dump(SampleMeasurementRead, rows)}


# -------------------------
# Galaxies
# -------------------------
@router.get("/galaxies", response_model=List[GalaxyRead])
async def galaxies(types: Optional[str] = Query(None), db: AsyncSession = Depends(get_db)):
    if types is None:
        return await get_all_galaxies(db)
    return await get_galaxies_for_types(db, types.split(","))


@router.get("/sample-galaxy", response_model=Optional[GalaxyRead])
async def sample_galaxy(db: AsyncSession = Depends(get_db)):
    return await get_sample_galaxy(db)


@router.get("/unchecked-galaxies", response_model=List[GalaxyRead])
async def unchecked_galaxies(db: AsyncSession = Depends(get_db)):
    return await get_unchecked_spectra_galaxies(db)


@router.get("/new-galaxies", response_model=List[GalaxyRead])
async def new_galaxies(db: AsyncSession = Depends(get_db)):
    return await get_new_galaxies(db)


async def _mark(
    data: GalaxyMark,
    db: AsyncSession,
    marker: Callable[[AsyncSession, int], Awaitable[bool]],
    marked_status: str,
) -> JSONResponse:
    ref = galaxy_ref(data.galaxy_id, data.galaxy_name)
    if ref is None:
        return JSONResponse(status_code=400, content={"status": "missing_id_or_name"})
    galaxy = await resolve_galaxy(db, ref)
    if galaxy is None:
        return JSONResponse(status_code=404, content={"status": "no_such_galaxy"})
    if not await marker(db, galaxy.id):
        return JSONResponse(status_code=500, content={"status": "error"})
    return JSONResponse(status_code=200, content={"status": marked_status})


@router.put("/mark-galaxy-bad")
async def mark_bad(data: GalaxyMark, db: AsyncSession = Depends(get_db)):
    return await _mark(data, db, mark_galaxy_bad, "galaxy_marked_bad")


@router.post("/mark-spectrum-bad")
async def mark_spectrum_bad(data: GalaxyMark, db: AsyncSession = Depends(get_db)):
    return await _mark(data, db, mark_galaxy_spectrum_bad, "galaxy_spectrum_marked_bad")


@router.post("/mark-tileload-bad")
async def mark_tileload_bad(data: GalaxyMark, db: AsyncSession = Depends(get_db)):
    return await _mark(data, db, mark_galaxy_tileload_bad, "galaxy_tileload_marked_bad")


@router.post("/set-spectrum-status")
async def spectrum_status(data: SpectrumStatus, db: AsyncSession = Depends(get_db)):
    galaxy = await resolve_galaxy(db, GalaxyByName(data.galaxy_name))
    if galaxy is None:
        return JSONResponse(status_code=404, content={"status": "no_such_galaxy", "galaxy": data.galaxy_name})
    if not await set_galaxy_spectrum_status(db, galaxy.id, data.good):
        return JSONResponse(status_code=500, content={"status": "error", "galaxy": galaxy.name})
    return {
        "status": "status_updated",
        "marked_good": data.good,
        "marked_bad": not data.good,
        "galaxy": galaxy.name,
    }
