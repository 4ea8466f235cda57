from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas import ClassRead, RosterEntry, StudentOptionsRead, StudentOptionsUpdate
from ..services.accounts import delete_class
from ..services.identity import find_student_by_id
from ..services.rosters import (
    get_classes_for_educator,
    get_classes_for_student,
    get_roster_info,
    get_roster_info_for_story,
)
from ..services.stories import (
    get_story,
    get_story_state,
    get_student_options,
    update_story_state,
    update_student_options,
)

router = APIRouter(tags=["classes"])


@router.get("/educator-classes/{educator_id}")
async def educator_classes(educator_id: int, db: AsyncSession = Depends(get_db)):
    classes = await get_classes_for_educator(db, educator_id)
    return {
        "educator_id": educator_id,
        "classes": [ClassRead.model_validate(c).model_dump() for c in classes],
    }


@router.get("/student-classes/{student_id}")
async def student_classes(student_id: int, db: AsyncSession = Depends(get_db)):
    classes = await get_classes_for_student(db, student_id)
    return {
        "student_id": student_id,
        "classes": [ClassRead.model_validate(c).model_dump() for c in classes],
    }


@router.delete("/classes/{class_id}")
async def remove_class(class_id: int, db: AsyncSession = Depends(get_db)):
    if not await delete_class(db, class_id):
        raise HTTPException(status_code=404, detail="Class not found")
    return {"class_id": class_id, "deleted": True}


@router.get("/roster-info/{class_id}", response_model=Dict[str, list[RosterEntry]])
async def roster_info(class_id: int, db: AsyncSession = Depends(get_db)):
    return await get_roster_info(db, class_id)


@router.get("/roster-info/{class_id}/{story_name}", response_model=list[RosterEntry])
async def roster_info_for_story(class_id: int, story_name: str, db: AsyncSession = Depends(get_db)):
    return await get_roster_info_for_story(db, class_id, story_name)


@router.get("/story-state/{student_id}/{story_name}")
async def read_story_state(student_id: int, story_name: str, db: AsyncSession = Depends(get_db)):
    state = await get_story_state(db, student_id, story_name)
    if state is None:
        raise HTTPException(status_code=404, detail="No state for this student and story")
    return {"student_id": student_id, "story_name": story_name, "state": state}


@router.put("/story-state/{student_id}/{story_name}")
async def write_story_state(
    student_id: int,
    story_name: str,
    new_state: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
):
    if await find_student_by_id(db, student_id) is None:
        raise HTTPException(status_code=404, detail="Student not found")
    if await get_story(db, story_name) is None:
        raise HTTPException(status_code=404, detail="Story not found")
    state = await update_story_state(db, student_id, story_name, new_state)
    if state is None:
        raise HTTPException(status_code=500, detail="Could not save story state")
    return {"student_id": student_id, "story_name": story_name, "state": state}


@router.get("/student-options/{student_id}", response_model=StudentOptionsRead)
async def read_student_options(student_id: int, db: AsyncSession = Depends(get_db)):
    options = await get_student_options(db, student_id)
    if options is None:
        if await find_student_by_id(db, student_id) is None:
            raise HTTPException(status_code=404, detail="Student not found")
        return StudentOptionsRead(student_id=student_id)
    return options


@router.put("/student-options/{student_id}", response_model=StudentOptionsRead)
async def write_student_options(
    student_id: int,
    data: StudentOptionsUpdate,
    db: AsyncSession = Depends(get_db),
):
    if await find_student_by_id(db, student_id) is None:
        raise HTTPException(status_code=404, detail="Student not found")
    options = await update_student_options(db, student_id, data.model_dump(exclude_unset=True))
    if options is None:
        raise HTTPException(status_code=500, detail="Could not save options")
    return options
