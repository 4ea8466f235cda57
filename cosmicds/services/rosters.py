# services/rosters.py
"""Many-to-many reads: class membership, active stories and roster views.

Every read here follows the same shape: one query against the join table for
the set of ids, then a single ``WHERE id IN (...)`` fetch for the rows.
"""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cosmicds.models import Class, ClassStory, Student, StoryState, StudentClass


async def _student_ids_for_class(db: AsyncSession, class_id: int) -> set[int]:
    rows = (await db.execute(select(StudentClass.student_id).where(StudentClass.class_id == class_id))).scalars().all()
    return set(rows)


async def _class_ids_for_student(db: AsyncSession, student_id: int) -> set[int]:
    rows = (await db.execute(select(StudentClass.class_id).where(StudentClass.student_id == student_id))).scalars().all()
    return set(rows)


async def get_classes_for_educator(db: AsyncSession, educator_id: int) -> list[Class]:
    stmt = select(Class).where(Class.educator_id == educator_id).order_by(Class.id)
    return list((await db.execute(stmt)).scalars().all())


async def get_classes_for_student(db: AsyncSession, student_id: int) -> list[Class]:
    ids = await _class_ids_for_student(db, student_id)
    if not ids:
        return []
    stmt = select(Class).where(Class.id.in_(ids)).order_by(Class.id)
    return list((await db.execute(stmt)).scalars().all())


async def get_students_for_class(db: AsyncSession, class_id: int) -> list[Student]:
    ids = await _student_ids_for_class(db, class_id)
    if not ids:
        return []
    stmt = select(Student).where(Student.id.in_(ids)).order_by(Student.id)
    return list((await db.execute(stmt)).scalars().all())


async def get_active_story_names(db: AsyncSession, class_id: int) -> list[str]:
    stmt = select(ClassStory.story_name).where(ClassStory.class_id == class_id).order_by(ClassStory.story_name)
    return list(dict.fromkeys((await db.execute(stmt)).scalars().all()))


async def get_roster_info_for_story(db: AsyncSession, class_id: int, story_name: str) -> list[StoryState]:
    """Story states for ``story_name`` of every student in the class, with username/email attached."""
    ids = await _student_ids_for_class(db, class_id)
    if not ids:
        return []
    stmt = (
        select(StoryState)
        .options(selectinload(StoryState.student))
        .where(StoryState.student_id.in_(ids), StoryState.story_name == story_name)
        .order_by(StoryState.student_id)
    )
    return list((await db.execute(stmt)).scalars().all())


async def get_roster_info(db: AsyncSession, class_id: int) -> dict[str, list[StoryState]]:
    roster: dict[str, list[StoryState]] = {}
    for name in await get_active_story_names(db, class_id):
        roster[name] = await get_roster_info_for_story(db, class_id, name)
    return roster
