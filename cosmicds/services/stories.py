# services/stories.py
"""Per-student story progress and reader options.

Both are one-row-per-key upserts: (student_id, story_name) for story state,
student_id for options.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cosmicds.models import Story, StoryState, StudentOptions

logger = logging.getLogger(__name__)

OPTION_FIELDS = ("speech_autoread", "speech_rate", "speech_pitch")


async def get_story(db: AsyncSession, story_name: str) -> Story | None:
    return await db.get(Story, story_name)


async def get_story_state(db: AsyncSession, student_id: int, story_name: str) -> Optional[dict]:
    row = await db.get(StoryState, (student_id, story_name))
    return row.story_state if row is not None else None


async def update_story_state(
    db: AsyncSession, student_id: int, story_name: str, new_state: dict
) -> Optional[dict]:
    """Replace the whole state blob for (student_id, story_name), creating the row if needed.

    Returns ``None`` for an unknown story or when the write fails.
    """
    if await get_story(db, story_name) is None:
        logger.info("Refusing story state for unknown story %r", story_name)
        return None
    for attempt in range(2):
        row = await db.get(StoryState, (student_id, story_name))
        if row is None:
            row = StoryState(student_id=student_id, story_name=story_name, story_state=new_state)
            db.add(row)
        else:
            row.story_state = new_state
        try:
            await db.commit()
            return row.story_state
        except IntegrityError:
            await db.rollback()
            # only a lost insert race is worth a second pass
            if attempt == 0 and await db.get(StoryState, (student_id, story_name)) is not None:
                logger.warning("Concurrent story state insert for (%s, %s); retrying", student_id, story_name)
                continue
            logger.exception("Could not save story state for (%s, %s)", student_id, story_name)
            break
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Store failure saving story state for (%s, %s)", student_id, story_name)
            break
    return None


async def get_student_options(db: AsyncSession, student_id: int) -> StudentOptions | None:
    return await db.get(StudentOptions, student_id)


async def update_student_options(
    db: AsyncSession, student_id: int, fields: Mapping[str, Any]
) -> StudentOptions | None:
    values = {k: v for k, v in (fields or {}).items() if k in OPTION_FIELDS and v is not None}
    options = await db.get(StudentOptions, student_id)
    if options is None:
        options = StudentOptions(student_id=student_id, **values)
        db.add(options)
    else:
        for name, value in values.items():
            setattr(options, name, value)
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not save options for student %s", student_id)
        return None
    return options
