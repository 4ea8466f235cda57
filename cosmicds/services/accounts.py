# services/accounts.py
"""Sign-up, login, verification and class creation for students and educators."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cosmicds.models import Class, ClassStory, Educator, Student, StudentClass
from cosmicds.results import CreateClassResult, LoginResult, SignUpResult, VerificationResult
from cosmicds.services.codes import (
    CodeGenerationError,
    CodeKind,
    code_exists,
    generate_unique_code,
)
from cosmicds.services.identity import (
    find_class_by_code,
    find_educator_by_email,
    find_educator_by_id,
    find_student_by_email,
    find_student_by_username,
)
from cosmicds.settings.config import settings
from cosmicds.utils import hash_password, verify_password

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LoginResponse:
    result: LoginResult
    id: Optional[int] = None

    @property
    def success(self) -> bool:
        return self.result.success()


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------
# Sign-up
# ---------------------------------------------
async def _insert_account(db: AsyncSession, model, fields: dict):
    """Insert an account with a fresh verification code.

    The code pre-check is only a fast path; if the insert trips the unique
    constraint on the code we draw again, up to the configured ceiling.
    """
    email = fields["email"]
    for attempt in range(settings.CODE_MAX_ATTEMPTS):
        try:
            code = await generate_unique_code(db, CodeKind.verification)
        except CodeGenerationError:
            return SignUpResult.error, None

        account = model(**fields, verified=False, verification_code=code, visits=0)
        db.add(account)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            if await _identity_taken(db, model, fields):
                logger.info("Sign-up rejected, %s already registered", email)
                return SignUpResult.email_exists, None
            if await code_exists(db, CodeKind.verification, code):
                logger.warning("Verification code collided on insert (attempt %s); regenerating", attempt + 1)
                continue
            logger.exception("Sign-up for %s violated an unexpected constraint", email)
            return SignUpResult.error, None
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Store failure while signing up %s", email)
            return SignUpResult.error, None
        logger.info("%s %s signed up", model.__name__, account.id)
        return SignUpResult.ok, account

    logger.error("Gave up signing up %s after %s code collisions", email, settings.CODE_MAX_ATTEMPTS)
    return SignUpResult.error, None


async def _identity_taken(db: AsyncSession, model, fields: dict) -> bool:
    if model is Student:
        if await find_student_by_email(db, fields["email"]) is not None:
            return True
        return await find_student_by_username(db, fields["username"]) is not None
    return await find_educator_by_email(db, fields["email"]) is not None


async def sign_up_student(
    db: AsyncSession,
    *,
    username: str,
    password: str,
    email: str,
    institution: Optional[str] = None,
    age: Optional[int] = None,
    gender: Optional[str] = None,
    classroom_code: Optional[str] = None,
) -> SignUpResult:
    fields = dict(
        username=username,
        password=hash_password(password),
        email=email.strip(),
        institution=institution,
        age=age,
        gender=gender,
    )
    if await find_student_by_email(db, fields["email"]) is not None:
        return SignUpResult.email_exists

    result, student = await _insert_account(db, Student, fields)
    if student is None or not classroom_code:
        return result

    # An unknown classroom code is not an error; the student just joins no class
    cls = await find_class_by_code(db, classroom_code)
    if cls is None:
        logger.info("Student %s signed up with unknown classroom code %r", student.id, classroom_code)
        return result
    if not await add_student_to_class(db, student.id, cls.id):
        logger.error("Student %s was created but could not be added to class %s", student.id, cls.id)
    return result


async def sign_up_educator(
    db: AsyncSession,
    *,
    first_name: str,
    last_name: str,
    password: str,
    email: str,
    institution: Optional[str] = None,
    age: Optional[int] = None,
    gender: Optional[str] = None,
) -> SignUpResult:
    fields = dict(
        first_name=first_name,
        last_name=last_name,
        password=hash_password(password),
        email=email.strip(),
        institution=institution,
        age=age,
        gender=gender,
    )
    if await find_educator_by_email(db, fields["email"]) is not None:
        return SignUpResult.email_exists

    result, _ = await _insert_account(db, Educator, fields)
    return result


# ---------------------------------------------
# Login
# ---------------------------------------------
async def _check_login(
    db: AsyncSession,
    model,
    email: str,
    password: str,
    finder: Callable[[AsyncSession, str], Awaitable],
) -> LoginResponse:
    user = await finder(db, email)
    if user is None:
        return LoginResponse(LoginResult.email_not_exist)
    if not verify_password(password, user.password):
        return LoginResponse(LoginResult.incorrect_password)
    if not user.verified:
        return LoginResponse(LoginResult.not_verified)

    try:
        await db.execute(
            update(model)
            .where(model.id == user.id)
            .values(visits=model.visits + 1, last_visit=_now())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not record visit for %s %s", model.__name__, user.id)
        return LoginResponse(LoginResult.error)
    await db.refresh(user, attribute_names=["visits", "last_visit"])
    return LoginResponse(LoginResult.ok, user.id)


async def check_student_login(db: AsyncSession, email: str, password: str) -> LoginResponse:
    return await _check_login(db, Student, email, password, find_student_by_email)


async def check_educator_login(db: AsyncSession, email: str, password: str) -> LoginResponse:
    return await _check_login(db, Educator, email, password, find_educator_by_email)


# ---------------------------------------------
# Verification
# ---------------------------------------------
async def _verify(db: AsyncSession, model, code: str) -> VerificationResult:
    code = (code or "").strip()
    if not code:
        return VerificationResult.bad_request
    rows = (await db.execute(select(model).where(model.verification_code == code))).scalars().all()
    if not rows:
        return VerificationResult.invalid_code
    if len(rows) > 1:
        # codes are unique per table; more than one match means the invariant is broken
        logger.error("Verification code %s matches %s %s rows; refusing to verify", code, len(rows), model.__name__)
        return VerificationResult.error

    account = rows[0]
    if account.verified:
        return VerificationResult.already_verified
    account.verified = True
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not verify %s %s", model.__name__, account.id)
        return VerificationResult.error
    logger.info("%s %s verified", model.__name__, account.id)
    return VerificationResult.ok


async def verify_student(db: AsyncSession, code: str) -> VerificationResult:
    return await _verify(db, Student, code)


async def verify_educator(db: AsyncSession, code: str) -> VerificationResult:
    return await _verify(db, Educator, code)


# ---------------------------------------------
# Classes
# ---------------------------------------------
async def _class_named(db: AsyncSession, educator_id: int, name: str) -> Class | None:
    stmt = select(Class).where(Class.educator_id == educator_id, func.lower(Class.name) == name.lower())
    return (await db.execute(stmt)).scalars().first()


async def create_class(db: AsyncSession, educator_id: int, name: str) -> tuple[CreateClassResult, Class | None]:
    """Create a class with a code derived from (educator_id, name).

    The same educator reusing a class name gets ``already_exists``. A code that
    collides with some other class is retried with a salted candidate.
    """
    name = (name or "").strip()
    if not educator_id or not name:
        return CreateClassResult.bad_request, None
    if await find_educator_by_id(db, educator_id) is None:
        return CreateClassResult.bad_request, None
    if await _class_named(db, educator_id, name) is not None:
        return CreateClassResult.already_exists, None

    start = 0
    cls = None
    while cls is None:
        try:
            code = await generate_unique_code(
                db, CodeKind.classroom, educator_id=educator_id, name=name, start=start
            )
        except CodeGenerationError:
            return CreateClassResult.error, None

        cls = Class(educator_id=educator_id, name=name, code=code)
        db.add(cls)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            cls = None
            if await _class_named(db, educator_id, name) is not None:
                return CreateClassResult.already_exists, None
            if not await code_exists(db, CodeKind.classroom, code):
                logger.exception("Creating class %r for educator %s failed", name, educator_id)
                return CreateClassResult.error, None
            start += 1
            if start >= settings.CODE_MAX_ATTEMPTS:
                logger.error("Gave up creating class %r for educator %s", name, educator_id)
                return CreateClassResult.error, None
            logger.warning("Class code %s taken on insert; retrying with salt %s", code, start)
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Store failure while creating class %r for educator %s", name, educator_id)
            return CreateClassResult.error, None

    await attach_story(db, cls.id, settings.DEFAULT_STORY)
    logger.info("Educator %s created class %s (%s)", educator_id, cls.id, cls.code)
    return CreateClassResult.ok, cls


async def attach_story(db: AsyncSession, class_id: int, story_name: str) -> bool:
    """Activate a story for a class. Failure is logged; the class stays."""
    existing = await db.get(ClassStory, (class_id, story_name))
    if existing is not None:
        return True
    db.add(ClassStory(class_id=class_id, story_name=story_name))
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Class %s was created but story %s could not be attached", class_id, story_name)
        return False
    return True


async def add_student_to_class(db: AsyncSession, student_id: int, class_id: int) -> bool:
    if await db.get(StudentClass, (student_id, class_id)) is not None:
        return True
    db.add(StudentClass(student_id=student_id, class_id=class_id))
    try:
        await db.commit()
    except IntegrityError:
        # lost a race with an identical membership insert
        await db.rollback()
        return await db.get(StudentClass, (student_id, class_id)) is not None
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Could not add student %s to class %s", student_id, class_id)
        return False
    return True


async def delete_class(db: AsyncSession, class_id: int) -> bool:
    cls = await db.get(Class, class_id)
    if cls is None:
        return False
    await db.delete(cls)
    await db.commit()
    logger.info("Deleted class %s", class_id)
    return True
