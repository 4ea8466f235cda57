# services/codes.py
"""Human-facing code generation (verification codes, classroom codes).

Generation is check-then-decide: a candidate is drawn and checked against the
store, and the caller performs the insert. The unique constraints on the
tables remain the source of truth, so callers that lose an insert race call
back in here for a fresh candidate. The loop terminates with overwhelming
probability, and ``settings.CODE_MAX_ATTEMPTS`` bounds it outright.
"""
import enum
import hashlib
import logging
import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cosmicds.models import Class, Educator, Student
from cosmicds.settings.config import settings

logger = logging.getLogger(__name__)


class CodeKind(str, enum.Enum):
    verification = "verification"
    classroom = "classroom"


class CodeGenerationError(RuntimeError):
    """Raised when every candidate within the retry budget already exists."""


def verification_code_candidate() -> str:
    return secrets.token_hex(settings.VERIFICATION_CODE_BYTES)


def class_code_candidate(educator_id: int, name: str, attempt: int = 0) -> str:
    # attempt 0 is the plain (educator, name) digest; later attempts are salted
    raw = f"{educator_id}:{name}"
    if attempt:
        raw = f"{raw}:{attempt}"
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()
    return digest[: settings.CLASS_CODE_LENGTH].upper()


async def code_exists(db: AsyncSession, kind: CodeKind, code: str) -> bool:
    if kind is CodeKind.classroom:
        stmt = select(Class.id).where(Class.code == code).limit(1)
        return (await db.execute(stmt)).scalar_one_or_none() is not None

    # Student and Educator verification codes share one namespace
    for model in (Student, Educator):
        stmt = select(model.id).where(model.verification_code == code).limit(1)
        if (await db.execute(stmt)).scalar_one_or_none() is not None:
            return True
    return False


async def generate_unique_code(
    db: AsyncSession,
    kind: CodeKind,
    *,
    educator_id: int | None = None,
    name: str | None = None,
    start: int = 0,
    max_attempts: int | None = None,
) -> str:
    """Return a code of ``kind`` that is not currently present in the store.

    Classroom codes are derived from ``educator_id`` and ``name``; ``start``
    selects the first salt so a caller retrying after an insert conflict does
    not draw the same candidate again.
    """
    if kind is CodeKind.classroom and (educator_id is None or name is None):
        raise ValueError("classroom codes need an educator_id and a name")

    attempts = max_attempts or settings.CODE_MAX_ATTEMPTS
    for i in range(attempts):
        if kind is CodeKind.classroom:
            candidate = class_code_candidate(educator_id, name, start + i)
        else:
            candidate = verification_code_candidate()
        if not await code_exists(db, kind, candidate):
            return candidate
        logger.debug("%s code collision on attempt %s", kind.value, i + 1)

    logger.error("Could not generate a unique %s code in %s attempts", kind.value, attempts)
    raise CodeGenerationError(f"no unique {kind.value} code after {attempts} attempts")
