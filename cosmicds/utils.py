import logging

from passlib.hash import bcrypt

from .settings.config import settings

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash.

    Malformed stored hashes count as a mismatch rather than an error.
    """
    try:
        return bcrypt.verify(password, hashed)
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def with_galaxy_suffix(name: str) -> str:
    """Galaxy names are stored with their file suffix; bare names get it appended."""
    name = (name or "").strip()
    suffix = settings.GALAXY_NAME_SUFFIX
    if suffix and not name.endswith(suffix):
        name += suffix
    return name
