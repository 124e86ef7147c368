import logging

from passlib.context import CryptContext

logger = logging.getLogger(__name__)

# hex_sha256 only verifies hashes written before argon2 was introduced.
pwd_context = CryptContext(schemes=["argon2", "hex_sha256"], deprecated=["hex_sha256"])


def normalize_password(password: str | None) -> str | None:
    """Trim surrounding whitespace; blank passwords mean no password."""
    if password is None:
        return None
    password = password.strip()
    return password or None


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(password, hashed_password)
    except (ValueError, TypeError):
        logger.warning("[password_verify] unrecognized hash format")
        return False


def verify_and_update(password: str, hashed_password: str) -> tuple[bool, str | None]:
    """Verify and return a replacement hash when the stored one uses a deprecated scheme."""
    try:
        return pwd_context.verify_and_update(password, hashed_password)
    except (ValueError, TypeError):
        logger.warning("[password_verify] unrecognized hash format")
        return False, None
