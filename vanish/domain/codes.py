"""Public codes and single-use tokens.

Generators never check for collisions; the unique constraint in storage does,
and callers retry with a fresh code.
"""

from __future__ import annotations

import re
import secrets
import string
import uuid

CODE_LENGTH = 8
SHARE_CODE_LENGTH = 8
# Links minted before codes grew to eight characters still resolve.
SHARE_CODE_MIN_LENGTH = 6

FILE_CODE_ALPHABET = string.digits
SHARE_CODE_ALPHABET = string.ascii_lowercase + string.digits

_FILE_CODE_RE = re.compile(rf"^[0-9]{{{CODE_LENGTH}}}$")
_SHARE_CODE_RE = re.compile(rf"^[a-z0-9]{{{SHARE_CODE_MIN_LENGTH},{SHARE_CODE_LENGTH}}}$")


def _random_code(alphabet: str, length: int) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_file_code() -> str:
    return _random_code(FILE_CODE_ALPHABET, CODE_LENGTH)


def generate_share_code() -> str:
    return _random_code(SHARE_CODE_ALPHABET, SHARE_CODE_LENGTH)


def generate_download_token() -> str:
    """Opaque token with 122 bits of randomness."""
    return uuid.uuid4().hex


def generate_storage_suffix() -> str:
    return secrets.token_hex(4)


def is_valid_file_code(code: str | None) -> bool:
    return bool(code) and _FILE_CODE_RE.match(code) is not None


def normalize_share_code(code: str | None) -> str:
    return (code or "").strip().lower()


def is_valid_share_code(code: str | None) -> bool:
    return bool(code) and _SHARE_CODE_RE.match(code) is not None
