from __future__ import annotations

import re
from dataclasses import dataclass

from vanish.exceptions.exceptions import ValidationError

DEFAULT_UPLOAD_NAME = "upload.bin"
DEFAULT_MIME_TYPE = "application/octet-stream"
MAX_NAME_LENGTH = 255

_UNSAFE_NAME_RE = re.compile(r'[/\\<>:"|?*]|\.\.')


def sanitize_filename(name: str | None) -> str:
    """Neutralize path separators and reserved characters, keeping at most 255 characters."""
    cleaned = _UNSAFE_NAME_RE.sub("_", name or "")[:MAX_NAME_LENGTH]
    return cleaned or DEFAULT_UPLOAD_NAME


def mime_type_allowed(mime_type: str, allowed: list[str]) -> bool:
    # Checks the declared type only; the bytes are never sniffed.
    for pattern in allowed:
        if pattern.endswith("/*"):
            if mime_type.startswith(pattern[:-1]):
                return True
        elif mime_type == pattern:
            return True
    return False


@dataclass(frozen=True)
class UploadDraft:
    file_name: str
    size: int
    mime_type: str

    def validate(self, *, max_size_bytes: int, allowed_mime_types: list[str]) -> None:
        if not self.file_name:
            raise ValidationError("Invalid file name")
        if self.size <= 0:
            raise ValidationError("Invalid file size")
        if self.size > max_size_bytes:
            raise ValidationError(f"File size exceeds {round(max_size_bytes / 1024 / 1024)} MB limit")
        if not mime_type_allowed(self.mime_type, allowed_mime_types):
            raise ValidationError("File type is not allowed")
