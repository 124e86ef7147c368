from __future__ import annotations

import base64
import binascii
import json
import re
from dataclasses import dataclass
from urllib.parse import urlparse

from vanish.exceptions.exceptions import ValidationError
from vanish.models.enums import ShareType

_DATA_URL_RE = re.compile(r"^data:([^;]+);base64,(.*)$", re.IGNORECASE | re.DOTALL)


def parse_data_url(data_url: str) -> tuple[str, str] | None:
    match = _DATA_URL_RE.match(data_url)
    if not match:
        return None
    return match.group(1), match.group(2)


def is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


@dataclass(frozen=True)
class ShareDraft:
    type: str
    content: str
    max_text_size: int
    max_image_bytes: int

    def validate(self) -> tuple[str | None, int | None]:
        """Check the draft and return the image mime type and decoded size, if any."""
        if not self.type or not self.content:
            raise ValidationError("Content and type required")
        if self.type not in {item.value for item in ShareType}:
            raise ValidationError("Invalid share type")
        if self.type == ShareType.LINK.value and not is_http_url(self.content):
            raise ValidationError("Invalid URL")
        if self.type == ShareType.JSON.value:
            try:
                json.loads(self.content)
            except ValueError as exc:
                raise ValidationError("Invalid JSON") from exc
        if self.type != ShareType.IMAGE.value:
            if len(self.content) > self.max_text_size:
                raise ValidationError("Content too large (max 1MB)")
            return None, None

        parsed = parse_data_url(self.content)
        if not parsed:
            raise ValidationError("Invalid image data")
        mime_type, encoded = parsed
        if not mime_type.lower().startswith("image/"):
            raise ValidationError("Invalid image type")
        try:
            size = len(base64.b64decode(encoded, validate=True))
        except (binascii.Error, ValueError) as exc:
            raise ValidationError("Invalid image data") from exc
        if size > self.max_image_bytes:
            raise ValidationError("Image too large (max 5MB)")
        return mime_type, size
