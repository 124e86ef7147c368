from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from vanish.core.config import settings
from vanish.core.hashing import hash_password, normalize_password, verify_and_update
from vanish.core.optimistic import with_optimistic_retry
from vanish.domain.codes import generate_share_code, is_valid_share_code, normalize_share_code
from vanish.domain.policy import clamp_minutes, is_burned, is_expired, utcnow
from vanish.domain.share import ShareDraft
from vanish.exceptions.exceptions import (
    FeatureDisabledError,
    GoneError,
    GoneReason,
    NotFoundError,
    PasswordIncorrectError,
    PasswordRequiredError,
    StorageError,
    ValidationError,
)
from vanish.models.enums import ShareType
from vanish.services.share_store import NewShare, ShareSnapshot, ShareStore


@dataclass(frozen=True)
class ShareCreated:
    code: str
    url: str
    expires_at: datetime


@dataclass(frozen=True)
class ShareView:
    snapshot: ShareSnapshot

    @property
    def requires_password(self) -> bool:
        return self.snapshot.password_hash is not None


class ShareService:
    def __init__(
        self,
        store: ShareStore | None,
        *,
        enabled: bool | None = None,
        base_url: str | None = None,
        retry_attempts: int | None = None,
        code_attempts: int | None = None,
    ):
        # Unset options follow the current settings, read per instance.
        self.store = store
        self.enabled = settings.SHARE_ENABLED if enabled is None else enabled
        self.base_url = settings.BASE_URL if base_url is None else base_url
        self.retry_attempts = settings.OPTIMISTIC_RETRY_ATTEMPTS if retry_attempts is None else retry_attempts
        self.code_attempts = settings.CODE_RESERVATION_ATTEMPTS if code_attempts is None else code_attempts

    def _require_store(self) -> ShareStore:
        if self.store is None:
            raise StorageError("Storage not configured")
        return self.store

    async def create(
        self,
        *,
        share_type: str | None,
        content: str | None,
        expiry_minutes: int | None = None,
        password: str | None = None,
        burn_after_reading: bool = False,
        language: str | None = None,
        original_name: str | None = None,
        mime_type: str | None = None,
    ) -> ShareCreated:
        if not self.enabled:
            raise FeatureDisabledError("Share creation is temporarily disabled")
        if not isinstance(share_type, str) or not isinstance(content, str):
            raise ValidationError("Content and type required")

        normalized_content = content if share_type == ShareType.IMAGE.value else content.strip()
        image_mime, image_size = ShareDraft(
            type=share_type,
            content=normalized_content,
            max_text_size=settings.MAX_SHARE_TEXT_SIZE,
            max_image_bytes=settings.MAX_SHARE_IMAGE_BYTES,
        ).validate()

        store = self._require_store()
        minutes = clamp_minutes(
            expiry_minutes,
            default=settings.DEFAULT_SHARE_EXPIRY_MINUTES,
            maximum=settings.MAX_SHARE_EXPIRY_MINUTES,
        )
        expires_at = utcnow() + timedelta(minutes=minutes)
        plain_password = normalize_password(password)
        password_hash = hash_password(plain_password) if plain_password else None

        for _ in range(self.code_attempts):
            code = generate_share_code()
            created = await store.create(
                NewShare(
                    code=code,
                    type=share_type,
                    content=normalized_content,
                    expires_at=expires_at,
                    password_hash=password_hash,
                    burn_after_reading=bool(burn_after_reading),
                    original_name=original_name,
                    mime_type=image_mime or mime_type,
                    size=image_size,
                    language=language,
                )
            )
            if created:
                logging.info(
                    "[share_create] code=%s type=%s burn=%s protected=%s",
                    code,
                    share_type,
                    bool(burn_after_reading),
                    password_hash is not None,
                )
                return ShareCreated(code=code, url=f"{self.base_url}/s/{code}", expires_at=expires_at)

        raise StorageError("Failed to generate unique code")

    async def retrieve(self, code: str | None, password: str | None = None) -> ShareView:
        """Return a share and record the view.

        Checks run in a fixed order (existence, expiry, burned, password) and
        nothing is returned unless the view was durably counted.
        """
        normalized = normalize_share_code(code)
        if not is_valid_share_code(normalized):
            raise ValidationError("Invalid share code")
        store = self._require_store()

        async def _attempt(attempt_no: int) -> ShareView | None:
            snapshot = await store.fetch(normalized)
            if snapshot is None:
                raise NotFoundError("Share not found")
            if is_expired(snapshot.expires_at):
                await self._discard(store, normalized)
                raise GoneError("Share has expired", reason=GoneReason.EXPIRED)
            if is_burned(snapshot.burned):
                raise GoneError("This share has been destroyed", reason=GoneReason.BURNED)
            upgraded_hash = None
            if snapshot.password_hash:
                if not password:
                    raise PasswordRequiredError(
                        extra={
                            "requiresPassword": True,
                            "type": snapshot.type,
                            "burnAfterReading": snapshot.burn_after_reading,
                        }
                    )
                valid, upgraded_hash = verify_and_update(password, snapshot.password_hash)
                if not valid:
                    raise PasswordIncorrectError()

            updated = await store.record_view(snapshot, password_hash=upgraded_hash)
            if updated is None:
                logging.info("[share_retrieve] code=%s attempt=%s conflict", normalized, attempt_no)
                return None
            return ShareView(snapshot=updated)

        return await with_optimistic_retry(_attempt, max_attempts=self.retry_attempts, operation="Share")

    async def _discard(self, store: ShareStore, code: str) -> None:
        try:
            await store.delete(code)
        except Exception as exc:
            logging.warning("[share_cleanup] failed to delete code=%s: %s", code, exc)
