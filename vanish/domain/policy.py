from __future__ import annotations

from datetime import datetime, timezone

UNLIMITED_DOWNLOADS = -1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_expired(expires_at: datetime, now: datetime | None = None) -> bool:
    """True strictly after ``expires_at``; a record exactly at the boundary is still live."""
    current = as_utc(now) if now is not None else utcnow()
    return current > as_utc(expires_at)


def is_exhausted(max_downloads: int, download_count: int) -> bool:
    return max_downloads != UNLIMITED_DOWNLOADS and download_count >= max_downloads


def is_burned(burned: bool) -> bool:
    return bool(burned)


def downloads_remaining(max_downloads: int, download_count: int) -> int | str:
    if max_downloads == UNLIMITED_DOWNLOADS:
        return "unlimited"
    return max(max_downloads - download_count, 0)


def clamp_minutes(value: int | None, *, default: int, maximum: int) -> int:
    if value is None:
        return default
    return min(max(int(value), 1), maximum)
