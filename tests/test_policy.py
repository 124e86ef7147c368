from datetime import datetime, timedelta, timezone

import pytest

from vanish.domain.policy import (
    clamp_minutes,
    downloads_remaining,
    is_burned,
    is_exhausted,
    is_expired,
)

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def test_not_expired_before_deadline():
    assert not is_expired(NOW + timedelta(seconds=1), now=NOW)


def test_expired_strictly_after_deadline():
    assert is_expired(NOW - timedelta(microseconds=1), now=NOW)


def test_exact_deadline_is_still_live():
    assert not is_expired(NOW, now=NOW)


def test_naive_datetimes_are_treated_as_utc():
    naive_deadline = datetime(2026, 10, 18, 11, 59)
    assert is_expired(naive_deadline, now=NOW)
    assert not is_expired(datetime(2026, 10, 18, 12, 1), now=NOW)


def test_expiry_is_monotonic_over_time():
    deadline = NOW
    observed = [is_expired(deadline, now=NOW + timedelta(seconds=offset)) for offset in range(-3, 4)]
    assert observed == sorted(observed)


@pytest.mark.parametrize(
    "max_downloads, count, expected",
    [
        (1, 0, False),
        (1, 1, True),
        (5, 4, False),
        (5, 5, True),
        (5, 7, True),
        (0, 0, True),
        (-1, 10_000, False),
    ],
)
def test_is_exhausted(max_downloads, count, expected):
    assert is_exhausted(max_downloads, count) is expected


def test_is_burned():
    assert is_burned(True)
    assert not is_burned(False)


def test_downloads_remaining():
    assert downloads_remaining(-1, 3) == "unlimited"
    assert downloads_remaining(5, 2) == 3
    assert downloads_remaining(1, 4) == 0


def test_clamp_minutes():
    assert clamp_minutes(None, default=60, maximum=120) == 60
    assert clamp_minutes(0, default=60, maximum=120) == 1
    assert clamp_minutes(-30, default=60, maximum=120) == 1
    assert clamp_minutes(500, default=60, maximum=120) == 120
    assert clamp_minutes(45, default=60, maximum=120) == 45
