import pytest

from vanish.core.optimistic import with_optimistic_retry
from vanish.exceptions.exceptions import ConflictError, NotFoundError


@pytest.mark.asyncio
async def test_returns_first_successful_attempt():
    calls = []

    async def attempt(attempt_no):
        calls.append(attempt_no)
        return None if attempt_no < 2 else "done"

    assert await with_optimistic_retry(attempt, operation="Thing") == "done"
    assert calls == [1, 2]


@pytest.mark.asyncio
async def test_gives_up_after_three_conflicts():
    calls = []

    async def attempt(attempt_no):
        calls.append(attempt_no)
        return None

    with pytest.raises(ConflictError) as excinfo:
        await with_optimistic_retry(attempt, operation="Download")

    assert calls == [1, 2, 3]
    assert excinfo.value.message == "Download busy, retry"


@pytest.mark.asyncio
async def test_domain_errors_propagate_without_retry():
    calls = []

    async def attempt(attempt_no):
        calls.append(attempt_no)
        raise NotFoundError("gone missing")

    with pytest.raises(NotFoundError):
        await with_optimistic_retry(attempt, operation="Share")

    assert calls == [1]


@pytest.mark.asyncio
async def test_rejects_zero_attempts():
    async def attempt(attempt_no):
        return "never"

    with pytest.raises(ValueError):
        await with_optimistic_retry(attempt, max_attempts=0)
