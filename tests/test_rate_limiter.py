"""Daily quota tests"""
from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from field_tools.core.timezone import last_occurrence_of_hour, next_occurrence_of_hour, now
from field_tools.services import RateLimiter

from conftest import OFFICER_ID, FakeOfficerRepository, FakeQueryLogRepository, make_officer


def _next_midnight() -> datetime:
    return now().replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)


@pytest.mark.asyncio
async def test_fresh_officer_has_full_quota(rate_limiter) -> None:
    result = await rate_limiter.check_limit(OFFICER_ID)

    assert result.allowed
    assert result.limit == 50
    assert result.remaining == 50


@pytest.mark.asyncio
async def test_fifty_first_query_is_refused_until_midnight(rate_limiter, query_log_repo) -> None:
    query_log_repo.seed(OFFICER_ID, 50)

    result = await rate_limiter.check_limit(OFFICER_ID)

    assert result.allowed is False
    assert result.remaining == 0
    assert result.limit == 50
    assert result.reset_at == _next_midnight()


@pytest.mark.asyncio
async def test_last_query_of_the_day_is_still_allowed(rate_limiter, query_log_repo) -> None:
    query_log_repo.seed(OFFICER_ID, 49)

    result = await rate_limiter.check_limit(OFFICER_ID)

    assert result.allowed
    assert result.remaining == 1


@pytest.mark.asyncio
async def test_yesterdays_queries_do_not_count(rate_limiter, query_log_repo) -> None:
    yesterday = now().replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(minutes=1)
    query_log_repo.seed(OFFICER_ID, 50, timestamp=yesterday)

    result = await rate_limiter.check_limit(OFFICER_ID)
    assert result.allowed
    assert result.remaining == 50


@pytest.mark.asyncio
async def test_officer_specific_limit_overrides_default() -> None:
    officer_repo = FakeOfficerRepository(make_officer(daily_limit=5))
    query_log_repo = FakeQueryLogRepository()
    limiter = RateLimiter(query_log_repo, officer_repo, default_limit=50, reset_hour=0)
    query_log_repo.seed(OFFICER_ID, 5)

    result = await limiter.check_limit(OFFICER_ID)
    assert result.allowed is False
    assert result.limit == 5


@pytest.mark.asyncio
async def test_unreadable_count_fails_closed(rate_limiter, query_log_repo) -> None:
    query_log_repo.fail_reads = True

    result = await rate_limiter.check_limit(OFFICER_ID)

    assert result.allowed is False
    assert result.remaining == 0
    assert result.limit == 50


@pytest.mark.asyncio
async def test_unreadable_directory_fails_closed(rate_limiter, officer_repo) -> None:
    officer_repo.fail = True

    result = await rate_limiter.check_limit(OFFICER_ID)
    assert result.allowed is False


def test_reset_hour_window_boundaries() -> None:
    reference = datetime(2026, 3, 10, 2, 30)

    assert last_occurrence_of_hour(6, reference) == datetime(2026, 3, 9, 6, 0)
    assert next_occurrence_of_hour(6, reference) == datetime(2026, 3, 10, 6, 0)
    assert last_occurrence_of_hour(0, reference) == datetime(2026, 3, 10, 0, 0)
    assert next_occurrence_of_hour(0, reference) == datetime(2026, 3, 11, 0, 0)
