"""Per-officer daily query quota"""

import logging

from field_tools.config.settings import get_settings
from field_tools.core.errors import StorageError
from field_tools.core.timezone import last_occurrence_of_hour, next_occurrence_of_hour, now
from field_tools.models.results import RateLimitResult
from field_tools.repositories.officer_repository import OfficerRepository
from field_tools.repositories.query_log_repository import QueryLogRepository

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Daily quota derived from the query log

    The window runs from the most recent occurrence of the reset hour to
    the next one. Queries from every channel count against the same quota.
    The count is read and compared without a lock, so concurrent requests
    at the boundary can each pass; the overshoot is bounded by how many
    were in flight.
    """

    def __init__(
        self,
        query_log_repo: QueryLogRepository,
        officer_repo: OfficerRepository,
        default_limit: int | None = None,
        reset_hour: int | None = None,
    ):
        settings = get_settings()
        self.query_log_repo = query_log_repo
        self.officer_repo = officer_repo
        self.default_limit = default_limit if default_limit is not None else settings.default_daily_limit
        self.reset_hour = reset_hour if reset_hour is not None else settings.rate_limit_reset_hour

    async def check_limit(self, officer_id: str) -> RateLimitResult:
        """
        Check whether the officer may run another query

        Args:
            officer_id: Officer id

        Returns:
            RateLimitResult; allowed is False whenever the count cannot be read
        """
        current_time = now()
        window_start = last_occurrence_of_hour(self.reset_hour, current_time)
        reset_at = next_occurrence_of_hour(self.reset_hour, current_time)

        try:
            limit = await self._limit_for(officer_id)
            used = await self.query_log_repo.count_since(officer_id, window_start)
        except StorageError as e:
            # fail closed
            logger.error(f"Rate limit check failed for officer {officer_id}: {e}")
            return RateLimitResult(allowed=False, remaining=0, limit=self.default_limit, reset_at=reset_at)

        remaining = max(0, limit - used)
        if remaining == 0:
            logger.info(f"Officer {officer_id} reached daily limit ({used}/{limit})")
        return RateLimitResult(allowed=used < limit, remaining=remaining, limit=limit, reset_at=reset_at)

    async def _limit_for(self, officer_id: str) -> int:
        record = await self.officer_repo.get_by_id(officer_id)
        if record is None or not record.daily_limit:
            return self.default_limit
        return record.daily_limit
