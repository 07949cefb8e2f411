"""Channel-agnostic field query dispatcher"""

import logging
import time
from datetime import timedelta
from typing import Any, Awaitable, Callable

from field_tools.config.constants import (
    AuditAction,
    CaseSeverity,
    Channel,
    DangerLevel,
    ErrorCode,
    QueryType,
    ResultSummary,
    RiskLevel,
    VehicleStatus,
)
from field_tools.core.errors import StorageError
from field_tools.core.timezone import now
from field_tools.models.lookup import Person
from field_tools.models.query_log import AuditEntry, QueryLogEntry
from field_tools.models.results import (
    BackgroundCheckResult,
    FieldCheckResult,
    MissingCheckResult,
    MissingDetails,
    PersonSummary,
    QueryStatistics,
    RecordDetails,
    StolenDetails,
    VehicleCheckResult,
    VehicleSummary,
    WantedCheckResult,
    WantedDetails,
)
from field_tools.repositories.audit_log_repository import AuditLogRepository
from field_tools.repositories.lookup_repository import (
    CaseRepository,
    PersonRepository,
    VehicleRepository,
    WantedPersonRepository,
)
from field_tools.repositories.query_log_repository import QueryLogRepository
from field_tools.services.rate_limiter import RateLimiter
from field_tools.utils.validator import normalize_nin, normalize_plate

logger = logging.getLogger(__name__)

GENERIC_ERRORS = {
    QueryType.WANTED: "Error checking wanted status",
    QueryType.MISSING: "Error checking missing status",
    QueryType.BACKGROUND: "Error performing background check",
    QueryType.VEHICLE: "Error checking vehicle status",
    QueryType.STATS: "Error retrieving statistics",
}

# A lookup returns its typed payload and the audit summary code
Lookup = Callable[[], Awaitable[tuple[Any, str]]]


class FieldCheckService:
    """
    Runs the five field queries for every channel

    Each call goes through the rate limiter first and writes exactly one
    query log entry, whatever the outcome.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        person_repo: PersonRepository,
        wanted_repo: WantedPersonRepository,
        case_repo: CaseRepository,
        vehicle_repo: VehicleRepository,
        query_log_repo: QueryLogRepository,
        audit_repo: AuditLogRepository,
    ):
        self.rate_limiter = rate_limiter
        self.person_repo = person_repo
        self.wanted_repo = wanted_repo
        self.case_repo = case_repo
        self.vehicle_repo = vehicle_repo
        self.query_log_repo = query_log_repo
        self.audit_repo = audit_repo

    async def dispatch(
        self,
        query_type: QueryType,
        officer_id: str,
        search_term: str | None,
        channel: Channel,
        session_id: str | None = None,
        phone_number: str | None = None,
    ) -> FieldCheckResult:
        """
        Run the query matching query_type

        Args:
            query_type: One of the five query types
            officer_id: Authenticated officer
            search_term: NIN or plate (ignored for stats)
            channel: Originating channel
            session_id: Channel session id for audit attribution
            phone_number: Officer phone for the query log

        Returns:
            FieldCheckResult for the query
        """
        handlers = {
            QueryType.WANTED: self.check_wanted_person,
            QueryType.MISSING: self.check_missing_person,
            QueryType.BACKGROUND: self.check_background,
            QueryType.VEHICLE: self.check_vehicle,
        }
        if query_type == QueryType.STATS:
            return await self.get_statistics(officer_id, channel, session_id, phone_number)
        return await handlers[query_type](officer_id, search_term or "", channel, session_id, phone_number)

    # ==================== Query types ====================

    async def check_wanted_person(
        self,
        officer_id: str,
        search_term: str,
        channel: Channel,
        session_id: str | None = None,
        phone_number: str | None = None,
    ) -> FieldCheckResult[WantedCheckResult]:
        """Active warrant check by NIN"""
        nin = normalize_nin(search_term)

        async def lookup():
            person = await self.person_repo.find_by_nin(nin)
            if person is None:
                return WantedCheckResult(found=False, is_wanted=False), ResultSummary.NOT_FOUND.value

            records = await self.wanted_repo.find_by_person_id(person.id)
            active = next((r for r in records if r.is_active), None)
            if active is None:
                return (
                    WantedCheckResult(found=True, is_wanted=False, person=_summary(person)),
                    ResultSummary.NOT_WANTED.value,
                )

            details = WantedDetails(
                charges=list(active.charges),
                danger_level=_danger_level(active.danger_level),
                warrant_number=active.warrant_number,
                last_seen_location=active.last_seen_location,
                reward_amount=active.reward_amount,
            )
            return (
                WantedCheckResult(found=True, is_wanted=True, person=_summary(person), wanted_details=details),
                ResultSummary.WANTED.value,
            )

        return await self._run(QueryType.WANTED, officer_id, nin, channel, session_id, phone_number, lookup)

    async def check_missing_person(
        self,
        officer_id: str,
        search_term: str,
        channel: Channel,
        session_id: str | None = None,
        phone_number: str | None = None,
    ) -> FieldCheckResult[MissingCheckResult]:
        """Missing/deceased flag check by NIN"""
        nin = normalize_nin(search_term)

        async def lookup():
            person = await self.person_repo.find_by_nin(nin)
            if person is None:
                return MissingCheckResult(found=False, is_missing=False), ResultSummary.NOT_FOUND.value
            if person.is_deceased_or_missing:
                return (
                    MissingCheckResult(
                        found=True,
                        is_missing=True,
                        person=_summary(person),
                        missing_details=MissingDetails(),
                    ),
                    ResultSummary.MISSING.value,
                )
            return (
                MissingCheckResult(found=True, is_missing=False, person=_summary(person)),
                ResultSummary.NOT_MISSING.value,
            )

        return await self._run(QueryType.MISSING, officer_id, nin, channel, session_id, phone_number, lookup)

    async def check_background(
        self,
        officer_id: str,
        search_term: str,
        channel: Channel,
        session_id: str | None = None,
        phone_number: str | None = None,
    ) -> FieldCheckResult[BackgroundCheckResult]:
        """Case count, wanted and missing flags rolled into a risk level"""
        nin = normalize_nin(search_term)

        async def lookup():
            person = await self.person_repo.find_by_nin(nin)
            if person is None:
                return BackgroundCheckResult(found=False, has_record=False), ResultSummary.NOT_FOUND.value

            cases = await self.case_repo.find_by_person_id(person.id)
            wanted = await self.wanted_repo.find_by_person_id(person.id)
            is_wanted = any(r.is_active for r in wanted)
            is_missing = person.is_deceased_or_missing

            if not cases and not is_wanted and not is_missing:
                return (
                    BackgroundCheckResult(found=True, has_record=False, person=_summary(person)),
                    ResultSummary.CLEAR.value,
                )

            severities = {c.severity for c in cases}
            if CaseSeverity.CRITICAL.value in severities or is_wanted:
                risk = RiskLevel.HIGH
            elif CaseSeverity.MAJOR.value in severities:
                risk = RiskLevel.MEDIUM
            else:
                risk = RiskLevel.LOW

            details = RecordDetails(
                case_count=len(cases),
                is_wanted=is_wanted,
                is_missing=is_missing,
                risk_level=risk,
            )
            return (
                BackgroundCheckResult(found=True, has_record=True, person=_summary(person), record_details=details),
                ResultSummary.HAS_RECORD.value,
            )

        return await self._run(QueryType.BACKGROUND, officer_id, nin, channel, session_id, phone_number, lookup)

    async def check_vehicle(
        self,
        officer_id: str,
        search_term: str,
        channel: Channel,
        session_id: str | None = None,
        phone_number: str | None = None,
    ) -> FieldCheckResult[VehicleCheckResult]:
        """Stolen/impounded status by licence plate"""
        plate = normalize_plate(search_term)

        async def lookup():
            vehicle = await self.vehicle_repo.find_by_license_plate(plate)
            if vehicle is None:
                result = VehicleCheckResult(found=False, status=VehicleStatus.NOT_FOUND, plate=plate)
                return result, ResultSummary.NOT_FOUND.value

            try:
                status = VehicleStatus(vehicle.status)
            except ValueError:
                logger.warning(f"Unknown vehicle status '{vehicle.status}' for {plate}, treating as clean")
                status = VehicleStatus.CLEAN

            summary = VehicleSummary(
                license_plate=vehicle.license_plate,
                make=vehicle.make,
                model=vehicle.model,
                color=vehicle.color,
                year=vehicle.year,
                owner_name=vehicle.owner_name,
            )
            stolen = None
            if status == VehicleStatus.STOLEN:
                days = (now() - vehicle.stolen_date).days if vehicle.stolen_date else 0
                stolen = StolenDetails(
                    stolen_date=vehicle.stolen_date,
                    days_stolen=max(0, days),
                    reported_by=vehicle.stolen_reported_by,
                )

            result = VehicleCheckResult(
                found=True,
                status=status,
                plate=plate,
                vehicle=summary,
                stolen_details=stolen,
            )
            return result, status.value.upper()

        return await self._run(QueryType.VEHICLE, officer_id, plate, channel, session_id, phone_number, lookup)

    async def get_statistics(
        self,
        officer_id: str,
        channel: Channel,
        session_id: str | None = None,
        phone_number: str | None = None,
    ) -> FieldCheckResult[QueryStatistics]:
        """The officer's own query counts"""

        async def lookup():
            current_time = now()
            today_start = current_time.replace(hour=0, minute=0, second=0, microsecond=0)
            week_start = today_start - timedelta(days=7)
            month_start = today_start.replace(day=1)

            today = await self.query_log_repo.count_since(officer_id, today_start)
            this_week = await self.query_log_repo.count_since(officer_id, week_start)
            this_month = await self.query_log_repo.count_since(officer_id, month_start)
            total = await self.query_log_repo.count_since(officer_id)
            by_type = await self.query_log_repo.count_by_type(officer_id)
            successful = await self.query_log_repo.count_successful(officer_id)

            stats = QueryStatistics(
                today=today,
                this_week=this_week,
                this_month=this_month,
                total=total,
                by_type=by_type,
                success_rate=(successful / total * 100) if total else 0.0,
            )
            return stats, ResultSummary.SUCCESS.value

        return await self._run(QueryType.STATS, officer_id, "self", channel, session_id, phone_number, lookup)

    # ==================== Shared pipeline ====================

    async def _run(
        self,
        query_type: QueryType,
        officer_id: str,
        search_term: str,
        channel: Channel,
        session_id: str | None,
        phone_number: str | None,
        lookup: Lookup,
    ) -> FieldCheckResult:
        started = time.monotonic()

        def finish(**kwargs) -> FieldCheckResult:
            return FieldCheckResult(check_type=query_type, timestamp=now(), officer_id=officer_id, **kwargs)

        if not search_term:
            result = finish(
                success=False,
                error="Search term is required",
                error_code=ErrorCode.VALIDATION_ERROR,
                result_summary=ResultSummary.ERROR.value,
            )
        else:
            rate_limit = await self.rate_limiter.check_limit(officer_id)
            if not rate_limit.allowed:
                result = finish(
                    success=False,
                    error=f"Daily query limit reached ({rate_limit.limit} queries)",
                    error_code=ErrorCode.RATE_LIMITED,
                    result_summary=ResultSummary.RATE_LIMITED.value,
                    rate_limit=rate_limit,
                )
            else:
                try:
                    data, summary = await lookup()
                    result = finish(success=True, data=data, result_summary=summary, rate_limit=rate_limit)
                except StorageError as e:
                    logger.error(f"{query_type.value} check failed: {e}")
                    result = self._error_result(finish, query_type)
                except Exception:
                    logger.exception(f"Unexpected error in {query_type.value} check")
                    result = self._error_result(finish, query_type)

        duration_ms = int((time.monotonic() - started) * 1000)
        await self._log_query(result, search_term, channel, session_id, phone_number, duration_ms)
        return result

    @staticmethod
    def _error_result(finish, query_type: QueryType) -> FieldCheckResult:
        return finish(
            success=False,
            error=GENERIC_ERRORS[query_type],
            error_code=ErrorCode.DATABASE_ERROR,
            result_summary=ResultSummary.ERROR.value,
        )

    async def _log_query(
        self,
        result: FieldCheckResult,
        search_term: str,
        channel: Channel,
        session_id: str | None,
        phone_number: str | None,
        duration_ms: int,
    ) -> None:
        """
        Append the query log entry and the audit entry

        Best-effort side effect: failures are logged here and never reach
        the caller, so the officer still gets the lookup result.
        """
        entry = QueryLogEntry(
            officer_id=result.officer_id,
            phone_number=phone_number or "unknown",
            channel=channel,
            query_type=result.check_type,
            search_term=search_term or "-",
            result_summary=result.result_summary,
            success=result.success,
            error_message=result.error,
            session_id=session_id,
            duration_ms=duration_ms,
            timestamp=result.timestamp,
        )
        try:
            await self.query_log_repo.create(entry)
        except Exception as e:
            logger.error(f"Query log write failed: {type(e).__name__}: {e}")

        try:
            await self.audit_repo.create(
                AuditEntry(
                    entity_type="field_check",
                    entity_id=session_id,
                    officer_id=result.officer_id,
                    action=AuditAction.FIELD_CHECK.value,
                    success=result.success,
                    details={
                        "check_type": result.check_type.value,
                        "channel": channel.value,
                        "search_term": search_term,
                        "result_summary": result.result_summary,
                        "duration_ms": duration_ms,
                    },
                )
            )
        except Exception as e:
            logger.error(f"Audit write failed: {type(e).__name__}: {e}")


def _summary(person: Person) -> PersonSummary:
    return PersonSummary(name=person.full_name, nin=person.nin)


def _danger_level(raw: str | None) -> DangerLevel:
    try:
        return DangerLevel((raw or "").lower())
    except ValueError:
        return DangerLevel.HIGH
