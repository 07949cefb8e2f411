"""Dispatcher result models"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Generic, TypeVar

from field_tools.config.constants import (
    DangerLevel,
    ErrorCode,
    QueryType,
    RiskLevel,
    VehicleStatus,
)

T = TypeVar("T")


@dataclass(frozen=True)
class PersonSummary:
    name: str
    nin: str


@dataclass(frozen=True)
class WantedDetails:
    charges: list[str]
    danger_level: DangerLevel
    warrant_number: str | None = None
    last_seen_location: str | None = None
    reward_amount: Decimal | None = None


@dataclass(frozen=True)
class WantedCheckResult:
    found: bool
    is_wanted: bool
    person: PersonSummary | None = None
    wanted_details: WantedDetails | None = None


@dataclass(frozen=True)
class MissingDetails:
    status: str = "Missing/Deceased"
    description: str = "Contact station for details"
    contact: str = "Contact local station"


@dataclass(frozen=True)
class MissingCheckResult:
    found: bool
    is_missing: bool
    person: PersonSummary | None = None
    missing_details: MissingDetails | None = None


@dataclass(frozen=True)
class RecordDetails:
    case_count: int
    is_wanted: bool
    is_missing: bool
    risk_level: RiskLevel


@dataclass(frozen=True)
class BackgroundCheckResult:
    found: bool
    has_record: bool
    person: PersonSummary | None = None
    record_details: RecordDetails | None = None


@dataclass(frozen=True)
class VehicleSummary:
    license_plate: str
    make: str | None = None
    model: str | None = None
    color: str | None = None
    year: int | None = None
    owner_name: str | None = None

    @property
    def description(self) -> str:
        parts = [p for p in (self.color, self.make, self.model) if p]
        return " ".join(parts) or "Unknown vehicle"


@dataclass(frozen=True)
class StolenDetails:
    stolen_date: datetime | None
    days_stolen: int
    reported_by: str | None = None


@dataclass(frozen=True)
class VehicleCheckResult:
    found: bool
    status: VehicleStatus
    plate: str
    vehicle: VehicleSummary | None = None
    stolen_details: StolenDetails | None = None


@dataclass(frozen=True)
class QueryStatistics:
    today: int
    this_week: int
    this_month: int
    total: int
    success_rate: float
    by_type: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    limit: int
    reset_at: datetime


@dataclass(frozen=True)
class FieldCheckResult(Generic[T]):
    """Channel-agnostic result every renderer consumes"""

    success: bool
    check_type: QueryType
    timestamp: datetime
    officer_id: str
    data: T | None = None
    error: str | None = None
    error_code: ErrorCode | None = None
    result_summary: str | None = None
    rate_limit: RateLimitResult | None = None
