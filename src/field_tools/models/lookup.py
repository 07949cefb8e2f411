"""Read-only records consumed from the records system"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class Person:
    id: str
    first_name: str
    last_name: str
    nin: str
    is_deceased_or_missing: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class WantedRecord:
    id: str
    person_id: str
    status: str
    danger_level: str
    charges: list[str] = field(default_factory=list)
    warrant_number: str | None = None
    last_seen_location: str | None = None
    reward_amount: Decimal | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True)
class CaseRecord:
    id: str
    person_id: str
    severity: str
    status: str | None = None


@dataclass(frozen=True)
class Vehicle:
    id: str
    license_plate: str
    status: str
    make: str | None = None
    model: str | None = None
    color: str | None = None
    year: int | None = None
    owner_name: str | None = None
    stolen_date: datetime | None = None
    stolen_reported_by: str | None = None
