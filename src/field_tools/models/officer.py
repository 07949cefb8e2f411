"""Officer data models"""

from dataclasses import dataclass
from datetime import datetime

from field_tools.config.constants import AuthFailure


@dataclass
class OfficerRecord:
    """Officer as stored in the directory"""

    id: str
    badge: str
    name: str
    station_id: str
    active: bool
    ussd_enabled: bool
    daily_limit: int | None = None
    phone_number: str | None = None
    quick_pin_hash: str | None = None
    locked_until: datetime | None = None
    last_used: datetime | None = None
    station_name: str | None = None
    station_code: str | None = None
    role_level: int | None = None

    def is_locked(self, at: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > at


@dataclass(frozen=True)
class AuthenticatedOfficer:
    """Officer resolved for a single authentication event"""

    id: str
    badge: str
    name: str
    station_id: str
    station_name: str | None
    station_code: str | None
    role_level: int | None
    daily_limit: int | None

    @classmethod
    def from_record(cls, record: OfficerRecord) -> "AuthenticatedOfficer":
        return cls(
            id=record.id,
            badge=record.badge,
            name=record.name,
            station_id=record.station_id,
            station_name=record.station_name,
            station_code=record.station_code,
            role_level=record.role_level,
            daily_limit=record.daily_limit,
        )

    def snapshot(self) -> dict:
        """Compact form kept in session data for audit attribution"""
        return {
            "id": self.id,
            "badge": self.badge,
            "name": self.name,
            "station_code": self.station_code,
        }


@dataclass(frozen=True)
class AuthResult:
    """Outcome of identify + verify"""

    success: bool
    officer: AuthenticatedOfficer | None = None
    failure: AuthFailure | None = None
