"""Session data models"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from field_tools.config.constants import QueryType, WhatsAppState


@dataclass
class USSDSession:
    """USSD session, keyed by the gateway session id"""

    session_id: str
    phone_number: str
    last_activity: datetime
    created_at: datetime
    officer_id: str | None = None
    current_menu: str = "main"
    data: dict = field(default_factory=dict)
    ttl_seconds: int = 180

    @property
    def expires_at(self) -> datetime:
        return self.last_activity + timedelta(seconds=self.ttl_seconds)

    def is_expired(self, at: datetime) -> bool:
        return self.expires_at < at

    def to_dict(self) -> dict:
        """Serialise for a key/value backend"""
        return {
            "session_id": self.session_id,
            "phone_number": self.phone_number,
            "officer_id": self.officer_id,
            "current_menu": self.current_menu,
            "data": self.data,
            "ttl_seconds": self.ttl_seconds,
            "last_activity": self.last_activity.isoformat(),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: dict) -> "USSDSession":
        return cls(
            session_id=raw["session_id"],
            phone_number=raw["phone_number"],
            officer_id=raw.get("officer_id"),
            current_menu=raw.get("current_menu", "main"),
            data=raw.get("data") or {},
            ttl_seconds=raw.get("ttl_seconds", 180),
            last_activity=datetime.fromisoformat(raw["last_activity"]),
            created_at=datetime.fromisoformat(raw["created_at"]),
        )


@dataclass
class WhatsAppSession:
    """WhatsApp conversation session, keyed by phone number"""

    id: int
    phone_number: str
    state: WhatsAppState
    expires_at: datetime
    last_activity_at: datetime
    created_at: datetime
    updated_at: datetime
    officer_id: str | None = None
    selected_query_type: QueryType | None = None
    search_term: str | None = None
    query_data: dict = field(default_factory=dict)
    pin_attempts: int = 0

    def is_expired(self, at: datetime) -> bool:
        return self.expires_at < at

    @property
    def is_authenticated(self) -> bool:
        return self.officer_id is not None
