"""Query log and audit models"""

from dataclasses import dataclass, field
from datetime import datetime

from field_tools.config.constants import Channel, QueryType


@dataclass(frozen=True)
class QueryLogEntry:
    """Append-only record of one field query"""

    officer_id: str
    phone_number: str
    channel: Channel
    query_type: QueryType
    search_term: str
    success: bool
    timestamp: datetime
    result_summary: str | None = None
    error_message: str | None = None
    session_id: str | None = None
    duration_ms: int | None = None
    id: int | None = None


@dataclass(frozen=True)
class AuditEntry:
    """Structured entry for the compliance audit sink"""

    entity_type: str
    action: str
    success: bool
    officer_id: str | None = None
    entity_id: str | None = None
    details: dict = field(default_factory=dict)
