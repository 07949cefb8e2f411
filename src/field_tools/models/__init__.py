"""Data models"""

from field_tools.models.lookup import CaseRecord, Person, Vehicle, WantedRecord
from field_tools.models.officer import AuthenticatedOfficer, AuthResult, OfficerRecord
from field_tools.models.query_log import AuditEntry, QueryLogEntry
from field_tools.models.results import FieldCheckResult, QueryStatistics, RateLimitResult
from field_tools.models.session import USSDSession, WhatsAppSession

__all__ = [
    "USSDSession",
    "WhatsAppSession",
    "OfficerRecord",
    "AuthenticatedOfficer",
    "AuthResult",
    "QueryLogEntry",
    "AuditEntry",
    "Person",
    "WantedRecord",
    "CaseRecord",
    "Vehicle",
    "FieldCheckResult",
    "QueryStatistics",
    "RateLimitResult",
]
