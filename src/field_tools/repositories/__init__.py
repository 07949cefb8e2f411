"""Data access layer"""

from field_tools.repositories.audit_log_repository import AuditLogRepository
from field_tools.repositories.base import BaseRepository
from field_tools.repositories.factory import (
    create_ussd_session_store,
    create_whatsapp_session_repository,
)
from field_tools.repositories.lookup_repository import (
    CaseRepository,
    PersonRepository,
    VehicleRepository,
    WantedPersonRepository,
)
from field_tools.repositories.officer_repository import OfficerRepository
from field_tools.repositories.query_log_repository import QueryLogRepository
from field_tools.repositories.session_store import SessionStore
from field_tools.repositories.ussd_session_repository import (
    InMemoryUSSDSessionStore,
    RedisUSSDSessionStore,
    USSDSessionStore,
)
from field_tools.repositories.whatsapp_session_repository import (
    InMemoryWhatsAppSessionRepository,
    PostgresWhatsAppSessionRepository,
    WhatsAppSessionRepository,
)

__all__ = [
    "BaseRepository",
    "SessionStore",
    "USSDSessionStore",
    "RedisUSSDSessionStore",
    "InMemoryUSSDSessionStore",
    "WhatsAppSessionRepository",
    "PostgresWhatsAppSessionRepository",
    "InMemoryWhatsAppSessionRepository",
    "OfficerRepository",
    "PersonRepository",
    "WantedPersonRepository",
    "CaseRepository",
    "VehicleRepository",
    "QueryLogRepository",
    "AuditLogRepository",
    "create_ussd_session_store",
    "create_whatsapp_session_repository",
]
