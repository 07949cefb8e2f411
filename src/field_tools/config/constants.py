"""Constant definitions"""

from enum import Enum
from typing import Final


# ==================== Channels ====================
class Channel(str, Enum):
    """Field-access channel"""
    USSD = "ussd"
    WHATSAPP = "whatsapp"
    API = "api"  # audit attribution only


# ==================== Query types ====================
class QueryType(str, Enum):
    """Field query type"""
    WANTED = "wanted"
    MISSING = "missing"
    BACKGROUND = "background"
    VEHICLE = "vehicle"
    STATS = "stats"


# USSD main-menu option -> query type
USSD_MENU: Final[dict[str, QueryType]] = {
    "1": QueryType.WANTED,
    "2": QueryType.MISSING,
    "3": QueryType.BACKGROUND,
    "4": QueryType.VEHICLE,
    "5": QueryType.STATS,
}

USSD_MENU_TITLE: Final[str] = "CRMS Field Tools"

USSD_MENU_LABELS: Final[dict[QueryType, str]] = {
    QueryType.WANTED: "Check wanted person",
    QueryType.MISSING: "Check missing person",
    QueryType.BACKGROUND: "Background check",
    QueryType.VEHICLE: "Check vehicle",
    QueryType.STATS: "My stats",
}

# Gateway payload limit for a single USSD screen
USSD_MAX_LENGTH: Final[int] = 182


# ==================== WhatsApp session states ====================
class WhatsAppState(str, Enum):
    """WhatsApp conversation state"""
    MAIN_MENU = "MAIN_MENU"
    AWAITING_SEARCH = "AWAITING_SEARCH"
    AWAITING_PIN = "AWAITING_PIN"
    RESULT_SENT = "RESULT_SENT"


WHATSAPP_TRANSITIONS: Final[dict[WhatsAppState, frozenset[WhatsAppState]]] = {
    WhatsAppState.MAIN_MENU: frozenset({WhatsAppState.AWAITING_SEARCH, WhatsAppState.AWAITING_PIN}),
    WhatsAppState.AWAITING_SEARCH: frozenset({WhatsAppState.AWAITING_PIN, WhatsAppState.MAIN_MENU}),
    WhatsAppState.AWAITING_PIN: frozenset({WhatsAppState.RESULT_SENT, WhatsAppState.MAIN_MENU}),
    WhatsAppState.RESULT_SENT: frozenset({WhatsAppState.MAIN_MENU}),
}


def is_valid_transition(current: WhatsAppState, target: WhatsAppState) -> bool:
    """Whether current -> target appears in the transition table"""
    return target in WHATSAPP_TRANSITIONS.get(current, frozenset())


# Free-text replies that cancel a pending search
CANCEL_WORDS: Final[frozenset[str]] = frozenset({"0", "cancel", "menu"})


# ==================== Result summary codes ====================
class ResultSummary(str, Enum):
    """Audit summary code stored on every query log entry"""
    WANTED = "WANTED"
    NOT_WANTED = "NOT_WANTED"
    MISSING = "MISSING"
    NOT_MISSING = "NOT_MISSING"
    CLEAR = "CLEAR"
    HAS_RECORD = "HAS_RECORD"
    NOT_FOUND = "NOT_FOUND"
    CLEAN = "CLEAN"
    STOLEN = "STOLEN"
    IMPOUNDED = "IMPOUNDED"
    RECOVERED = "RECOVERED"
    SUCCESS = "SUCCESS"
    RATE_LIMITED = "RATE_LIMITED"
    ERROR = "ERROR"


class ErrorCode(str, Enum):
    """Dispatcher error code"""
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    DATABASE_ERROR = "DATABASE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"


# ==================== Authentication ====================
class AuthFailure(str, Enum):
    """Detailed authentication failure reason (audit log only)"""
    NOT_REGISTERED = "NOT_REGISTERED"
    CHANNEL_DISABLED = "CHANNEL_DISABLED"
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    NOT_CONFIGURED = "NOT_CONFIGURED"
    INVALID_PIN_FORMAT = "INVALID_PIN_FORMAT"
    INVALID_PIN = "INVALID_PIN"
    DIRECTORY_ERROR = "DIRECTORY_ERROR"


PIN_PATTERN: Final[str] = r"^\d{4}$"


# ==================== Lookup values ====================
class VehicleStatus(str, Enum):
    """Vehicle status"""
    NOT_FOUND = "not_found"
    CLEAN = "clean"
    STOLEN = "stolen"
    IMPOUNDED = "impounded"
    RECOVERED = "recovered"


class DangerLevel(str, Enum):
    """Wanted-person danger level"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


class RiskLevel(str, Enum):
    """Background-check risk level"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CaseSeverity(str, Enum):
    """Case severity"""
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


# ==================== Audit actions ====================
class AuditAction(str, Enum):
    """Audit log action"""
    FIELD_CHECK = "field_check"
    AUTH_FAILED = "field_auth_failed"
    AUTH_SUCCESS = "field_auth_success"
