"""WhatsApp session storage with state machine validation"""

import asyncio
import json
import logging
from abc import abstractmethod
from dataclasses import replace
from datetime import timedelta

from cryptography.exceptions import InvalidTag

from field_tools.config.constants import QueryType, WhatsAppState, is_valid_transition
from field_tools.config.settings import get_settings
from field_tools.core.encryption import decrypt_text, encrypt_text, encryption_enabled
from field_tools.core.errors import (
    InvalidStateTransitionError,
    SessionNotFoundError,
    SessionStoreError,
)
from field_tools.core.timezone import now
from field_tools.models.session import WhatsAppSession
from field_tools.repositories.base import BaseRepository
from field_tools.repositories.session_store import SessionStore

logger = logging.getLogger(__name__)

_MUTABLE_FIELDS = (
    "state",
    "officer_id",
    "selected_query_type",
    "search_term",
    "query_data",
    "pin_attempts",
)


class WhatsAppSessionRepository(SessionStore[WhatsAppSession]):
    """
    Persistent WhatsApp sessions keyed by phone number

    Every state change is checked against the transition table; TTLs are
    given in minutes and never exceed the configured maximum.
    """

    def __init__(self):
        settings = get_settings()
        self.default_ttl_minutes = settings.whatsapp_session_ttl_minutes
        self.max_ttl_minutes = settings.whatsapp_session_max_ttl_minutes
        self.max_pin_attempts = settings.max_pin_attempts
        self.cleanup_batch_size = settings.session_cleanup_batch_size
        self.cleanup_every_n_ops = settings.session_cleanup_every_n_ops
        self._op_count = 0
        self._cleanup_task: asyncio.Task | None = None

    # ==================== Backend primitives ====================

    @abstractmethod
    async def _fetch(self, phone_number: str) -> WhatsAppSession | None:
        """Load the stored record regardless of expiry"""

    @abstractmethod
    async def _persist(self, session: WhatsAppSession, is_new: bool) -> WhatsAppSession:
        """Write the whole record in one statement"""

    @abstractmethod
    async def _remove(self, phone_number: str) -> None:
        ...

    @abstractmethod
    async def _purge_expired(self, limit: int) -> int:
        ...

    @abstractmethod
    async def _count_active(self) -> int:
        ...

    # ==================== SessionStore ====================

    async def get(self, phone_number: str) -> WhatsAppSession | None:
        self._maybe_schedule_cleanup()

        session = await self._fetch(phone_number)
        if session is None:
            return None
        if session.is_expired(now()):
            logger.debug(f"WhatsApp session expired: {phone_number}")
            await self._remove(phone_number)
            return None
        return session

    async def save(self, phone_number: str, data: dict, ttl: int | None = None) -> WhatsAppSession:
        existing = await self.get(phone_number)
        if existing is None:
            current_time = now()
            base = WhatsAppSession(
                id=0,
                phone_number=phone_number,
                state=WhatsAppState.MAIN_MENU,
                expires_at=current_time,
                last_activity_at=current_time,
                created_at=current_time,
                updated_at=current_time,
            )
            # new sessions always start at MAIN_MENU
            return await self._apply(base, data, ttl, is_new=True, check_state=False)
        return await self._apply(existing, data, ttl, is_new=False)

    async def update(self, phone_number: str, data: dict) -> WhatsAppSession:
        existing = await self.get(phone_number)
        if existing is None:
            raise SessionNotFoundError(phone_number)
        return await self._apply(existing, data, None, is_new=False)

    async def delete(self, phone_number: str) -> None:
        await self._remove(phone_number)

    async def clean_expired(self) -> int:
        return await self._purge_expired(self.cleanup_batch_size)

    async def _apply(
        self,
        session: WhatsAppSession,
        data: dict,
        ttl: int | None,
        is_new: bool,
        check_state: bool = True,
    ) -> WhatsAppSession:
        """Validate, merge and persist in one write"""
        changes = {name: data[name] for name in _MUTABLE_FIELDS if name in data}

        target = changes.get("state")
        if check_state and target is not None and not is_valid_transition(session.state, target):
            raise InvalidStateTransitionError(session.state, target)

        current_time = now()
        updated = replace(
            session,
            **changes,
            last_activity_at=current_time,
            updated_at=current_time,
            expires_at=current_time + timedelta(minutes=self._clamp_ttl(ttl)),
        )
        return await self._persist(updated, is_new)

    def _clamp_ttl(self, minutes: int | None) -> int:
        return min(minutes or self.default_ttl_minutes, self.max_ttl_minutes)

    # ==================== State machine operations ====================

    async def get_or_create(self, phone_number: str) -> WhatsAppSession:
        session = await self.get(phone_number)
        if session is not None:
            return await self.extend_ttl(phone_number)
        logger.debug(f"Creating WhatsApp session: {phone_number}")
        return await self.save(phone_number, {})

    async def transition_state(self, phone_number: str, state: WhatsAppState) -> WhatsAppSession:
        return await self.update(phone_number, {"state": state})

    async def set_query_type(self, phone_number: str, query_type: QueryType) -> WhatsAppSession:
        """
        Record the chosen query type

        Stats needs no search term, so it moves straight to AWAITING_PIN.
        """
        session = await self._require(phone_number)
        target = (
            WhatsAppState.AWAITING_PIN
            if query_type == QueryType.STATS
            else WhatsAppState.AWAITING_SEARCH
        )
        if session.state != WhatsAppState.MAIN_MENU:
            raise InvalidStateTransitionError(session.state, target)

        return await self.update(
            phone_number,
            {"state": target, "selected_query_type": query_type, "search_term": None},
        )

    async def set_search_term(self, phone_number: str, search_term: str) -> WhatsAppSession:
        session = await self._require(phone_number)
        if session.state != WhatsAppState.AWAITING_SEARCH:
            raise InvalidStateTransitionError(session.state, WhatsAppState.AWAITING_PIN)

        return await self.update(
            phone_number,
            {"state": WhatsAppState.AWAITING_PIN, "search_term": search_term},
        )

    async def authenticate(self, phone_number: str, officer_id: str) -> WhatsAppSession:
        """Mark the session as PIN-verified"""
        session = await self._require(phone_number)
        if session.state != WhatsAppState.AWAITING_PIN:
            raise InvalidStateTransitionError(session.state, WhatsAppState.RESULT_SENT)

        return await self.update(phone_number, {"officer_id": officer_id, "pin_attempts": 0})

    async def increment_pin_attempts(self, phone_number: str) -> bool:
        """
        Count a failed PIN

        Returns:
            True when the maximum number of attempts has been reached
        """
        session = await self._require(phone_number)
        attempts = session.pin_attempts + 1
        await self.update(phone_number, {"pin_attempts": attempts})
        return attempts >= self.max_pin_attempts

    async def reset_to_main_menu(self, phone_number: str) -> WhatsAppSession:
        """Return to MAIN_MENU and drop everything captured so far"""
        fields = {
            "state": WhatsAppState.MAIN_MENU,
            "officer_id": None,
            "selected_query_type": None,
            "search_term": None,
            "query_data": {},
            "pin_attempts": 0,
        }
        existing = await self.get(phone_number)
        if existing is None:
            return await self.save(phone_number, fields)
        # a reset is allowed from any state, MAIN_MENU included
        return await self._apply(existing, fields, None, is_new=False, check_state=False)

    async def extend_ttl(self, phone_number: str, minutes: int | None = None) -> WhatsAppSession:
        session = await self._require(phone_number)
        return await self._apply(session, {}, minutes, is_new=False)

    async def is_expired(self, phone_number: str) -> bool:
        session = await self._fetch(phone_number)
        return session is None or session.is_expired(now())

    async def get_active_session_count(self) -> int:
        return await self._count_active()

    async def _require(self, phone_number: str) -> WhatsAppSession:
        session = await self.get(phone_number)
        if session is None:
            raise SessionNotFoundError(phone_number)
        return session

    # ==================== Opportunistic cleanup ====================

    def _maybe_schedule_cleanup(self) -> None:
        self._op_count += 1
        if self._op_count % self.cleanup_every_n_ops != 0:
            return
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.create_task(self._background_cleanup())

    async def _background_cleanup(self) -> None:
        # Never surfaces to a live request
        try:
            await self.clean_expired()
        except SessionStoreError as e:
            logger.warning(f"Opportunistic session cleanup failed: {e}")


class PostgresWhatsAppSessionRepository(BaseRepository, WhatsAppSessionRepository):
    """asyncpg-backed store; search terms are encrypted at rest when a key is configured"""

    error_class = SessionStoreError

    def __init__(self):
        WhatsAppSessionRepository.__init__(self)

    async def _fetch(self, phone_number: str) -> WhatsAppSession | None:
        async with self._connection() as conn:
            record = await conn.fetchrow(
                "SELECT * FROM whatsapp_sessions WHERE phone_number = $1",
                phone_number,
            )
        return self._to_model(record) if record else None

    async def _persist(self, session: WhatsAppSession, is_new: bool) -> WhatsAppSession:
        values = (
            session.phone_number,
            session.officer_id,
            session.state.value,
            session.selected_query_type.value if session.selected_query_type else None,
            self._seal(session.search_term),
            json.dumps(session.query_data or {}),
            session.pin_attempts,
            session.expires_at,
            session.last_activity_at,
        )
        async with self._connection() as conn:
            if is_new:
                # an expired row may still hold the phone number
                record = await conn.fetchrow(
                    """
                    INSERT INTO whatsapp_sessions (
                        phone_number, officer_id, state, selected_query_type, search_term,
                        query_data, pin_attempts, expires_at, last_activity_at,
                        created_at, updated_at
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $9, $9)
                    ON CONFLICT (phone_number) DO UPDATE SET
                        officer_id = EXCLUDED.officer_id,
                        state = EXCLUDED.state,
                        selected_query_type = EXCLUDED.selected_query_type,
                        search_term = EXCLUDED.search_term,
                        query_data = EXCLUDED.query_data,
                        pin_attempts = EXCLUDED.pin_attempts,
                        expires_at = EXCLUDED.expires_at,
                        last_activity_at = EXCLUDED.last_activity_at,
                        created_at = EXCLUDED.created_at,
                        updated_at = EXCLUDED.updated_at
                    RETURNING *
                    """,
                    *values,
                )
            else:
                record = await conn.fetchrow(
                    """
                    UPDATE whatsapp_sessions
                    SET officer_id = $2, state = $3, selected_query_type = $4,
                        search_term = $5, query_data = $6, pin_attempts = $7,
                        expires_at = $8, last_activity_at = $9, updated_at = $9
                    WHERE phone_number = $1
                    RETURNING *
                    """,
                    *values,
                )

        if record is None:
            raise SessionNotFoundError(session.phone_number)
        return self._to_model(record)

    async def _remove(self, phone_number: str) -> None:
        async with self._connection() as conn:
            await conn.execute("DELETE FROM whatsapp_sessions WHERE phone_number = $1", phone_number)

    async def _purge_expired(self, limit: int) -> int:
        async with self._connection() as conn:
            result = await conn.execute(
                """
                DELETE FROM whatsapp_sessions
                WHERE id IN (
                    SELECT id FROM whatsapp_sessions WHERE expires_at < $1 LIMIT $2
                )
                """,
                now(),
                limit,
            )
        # "DELETE n"
        return int(result.split()[-1]) if result else 0

    async def _count_active(self) -> int:
        async with self._connection() as conn:
            count = await conn.fetchval(
                "SELECT COUNT(*) FROM whatsapp_sessions WHERE expires_at >= $1",
                now(),
            )
        return count or 0

    @staticmethod
    def _seal(search_term: str | None) -> str | None:
        if search_term is None or not encryption_enabled():
            return search_term
        return encrypt_text(search_term)

    @staticmethod
    def _unseal(stored: str | None) -> str | None:
        if stored is None or not encryption_enabled():
            return stored
        try:
            return decrypt_text(stored)
        except (InvalidTag, ValueError) as e:
            raise SessionStoreError("Stored search term could not be decrypted") from e

    @classmethod
    def _to_model(cls, record) -> WhatsAppSession:
        query_data = record["query_data"]
        if isinstance(query_data, str):
            query_data = json.loads(query_data)

        query_type = record["selected_query_type"]
        return WhatsAppSession(
            id=record["id"],
            phone_number=record["phone_number"],
            officer_id=record["officer_id"],
            state=WhatsAppState(record["state"]),
            selected_query_type=QueryType(query_type) if query_type else None,
            search_term=cls._unseal(record["search_term"]),
            query_data=query_data or {},
            pin_attempts=record["pin_attempts"],
            expires_at=record["expires_at"],
            last_activity_at=record["last_activity_at"],
            created_at=record["created_at"],
            updated_at=record["updated_at"],
        )


class InMemoryWhatsAppSessionRepository(WhatsAppSessionRepository):
    """Process-local store for development and tests"""

    def __init__(self):
        super().__init__()
        self._sessions: dict[str, WhatsAppSession] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def _fetch(self, phone_number: str) -> WhatsAppSession | None:
        async with self._lock:
            return self._sessions.get(phone_number)

    async def _persist(self, session: WhatsAppSession, is_new: bool) -> WhatsAppSession:
        async with self._lock:
            if is_new:
                session = replace(session, id=self._next_id)
                self._next_id += 1
            elif session.phone_number not in self._sessions:
                raise SessionNotFoundError(session.phone_number)
            self._sessions[session.phone_number] = session
            return session

    async def _remove(self, phone_number: str) -> None:
        async with self._lock:
            self._sessions.pop(phone_number, None)

    async def _purge_expired(self, limit: int) -> int:
        async with self._lock:
            current = now()
            expired = [
                phone for phone, session in self._sessions.items()
                if session.is_expired(current)
            ][:limit]
            for phone in expired:
                del self._sessions[phone]
            return len(expired)

    async def _count_active(self) -> int:
        async with self._lock:
            current = now()
            return sum(1 for s in self._sessions.values() if not s.is_expired(current))
