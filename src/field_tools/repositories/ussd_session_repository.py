"""USSD session storage (Redis or in-process)"""

import asyncio
import json
import logging
from abc import abstractmethod

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from field_tools.config.settings import get_settings
from field_tools.core.errors import SessionNotFoundError, SessionStoreError
from field_tools.core.timezone import now
from field_tools.models.session import USSDSession
from field_tools.repositories.session_store import SessionStore

logger = logging.getLogger(__name__)

_FIELDS = ("phone_number", "officer_id", "current_menu")


class USSDSessionStore(SessionStore[USSDSession]):
    """Pure-TTL USSD session store keyed by the gateway session id"""

    def __init__(self, ttl_seconds: int | None = None):
        self.ttl_seconds = ttl_seconds or get_settings().ussd_session_ttl_seconds

    # ==================== Backend primitives ====================

    @abstractmethod
    async def _read(self, session_id: str) -> dict | None:
        ...

    @abstractmethod
    async def _write(self, session_id: str, raw: dict, ttl: int) -> None:
        ...

    @abstractmethod
    async def _remove(self, session_id: str) -> None:
        ...

    # ==================== SessionStore ====================

    async def get(self, session_id: str) -> USSDSession | None:
        raw = await self._read(session_id)
        if raw is None:
            return None

        session = USSDSession.from_dict(raw)
        if session.is_expired(now()):
            logger.debug(f"USSD session expired: {session_id}")
            await self._remove(session_id)
            return None
        return session

    async def save(self, session_id: str, data: dict, ttl: int | None = None) -> USSDSession:
        existing = await self.get(session_id)
        current_time = now()

        session = existing or USSDSession(
            session_id=session_id,
            phone_number=data.get("phone_number", ""),
            last_activity=current_time,
            created_at=current_time,
        )
        self._merge(session, data)
        session.ttl_seconds = ttl or self.ttl_seconds
        session.last_activity = current_time

        await self._write(session_id, session.to_dict(), session.ttl_seconds)
        return session

    async def update(self, session_id: str, data: dict) -> USSDSession:
        existing = await self.get(session_id)
        if existing is None:
            raise SessionNotFoundError(session_id)

        self._merge(existing, data)
        existing.last_activity = now()
        await self._write(session_id, existing.to_dict(), existing.ttl_seconds)
        return existing

    async def delete(self, session_id: str) -> None:
        await self._remove(session_id)

    @staticmethod
    def _merge(session: USSDSession, data: dict) -> None:
        for name in _FIELDS:
            if name in data:
                setattr(session, name, data[name])
        if data.get("data"):
            session.data = {**session.data, **data["data"]}

    # ==================== Helpers ====================

    async def authenticate_session(self, session_id: str, officer_id: str, officer: dict) -> USSDSession:
        """Attach the verified officer to the session"""
        return await self.update(session_id, {"officer_id": officer_id, "data": {"officer": officer}})

    async def set_data(self, session_id: str, key: str, value) -> USSDSession:
        return await self.update(session_id, {"data": {key: value}})

    async def get_data(self, session_id: str, key: str):
        session = await self.get(session_id)
        return session.data.get(key) if session else None

    async def get_officer_id(self, session_id: str) -> str | None:
        session = await self.get(session_id)
        return session.officer_id if session else None

    async def is_authenticated(self, session_id: str) -> bool:
        return await self.get_officer_id(session_id) is not None


class RedisUSSDSessionStore(USSDSessionStore):
    """Redis-backed store; keys carry a server-side TTL as well"""

    KEY_PREFIX = "ussd:session:"

    def __init__(self, redis: aioredis.Redis, ttl_seconds: int | None = None):
        super().__init__(ttl_seconds)
        self._redis = redis

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int | None = None) -> "RedisUSSDSessionStore":
        return cls(aioredis.from_url(url, decode_responses=True), ttl_seconds)

    def _key(self, session_id: str) -> str:
        return f"{self.KEY_PREFIX}{session_id}"

    async def _read(self, session_id: str) -> dict | None:
        try:
            payload = await self._redis.get(self._key(session_id))
        except RedisError as e:
            raise SessionStoreError(f"Redis read failed: {e}") from e
        return json.loads(payload) if payload else None

    async def _write(self, session_id: str, raw: dict, ttl: int) -> None:
        try:
            await self._redis.setex(self._key(session_id), ttl, json.dumps(raw))
        except RedisError as e:
            raise SessionStoreError(f"Redis write failed: {e}") from e

    async def _remove(self, session_id: str) -> None:
        try:
            await self._redis.delete(self._key(session_id))
        except RedisError as e:
            raise SessionStoreError(f"Redis delete failed: {e}") from e

    async def clean_expired(self) -> int:
        # Redis evicts expired keys itself
        return 0

    async def close(self):
        await self._redis.aclose()


class InMemoryUSSDSessionStore(USSDSessionStore):
    """Process-local fallback; relies on the periodic sweep to bound memory"""

    def __init__(self, ttl_seconds: int | None = None):
        super().__init__(ttl_seconds)
        self._sessions: dict[str, dict] = {}
        self._lock = asyncio.Lock()

    async def _read(self, session_id: str) -> dict | None:
        async with self._lock:
            raw = self._sessions.get(session_id)
            return dict(raw) if raw else None

    async def _write(self, session_id: str, raw: dict, ttl: int) -> None:
        async with self._lock:
            self._sessions[session_id] = raw

    async def _remove(self, session_id: str) -> None:
        async with self._lock:
            self._sessions.pop(session_id, None)

    async def clean_expired(self) -> int:
        async with self._lock:
            current = now()
            expired = [
                key for key, raw in self._sessions.items()
                if USSDSession.from_dict(raw).is_expired(current)
            ]
            for key in expired:
                del self._sessions[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)
