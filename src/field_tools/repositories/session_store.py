"""Session store contract shared by both channels"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

S = TypeVar("S")


class SessionStore(ABC, Generic[S]):
    """
    Key/value session storage with TTL

    Implementations must treat a record whose TTL has lapsed as absent on
    ``get`` (and purge it), whatever their background sweep does.
    """

    @abstractmethod
    async def get(self, key: str) -> S | None:
        """Load a live session, or None if absent or expired"""

    @abstractmethod
    async def save(self, key: str, data: dict, ttl: int | None = None) -> S:
        """
        Merge partial data onto the session (creating it if needed) and restart its TTL

        Args:
            key: Channel identity
            data: Partial field values
            ttl: TTL override, in the store's native unit

        Returns:
            The stored session
        """

    @abstractmethod
    async def update(self, key: str, data: dict) -> S:
        """
        Merge partial data onto an existing session

        Raises:
            SessionNotFoundError: If there is no live session for key
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a session; missing keys are ignored"""

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    @abstractmethod
    async def clean_expired(self) -> int:
        """Sweep expired sessions, returning how many were removed"""
