"""Repository base class"""

import logging
from abc import ABC
from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg

from field_tools.core.database import DatabaseConnection
from field_tools.core.errors import StorageError

logger = logging.getLogger(__name__)


class BaseRepository(ABC):
    """Base class for asyncpg-backed repositories"""

    # Driver failures surface as this domain error
    error_class: type[StorageError] = StorageError

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Borrow a pooled connection for the duration of the block

        Raises:
            StorageError: (or the subclass set on error_class) if the driver fails
        """
        try:
            async with DatabaseConnection() as conn:
                yield conn
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, TimeoutError) as e:
            logger.error(f"{type(self).__name__} database error: {type(e).__name__}: {e}")
            raise self.error_class(str(e)) from e
