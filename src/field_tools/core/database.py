"""Database pool management"""

import logging
from typing import Optional

import asyncpg
from asyncpg import Pool

from field_tools.config.settings import get_settings

logger = logging.getLogger(__name__)

_pool: Optional[Pool] = None


async def _init_connection(conn):
    """Initialise a pooled connection (session time zone)"""
    settings = get_settings()
    # NOW() returns wall-clock time in the configured zone
    await conn.execute(f"SET TIME ZONE '{settings.timezone}';")


async def get_pool() -> Pool:
    """Shared pool, created on first use (10 s command timeout)"""
    global _pool
    if _pool is not None:
        return _pool

    _pool = await asyncpg.create_pool(
        get_settings().database_url,
        min_size=2,
        max_size=20,
        command_timeout=10,
        init=_init_connection,
    )
    logger.info("Database pool created")
    return _pool


async def close_pool():
    """Close the shared pool if it was opened"""
    global _pool
    pool, _pool = _pool, None
    if pool is not None:
        await pool.close()
        logger.info("Database pool closed")


class DatabaseConnection:
    """
    Borrow one pooled connection for an ``async with`` block

    The connection goes back to the pool on exit, even when the block raises.
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout
        self._pool: Pool | None = None
        self._conn: asyncpg.Connection | None = None

    async def __aenter__(self) -> asyncpg.Connection:
        self._pool = await get_pool()
        self._conn = await self._pool.acquire(timeout=self.timeout)
        return self._conn

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._conn is not None:
            conn, self._conn = self._conn, None
            await self._pool.release(conn)


# ==================== Schema bootstrap ====================

# Only the tables owned by the field tools are created here. Officers,
# stations, persons, wanted persons, cases and vehicles belong to the
# records system and are read as-is.
_INIT_SQL_TABLES = """
-- WhatsApp conversation sessions
CREATE TABLE IF NOT EXISTS whatsapp_sessions (
    id BIGSERIAL PRIMARY KEY,
    phone_number VARCHAR(32) NOT NULL UNIQUE,
    officer_id VARCHAR(64),
    state VARCHAR(32) NOT NULL DEFAULT 'MAIN_MENU',
    selected_query_type VARCHAR(32),
    search_term TEXT,
    query_data JSONB NOT NULL DEFAULT '{}',
    pin_attempts SMALLINT NOT NULL DEFAULT 0,
    expires_at TIMESTAMP NOT NULL,
    last_activity_at TIMESTAMP NOT NULL DEFAULT NOW(),
    created_at TIMESTAMP NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMP NOT NULL DEFAULT NOW()
);

-- Field query log (append-only)
CREATE TABLE IF NOT EXISTS ussd_query_logs (
    id BIGSERIAL PRIMARY KEY,
    officer_id VARCHAR(64) NOT NULL,
    phone_number VARCHAR(32) NOT NULL,
    channel VARCHAR(16) NOT NULL DEFAULT 'ussd',
    query_type VARCHAR(32) NOT NULL,
    search_term TEXT NOT NULL,
    result_summary VARCHAR(32),
    success BOOLEAN NOT NULL,
    error_message TEXT,
    session_id VARCHAR(128),
    duration_ms INTEGER,
    timestamp TIMESTAMP NOT NULL DEFAULT NOW()
);

-- Compliance audit trail
CREATE TABLE IF NOT EXISTS audit_logs (
    id BIGSERIAL PRIMARY KEY,
    entity_type VARCHAR(64) NOT NULL,
    entity_id VARCHAR(128),
    officer_id VARCHAR(64),
    action VARCHAR(64) NOT NULL,
    success BOOLEAN NOT NULL,
    details JSONB NOT NULL DEFAULT '{}',
    created_at TIMESTAMP NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_whatsapp_sessions_expires_at ON whatsapp_sessions(expires_at);
CREATE INDEX IF NOT EXISTS idx_ussd_query_logs_officer_ts ON ussd_query_logs(officer_id, timestamp DESC);
CREATE INDEX IF NOT EXISTS idx_audit_logs_officer_id ON audit_logs(officer_id);
"""


async def init_database():
    """Create the field tools tables if they don't exist"""
    settings = get_settings()
    conn = await asyncpg.connect(settings.database_url)
    try:
        await conn.execute(f"SET TIME ZONE '{settings.timezone}';")
        await conn.execute(_INIT_SQL_TABLES)
        logger.info("Database tables initialised")
    finally:
        await conn.close()


async def check_and_init_database():
    """Check whether the field tools tables exist, create them if not"""
    settings = get_settings()

    try:
        conn = await asyncpg.connect(settings.database_url)
        try:
            exists = await conn.fetchval(
                "SELECT EXISTS (SELECT FROM information_schema.tables WHERE table_name = 'whatsapp_sessions')"
            )
        finally:
            await conn.close()
    except (OSError, asyncpg.PostgresError) as e:
        logger.error(f"Database check failed: {e}", exc_info=True)
        raise

    if not exists:
        logger.warning("Field tools tables missing, initialising...")
        await init_database()
    else:
        logger.debug("Field tools tables present")
