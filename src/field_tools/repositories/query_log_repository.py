"""Field query log data access (append-only)"""

from datetime import datetime

from field_tools.config.constants import Channel, QueryType
from field_tools.models.query_log import QueryLogEntry
from field_tools.repositories.base import BaseRepository


class QueryLogRepository(BaseRepository):
    """Query log Repository; entries are never updated or deleted"""

    async def create(self, entry: QueryLogEntry) -> QueryLogEntry:
        async with self._connection() as conn:
            record = await conn.fetchrow(
                """
                INSERT INTO ussd_query_logs (
                    officer_id, phone_number, channel, query_type, search_term,
                    result_summary, success, error_message, session_id,
                    duration_ms, timestamp
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                RETURNING *
                """,
                entry.officer_id,
                entry.phone_number,
                entry.channel.value,
                entry.query_type.value,
                entry.search_term,
                entry.result_summary,
                entry.success,
                entry.error_message,
                entry.session_id,
                entry.duration_ms,
                entry.timestamp,
            )
        return self._to_model(record)

    async def count_since(self, officer_id: str, since: datetime | None = None) -> int:
        """Entries for the officer across all channels, optionally from a start time"""
        async with self._connection() as conn:
            if since is None:
                count = await conn.fetchval(
                    "SELECT COUNT(*) FROM ussd_query_logs WHERE officer_id = $1",
                    officer_id,
                )
            else:
                count = await conn.fetchval(
                    "SELECT COUNT(*) FROM ussd_query_logs WHERE officer_id = $1 AND timestamp >= $2",
                    officer_id,
                    since,
                )
        return count or 0

    async def count_successful(self, officer_id: str) -> int:
        async with self._connection() as conn:
            count = await conn.fetchval(
                "SELECT COUNT(*) FROM ussd_query_logs WHERE officer_id = $1 AND success",
                officer_id,
            )
        return count or 0

    async def count_by_type(self, officer_id: str) -> dict[str, int]:
        async with self._connection() as conn:
            records = await conn.fetch(
                """
                SELECT query_type, COUNT(*) AS total
                FROM ussd_query_logs
                WHERE officer_id = $1
                GROUP BY query_type
                """,
                officer_id,
            )
        return {record["query_type"]: record["total"] for record in records}

    @staticmethod
    def _to_model(record) -> QueryLogEntry:
        return QueryLogEntry(
            id=record["id"],
            officer_id=record["officer_id"],
            phone_number=record["phone_number"],
            channel=Channel(record["channel"]),
            query_type=QueryType(record["query_type"]),
            search_term=record["search_term"],
            result_summary=record["result_summary"],
            success=record["success"],
            error_message=record["error_message"],
            session_id=record["session_id"],
            duration_ms=record["duration_ms"],
            timestamp=record["timestamp"],
        )
