"""Audit log sink"""

import json

from field_tools.models.query_log import AuditEntry
from field_tools.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository):
    """Append-only compliance audit trail"""

    async def create(self, entry: AuditEntry) -> None:
        async with self._connection() as conn:
            await conn.execute(
                """
                INSERT INTO audit_logs (entity_type, entity_id, officer_id, action, success, details)
                VALUES ($1, $2, $3, $4, $5, $6)
                """,
                entry.entity_type,
                entry.entity_id,
                entry.officer_id,
                entry.action,
                entry.success,
                json.dumps(entry.details, default=str),
            )
