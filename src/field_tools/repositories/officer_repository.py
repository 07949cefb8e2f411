"""Officer directory data access"""

from field_tools.core.timezone import now
from field_tools.models.officer import OfficerRecord
from field_tools.repositories.base import BaseRepository

_OFFICER_SELECT = """
    SELECT o.id, o.badge, o.name, o.station_id, o.active, o.locked_until,
           o.ussd_phone_number, o.ussd_quick_pin_hash, o.ussd_enabled,
           o.ussd_last_used, o.ussd_daily_limit,
           s.name AS station_name, s.code AS station_code,
           r.level AS role_level
    FROM officers o
    LEFT JOIN stations s ON s.id = o.station_id
    LEFT JOIN roles r ON r.id = o.role_id
"""


class OfficerRepository(BaseRepository):
    """Officer Repository (read-mostly; owned by the records system)"""

    async def get_by_phone(self, phone_number: str) -> OfficerRecord | None:
        """Find the officer enrolled for field access on this phone"""
        async with self._connection() as conn:
            record = await conn.fetchrow(
                f"{_OFFICER_SELECT} WHERE o.ussd_phone_number = $1 LIMIT 1",
                phone_number,
            )
        return self._to_model(record) if record else None

    async def get_by_id(self, officer_id: str) -> OfficerRecord | None:
        async with self._connection() as conn:
            record = await conn.fetchrow(f"{_OFFICER_SELECT} WHERE o.id = $1", officer_id)
        return self._to_model(record) if record else None

    async def touch_last_used(self, officer_id: str) -> None:
        """Record field-channel usage"""
        async with self._connection() as conn:
            await conn.execute(
                "UPDATE officers SET ussd_last_used = $1 WHERE id = $2",
                now(),
                officer_id,
            )

    @staticmethod
    def _to_model(record) -> OfficerRecord:
        return OfficerRecord(
            id=str(record["id"]),
            badge=record["badge"],
            name=record["name"],
            station_id=str(record["station_id"]),
            active=record["active"],
            ussd_enabled=record["ussd_enabled"],
            daily_limit=record["ussd_daily_limit"],
            phone_number=record["ussd_phone_number"],
            quick_pin_hash=record["ussd_quick_pin_hash"],
            locked_until=record["locked_until"],
            last_used=record["ussd_last_used"],
            station_name=record["station_name"],
            station_code=record["station_code"],
            role_level=record["role_level"],
        )
