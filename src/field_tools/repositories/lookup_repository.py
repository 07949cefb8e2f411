"""Read-only lookups against the records system"""

import json
from typing import List

from field_tools.models.lookup import CaseRecord, Person, Vehicle, WantedRecord
from field_tools.repositories.base import BaseRepository


class PersonRepository(BaseRepository):
    """Person lookups"""

    async def find_by_nin(self, nin: str) -> Person | None:
        async with self._connection() as conn:
            record = await conn.fetchrow(
                """
                SELECT id, first_name, last_name, nin, is_deceased_or_missing
                FROM persons
                WHERE nin = $1
                LIMIT 1
                """,
                nin,
            )
        if not record:
            return None
        return Person(
            id=str(record["id"]),
            first_name=record["first_name"],
            last_name=record["last_name"],
            nin=record["nin"],
            is_deceased_or_missing=bool(record["is_deceased_or_missing"]),
        )


class WantedPersonRepository(BaseRepository):
    """Wanted-person lookups"""

    async def find_by_person_id(self, person_id: str) -> List[WantedRecord]:
        async with self._connection() as conn:
            records = await conn.fetch(
                """
                SELECT id, person_id, status, danger_level, charges, warrant_number,
                       last_seen_location, reward_amount
                FROM wanted_persons
                WHERE person_id = $1
                ORDER BY created_at DESC
                """,
                person_id,
            )
        return [self._to_model(record) for record in records]

    @staticmethod
    def _to_model(record) -> WantedRecord:
        return WantedRecord(
            id=str(record["id"]),
            person_id=str(record["person_id"]),
            status=record["status"],
            danger_level=record["danger_level"],
            charges=_parse_charges(record["charges"]),
            warrant_number=record["warrant_number"],
            last_seen_location=record["last_seen_location"],
            reward_amount=record["reward_amount"],
        )


def _parse_charges(raw) -> list[str]:
    """Charges are stored as JSON: a list of strings or of {"charge": ...} objects"""
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = json.loads(raw)
    return [item["charge"] if isinstance(item, dict) else str(item) for item in raw]


class CaseRepository(BaseRepository):
    """Case lookups"""

    async def find_by_person_id(self, person_id: str) -> List[CaseRecord]:
        async with self._connection() as conn:
            records = await conn.fetch(
                """
                SELECT c.id, cp.person_id, c.severity, c.status
                FROM cases c
                JOIN case_person_relations cp ON cp.case_id = c.id
                WHERE cp.person_id = $1
                """,
                person_id,
            )
        return [
            CaseRecord(
                id=str(record["id"]),
                person_id=str(record["person_id"]),
                severity=record["severity"],
                status=record["status"],
            )
            for record in records
        ]


class VehicleRepository(BaseRepository):
    """Vehicle lookups"""

    async def find_by_license_plate(self, plate: str) -> Vehicle | None:
        async with self._connection() as conn:
            record = await conn.fetchrow(
                """
                SELECT id, license_plate, status, make, model, color, year,
                       owner_name, stolen_date, stolen_reported_by
                FROM vehicles
                WHERE license_plate = $1
                LIMIT 1
                """,
                plate,
            )
        if not record:
            return None
        return Vehicle(
            id=str(record["id"]),
            license_plate=record["license_plate"],
            status=record["status"],
            make=record["make"],
            model=record["model"],
            color=record["color"],
            year=record["year"],
            owner_name=record["owner_name"],
            stolen_date=record["stolen_date"],
            stolen_reported_by=record["stolen_reported_by"],
        )
