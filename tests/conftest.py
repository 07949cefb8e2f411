"""
Shared fixtures for the field tools tests.

Every collaborator the services talk to is replaced by an in-memory fake;
session stores use the real in-memory implementations.
"""
from __future__ import annotations

from datetime import timedelta

import bcrypt
import pytest

from field_tools.config.constants import Channel, QueryType
from field_tools.core.errors import StorageError
from field_tools.core.timezone import now
from field_tools.models import (
    CaseRecord,
    OfficerRecord,
    Person,
    QueryLogEntry,
    Vehicle,
    WantedRecord,
)
from field_tools.repositories import InMemoryUSSDSessionStore, InMemoryWhatsAppSessionRepository
from field_tools.services import (
    Authenticator,
    CountryConfigService,
    FieldCheckService,
    RateLimiter,
    USSDService,
    WhatsAppService,
)
from field_tools.services.whapi import WhapiResult

PIN = "1234"
# low cost factor keeps the suite fast
PIN_HASH = bcrypt.hashpw(PIN.encode(), bcrypt.gensalt(rounds=4)).decode()

OFFICER_ID = "officer-1"
OFFICER_PHONE = "+23276000001"
WA_PHONE = "23276000001"

WANTED_NIN = "W7RGGVGI"
CLEAN_NIN = "SL100200"
MISSING_NIN = "SL555555"
STOLEN_PLATE = "ABC123"
CLEAN_PLATE = "XYZ789"


def make_officer(**overrides) -> OfficerRecord:
    values = dict(
        id=OFFICER_ID,
        badge="SLP-0001",
        name="Insp. Kamara",
        station_id="station-1",
        active=True,
        ussd_enabled=True,
        daily_limit=None,
        phone_number=OFFICER_PHONE,
        quick_pin_hash=PIN_HASH,
        station_name="Central",
        station_code="CEN",
        role_level=3,
    )
    values.update(overrides)
    return OfficerRecord(**values)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeOfficerRepository:
    def __init__(self, *officers: OfficerRecord):
        self.officers = {o.id: o for o in officers}
        self.touched: list[str] = []
        self.lookups = 0
        self.fail = False

    def _check(self):
        if self.fail:
            raise StorageError("officer directory unavailable")

    async def get_by_phone(self, phone_number: str):
        self.lookups += 1
        self._check()
        return next((o for o in self.officers.values() if o.phone_number == phone_number), None)

    async def get_by_id(self, officer_id: str):
        self.lookups += 1
        self._check()
        return self.officers.get(officer_id)

    async def touch_last_used(self, officer_id: str) -> None:
        self._check()
        self.touched.append(officer_id)


class FakeAuditRepository:
    def __init__(self):
        self.entries = []
        self.fail = False

    async def create(self, entry) -> None:
        if self.fail:
            raise StorageError("audit sink unavailable")
        self.entries.append(entry)


class FakeQueryLogRepository:
    def __init__(self):
        self.entries: list[QueryLogEntry] = []
        self.fail_writes = False
        self.fail_reads = False

    async def create(self, entry: QueryLogEntry) -> QueryLogEntry:
        if self.fail_writes:
            raise StorageError("query log unavailable")
        self.entries.append(entry)
        return entry

    def _for(self, officer_id: str):
        if self.fail_reads:
            raise StorageError("query log unavailable")
        return [e for e in self.entries if e.officer_id == officer_id]

    async def count_since(self, officer_id: str, since=None) -> int:
        return sum(1 for e in self._for(officer_id) if since is None or e.timestamp >= since)

    async def count_successful(self, officer_id: str) -> int:
        return sum(1 for e in self._for(officer_id) if e.success)

    async def count_by_type(self, officer_id: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for e in self._for(officer_id):
            counts[e.query_type.value] = counts.get(e.query_type.value, 0) + 1
        return counts

    def seed(self, officer_id: str, count: int, **overrides) -> None:
        """Append `count` successful entries timestamped now"""
        for _ in range(count):
            values = dict(
                officer_id=officer_id,
                phone_number=OFFICER_PHONE,
                channel=Channel.USSD,
                query_type=QueryType.WANTED,
                search_term=CLEAN_NIN,
                success=True,
                result_summary="NOT_WANTED",
                timestamp=now(),
            )
            values.update(overrides)
            self.entries.append(QueryLogEntry(**values))


class FakePersonRepository:
    def __init__(self, *people: Person):
        self.people = {p.nin: p for p in people}
        self.fail = False

    async def find_by_nin(self, nin: str):
        if self.fail:
            raise StorageError("records unavailable")
        return self.people.get(nin)


class FakeWantedRepository:
    def __init__(self, *records: WantedRecord):
        self.records = list(records)

    async def find_by_person_id(self, person_id: str):
        return [r for r in self.records if r.person_id == person_id]


class FakeCaseRepository:
    def __init__(self, *cases: CaseRecord):
        self.cases = list(cases)

    async def find_by_person_id(self, person_id: str):
        return [c for c in self.cases if c.person_id == person_id]


class FakeVehicleRepository:
    def __init__(self, *vehicles: Vehicle):
        self.vehicles = {v.license_plate: v for v in vehicles}

    async def find_by_license_plate(self, plate: str):
        return self.vehicles.get(plate)


class FakeMessenger:
    def __init__(self):
        self.texts: list[tuple[str, str]] = []
        self.interactive: list[dict] = []

    async def send_text(self, to: str, body: str) -> WhapiResult:
        self.texts.append((to, body))
        return WhapiResult(success=True, message_id=f"msg-{len(self.texts)}")

    async def send_interactive(self, payload: dict) -> WhapiResult:
        self.interactive.append(payload)
        return WhapiResult(success=True, message_id=f"list-{len(self.interactive)}")

    @property
    def last_text(self) -> str | None:
        return self.texts[-1][1] if self.texts else None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def officer_repo():
    return FakeOfficerRepository(make_officer())


@pytest.fixture
def audit_repo():
    return FakeAuditRepository()


@pytest.fixture
def query_log_repo():
    return FakeQueryLogRepository()


@pytest.fixture
def person_repo():
    return FakePersonRepository(
        Person(id="p-1", first_name="Mohamed", last_name="Bangura", nin=WANTED_NIN),
        Person(id="p-2", first_name="Fatmata", last_name="Sesay", nin=CLEAN_NIN),
        Person(id="p-3", first_name="Abu", last_name="Conteh", nin=MISSING_NIN, is_deceased_or_missing=True),
    )


@pytest.fixture
def wanted_repo():
    return FakeWantedRepository(
        WantedRecord(
            id="w-1",
            person_id="p-1",
            status="active",
            danger_level="high",
            charges=["Armed robbery", "Assault"],
            warrant_number="W-2024-001",
            last_seen_location="Kissy Road",
        ),
    )


@pytest.fixture
def case_repo():
    return FakeCaseRepository(
        CaseRecord(id="c-1", person_id="p-1", severity="critical", status="open"),
    )


@pytest.fixture
def vehicle_repo():
    return FakeVehicleRepository(
        Vehicle(
            id="v-1",
            license_plate=STOLEN_PLATE,
            status="stolen",
            make="Toyota",
            model="Corolla",
            color="Silver",
            year=2015,
            stolen_date=now() - timedelta(days=3),
            stolen_reported_by="Owner",
        ),
        Vehicle(id="v-2", license_plate=CLEAN_PLATE, status="clean", make="Honda", model="Fit", color="Blue"),
    )


@pytest.fixture
def authenticator(officer_repo, audit_repo):
    return Authenticator(officer_repo, audit_repo)


@pytest.fixture
def rate_limiter(query_log_repo, officer_repo):
    return RateLimiter(query_log_repo, officer_repo, default_limit=50, reset_hour=0)


@pytest.fixture
def field_check(rate_limiter, person_repo, wanted_repo, case_repo, vehicle_repo, query_log_repo, audit_repo):
    return FieldCheckService(
        rate_limiter, person_repo, wanted_repo, case_repo, vehicle_repo, query_log_repo, audit_repo
    )


@pytest.fixture
def ussd_store():
    return InMemoryUSSDSessionStore(ttl_seconds=180)


@pytest.fixture
def ussd_service(ussd_store, authenticator, rate_limiter, field_check):
    return USSDService(ussd_store, authenticator, rate_limiter, field_check, CountryConfigService())


@pytest.fixture
def whatsapp_repo():
    return InMemoryWhatsAppSessionRepository()


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def whatsapp_service(whatsapp_repo, authenticator, rate_limiter, field_check, messenger):
    return WhatsAppService(whatsapp_repo, authenticator, rate_limiter, field_check, messenger)
