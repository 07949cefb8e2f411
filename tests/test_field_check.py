"""Dispatcher tests: one query, one log entry, whatever happens"""
from __future__ import annotations

import pytest

from field_tools.config.constants import (
    Channel,
    DangerLevel,
    ErrorCode,
    QueryType,
    ResultSummary,
    RiskLevel,
    VehicleStatus,
)
from field_tools.models import WantedRecord
from field_tools.utils.formatter import render_ussd, render_whatsapp

from conftest import (
    CLEAN_NIN,
    CLEAN_PLATE,
    MISSING_NIN,
    OFFICER_ID,
    STOLEN_PLATE,
    WANTED_NIN,
)


@pytest.mark.asyncio
async def test_wanted_person_with_active_warrant(field_check, query_log_repo) -> None:
    result = await field_check.check_wanted_person(OFFICER_ID, WANTED_NIN.lower(), Channel.USSD, "s-1", "+23276000001")

    assert result.success
    assert result.result_summary == ResultSummary.WANTED.value
    assert result.data.is_wanted
    assert result.data.person.name == "Mohamed Bangura"
    assert result.data.wanted_details.danger_level == DangerLevel.HIGH
    assert result.data.wanted_details.charges == ["Armed robbery", "Assault"]

    assert len(query_log_repo.entries) == 1
    entry = query_log_repo.entries[0]
    assert entry.search_term == WANTED_NIN
    assert entry.result_summary == "WANTED"
    assert entry.channel == Channel.USSD
    assert entry.session_id == "s-1"


@pytest.mark.asyncio
async def test_wanted_check_ignores_inactive_warrants(field_check, wanted_repo) -> None:
    wanted_repo.records.append(
        WantedRecord(id="w-2", person_id="p-2", status="captured", danger_level="low")
    )

    result = await field_check.check_wanted_person(OFFICER_ID, CLEAN_NIN, Channel.WHATSAPP)
    assert result.success
    assert not result.data.is_wanted
    assert result.result_summary == ResultSummary.NOT_WANTED.value


@pytest.mark.asyncio
async def test_unknown_danger_level_is_treated_as_high(field_check, wanted_repo) -> None:
    wanted_repo.records.append(
        WantedRecord(id="w-3", person_id="p-2", status="active", danger_level="unusual")
    )

    result = await field_check.check_wanted_person(OFFICER_ID, CLEAN_NIN, Channel.USSD)
    assert result.data.wanted_details.danger_level == DangerLevel.HIGH


@pytest.mark.asyncio
async def test_unknown_nin_is_a_successful_not_found(field_check, query_log_repo) -> None:
    result = await field_check.check_wanted_person(OFFICER_ID, "NOPE0000", Channel.USSD)

    assert result.success
    assert not result.data.found
    assert result.result_summary == ResultSummary.NOT_FOUND.value
    assert render_ussd(result, "NOPE0000") == "END No record found for NIN: NOPE0000"
    assert len(query_log_repo.entries) == 1


@pytest.mark.asyncio
async def test_missing_person_flag(field_check) -> None:
    missing = await field_check.check_missing_person(OFFICER_ID, MISSING_NIN, Channel.USSD)
    assert missing.data.is_missing
    assert missing.result_summary == ResultSummary.MISSING.value

    present = await field_check.check_missing_person(OFFICER_ID, CLEAN_NIN, Channel.USSD)
    assert not present.data.is_missing
    assert present.result_summary == ResultSummary.NOT_MISSING.value


@pytest.mark.asyncio
async def test_background_check_risk_levels(field_check, case_repo) -> None:
    from field_tools.models import CaseRecord

    flagged = await field_check.check_background(OFFICER_ID, WANTED_NIN, Channel.USSD)
    assert flagged.result_summary == ResultSummary.HAS_RECORD.value
    assert flagged.data.record_details.risk_level == RiskLevel.HIGH
    assert flagged.data.record_details.case_count == 1
    assert flagged.data.record_details.is_wanted

    clear = await field_check.check_background(OFFICER_ID, CLEAN_NIN, Channel.USSD)
    assert clear.result_summary == ResultSummary.CLEAR.value
    assert not clear.data.has_record

    case_repo.cases.append(CaseRecord(id="c-2", person_id="p-2", severity="major"))
    medium = await field_check.check_background(OFFICER_ID, CLEAN_NIN, Channel.USSD)
    assert medium.data.record_details.risk_level == RiskLevel.MEDIUM

    missing_only = await field_check.check_background(OFFICER_ID, MISSING_NIN, Channel.USSD)
    assert missing_only.data.record_details.risk_level == RiskLevel.LOW
    assert missing_only.data.record_details.is_missing


@pytest.mark.asyncio
async def test_stolen_vehicle_with_normalised_plate(field_check, query_log_repo) -> None:
    result = await field_check.check_vehicle(OFFICER_ID, " abc 123 ", Channel.WHATSAPP)

    assert result.success
    assert result.data.status == VehicleStatus.STOLEN
    assert result.data.plate == STOLEN_PLATE
    assert result.data.stolen_details.days_stolen == 3
    assert result.result_summary == "STOLEN"
    assert query_log_repo.entries[0].search_term == STOLEN_PLATE
    assert "STOLEN VEHICLE ALERT" in render_whatsapp(result)


@pytest.mark.asyncio
async def test_clean_and_unknown_vehicles(field_check) -> None:
    clean = await field_check.check_vehicle(OFFICER_ID, CLEAN_PLATE, Channel.USSD)
    assert clean.data.status == VehicleStatus.CLEAN
    assert clean.result_summary == "CLEAN"

    unknown = await field_check.check_vehicle(OFFICER_ID, "ZZZ000", Channel.USSD)
    assert unknown.success
    assert unknown.data.status == VehicleStatus.NOT_FOUND
    assert unknown.result_summary == ResultSummary.NOT_FOUND.value


@pytest.mark.asyncio
async def test_statistics_count_prior_queries(field_check, query_log_repo) -> None:
    query_log_repo.seed(OFFICER_ID, 3)
    query_log_repo.seed(OFFICER_ID, 1, success=False, query_type=QueryType.VEHICLE)

    result = await field_check.get_statistics(OFFICER_ID, Channel.USSD)

    assert result.success
    stats = result.data
    assert stats.today == 4
    assert stats.total == 4
    assert stats.success_rate == pytest.approx(75.0)
    assert stats.by_type == {"wanted": 3, "vehicle": 1}
    # the stats query itself is logged too
    assert len(query_log_repo.entries) == 5
    assert query_log_repo.entries[-1].search_term == "self"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "query_type, term",
    [
        (QueryType.WANTED, WANTED_NIN),
        (QueryType.MISSING, MISSING_NIN),
        (QueryType.BACKGROUND, CLEAN_NIN),
        (QueryType.VEHICLE, STOLEN_PLATE),
        (QueryType.STATS, None),
    ],
)
async def test_dispatch_routes_each_type_and_logs_once(field_check, query_log_repo, query_type, term) -> None:
    result = await field_check.dispatch(query_type, OFFICER_ID, term, Channel.WHATSAPP, session_id="7")

    assert result.check_type == query_type
    assert result.success
    assert len(query_log_repo.entries) == 1
    assert query_log_repo.entries[0].query_type == query_type


@pytest.mark.asyncio
async def test_rate_limited_query_is_logged_without_lookup(field_check, query_log_repo, person_repo) -> None:
    query_log_repo.seed(OFFICER_ID, 50)
    person_repo.fail = True  # a lookup would blow up

    result = await field_check.check_wanted_person(OFFICER_ID, WANTED_NIN, Channel.USSD)

    assert not result.success
    assert result.error_code == ErrorCode.RATE_LIMITED
    assert result.rate_limit.allowed is False
    assert len(query_log_repo.entries) == 51
    assert query_log_repo.entries[-1].result_summary == ResultSummary.RATE_LIMITED.value
    assert render_ussd(result).startswith("END Daily limit reached (50 queries).")


@pytest.mark.asyncio
async def test_lookup_failure_returns_generic_error(field_check, person_repo, query_log_repo) -> None:
    person_repo.fail = True

    result = await field_check.check_missing_person(OFFICER_ID, CLEAN_NIN, Channel.USSD)

    assert not result.success
    assert result.error_code == ErrorCode.DATABASE_ERROR
    assert result.error == "Error checking missing status"
    assert len(query_log_repo.entries) == 1
    assert query_log_repo.entries[0].success is False
    assert render_ussd(result) == "END Error checking missing status. Please try again."


@pytest.mark.asyncio
async def test_empty_search_term_is_a_validation_error(field_check, query_log_repo) -> None:
    result = await field_check.check_wanted_person(OFFICER_ID, "   ", Channel.USSD)

    assert not result.success
    assert result.error_code == ErrorCode.VALIDATION_ERROR
    assert len(query_log_repo.entries) == 1


@pytest.mark.asyncio
async def test_log_write_failure_does_not_hide_the_result(field_check, query_log_repo, audit_repo) -> None:
    query_log_repo.fail_writes = True
    audit_repo.fail = True

    result = await field_check.check_wanted_person(OFFICER_ID, WANTED_NIN, Channel.USSD)

    assert result.success
    assert result.data.is_wanted
