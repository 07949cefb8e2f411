"""USSD router tests"""
from __future__ import annotations

import pytest

from field_tools.config.constants import USSD_MAX_LENGTH
from field_tools.core.errors import SessionStoreError
from field_tools.repositories import InMemoryUSSDSessionStore
from field_tools.services import USSDService
from field_tools.services.ussd import (
    INVALID_PIN_MESSAGE,
    FeatureChosen,
    MainMenu,
    PinEntered,
    SearchEntered,
    parse_input,
)

from conftest import OFFICER_ID, OFFICER_PHONE, WANTED_NIN


class BrokenUSSDSessionStore(InMemoryUSSDSessionStore):
    async def _write(self, session_id: str, raw: dict, ttl: int) -> None:
        raise SessionStoreError("redis unavailable")


@pytest.mark.parametrize(
    "text, expected",
    [
        (None, MainMenu()),
        ("", MainMenu()),
        ("1", FeatureChosen("1")),
        ("1*1234", PinEntered("1", "1234")),
        ("1*1234*W7RGGVGI", SearchEntered("1", "1234", "W7RGGVGI")),
        ("4*1234*AB 123", SearchEntered("4", "1234", "AB 123")),
        ("1*1234*OLD*NEW", SearchEntered("1", "1234", "NEW")),
    ],
)
def test_parse_input_positions(text, expected) -> None:
    assert parse_input(text) == expected


@pytest.mark.asyncio
async def test_empty_input_shows_five_option_menu(ussd_service) -> None:
    response = await ussd_service.handle_request("s-1", OFFICER_PHONE, "")

    assert response.startswith("CON ")
    for option in ("1.", "2.", "3.", "4.", "5."):
        assert option in response
    assert "6." not in response


@pytest.mark.asyncio
async def test_wrong_pin_ends_session_and_leaves_nothing_behind(ussd_service, ussd_store) -> None:
    await ussd_service.handle_request("s-1", OFFICER_PHONE, "")
    await ussd_service.handle_request("s-1", OFFICER_PHONE, "1")

    response = await ussd_service.handle_request("s-1", OFFICER_PHONE, "1*9999")

    assert response == f"END {INVALID_PIN_MESSAGE}"
    assert not await ussd_store.exists("s-1")
    assert len(ussd_store) == 0


@pytest.mark.asyncio
async def test_single_request_wanted_check_on_fresh_session(ussd_service, ussd_store, query_log_repo) -> None:
    response = await ussd_service.handle_request("s-1", OFFICER_PHONE, f"1*1234*{WANTED_NIN}")

    assert response.startswith("END ")
    assert "WANTED" in response
    assert "Mohamed Bangura" in response
    assert "HIGH" in response
    assert len(query_log_repo.entries) == 1
    entry = query_log_repo.entries[0]
    assert entry.result_summary == "WANTED"
    assert entry.officer_id == OFFICER_ID
    assert entry.session_id == "s-1"
    assert not await ussd_store.exists("s-1")


@pytest.mark.asyncio
async def test_step_by_step_call(ussd_service, ussd_store) -> None:
    assert (await ussd_service.handle_request("s-1", OFFICER_PHONE, "")).startswith("CON ")
    assert await ussd_service.handle_request("s-1", OFFICER_PHONE, "1") == "CON Enter your 4-digit Quick PIN:"
    assert await ussd_service.handle_request("s-1", OFFICER_PHONE, "1*1234") == "CON Enter NIN:"

    session = await ussd_store.get("s-1")
    assert session.officer_id == OFFICER_ID
    assert session.data["feature"] == "wanted"
    assert session.data["officer"]["badge"] == "SLP-0001"

    response = await ussd_service.handle_request("s-1", OFFICER_PHONE, f"1*1234*{WANTED_NIN}")
    assert response.startswith("END WANTED PERSON")
    assert not await ussd_store.exists("s-1")


@pytest.mark.asyncio
async def test_vehicle_prompt_and_result(ussd_service) -> None:
    assert await ussd_service.handle_request("s-2", OFFICER_PHONE, "4*1234") == "CON Enter license plate:"

    response = await ussd_service.handle_request("s-2", OFFICER_PHONE, "4*1234*abc 123")
    assert response.startswith("END STOLEN VEHICLE")
    assert "Plate: ABC123" in response


@pytest.mark.asyncio
async def test_stats_answer_right_after_pin(ussd_service, query_log_repo) -> None:
    response = await ussd_service.handle_request("s-3", OFFICER_PHONE, "5*1234")

    assert response.startswith("END Your Field Stats")
    assert query_log_repo.entries[-1].search_term == "self"


@pytest.mark.asyncio
async def test_replayed_request_repeats_the_same_answer(ussd_service) -> None:
    text = f"1*1234*{WANTED_NIN}"
    first = await ussd_service.handle_request("s-4", OFFICER_PHONE, text)
    second = await ussd_service.handle_request("s-4", OFFICER_PHONE, text)

    assert first == second


@pytest.mark.asyncio
async def test_wrong_pin_at_search_depth_is_rejected(ussd_service, query_log_repo) -> None:
    response = await ussd_service.handle_request("s-5", OFFICER_PHONE, f"1*0000*{WANTED_NIN}")

    assert response == f"END {INVALID_PIN_MESSAGE}"
    assert query_log_repo.entries == []


@pytest.mark.asyncio
async def test_unregistered_phone_gets_the_same_message(ussd_service) -> None:
    response = await ussd_service.handle_request("s-6", "+23279999999", "1*1234")
    assert response == f"END {INVALID_PIN_MESSAGE}"


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["9", "0", "9*1234", "x*1234*ABC"])
async def test_invalid_selection(ussd_service, text) -> None:
    assert await ussd_service.handle_request("s-7", OFFICER_PHONE, text) == "END Invalid selection"


@pytest.mark.asyncio
@pytest.mark.parametrize("session_id, phone", [(None, OFFICER_PHONE), ("s-8", None), ("", "")])
async def test_missing_identifiers(ussd_service, session_id, phone) -> None:
    assert await ussd_service.handle_request(session_id, phone, "1") == "END Invalid request"


@pytest.mark.asyncio
async def test_rate_limited_officer_is_told_when_quota_resets(ussd_service, query_log_repo) -> None:
    query_log_repo.seed(OFFICER_ID, 50)

    response = await ussd_service.handle_request("s-9", OFFICER_PHONE, "1*1234")

    assert response == "END Daily limit reached (50 queries).\nResets at midnight."


@pytest.mark.asyncio
async def test_session_store_outage_reads_as_expired(authenticator, rate_limiter, field_check) -> None:
    service = USSDService(BrokenUSSDSessionStore(), authenticator, rate_limiter, field_check)

    response = await service.handle_request("s-10", OFFICER_PHONE, "")
    assert response == "END Session expired. Please try again."


@pytest.mark.asyncio
async def test_responses_fit_one_screen(ussd_service) -> None:
    for text in ("", "1", "1*1234", f"1*1234*{WANTED_NIN}", "3*1234*W7RGGVGI", "5*1234"):
        response = await ussd_service.handle_request(f"len-{text}", OFFICER_PHONE, text)
        assert len(response) <= USSD_MAX_LENGTH


def test_country_information(ussd_service) -> None:
    assert ussd_service.get_ussd_shortcode() == "*384#"
    assert ussd_service.get_ussd_gateways() == ["africastalking"]
