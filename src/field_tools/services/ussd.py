"""USSD request router"""

import logging
from dataclasses import dataclass

from field_tools.config.constants import USSD_MENU, Channel, QueryType
from field_tools.core.errors import SessionNotFoundError, SessionStoreError
from field_tools.models.officer import AuthenticatedOfficer
from field_tools.repositories.ussd_session_repository import USSDSessionStore
from field_tools.services.authenticator import Authenticator
from field_tools.services.country_config import CountryConfigService
from field_tools.services.field_check import FieldCheckService
from field_tools.services.rate_limiter import RateLimiter
from field_tools.utils.formatter import con, end, mask_phone, render_ussd, ussd_main_menu, ussd_rate_limited
from field_tools.utils.validator import normalize_nin

logger = logging.getLogger(__name__)

INVALID_PIN_MESSAGE = "Invalid Quick PIN.\nPlease dial again."


# ==================== Input positions ====================

@dataclass(frozen=True)
class MainMenu:
    """Nothing entered yet"""


@dataclass(frozen=True)
class FeatureChosen:
    selection: str


@dataclass(frozen=True)
class PinEntered:
    selection: str
    pin: str


@dataclass(frozen=True)
class SearchEntered:
    selection: str
    pin: str
    search_term: str


USSDInput = MainMenu | FeatureChosen | PinEntered | SearchEntered


def parse_input(text: str | None) -> USSDInput:
    """
    Derive the menu position from the gateway's accumulated input

    Args:
        text: '*'-joined input for the whole call, e.g. "1*1234*AB123"

    Returns:
        The position the call has reached
    """
    segments = [s.strip() for s in text.split("*")] if text and text.strip() else []
    match segments:
        case []:
            return MainMenu()
        case [selection]:
            return FeatureChosen(selection)
        case [selection, pin]:
            return PinEntered(selection, pin)
        case [selection, pin, *_, search_term]:
            return SearchEntered(selection, pin, search_term)


class USSDService:
    """
    Handles one gateway request per call

    The session only carries the chosen feature and the verified officer
    so the in-flight call can be attributed; every terminal response
    deletes it.
    """

    def __init__(
        self,
        session_store: USSDSessionStore,
        authenticator: Authenticator,
        rate_limiter: RateLimiter,
        field_check: FieldCheckService,
        country_config: CountryConfigService | None = None,
    ):
        self.session_store = session_store
        self.authenticator = authenticator
        self.rate_limiter = rate_limiter
        self.field_check = field_check
        self.country_config = country_config or CountryConfigService()

    async def handle_request(self, session_id: str | None, phone_number: str | None, text: str | None) -> str:
        """
        Produce the response for one gateway request

        Args:
            session_id: Gateway session id
            phone_number: Caller phone number
            text: Accumulated '*'-joined input

        Returns:
            "CON ..." or "END ..." text
        """
        if not session_id or not phone_number:
            logger.warning("USSD request missing sessionId or phoneNumber")
            return end("Invalid request")

        position = parse_input(text)
        logger.debug(f"USSD {session_id} from {mask_phone(phone_number)}: {type(position).__name__}")

        try:
            match position:
                case MainMenu():
                    response = await self._main_menu(session_id, phone_number)
                case FeatureChosen(selection):
                    response = await self._feature_chosen(session_id, phone_number, selection)
                case PinEntered(selection, pin):
                    response = await self._pin_entered(session_id, phone_number, selection, pin)
                case SearchEntered(selection, pin, search_term):
                    response = await self._search_entered(session_id, phone_number, selection, pin, search_term)
        except (SessionStoreError, SessionNotFoundError) as e:
            logger.error(f"USSD session {session_id} unavailable: {e}")
            response = end("Session expired. Please try again.")
        except Exception:
            logger.exception(f"USSD request {session_id} failed")
            response = end("Service temporarily unavailable")

        if response.startswith("END"):
            await self._close_session(session_id)
        return response

    # ==================== Positions ====================

    async def _main_menu(self, session_id: str, phone_number: str) -> str:
        await self.session_store.save(session_id, {"phone_number": phone_number, "current_menu": "main"})
        return ussd_main_menu()

    async def _feature_chosen(self, session_id: str, phone_number: str, selection: str) -> str:
        query_type = USSD_MENU.get(selection)
        if query_type is None:
            return end("Invalid selection")

        await self.session_store.save(
            session_id,
            {"phone_number": phone_number, "current_menu": "pin", "data": {"feature": query_type.value}},
        )
        return con("Enter your 4-digit Quick PIN:")

    async def _pin_entered(self, session_id: str, phone_number: str, selection: str, pin: str) -> str:
        query_type = USSD_MENU.get(selection)
        if query_type is None:
            return end("Invalid selection")

        auth = await self.authenticator.authenticate(phone_number, pin, Channel.USSD)
        if not auth.success:
            return end(INVALID_PIN_MESSAGE)

        await self._remember_officer(session_id, phone_number, query_type, auth.officer, "search")

        rate_limit = await self.rate_limiter.check_limit(auth.officer.id)
        if not rate_limit.allowed:
            return ussd_rate_limited(rate_limit)

        if query_type == QueryType.STATS:
            result = await self.field_check.get_statistics(
                auth.officer.id, Channel.USSD, session_id, phone_number
            )
            return render_ussd(result)
        if query_type == QueryType.VEHICLE:
            return con("Enter license plate:")
        return con("Enter NIN:")

    async def _search_entered(
        self,
        session_id: str,
        phone_number: str,
        selection: str,
        pin: str,
        search_term: str,
    ) -> str:
        query_type = USSD_MENU.get(selection)
        if query_type is None:
            return end("Invalid selection")

        session = await self.session_store.get(session_id)
        if session and session.officer_id and session.phone_number == phone_number:
            officer_id = session.officer_id
        else:
            # Replayed or resumed call: re-derive the officer from the PIN segment
            auth = await self.authenticator.authenticate(phone_number, pin, Channel.USSD)
            if not auth.success:
                return end(INVALID_PIN_MESSAGE)
            await self._remember_officer(session_id, phone_number, query_type, auth.officer, "search")
            officer_id = auth.officer.id

        result = await self.field_check.dispatch(
            query_type, officer_id, search_term, Channel.USSD, session_id, phone_number
        )
        return render_ussd(result, normalize_nin(search_term))

    # ==================== Session helpers ====================

    async def _remember_officer(
        self,
        session_id: str,
        phone_number: str,
        query_type: QueryType,
        officer: AuthenticatedOfficer,
        menu: str,
    ) -> None:
        await self.session_store.save(
            session_id,
            {
                "phone_number": phone_number,
                "officer_id": officer.id,
                "current_menu": menu,
                "data": {"feature": query_type.value, "officer": officer.snapshot()},
            },
        )

    async def _close_session(self, session_id: str) -> None:
        try:
            await self.session_store.delete(session_id)
        except SessionStoreError as e:
            # the TTL check in get() still expires it
            logger.warning(f"Could not delete USSD session {session_id}: {e}")

    # ==================== Country info ====================

    def get_ussd_shortcode(self) -> str:
        return self.country_config.get_ussd_shortcode()

    def get_ussd_gateways(self) -> list[str]:
        return self.country_config.get_ussd_gateways()
