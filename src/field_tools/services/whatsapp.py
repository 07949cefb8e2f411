"""WhatsApp conversation handling"""

import logging
from dataclasses import dataclass

from field_tools.config.constants import CANCEL_WORDS, USSD_MENU, Channel, QueryType, WhatsAppState
from field_tools.config.settings import Settings, get_settings
from field_tools.core.errors import InvalidStateTransitionError, SessionNotFoundError, StorageError
from field_tools.models.officer import AuthenticatedOfficer
from field_tools.repositories.whatsapp_session_repository import WhatsAppSessionRepository
from field_tools.services.authenticator import Authenticator
from field_tools.services.field_check import FieldCheckService
from field_tools.services.rate_limiter import RateLimiter
from field_tools.services.whapi import WhapiClient
from field_tools.utils import formatter
from field_tools.utils.formatter import mask_phone
from field_tools.utils.validator import clean_input, is_valid_pin, normalize_nin, normalize_phone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedInput:
    kind: str  # "list", "button" or "text"
    value: str


def parse_message_input(message: dict) -> ParsedInput | None:
    """
    Extract the user's input from a webhook message

    List selections win over button replies, which win over free text.
    """
    reply = message.get("reply") or {}
    for kind, key in (("list", "list_reply"), ("button", "buttons_reply")):
        reply_id = (reply.get(key) or {}).get("id")
        if reply_id:
            # ids may be prefixed, e.g. "ListV3:wanted"
            return ParsedInput(kind, str(reply_id).rsplit(":", 1)[-1])

    body = clean_input((message.get("text") or {}).get("body"))
    if body:
        return ParsedInput("text", body)
    return None


def _query_type_from(value: str) -> QueryType | None:
    lowered = value.strip().lower()
    if lowered in USSD_MENU:
        return USSD_MENU[lowered]
    try:
        return QueryType(lowered)
    except ValueError:
        return None


class WhatsAppService:
    """
    Drives the persisted conversation state machine

    One webhook delivery is handled per call; replies are pushed through
    the messaging client, so nothing is returned to the webhook.
    """

    def __init__(
        self,
        session_repo: WhatsAppSessionRepository,
        authenticator: Authenticator,
        rate_limiter: RateLimiter,
        field_check: FieldCheckService,
        messenger: WhapiClient,
        settings: Settings | None = None,
    ):
        self.session_repo = session_repo
        self.authenticator = authenticator
        self.rate_limiter = rate_limiter
        self.field_check = field_check
        self.messenger = messenger
        self.settings = settings or get_settings()

    async def handle_webhook(self, body: dict) -> None:
        """
        Process one webhook delivery

        Args:
            body: Webhook JSON; only the first entry of ``messages`` is used
        """
        messages = body.get("messages") if isinstance(body, dict) else None
        if not messages:
            logger.debug("WhatsApp webhook without messages (status callback)")
            return

        if not isinstance(messages, list) or not isinstance(messages[0], dict):
            logger.warning("Malformed WhatsApp webhook, messages is not a list of objects")
            return

        message = messages[0]
        if message.get("from_me"):
            return

        phone_number = str(message.get("from") or "").lstrip("+")
        if not phone_number:
            logger.warning("WhatsApp message without sender")
            return

        try:
            await self._handle_message(phone_number, message)
        except InvalidStateTransitionError as e:
            logger.warning(f"WhatsApp {mask_phone(phone_number)}: {e}, resetting")
            await self._recover(phone_number)
        except SessionNotFoundError:
            logger.info(f"WhatsApp session for {mask_phone(phone_number)} expired mid-flow")
            await self.messenger.send_text(phone_number, formatter.SESSION_EXPIRED)
        except Exception:
            logger.exception(f"WhatsApp message from {mask_phone(phone_number)} failed")
            await self.messenger.send_text(
                phone_number,
                formatter.whatsapp_error("An unexpected error occurred."),
            )

    async def _handle_message(self, phone_number: str, message: dict) -> None:
        access = await self.authenticator.check_access(normalize_phone(phone_number), Channel.WHATSAPP)
        if not access.success:
            await self.messenger.send_text(phone_number, formatter.NOT_AUTHORISED)
            return

        session = await self.session_repo.get_or_create(phone_number)
        user_input = parse_message_input(message)
        logger.debug(f"WhatsApp {mask_phone(phone_number)} in {session.state.value}")

        match session.state:
            case WhatsAppState.MAIN_MENU:
                await self._on_main_menu(phone_number, user_input)
            case WhatsAppState.AWAITING_SEARCH:
                await self._on_awaiting_search(phone_number, user_input)
            case WhatsAppState.AWAITING_PIN:
                await self._on_awaiting_pin(phone_number, user_input, access.officer)
            case WhatsAppState.RESULT_SENT:
                await self.session_repo.reset_to_main_menu(phone_number)
                await self._send_menu(phone_number)

    # ==================== States ====================

    async def _on_main_menu(self, phone_number: str, user_input: ParsedInput | None) -> None:
        query_type = _query_type_from(user_input.value) if user_input else None
        if query_type is None:
            await self._send_menu(phone_number)
            return

        await self.session_repo.set_query_type(phone_number, query_type)
        if query_type == QueryType.STATS:
            await self.messenger.send_text(phone_number, formatter.PIN_PROMPT)
        else:
            await self.messenger.send_text(phone_number, formatter.SEARCH_PROMPTS[query_type])

    async def _on_awaiting_search(self, phone_number: str, user_input: ParsedInput | None) -> None:
        if user_input is not None and user_input.value.lower() in CANCEL_WORDS:
            await self.session_repo.reset_to_main_menu(phone_number)
            await self._send_menu(phone_number)
            return

        if user_input is None or user_input.kind != "text":
            await self.messenger.send_text(phone_number, formatter.EMPTY_SEARCH)
            return

        await self.session_repo.set_search_term(phone_number, user_input.value)
        await self.messenger.send_text(phone_number, formatter.PIN_PROMPT)

    async def _on_awaiting_pin(
        self,
        phone_number: str,
        user_input: ParsedInput | None,
        officer: AuthenticatedOfficer,
    ) -> None:
        pin = user_input.value if user_input else ""
        if not is_valid_pin(pin):
            # malformed input does not use up an attempt
            await self.messenger.send_text(phone_number, formatter.INVALID_PIN_FORMAT)
            return

        if not await self.authenticator.verify_pin(officer.id, pin, Channel.WHATSAPP):
            if await self.session_repo.increment_pin_attempts(phone_number):
                await self.session_repo.reset_to_main_menu(phone_number)
                await self.messenger.send_text(phone_number, formatter.TOO_MANY_ATTEMPTS)
            else:
                await self.messenger.send_text(phone_number, formatter.INVALID_PIN)
            return

        session = await self.session_repo.authenticate(phone_number, officer.id)

        rate_limit = await self.rate_limiter.check_limit(officer.id)
        if not rate_limit.allowed:
            await self.session_repo.reset_to_main_menu(phone_number)
            await self.messenger.send_text(phone_number, formatter.whatsapp_rate_limited(rate_limit))
            return

        result = await self.field_check.dispatch(
            session.selected_query_type,
            officer.id,
            session.search_term,
            Channel.WHATSAPP,
            session_id=str(session.id),
            phone_number=normalize_phone(phone_number),
        )
        await self.session_repo.transition_state(phone_number, WhatsAppState.RESULT_SENT)

        search_term = normalize_nin(session.search_term) if session.search_term else None
        await self.messenger.send_text(phone_number, formatter.render_whatsapp(result, search_term))

    # ==================== Helpers ====================

    async def _send_menu(self, phone_number: str) -> None:
        await self.messenger.send_interactive(
            formatter.whatsapp_main_menu(phone_number, self.settings.menu_footer)
        )

    async def _recover(self, phone_number: str) -> None:
        """Reset after a rejected transition and offer the menu again"""
        try:
            await self.session_repo.reset_to_main_menu(phone_number)
        except StorageError as e:
            logger.error(f"Could not reset WhatsApp session for {mask_phone(phone_number)}: {e}")
            await self.messenger.send_text(phone_number, formatter.whatsapp_error("Service temporarily unavailable."))
            return
        await self.messenger.send_text(phone_number, formatter.SESSION_RESTARTED)
        await self._send_menu(phone_number)
