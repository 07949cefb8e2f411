"""Whapi.cloud WhatsApp transport"""

import asyncio
import logging
from dataclasses import dataclass

from curl_cffi.requests import AsyncSession, errors

from field_tools.config.settings import Settings, get_settings
from field_tools.utils.formatter import mask_phone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WhapiResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


class WhapiClient:
    """Pushes outbound WhatsApp messages; never raises"""

    TYPING_TIME = 2

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.whapi_url.rstrip("/")
        self.token = self.settings.whapi_token
        self.max_retries = self.settings.whapi_max_retries
        self.timeout = self.settings.whapi_timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.token)

    async def send_text(self, to: str, body: str) -> WhapiResult:
        """
        Send a plain text message

        Args:
            to: Recipient phone (digits, no '+')
            body: Message text

        Returns:
            WhapiResult
        """
        payload = {"to": to, "typing_time": self.TYPING_TIME, "body": body}
        return await self._post("/messages/text", payload)

    async def send_interactive(self, payload: dict) -> WhapiResult:
        """Send an interactive (list/button) message"""
        return await self._post("/messages/interactive", payload)

    async def _post(self, path: str, payload: dict) -> WhapiResult:
        if not self.is_configured:
            logger.error("Whapi is not configured (WHAPI_URL / WHAPI_TOKEN)")
            return WhapiResult(success=False, error="not configured")

        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        recipient = mask_phone(str(payload.get("to", "")))
        last_error = "unknown error"

        async with AsyncSession() as session:
            for attempt in range(1, self.max_retries + 2):
                try:
                    response = await session.post(url, json=payload, headers=headers, timeout=self.timeout)
                except errors.RequestsError as e:
                    last_error = f"{type(e).__name__}: {e}"
                    logger.warning(f"Whapi {path} to {recipient} failed (attempt {attempt}): {last_error}")
                else:
                    if response.status_code < 300:
                        message_id = self._message_id(response)
                        logger.debug(f"Whapi {path} delivered to {recipient}: {message_id}")
                        return WhapiResult(success=True, message_id=message_id)

                    last_error = f"HTTP {response.status_code}"
                    if response.status_code < 500:
                        logger.error(f"Whapi {path} rejected for {recipient}: {last_error} {response.text[:200]}")
                        return WhapiResult(success=False, error=last_error)
                    logger.warning(f"Whapi {path} to {recipient} failed (attempt {attempt}): {last_error}")

                if attempt <= self.max_retries:
                    await asyncio.sleep(0.5 * attempt)

        logger.error(f"Whapi {path} to {recipient} gave up: {last_error}")
        return WhapiResult(success=False, error=last_error)

    @staticmethod
    def _message_id(response) -> str | None:
        try:
            data = response.json()
        except ValueError:
            return None
        message = data.get("message") if isinstance(data, dict) else None
        return message.get("id") if isinstance(message, dict) else None
