"""Quick PIN authentication for field channels"""

import asyncio
import logging

import bcrypt

from field_tools.config.constants import AuditAction, AuthFailure, Channel
from field_tools.core.errors import StorageError
from field_tools.core.timezone import now
from field_tools.models.officer import AuthenticatedOfficer, AuthResult, OfficerRecord
from field_tools.models.query_log import AuditEntry
from field_tools.repositories.audit_log_repository import AuditLogRepository
from field_tools.repositories.officer_repository import OfficerRepository
from field_tools.utils.formatter import mask_phone
from field_tools.utils.validator import is_valid_pin

logger = logging.getLogger(__name__)


def hash_quick_pin(pin: str) -> str:
    """
    Hash a Quick PIN for enrolment

    Raises:
        ValueError: If the PIN is not exactly 4 digits
    """
    if not is_valid_pin(pin):
        raise ValueError("Quick PIN must be exactly 4 digits")
    return bcrypt.hashpw(pin.encode(), bcrypt.gensalt()).decode()


class Authenticator:
    """
    Resolves officers by phone and verifies Quick PINs

    Callers only ever learn success or failure; the reason for a failure
    goes to the audit sink and the log.
    """

    def __init__(
        self,
        officer_repo: OfficerRepository,
        audit_repo: AuditLogRepository,
    ):
        self.officer_repo = officer_repo
        self.audit_repo = audit_repo

    # ==================== Identity ====================

    async def find_officer_by_identity(self, phone_number: str) -> AuthenticatedOfficer | None:
        """
        Look up the officer enrolled on a phone number

        Raises:
            StorageError: If the directory is unavailable
        """
        record = await self.officer_repo.get_by_phone(phone_number)
        return AuthenticatedOfficer.from_record(record) if record else None

    async def check_access(self, phone_number: str, channel: Channel) -> AuthResult:
        """
        Whether this phone may use the field channel at all (no PIN involved)

        Raises:
            StorageError: If the directory is unavailable
        """
        record = await self.officer_repo.get_by_phone(phone_number)
        failure = self._access_failure(record)
        if failure is not None:
            await self._record_failure(record.id if record else None, phone_number, channel, failure)
            return AuthResult(success=False, failure=failure)
        return AuthResult(success=True, officer=AuthenticatedOfficer.from_record(record))

    async def is_channel_enabled(self, officer_id: str, channel: Channel) -> bool:
        # Both field channels share the USSD enrolment flag
        try:
            record = await self.officer_repo.get_by_id(officer_id)
        except StorageError as e:
            logger.error(f"Channel check failed for officer {officer_id}: {e}")
            return False
        return record is not None and record.active and record.ussd_enabled

    # ==================== PIN verification ====================

    async def verify_pin(self, officer_id: str, pin: str, channel: Channel) -> bool:
        """
        Verify a Quick PIN for a known officer

        Args:
            officer_id: Officer id
            pin: Raw PIN input
            channel: Channel the PIN arrived on

        Returns:
            True only if every check passed
        """
        if not is_valid_pin(pin):
            await self._record_failure(officer_id, None, channel, AuthFailure.INVALID_PIN_FORMAT)
            return False

        try:
            record = await self.officer_repo.get_by_id(officer_id)
        except StorageError as e:
            logger.error(f"Officer lookup failed during PIN verification: {e}")
            await self._record_failure(officer_id, None, channel, AuthFailure.DIRECTORY_ERROR)
            return False

        failure = await self._verify_record(record, pin)
        if failure is not None:
            await self._record_failure(officer_id, None, channel, failure)
            return False

        await self._mark_used(record, channel)
        return True

    async def authenticate(self, phone_number: str, pin: str, channel: Channel) -> AuthResult:
        """Identify by phone and verify the PIN in one step"""
        if not is_valid_pin(pin):
            await self._record_failure(None, phone_number, channel, AuthFailure.INVALID_PIN_FORMAT)
            return AuthResult(success=False, failure=AuthFailure.INVALID_PIN_FORMAT)

        try:
            record = await self.officer_repo.get_by_phone(phone_number)
        except StorageError as e:
            logger.error(f"Officer lookup failed during authentication: {e}")
            await self._record_failure(None, phone_number, channel, AuthFailure.DIRECTORY_ERROR)
            return AuthResult(success=False, failure=AuthFailure.DIRECTORY_ERROR)

        failure = await self._verify_record(record, pin)
        if failure is not None:
            await self._record_failure(record.id if record else None, phone_number, channel, failure)
            return AuthResult(success=False, failure=failure)

        await self._mark_used(record, channel)
        return AuthResult(success=True, officer=AuthenticatedOfficer.from_record(record))

    @staticmethod
    def _access_failure(record: OfficerRecord | None) -> AuthFailure | None:
        if record is None:
            return AuthFailure.NOT_REGISTERED
        if not record.active:
            return AuthFailure.ACCOUNT_INACTIVE
        if not record.ussd_enabled:
            return AuthFailure.CHANNEL_DISABLED
        return None

    async def _verify_record(self, record: OfficerRecord | None, pin: str) -> AuthFailure | None:
        failure = self._access_failure(record)
        if failure is not None:
            return failure
        if record.is_locked(now()):
            return AuthFailure.ACCOUNT_LOCKED
        if not record.quick_pin_hash:
            return AuthFailure.NOT_CONFIGURED
        if not await self._pin_matches(pin, record.quick_pin_hash):
            return AuthFailure.INVALID_PIN
        return None

    @staticmethod
    async def _pin_matches(pin: str, pin_hash: str) -> bool:
        # bcrypt blocks; run it in a worker thread
        try:
            return await asyncio.to_thread(bcrypt.checkpw, pin.encode(), pin_hash.encode())
        except ValueError:
            logger.error("Stored Quick PIN hash is malformed")
            return False

    # ==================== Side effects ====================

    async def _mark_used(self, record: OfficerRecord, channel: Channel) -> None:
        logger.info(f"Officer {record.badge} authenticated via {channel.value}")
        try:
            await self.officer_repo.touch_last_used(record.id)
        except StorageError as e:
            # best-effort
            logger.warning(f"Could not update last-used for officer {record.id}: {e}")
        try:
            await self.audit_repo.create(
                AuditEntry(
                    entity_type="officer",
                    entity_id=record.id,
                    officer_id=record.id,
                    action=AuditAction.AUTH_SUCCESS.value,
                    success=True,
                    details={"channel": channel.value},
                )
            )
        except StorageError as e:
            logger.warning(f"Audit write failed for authentication success: {e}")

    async def _record_failure(
        self,
        officer_id: str | None,
        phone_number: str | None,
        channel: Channel,
        failure: AuthFailure,
    ) -> None:
        masked = mask_phone(phone_number) if phone_number else "-"
        logger.warning(
            f"Field authentication failed: reason={failure.value} channel={channel.value} "
            f"officer={officer_id or '-'} phone={masked}"
        )
        try:
            await self.audit_repo.create(
                AuditEntry(
                    entity_type="officer",
                    entity_id=officer_id,
                    officer_id=officer_id,
                    action=AuditAction.AUTH_FAILED.value,
                    success=False,
                    details={"channel": channel.value, "reason": failure.value, "phone": masked},
                )
            )
        except StorageError as e:
            # best-effort audit write
            logger.warning(f"Audit write failed for authentication failure: {e}")
