# followup/services/client_dispatcher.py
"""Keeps the vehicle owner informed while the expert is chased."""

from typing import Callable, List, Optional
from datetime import datetime

from followup.core import constants
from followup.core.exceptions import ConfigurationError, FollowUpException
from followup.core.logging import get_logger
from followup.core.security import sanitize_error_message
from followup.models.base import utc_now
from followup.models.dossier import Client, ClientPreference, Dossier
from followup.models.enums import ReminderChannel, ReminderOutcome
from followup.models.reminder import ReminderAttempt, ReminderSettings
from followup.services.audit import AuditRecorder
from followup.services.templates import format_message
from followup.services.transports.email import EmailMessage, EmailTransport
from followup.services.transports.sms import SmsTransport, normalize_phone_number
from followup.storage.repository import FollowUpRepository

logger = get_logger(__name__)


class ClientReminderDispatcher:
    """SMS and email to the client, each gated on its own switches."""

    def __init__(
        self,
        repository: FollowUpRepository,
        audit: AuditRecorder,
        sms_transport: SmsTransport,
        email_transport: EmailTransport,
        country_code: str = "+33",
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.audit = audit
        self.sms_transport = sms_transport
        self.email_transport = email_transport
        self.country_code = country_code
        self.clock = clock

    async def remind_client(
        self, dossier: Dossier, settings: ReminderSettings, days_waiting: int
    ) -> List[ReminderAttempt]:
        client = self.repository.get_client(dossier.client_id)
        if client is None:
            return []

        preference = self.repository.get_client_preferences(client.id)
        attempts: List[ReminderAttempt] = []

        if settings.client_sms_enabled and self._allows_sms(preference) and client.phone:
            attempts.append(await self._send_sms(dossier, client, settings, days_waiting))

        if dossier.notify_client and client.email and self._allows_email(preference):
            attempts.append(await self._send_email(dossier, client, settings, days_waiting))

        return attempts

    @staticmethod
    def _allows_sms(preference: Optional[ClientPreference]) -> bool:
        return preference is None or preference.sms_enabled

    @staticmethod
    def _allows_email(preference: Optional[ClientPreference]) -> bool:
        return preference is None or preference.email_enabled

    def _render(self, template: str, dossier: Dossier, client: Client, days_waiting: int) -> str:
        return format_message(
            template,
            client_name=client.name,
            dossier_id=dossier.reference,
            days_waiting=days_waiting,
        )

    # ===================
    # SMS
    # ===================

    async def _send_sms(
        self, dossier: Dossier, client: Client, settings: ReminderSettings, days_waiting: int
    ) -> ReminderAttempt:
        body = self._render(settings.client_sms_template, dossier, client, days_waiting)
        phone = normalize_phone_number(client.phone, self.country_code)

        receipt = None
        failure = None
        try:
            receipt = await self.sms_transport.send(phone, body)
        except FollowUpException as e:
            failure = e.message
        except Exception as e:
            failure = sanitize_error_message(e)
            logger.exception(f"Dossier {dossier.reference}: unexpected SMS transport error")

        attempt = ReminderAttempt(
            dossier_id=dossier.id,
            channel=ReminderChannel.CLIENT_SMS,
            recipient=phone,
            body=body,
            outcome=ReminderOutcome.FAILED if failure else ReminderOutcome.SENT,
            external_reference=receipt.message_id if receipt else None,
            failure_detail=failure,
            details={"provider_status": receipt.status} if receipt and receipt.status else {},
            created_at=self.clock(),
        )
        self.audit.record(attempt)

        if failure:
            logger.warning(f"Dossier {dossier.reference}: client SMS failed: {failure}")
        return attempt

    # ===================
    # Email
    # ===================

    async def _send_email(
        self, dossier: Dossier, client: Client, settings: ReminderSettings, days_waiting: int
    ) -> ReminderAttempt:
        body = self._render(settings.client_email_template, dossier, client, days_waiting)

        external_reference = None
        failure = None
        try:
            if not settings.sender_email:
                raise ConfigurationError("sender email is not set", setting="sender_email")
            receipt = await self.email_transport.send(EmailMessage(
                sender=settings.sender_email,
                to=client.email,
                subject=format_message(constants.CLIENT_EMAIL_SUBJECT, dossier_id=dossier.reference),
                body=body,
            ))
            external_reference = receipt.id
        except FollowUpException as e:
            failure = e.message
        except Exception as e:
            failure = sanitize_error_message(e)
            logger.exception(f"Dossier {dossier.reference}: unexpected email transport error")

        attempt = ReminderAttempt(
            dossier_id=dossier.id,
            channel=ReminderChannel.CLIENT_EMAIL,
            recipient=client.email,
            body=body,
            outcome=ReminderOutcome.FAILED if failure else ReminderOutcome.SENT,
            external_reference=external_reference,
            failure_detail=failure,
            created_at=self.clock(),
        )
        self.audit.record(attempt)

        if failure:
            logger.warning(f"Dossier {dossier.reference}: client email failed: {failure}")
        return attempt
