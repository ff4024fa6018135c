# followup/services/expert_dispatcher.py
"""Expert reminders: the portal first, email as the fallback."""

from typing import Callable, List, Optional
from datetime import datetime

from followup.automation.base import AutomationResult, BaseAutomation
from followup.automation.factory import is_automation_available
from followup.core import constants
from followup.core.exceptions import ConfigurationError, FollowUpException, PersistenceError
from followup.core.logging import get_logger
from followup.core.security import sanitize_error_message
from followup.models.base import utc_now
from followup.models.dossier import Dossier
from followup.models.enums import ReminderChannel, ReminderOutcome
from followup.models.reminder import ReminderAttempt, ReminderSettings
from followup.models.site import SiteAutomationProfile
from followup.services.audit import AuditRecorder
from followup.services.templates import format_message
from followup.services.transports.email import EmailMessage, EmailTransport
from followup.storage.repository import FollowUpRepository

logger = get_logger(__name__)

AutomationFactory = Callable[[SiteAutomationProfile], BaseAutomation]


class ExpertReminderDispatcher:
    """Reminds the expert of one dossier through the first channel that works."""

    def __init__(
        self,
        repository: FollowUpRepository,
        audit: AuditRecorder,
        email_transport: EmailTransport,
        automation_factory: AutomationFactory,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.audit = audit
        self.email_transport = email_transport
        self.automation_factory = automation_factory
        self.clock = clock

    async def remind_expert(
        self, dossier: Dossier, settings: ReminderSettings, days_waiting: int
    ) -> List[ReminderAttempt]:
        """Returns the attempts recorded for this dossier, in order.

        An empty list means there was nothing to contact: no usable portal
        profile and no expert email.
        """
        attempts: List[ReminderAttempt] = []

        profile = self._portal_profile(dossier, settings)
        if profile is not None:
            portal_attempt = await self._remind_via_portal(dossier, profile, settings, days_waiting)
            attempts.append(portal_attempt)
            if portal_attempt.succeeded:
                self._mark_reminded(dossier, portal_attempt.created_at)
                return attempts

        if dossier.expert_email:
            email_attempt = await self._remind_via_email(dossier, settings, days_waiting)
            attempts.append(email_attempt)
            if email_attempt.succeeded:
                self._mark_reminded(dossier, email_attempt.created_at)
        elif not attempts:
            logger.info(f"Dossier {dossier.reference}: no portal or expert email, nothing to send")

        return attempts

    def _portal_profile(self, dossier: Dossier, settings: ReminderSettings) -> Optional[SiteAutomationProfile]:
        if not settings.portal_reminders_enabled or not dossier.automation_profile_id:
            return None
        profile = self.repository.get_automation_profile(dossier.automation_profile_id)
        if profile is None or not is_automation_available(profile):
            return None
        return profile

    def _mark_reminded(self, dossier: Dossier, reminded_at: datetime):
        try:
            updated = self.repository.mark_expert_reminded(dossier.id, reminded_at)
        except PersistenceError as e:
            logger.error(f"Dossier {dossier.reference}: status update after reminder failed: {e.message}")
            return
        if not updated:
            logger.info(f"Dossier {dossier.reference}: stopped while reminding, status left unchanged")

    # ===================
    # Portal
    # ===================

    async def _remind_via_portal(
        self,
        dossier: Dossier,
        profile: SiteAutomationProfile,
        settings: ReminderSettings,
        days_waiting: int,
    ) -> ReminderAttempt:
        automation = self.automation_factory(profile)
        body = ""
        try:
            body = self._render(settings.expert_portal_template, dossier, days_waiting)
            plate = None
            if dossier.vehicle_id:
                vehicle = self.repository.get_vehicle(dossier.vehicle_id)
                plate = vehicle.plate if vehicle else None
            result = await automation.execute_follow_up(dossier.search_key, plate, body)
        except FollowUpException as e:
            result = AutomationResult.failure("follow_up", e.message)
        finally:
            await automation.cleanup()

        return self._portal_attempt(dossier, profile, body, result)

    def _portal_attempt(
        self,
        dossier: Dossier,
        profile: SiteAutomationProfile,
        body: str,
        result: AutomationResult,
    ) -> ReminderAttempt:
        details = {"profile_id": profile.id, "action": result.action}
        if result.found and result.url:
            details["report_url"] = result.url
        if result.details:
            details["automation"] = result.details

        attempt = ReminderAttempt(
            dossier_id=dossier.id,
            channel=ReminderChannel.EXPERT_PORTAL,
            recipient=profile.name,
            body=body,
            outcome=ReminderOutcome.SENT if result.success else ReminderOutcome.FAILED,
            failure_detail=None if result.success else (result.error or "Portal automation failed"),
            details=details,
            created_at=self.clock(),
        )
        self.audit.record(attempt)

        if result.success:
            logger.info(f"Dossier {dossier.reference}: portal reminder done via {profile.name} ({result.action})")
        else:
            logger.warning(f"Dossier {dossier.reference}: portal reminder failed: {result.error}")
        return attempt

    # ===================
    # Email
    # ===================

    async def _remind_via_email(
        self, dossier: Dossier, settings: ReminderSettings, days_waiting: int
    ) -> ReminderAttempt:
        body = self._render(settings.expert_email_template, dossier, days_waiting)
        external_reference = None
        failure = None
        try:
            if not settings.sender_email:
                raise ConfigurationError("sender email is not set", setting="sender_email")
            receipt = await self.email_transport.send(EmailMessage(
                sender=settings.sender_email,
                to=dossier.expert_email,
                subject=format_message(constants.EXPERT_EMAIL_SUBJECT, dossier_id=dossier.reference),
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
            channel=ReminderChannel.EXPERT_EMAIL,
            recipient=dossier.expert_email,
            body=body,
            outcome=ReminderOutcome.FAILED if failure else ReminderOutcome.SENT,
            external_reference=external_reference,
            failure_detail=failure,
            created_at=self.clock(),
        )
        self.audit.record(attempt)

        if failure:
            logger.warning(f"Dossier {dossier.reference}: expert email failed: {failure}")
        else:
            logger.info(f"Dossier {dossier.reference}: expert email sent to {dossier.expert_email}")
        return attempt

    def _render(self, template: str, dossier: Dossier, days_waiting: int) -> str:
        return format_message(
            template,
            dossier_id=dossier.reference,
            expert_name=dossier.expert_name,
            claim_number=dossier.claim_number,
            days_waiting=days_waiting,
        )
