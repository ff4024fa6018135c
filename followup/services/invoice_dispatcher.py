# followup/services/invoice_dispatcher.py
"""Reminds clients of invoices left unpaid past their due date."""

from typing import Callable, Optional
from datetime import datetime, timedelta

from followup.core import constants
from followup.core.exceptions import ConfigurationError, FollowUpException, PersistenceError
from followup.core.logging import get_logger
from followup.core.security import sanitize_error_message
from followup.models.base import utc_now
from followup.models.enums import PaymentStatus, ReminderChannel, ReminderOutcome
from followup.models.payment import Payment
from followup.models.reminder import ReminderAttempt, ReminderSettings
from followup.services.audit import AuditRecorder
from followup.services.templates import format_message
from followup.services.transports.email import EmailMessage, EmailTransport
from followup.storage.repository import FollowUpRepository

logger = get_logger(__name__)


class InvoiceReminderDispatcher:
    """One email per reminder milestone (30, 45 and 60 days past due)."""

    def __init__(
        self,
        repository: FollowUpRepository,
        audit: AuditRecorder,
        email_transport: EmailTransport,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.audit = audit
        self.email_transport = email_transport
        self.clock = clock

    def due_milestone(self, payment: Payment, now: datetime) -> Optional[int]:
        """Latest milestone reached and not yet covered by a reminder, if any.

        A cycle that missed the exact day still sends the reminder on its
        next run; an earlier milestone is never sent once a later one is due.
        """
        days = payment.days_overdue(now)
        if days is None:
            return None

        reached = [m for m in constants.INVOICE_REMINDER_DAYS if days >= m]
        if not reached:
            return None
        milestone = max(reached)

        if payment.last_reminder_at is not None:
            if payment.last_reminder_at >= payment.due_date + timedelta(days=milestone):
                return None
        return milestone

    async def remind_payment(
        self, payment: Payment, settings: ReminderSettings
    ) -> Optional[ReminderAttempt]:
        """Send the reminder for ``payment`` if one is due; None means nothing to do."""
        now = self.clock()
        milestone = self.due_milestone(payment, now)
        if milestone is None:
            return None

        dossier = self.repository.get_dossier(payment.dossier_id)
        client = self.repository.get_client(dossier.client_id) if dossier else None
        if client is None or not client.email:
            logger.info(f"Payment {payment.id}: no client email, invoice reminder not sent")
            return None

        days_overdue = payment.days_overdue(now)
        body = format_message(
            settings.invoice_template,
            dossier_id=dossier.reference,
            amount=f"{payment.amount:.2f}",
            days_overdue=days_overdue,
        )

        external_reference = None
        failure = None
        try:
            sender = settings.payments_sender_email or settings.sender_email
            if not sender:
                raise ConfigurationError("payments sender email is not set", setting="payments_sender_email")
            receipt = await self.email_transport.send(EmailMessage(
                sender=sender,
                to=client.email,
                subject=format_message(constants.INVOICE_EMAIL_SUBJECT, dossier_id=dossier.reference),
                body=body,
            ))
            external_reference = receipt.id
        except FollowUpException as e:
            failure = e.message
        except Exception as e:
            failure = sanitize_error_message(e)
            logger.exception(f"Payment {payment.id}: unexpected email transport error")

        attempt = ReminderAttempt(
            dossier_id=dossier.id,
            channel=ReminderChannel.INVOICE_EMAIL,
            recipient=client.email,
            body=body,
            outcome=ReminderOutcome.FAILED if failure else ReminderOutcome.SENT,
            external_reference=external_reference,
            failure_detail=failure,
            details={
                "payment_id": payment.id,
                "milestone_days": milestone,
                "days_overdue": days_overdue,
                "amount": payment.amount,
            },
            created_at=now,
        )
        self.audit.record(attempt)

        if failure:
            logger.warning(f"Payment {payment.id}: invoice reminder failed: {failure}")
        else:
            self._mark_reminded(payment, days_overdue, now)
        return attempt

    def _mark_reminded(self, payment: Payment, days_overdue: int, reminded_at: datetime):
        status = payment.status
        if days_overdue > constants.INVOICE_OVERDUE_AFTER_DAYS:
            status = PaymentStatus.OVERDUE
        try:
            self.repository.mark_payment_reminded(
                payment.id, reminded_at, payment.reminder_count + 1, status
            )
        except PersistenceError as e:
            logger.error(f"Payment {payment.id}: update after reminder failed: {e.message}")
