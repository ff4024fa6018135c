# followup/services/reminder_cycle.py
"""One pass over every dossier still waiting for its expert report."""

from typing import Callable, Optional, Set
from datetime import datetime

from followup.core.exceptions import FollowUpException
from followup.core.logging import get_logger
from followup.core.security import sanitize_error_message
from followup.models.base import utc_now
from followup.models.dossier import Dossier
from followup.models.reminder import ReminderCycleResult, ReminderSettings
from followup.services.client_dispatcher import ClientReminderDispatcher
from followup.services.expert_dispatcher import ExpertReminderDispatcher
from followup.services.invoice_dispatcher import InvoiceReminderDispatcher
from followup.services.reminder_settings import load_reminder_settings
from followup.services.stop_conditions import StopConditionEvaluator
from followup.storage.repository import FollowUpRepository

logger = get_logger(__name__)


class ReminderCycleOrchestrator:
    """Stateless batch job: call :meth:`run_cycle` once per scheduler tick."""

    def __init__(
        self,
        repository: FollowUpRepository,
        stop_evaluator: StopConditionEvaluator,
        expert_dispatcher: ExpertReminderDispatcher,
        client_dispatcher: ClientReminderDispatcher,
        invoice_dispatcher: Optional[InvoiceReminderDispatcher] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.stop_evaluator = stop_evaluator
        self.expert_dispatcher = expert_dispatcher
        self.client_dispatcher = client_dispatcher
        self.invoice_dispatcher = invoice_dispatcher
        self.clock = clock

    async def run_cycle(self, result: Optional[ReminderCycleResult] = None) -> ReminderCycleResult:
        """Process every eligible dossier once, then the unpaid invoices.

        Loading the settings or the dossier list is fatal and propagates.
        Anything that goes wrong for a single dossier is recorded in
        ``result.errors`` and the loop moves on. Pass ``result`` in to keep
        the partial counters if the cycle aborts.
        """
        if result is None:
            result = ReminderCycleResult()

        reminder_settings = load_reminder_settings(self.repository)
        dossiers, invalid = self.repository.list_awaiting_report()
        result.dossiers_processed = len(dossiers) + len(invalid)
        logger.info(f"Reminder cycle started: {result.dossiers_processed} dossier(s) awaiting a report")
        for label in invalid:
            result.errors.append(f"Dossier {label}: invalid row")

        seen: Set[str] = set()
        for dossier in dossiers:
            if dossier.id in seen:
                continue
            seen.add(dossier.id)

            try:
                await self._process_dossier(dossier, reminder_settings, result)
            except Exception as e:
                message = sanitize_error_message(e)
                logger.exception(f"Dossier {dossier.reference} failed")
                result.errors.append(f"Dossier {dossier.reference}: {message}")

        if self.invoice_dispatcher is not None and reminder_settings.invoice_reminders_enabled:
            await self._run_invoice_pass(reminder_settings, result)

        logger.info(
            f"Reminder cycle finished: stopped={result.stopped} skipped={result.skipped} "
            f"invoices={result.invoices.success} errors={len(result.errors)}"
        )
        return result

    async def _process_dossier(
        self,
        dossier: Dossier,
        reminder_settings: ReminderSettings,
        result: ReminderCycleResult,
    ):
        check = self.stop_evaluator.should_stop(dossier.id)
        if check.stop:
            self.stop_evaluator.apply_stop(dossier.id, check)
            result.stopped += 1
            return

        days_waiting = self.days_since_last_contact(dossier)
        if days_waiting < reminder_settings.min_days_between_reminders:
            logger.debug(
                f"Dossier {dossier.reference}: {days_waiting}d since last contact, "
                f"minimum is {reminder_settings.min_days_between_reminders}d"
            )
            result.skipped += 1
            return

        for attempt in await self.expert_dispatcher.remind_expert(dossier, reminder_settings, days_waiting):
            result.tally(attempt)

        for attempt in await self.client_dispatcher.remind_client(dossier, reminder_settings, days_waiting):
            result.tally(attempt)

    async def _run_invoice_pass(self, reminder_settings: ReminderSettings, result: ReminderCycleResult):
        """Unpaid-invoice reminders. Failures are reported in ``result.errors`` only."""
        try:
            payments, invalid = self.repository.list_unpaid_payments()
        except FollowUpException as e:
            logger.error(f"Unpaid invoices could not be loaded: {e.message}")
            result.errors.append(f"Unpaid invoices: {e.message}")
            return

        for label in invalid:
            result.errors.append(f"Payment {label}: invalid row")

        for payment in payments:
            try:
                attempt = await self.invoice_dispatcher.remind_payment(payment, reminder_settings)
            except Exception as e:
                message = sanitize_error_message(e)
                logger.exception(f"Payment {payment.id} failed")
                result.errors.append(f"Payment {payment.id}: {message}")
                continue
            if attempt is not None:
                result.tally(attempt)

    def days_since_last_contact(self, dossier: Dossier) -> int:
        """Whole days since the latest of entry date and last successful expert reminder."""
        candidates = [dossier.entry_date, dossier.last_expert_reminder_at]
        candidates.append(self.repository.last_expert_reminder_at(dossier.id))
        reference = max(c for c in candidates if c is not None)
        return (self.clock() - reference).days
