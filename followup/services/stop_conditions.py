# followup/services/stop_conditions.py
"""Decide when expert reminders for a dossier must end for good."""

from typing import Callable, Optional
from datetime import datetime

from followup.core.exceptions import DossierNotFoundError, PersistenceError
from followup.core.logging import get_logger
from followup.models.base import utc_now
from followup.models.enums import (
    DossierStatus,
    ReminderChannel,
    ReminderOutcome,
    StopReason,
)
from followup.models.reminder import ReminderAttempt, StopCheck
from followup.services.audit import AuditRecorder
from followup.storage.repository import FollowUpRepository

logger = get_logger(__name__)


class StopConditionEvaluator:
    """Checks for the awaited artifact and closes the reminder loop once it is known."""

    def __init__(
        self,
        repository: FollowUpRepository,
        audit: AuditRecorder,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.audit = audit
        self.clock = clock

    def should_stop(self, dossier_id: str) -> StopCheck:
        """Evaluate stop rules in precedence order; the first match wins."""
        documents = self.repository.find_stop_documents(dossier_id)
        if documents:
            first = documents[0]
            return StopCheck(
                stop=True,
                reason=StopReason.ARTIFACT_RECEIVED,
                artifact_type=first.type.value,
                details={
                    "documents_count": len(documents),
                    "document_types": [d.type.value for d in documents],
                    "document_id": first.id,
                    "first_document_date": first.created_at.isoformat(),
                },
            )

        dossier = self.repository.get_dossier(dossier_id)
        if dossier is None:
            raise DossierNotFoundError(dossier_id)

        if dossier.status in DossierStatus.advanced_statuses():
            return StopCheck(
                stop=True,
                reason=StopReason.STATUS_ADVANCED,
                details={"status": dossier.status.value},
            )

        if dossier.report_received_at is not None:
            return StopCheck(
                stop=True,
                reason=StopReason.REPORT_TIMESTAMP_SET,
                details={"report_received_at": dossier.report_received_at.isoformat()},
            )

        return StopCheck(stop=False)

    def apply_stop(self, dossier_id: str, check: StopCheck) -> bool:
        """Record the stop and mark the report as received.

        Returns True when a new ``system_stop`` ledger row was written.
        Safe to call repeatedly: a dossier with a report timestamp is left
        alone, and an existing stop row is never duplicated while the
        status write is retried on later cycles.
        """
        dossier = self.repository.get_dossier(dossier_id)
        if dossier is None:
            raise DossierNotFoundError(dossier_id)
        if dossier.report_received_at is not None:
            return False

        now = self.clock()
        reason = check.reason.value if check.reason else "unspecified"

        recorded = False
        if not self.repository.has_stop_record(dossier_id):
            body = f"Automatic reminder stop. Reason: {reason}"
            if check.artifact_type:
                body += f" - document type: {check.artifact_type}"
            recorded = self.audit.record(ReminderAttempt(
                dossier_id=dossier_id,
                channel=ReminderChannel.SYSTEM_STOP,
                recipient="system",
                body=body,
                outcome=ReminderOutcome.CANCELLED,
                details={
                    **check.details,
                    "reason": reason,
                    "artifact_type": check.artifact_type,
                    "stopped_at": now.isoformat(),
                },
                created_at=now,
            ))

        values = {"report_received_at": now}
        if dossier.status in DossierStatus.reminder_statuses():
            values["status"] = DossierStatus.REPORT_RECEIVED.value

        try:
            self.repository.update_dossier(dossier_id, values)
        except PersistenceError as e:
            # The stop row stands; the status write is retried next cycle.
            logger.warning(f"Stop status write failed for dossier {dossier.reference}: {e.message}")

        logger.info(f"Reminders stopped for dossier {dossier.reference} ({reason})")
        return recorded

    def stop(
        self,
        dossier_id: str,
        reason: StopReason = StopReason.DOCUMENT_UPLOADED,
        artifact_type: Optional[str] = None,
        document_id: Optional[str] = None,
    ) -> bool:
        """Manual stop, e.g. right after a report upload."""
        check = StopCheck(
            stop=True,
            reason=reason,
            artifact_type=artifact_type,
            details={"document_id": document_id} if document_id else {},
        )
        return self.apply_stop(dossier_id, check)
