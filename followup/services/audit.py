# followup/services/audit.py
from pydantic import ValidationError as PydanticValidationError

from followup.core.exceptions import PersistenceError
from followup.core.logging import get_logger
from followup.core.security import sanitize_error_message, sanitize_for_audit_log
from followup.models.reminder import ReminderAttempt
from followup.storage.repository import FollowUpRepository

logger = get_logger(__name__)


class AuditRecorder:
    """Appends reminder attempts to the ledger.

    A failed write is logged and reported through the return value only;
    it never changes the outcome of the reminder being recorded.
    """

    def __init__(self, repository: FollowUpRepository):
        self.repository = repository

    def record(self, attempt: ReminderAttempt) -> bool:
        clean = attempt.model_copy(update={
            "failure_detail": (
                sanitize_error_message(attempt.failure_detail)
                if attempt.failure_detail else None
            ),
            "details": sanitize_for_audit_log(attempt.details),
        })

        try:
            self.repository.insert_attempt(clean)
        except (PersistenceError, PydanticValidationError) as e:
            detail = e.message if isinstance(e, PersistenceError) else sanitize_error_message(e)
            logger.error(
                f"Ledger write failed for dossier {attempt.dossier_id} "
                f"({attempt.channel.value}/{attempt.outcome.value}): {detail}"
            )
            return False

        logger.info(
            f"Recorded {attempt.channel.value} attempt for dossier "
            f"{attempt.dossier_id}: {attempt.outcome.value}"
        )
        return True
