# followup/api/v1/reminders.py
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
from pydantic import BaseModel

from followup.core.dependencies import get_repository, get_stop_evaluator
from followup.core.exceptions import DossierNotFoundError
from followup.core.logging import get_logger
from followup.models.enums import DocumentType, ReminderChannel, ReminderOutcome, StopReason

logger = get_logger(__name__)
router = APIRouter()

# ===================
# Request Models
# ===================

class StopRemindersRequest(BaseModel):
    dossier_id: str
    document_type: Optional[DocumentType] = None
    document_id: Optional[str] = None

# ===================
# Endpoints
# ===================

@router.get("/history")
def reminder_history(
    dossier_id: Optional[str] = None,
    channel: Optional[ReminderChannel] = None,
    outcome: Optional[ReminderOutcome] = None,
    limit: int = Query(50, ge=1, le=500),
    repository=Depends(get_repository),
):
    """Ledger entries, newest first."""
    attempts = repository.list_attempts(
        dossier_id=dossier_id,
        channels=[channel] if channel else None,
        outcome=outcome,
        limit=limit,
    )
    return {
        "success": True,
        "history": [a.model_dump(mode="json") for a in attempts],
        "count": len(attempts),
    }

@router.post("/stop")
def stop_reminders(request: StopRemindersRequest, evaluator=Depends(get_stop_evaluator)):
    """Stop expert reminders for a dossier, typically after a report upload."""
    try:
        recorded = evaluator.stop(
            request.dossier_id,
            reason=StopReason.DOCUMENT_UPLOADED,
            artifact_type=request.document_type.value if request.document_type else None,
            document_id=request.document_id,
        )
    except DossierNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    return {
        "success": True,
        "message": "Reminders stopped" if recorded else "Reminders were already stopped",
        "recorded": recorded,
    }
