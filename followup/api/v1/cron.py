# followup/api/v1/cron.py
import asyncio

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from followup.api.auth import require_cron_secret
from followup.core.dependencies import get_orchestrator
from followup.core.logging import get_logger
from followup.core.security import sanitize_error_message
from followup.models.base import utc_now
from followup.models.reminder import ReminderCycleResult

logger = get_logger(__name__)
router = APIRouter()


def _run_cycle_in_worker(orchestrator, result: ReminderCycleResult):
    # Store calls are blocking; the cycle gets its own loop on a worker thread
    asyncio.run(orchestrator.run_cycle(result))


@router.api_route("/reminders", methods=["GET", "POST"], dependencies=[Depends(require_cron_secret)])
async def run_reminders(orchestrator=Depends(get_orchestrator)):
    """Run one reminder cycle. Called by the external scheduler."""
    result = ReminderCycleResult()
    try:
        await run_in_threadpool(_run_cycle_in_worker, orchestrator, result)
    except Exception as e:
        logger.exception("Reminder cycle aborted")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": sanitize_error_message(e),
                "results": result.model_dump(mode="json"),
                "timestamp": utc_now().isoformat(),
            },
        )

    return {
        "success": True,
        "results": result.model_dump(mode="json"),
        "dossiers_traites": result.dossiers_processed,
        "timestamp": utc_now().isoformat(),
    }
