# followup/run_cycle.py
"""Run one reminder cycle from the command line (cron, systemd timer, CI job).

    python -m followup.run_cycle
"""

import asyncio
import json
import sys
import time

from followup.core.dependencies import cleanup_resources, get_orchestrator
from followup.core.logging import get_logger
from followup.core.security import sanitize_error_message
from followup.models.reminder import ReminderCycleResult

logger = get_logger(__name__)


async def run_once() -> int:
    """Run the cycle and print the summary; return the process exit code."""
    start = time.time()
    result = ReminderCycleResult()
    try:
        await get_orchestrator().run_cycle(result)
    except Exception as e:
        logger.exception("Reminder cycle aborted")
        print(json.dumps({
            "success": False,
            "error": sanitize_error_message(e),
            "results": result.model_dump(mode="json"),
        }, indent=2))
        return 1
    finally:
        cleanup_resources()

    logger.info(f"Cycle completed in {time.time() - start:.1f}s")
    print(json.dumps({
        "success": True,
        "results": result.model_dump(mode="json"),
        "dossiers_traites": result.dossiers_processed,
    }, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(run_once()))
