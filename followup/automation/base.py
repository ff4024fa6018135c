# followup/automation/base.py
"""Uniform contract for driving one expert-portal session.

A session moves disconnected -> connected -> searched -> (message_sent |
report_found) -> released. Operations never raise for portal failures:
they return an :class:`AutomationResult` whose ``error`` is already
sanitized. ``cleanup()`` is valid from any state and may be repeated.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from followup.core.exceptions import AutomationError
from followup.core.logging import get_logger
from followup.core.security import sanitize_error_message
from followup.models.enums import AutomationState
from followup.models.site import SiteAutomationProfile

logger = get_logger(__name__)


class AutomationResult(BaseModel):
    """Outcome of one portal step."""
    success: bool
    action: str
    found: Optional[bool] = None
    content: Optional[bytes] = Field(default=None, repr=False)
    url: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def failure(cls, action: str, error: Any, **details) -> "AutomationResult":
        return cls(
            success=False,
            action=action,
            error=sanitize_error_message(error),
            details=details,
        )


class BaseAutomation(ABC):
    """Portal session for one :class:`SiteAutomationProfile`.

    Instances are single-use: one dossier, one session, then ``cleanup()``.
    """

    def __init__(self, profile: SiteAutomationProfile):
        self.profile = profile
        self.state = AutomationState.DISCONNECTED

    # ===================
    # Portal Operations
    # ===================

    @abstractmethod
    async def connect(self) -> AutomationResult:
        """Open the search page, logging in when the profile requires it."""
        pass

    @abstractmethod
    async def search(self, primary_key: Optional[str], secondary_key: Optional[str] = None) -> AutomationResult:
        """Locate the dossier; ``found=False`` is a normal answer, not an error."""
        pass

    @abstractmethod
    async def check_and_retrieve_report(self) -> AutomationResult:
        """Look for the report on the matched record and fetch it if exposed."""
        pass

    @abstractmethod
    async def send_message(self, body: str) -> AutomationResult:
        """Post a reminder through the portal's message form, if it has one."""
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Release the session. Must not raise."""
        pass

    # ===================
    # Helpers
    # ===================

    def _out_of_order(self, action: str, *expected: AutomationState) -> Optional[AutomationResult]:
        if self.state in expected:
            return None
        wanted = " or ".join(s.value for s in expected)
        return AutomationResult.failure(
            action,
            f"{action} requires state {wanted}, session is {self.state.value}",
            state=self.state.value,
        )

    def _failure(self, error: AutomationError) -> AutomationResult:
        """Failure result for ``error`` with every known secret value scrubbed."""
        message = error.message
        for secret in self.profile.credentials.values():
            value = secret.get_secret_value()
            if value and len(value) >= 4:
                message = message.replace(value, "[REDACTED]")
        logger.warning(f"[{self.profile.name}] {error.action} failed: {message}")
        return AutomationResult.failure(error.action, message, error_code=error.error_code)

    # ===================
    # Composed Follow-up
    # ===================

    async def execute_follow_up(
        self,
        primary_key: Optional[str],
        secondary_key: Optional[str],
        message: str,
    ) -> AutomationResult:
        """connect -> search -> report check -> message.

        Stops at the first failing step. A report found on the portal ends
        the sequence successfully without posting the message. The caller
        remains responsible for ``cleanup()``.
        """
        try:
            connected = await self.connect()
            if not connected.success:
                return connected

            searched = await self.search(primary_key, secondary_key)
            if not searched.success:
                return searched
            if not searched.found:
                return AutomationResult.failure(
                    "search",
                    "Dossier not found on portal",
                    primary_key=primary_key,
                    secondary_key=secondary_key,
                )

            report = await self.check_and_retrieve_report()
            if not report.success:
                return report
            if report.found:
                return AutomationResult(
                    success=True,
                    action="report_retrieved",
                    found=True,
                    content=report.content,
                    url=report.url,
                    details=report.details,
                )

            return await self.send_message(message)
        except AutomationError as e:
            return self._failure(e)
        except Exception as e:
            logger.exception(f"[{self.profile.name}] Unexpected automation error")
            return AutomationResult.failure("follow_up", e)
