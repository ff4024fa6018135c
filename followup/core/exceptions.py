# followup/core/exceptions.py
"""Custom exceptions for the follow-up engine."""

from typing import Optional, Dict, Any

from followup.core.security import sanitize_error_message


class FollowUpException(Exception):
    """Base exception for all follow-up engine errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = sanitize_error_message(message)
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# ===================
# Configuration
# ===================

class ConfigurationError(FollowUpException):
    """A required setting or transport credential is missing."""

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(
            message=f"Configuration error: {message}",
            error_code="CONFIGURATION_ERROR",
            details={"setting": setting} if setting else {}
        )


# ===================
# Portal Automation
# ===================

class AutomationError(FollowUpException):
    """Base exception for portal automation failures."""

    def __init__(self, action: str, message: str, error_code: str = "AUTOMATION_ERROR"):
        super().__init__(
            message=message,
            error_code=error_code,
            details={"action": action}
        )
        self.action = action


class PortalConnectionError(AutomationError):
    """Portal unreachable or login failed."""

    def __init__(self, action: str, message: str):
        super().__init__(action, f"Portal connection failed: {message}", "PORTAL_CONNECTION_ERROR")


class PortalNavigationError(AutomationError):
    """An expected page element or navigation step failed."""

    def __init__(self, action: str, message: str):
        super().__init__(action, f"Portal navigation failed: {message}", "PORTAL_NAVIGATION_ERROR")


class PortalTimeoutError(AutomationError):
    """A bounded wait on the portal expired."""

    def __init__(self, action: str, message: str):
        super().__init__(action, f"Portal timed out: {message}", "PORTAL_TIMEOUT")


# ===================
# Lookup
# ===================

class NotFoundError(FollowUpException):
    """Record or artifact absent."""
    pass


class DossierNotFoundError(NotFoundError):
    """Dossier not found in storage."""

    def __init__(self, dossier_id: str):
        super().__init__(
            message=f"Dossier not found: {dossier_id}",
            error_code="DOSSIER_NOT_FOUND",
            details={"dossier_id": dossier_id}
        )


# ===================
# Storage / Transport
# ===================

class PersistenceError(FollowUpException):
    """Store read or write failed."""

    def __init__(self, message: str, collection: Optional[str] = None):
        super().__init__(
            message=f"Persistence failed: {message}",
            error_code="PERSISTENCE_ERROR",
            details={"collection": collection} if collection else {}
        )


class TransportError(FollowUpException):
    """Email or SMS provider rejected or failed a send."""

    def __init__(self, provider: str, message: str):
        super().__init__(
            message=f"{provider} send failed: {message}",
            error_code="TRANSPORT_ERROR",
            details={"provider": provider}
        )
