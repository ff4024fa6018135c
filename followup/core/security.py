# followup/core/security.py
"""Credential masking and error-message sanitization.

Anything that may end up in a log line, a ledger row or an HTTP response
goes through here first.
"""

import re
from typing import Any, Dict, List, Optional, Pattern, Tuple

REDACTED = "[REDACTED]"
PRESENT_MASKED = "[PRESENT - MASKED]"

SENSITIVE_FIELDS = {
    "credentials",
    "password",
    "token",
    "api_key",
    "apiKey",
    "auth_token",
    "authToken",
    "secret",
    "private_key",
    "privateKey",
    "twilio_auth_token",
    "twilioAuthToken",
    "authorization",
}

_SENSITIVE_PATTERNS: List[Tuple[Pattern, str]] = [
    (re.compile(r"password[=:]\s*[\"']?[^\"'\s,}&]+[\"']?", re.IGNORECASE), "password=[REDACTED]"),
    (re.compile(r"auth[_-]?token[=:]\s*[\"']?[^\"'\s,}&]+[\"']?", re.IGNORECASE), "auth_token=[REDACTED]"),
    (re.compile(r"(?<![a-z_])token[=:]\s*[\"']?[^\"'\s,}&]+[\"']?", re.IGNORECASE), "token=[REDACTED]"),
    (re.compile(r"api[_-]?key[=:]\s*[\"']?[^\"'\s,}&]+[\"']?", re.IGNORECASE), "api_key=[REDACTED]"),
    (re.compile(r"credentials?[=:]\s*[\"']?[^\"'\s,}&]+[\"']?", re.IGNORECASE), "credentials=[REDACTED]"),
    (re.compile(r"secret[=:]\s*[\"']?[^\"'\s,}&]+[\"']?", re.IGNORECASE), "secret=[REDACTED]"),
    (re.compile(r"bearer\s+[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE), "Bearer [REDACTED]"),
    # Vendor key formats
    (re.compile(r"AC[a-f0-9]{32}", re.IGNORECASE), "[TWILIO_SID_REDACTED]"),
    (re.compile(r"sk-[a-zA-Z0-9]{48}"), "[API_KEY_REDACTED]"),
    (re.compile(r"re_[a-zA-Z0-9_]{30,}"), "[RESEND_KEY_REDACTED]"),
]


def sanitize_error_message(error: Any) -> str:
    """Return a printable error description with credential-shaped text redacted."""
    if isinstance(error, BaseException):
        message = str(error) or error.__class__.__name__
    elif isinstance(error, str):
        message = error
    elif error is None:
        message = "Unknown error"
    else:
        message = str(error)

    for pattern, replacement in _SENSITIVE_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


def sanitize_for_audit_log(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Copy a mapping with sensitive keys masked and string values scrubbed."""
    if not data or not isinstance(data, dict):
        return {}

    sanitized: Dict[str, Any] = {}
    for key, value in data.items():
        if key in SENSITIVE_FIELDS:
            sanitized[key] = PRESENT_MASKED if value else None
        elif isinstance(value, dict):
            sanitized[key] = sanitize_for_audit_log(value)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value
    return sanitized


def mask_credentials(credentials: Any) -> Optional[Dict[str, bool]]:
    """Collapse a credentials bag to ``{"has_credentials": True}`` or ``None``."""
    if isinstance(credentials, dict) and len(credentials) > 0:
        return {"has_credentials": True}
    return None
