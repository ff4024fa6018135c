# followup/services/reminder_settings.py
"""Load the per-cycle :class:`ReminderSettings` from the settings collection."""

from typing import Dict, Optional

from followup.core.constants import SETTING_KEYS
from followup.core.logging import get_logger
from followup.models.reminder import ReminderSettings
from followup.storage.repository import FollowUpRepository

logger = get_logger(__name__)

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


def _parse_bool(key: str, raw: str) -> Optional[bool]:
    value = str(raw).strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    logger.warning(f"Setting {key}={raw!r} is not a boolean, using default")
    return None


def _parse_int(key: str, raw: str) -> Optional[int]:
    try:
        value = int(str(raw).strip())
    except ValueError:
        logger.warning(f"Setting {key}={raw!r} is not an integer, using default")
        return None
    if value < 0:
        logger.warning(f"Setting {key}={raw!r} is negative, using default")
        return None
    return value


def build_reminder_settings(values: Dict[str, str]) -> ReminderSettings:
    """Map raw key/value rows onto ReminderSettings, keeping defaults for bad values."""
    fields = {}
    for field_name, key in SETTING_KEYS.items():
        raw = values.get(key)
        if raw is None or str(raw).strip() == "":
            continue

        annotation = ReminderSettings.model_fields[field_name].annotation
        if annotation is bool:
            parsed = _parse_bool(key, raw)
        elif annotation is int:
            parsed = _parse_int(key, raw)
        else:
            parsed = str(raw)

        if parsed is not None:
            fields[field_name] = parsed

    return ReminderSettings(**fields)


def load_reminder_settings(repository: FollowUpRepository) -> ReminderSettings:
    """Read settings once; store errors propagate and abort the cycle."""
    reminder_settings = build_reminder_settings(repository.load_settings_map())
    logger.info(
        f"Reminder settings loaded: interval={reminder_settings.min_days_between_reminders}d "
        f"portal={reminder_settings.portal_reminders_enabled} "
        f"client_sms={reminder_settings.client_sms_enabled} "
        f"invoices={reminder_settings.invoice_reminders_enabled}"
    )
    return reminder_settings
