# followup/models/base.py
"""Base models and timestamp helpers shared by all entities."""

from pydantic import BaseModel, Field
from typing import Any, Optional
from datetime import date, datetime, time, timezone
import uuid


def generate_id(prefix: str = "") -> str:
    """Generate a unique ID with optional prefix."""
    unique_part = uuid.uuid4().hex[:12]
    return f"{prefix}_{unique_part}" if prefix else unique_part


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def coerce_datetime(value: Any) -> Any:
    """Normalize store timestamps to timezone-aware UTC datetimes.

    Stores hand back ISO strings, bare dates (``entry_date`` is often a
    calendar day) or naive datetimes; naive values are taken as UTC.
    Anything else is returned untouched for pydantic to reject.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                return datetime.combine(date.fromisoformat(text), time.min, tzinfo=timezone.utc)
            except ValueError:
                return value
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return value


class TimestampMixin(BaseModel):
    """Mixin for timestamp fields."""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    def touch(self):
        """Update the updated_at timestamp."""
        self.updated_at = utc_now()


class BaseEntity(TimestampMixin):
    """Base entity with common fields."""

    class Config:
        populate_by_name = True
        extra = "ignore"
