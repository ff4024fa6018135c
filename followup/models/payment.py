# followup/models/payment.py
from pydantic import Field, field_validator
from typing import Optional
from datetime import datetime

from followup.models.base import BaseEntity, coerce_datetime, generate_id
from followup.models.enums import PaymentStatus


class Payment(BaseEntity):
    """Amount the client owes on a dossier's invoice."""
    id: str = Field(default_factory=lambda: generate_id("pay"))
    dossier_id: str
    amount: float = Field(..., ge=0)
    status: PaymentStatus = PaymentStatus.PENDING

    due_date: Optional[datetime] = None
    last_reminder_at: Optional[datetime] = None
    reminder_count: int = Field(default=0, ge=0)

    @field_validator("due_date", "last_reminder_at", "created_at", "updated_at", mode="before")
    @classmethod
    def coerce_dates(cls, value):
        return coerce_datetime(value)

    @field_validator("reminder_count", mode="before")
    @classmethod
    def default_count(cls, value):
        return value or 0

    def days_overdue(self, now: datetime) -> Optional[int]:
        if self.due_date is None:
            return None
        return (now - self.due_date).days
