# followup/models/reminder.py
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime

from followup.core import constants
from followup.models.base import coerce_datetime, generate_id, utc_now
from followup.models.enums import (
    ReminderChannel,
    ReminderOutcome,
    StopReason,
)

# ===================
# Settings
# ===================

class ReminderSettings(BaseModel):
    """Reminder configuration, read once at the start of a cycle."""
    sender_email: Optional[str] = None
    min_days_between_reminders: int = Field(
        default=constants.DEFAULT_MIN_DAYS_BETWEEN_REMINDERS, ge=0
    )
    expert_portal_template: str = constants.DEFAULT_EXPERT_PORTAL_TEMPLATE
    expert_email_template: str = constants.DEFAULT_EXPERT_EMAIL_TEMPLATE
    client_sms_template: str = constants.DEFAULT_CLIENT_SMS_TEMPLATE
    client_email_template: str = constants.DEFAULT_CLIENT_EMAIL_TEMPLATE
    portal_reminders_enabled: bool = True
    client_sms_enabled: bool = True

    # Unpaid invoices
    payments_sender_email: Optional[str] = None
    invoice_template: str = constants.DEFAULT_INVOICE_TEMPLATE
    invoice_reminders_enabled: bool = True

    class Config:
        frozen = True


# ===================
# Ledger
# ===================

class ReminderAttempt(BaseModel):
    """One append-only ledger row: a single attempt on a single channel."""
    id: str = Field(default_factory=lambda: generate_id("rem"))
    dossier_id: str
    channel: ReminderChannel
    recipient: str
    body: str = ""
    outcome: ReminderOutcome
    external_reference: Optional[str] = None
    failure_detail: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)

    class Config:
        extra = "ignore"

    @field_validator("created_at", mode="before")
    @classmethod
    def coerce_created_at(cls, value):
        return coerce_datetime(value) or utc_now()

    @field_validator("details", mode="before")
    @classmethod
    def default_details(cls, value):
        return value or {}

    @property
    def succeeded(self) -> bool:
        return self.outcome in ReminderOutcome.successful()


# ===================
# Stop Evaluation
# ===================

class StopCheck(BaseModel):
    """Verdict of the stop-condition evaluator."""
    stop: bool
    reason: Optional[StopReason] = None
    artifact_type: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


# ===================
# Cycle Result
# ===================

class ChannelTally(BaseModel):
    success: int = 0
    failed: int = 0


class ReminderCycleResult(BaseModel):
    """Counters for one cycle invocation; returned to the caller and dropped."""
    experts_portal: ChannelTally = Field(default_factory=ChannelTally)
    experts_email: ChannelTally = Field(default_factory=ChannelTally)
    clients_sms: ChannelTally = Field(default_factory=ChannelTally)
    clients_email: ChannelTally = Field(default_factory=ChannelTally)
    invoices: ChannelTally = Field(default_factory=ChannelTally)
    stopped: int = 0
    skipped: int = 0
    errors: List[str] = Field(default_factory=list)
    dossiers_processed: int = Field(default=0, exclude=True)

    def tally(self, attempt: ReminderAttempt):
        """Count one dispatched attempt against its channel."""
        bucket = {
            ReminderChannel.EXPERT_PORTAL: self.experts_portal,
            ReminderChannel.EXPERT_EMAIL: self.experts_email,
            ReminderChannel.CLIENT_SMS: self.clients_sms,
            ReminderChannel.CLIENT_EMAIL: self.clients_email,
            ReminderChannel.INVOICE_EMAIL: self.invoices,
        }.get(attempt.channel)
        if bucket is None:
            return
        if attempt.succeeded:
            bucket.success += 1
        else:
            bucket.failed += 1
