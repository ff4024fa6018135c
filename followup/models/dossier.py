# followup/models/dossier.py
from pydantic import Field, field_validator
from typing import Optional
from datetime import datetime

from followup.models.base import BaseEntity, coerce_datetime, generate_id
from followup.models.enums import DocumentType, DossierStatus

# ===================
# Linked Records
# ===================

class Client(BaseEntity):
    """Vehicle owner."""
    id: str = Field(default_factory=lambda: generate_id("cli"))
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class Vehicle(BaseEntity):
    id: str = Field(default_factory=lambda: generate_id("veh"))
    plate: Optional[str] = None
    vin: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None


class ClientPreference(BaseEntity):
    """Per-client opt-outs. A client without a record accepts every channel."""
    client_id: str
    sms_enabled: bool = True
    email_enabled: bool = True
    opt_out_sms_at: Optional[datetime] = None
    opt_out_email_at: Optional[datetime] = None

    @field_validator("opt_out_sms_at", "opt_out_email_at", "created_at", "updated_at", mode="before")
    @classmethod
    def coerce_dates(cls, value):
        return coerce_datetime(value)


class Document(BaseEntity):
    """Ingested document metadata (file content lives in object storage)."""
    id: str = Field(default_factory=lambda: generate_id("doc"))
    dossier_id: str
    type: DocumentType
    filename: Optional[str] = None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def coerce_dates(cls, value):
        return coerce_datetime(value)


# ===================
# Main Dossier Model
# ===================

class Dossier(BaseEntity):
    """Claim file tracked from intake to payment."""
    id: str = Field(default_factory=lambda: generate_id("dos"))
    reference: str  # human identifier shown to clients and experts
    status: DossierStatus = DossierStatus.NEW

    # Lifecycle dates
    entry_date: datetime
    last_expert_reminder_at: Optional[datetime] = None
    report_received_at: Optional[datetime] = None

    # Links
    client_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    automation_profile_id: Optional[str] = None

    # Expert / insurer
    expert_name: Optional[str] = None
    expert_email: Optional[str] = None
    claim_number: Optional[str] = None
    insurer: Optional[str] = None

    notify_client: bool = False

    @field_validator(
        "entry_date",
        "last_expert_reminder_at",
        "report_received_at",
        "created_at",
        "updated_at",
        mode="before",
    )
    @classmethod
    def coerce_dates(cls, value):
        return coerce_datetime(value)

    @property
    def search_key(self) -> str:
        """Primary key used to look the file up on an expert portal."""
        return self.claim_number or self.reference
