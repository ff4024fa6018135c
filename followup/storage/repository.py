# followup/storage/repository.py
"""Typed access to the collections the follow-up engine reads and writes."""

from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime

from pydantic import ValidationError as PydanticValidationError

from followup.core import constants
from followup.core.logging import get_logger
from followup.models.base import coerce_datetime, utc_now
from followup.models.dossier import Client, ClientPreference, Document, Dossier, Vehicle
from followup.models.payment import Payment
from followup.models.enums import (
    DocumentType,
    DossierStatus,
    PaymentStatus,
    ReminderChannel,
    ReminderOutcome,
)
from followup.models.reminder import ReminderAttempt
from followup.models.site import SiteAutomationProfile
from followup.storage.base import Filter, Store, eq, is_in, is_null

logger = get_logger(__name__)


class FollowUpRepository:
    """Storage facade over a generic :class:`Store`."""

    def __init__(self, store: Store):
        self.store = store

    # ===================
    # Dossiers
    # ===================

    def list_awaiting_report(self) -> Tuple[List[Dossier], List[str]]:
        """Dossiers still owed an expert report, in fetch order.

        Rows that fail to parse are left out and their reference (or id) is
        returned alongside so the caller can report them.
        """
        rows = self.store.select(
            constants.DOSSIERS,
            [
                is_in("status", [s.value for s in DossierStatus.reminder_statuses()]),
                is_null("report_received_at"),
            ],
        )
        dossiers = []
        invalid = []
        for row in rows:
            try:
                dossiers.append(Dossier(**row))
            except PydanticValidationError as e:
                label = row.get("reference") or row.get("id") or "<unknown>"
                logger.error(f"Failed to deserialize dossier {label}: {e}")
                invalid.append(str(label))
        return dossiers, invalid

    def get_dossier(self, dossier_id: str) -> Optional[Dossier]:
        row = self.store.first(constants.DOSSIERS, [eq("id", dossier_id)])
        return Dossier(**row) if row else None

    def update_dossier(self, dossier_id: str, values: Dict[str, Any]) -> int:
        values = dict(values)
        values.setdefault("updated_at", utc_now())
        return self.store.update(constants.DOSSIERS, [eq("id", dossier_id)], values)

    def mark_expert_reminded(self, dossier_id: str, reminded_at: datetime) -> int:
        """Advance a still-waiting dossier; returns 0 once it has left the reminder statuses."""
        return self.store.update(
            constants.DOSSIERS,
            [
                eq("id", dossier_id),
                is_in("status", [s.value for s in DossierStatus.reminder_statuses()]),
                is_null("report_received_at"),
            ],
            {
                "status": DossierStatus.EXPERT_REMINDED.value,
                "last_expert_reminder_at": reminded_at,
                "updated_at": utc_now(),
            },
        )

    # ===================
    # Linked Records
    # ===================

    def get_client(self, client_id: Optional[str]) -> Optional[Client]:
        if not client_id:
            return None
        row = self.store.first(constants.CLIENTS, [eq("id", client_id)])
        return Client(**row) if row else None

    def get_vehicle(self, vehicle_id: Optional[str]) -> Optional[Vehicle]:
        if not vehicle_id:
            return None
        row = self.store.first(constants.VEHICLES, [eq("id", vehicle_id)])
        return Vehicle(**row) if row else None

    def get_client_preferences(self, client_id: Optional[str]) -> Optional[ClientPreference]:
        if not client_id:
            return None
        row = self.store.first(constants.CLIENT_PREFERENCES, [eq("client_id", client_id)])
        return ClientPreference(**row) if row else None

    def get_automation_profile(self, profile_id: Optional[str]) -> Optional[SiteAutomationProfile]:
        if not profile_id:
            return None
        row = self.store.first(constants.AUTOMATION_PROFILES, [eq("id", profile_id)])
        return SiteAutomationProfile(**row) if row else None

    def list_automation_profiles(self) -> List[SiteAutomationProfile]:
        rows = self.store.select(constants.AUTOMATION_PROFILES, order_by="name")
        return [SiteAutomationProfile(**row) for row in rows]

    # ===================
    # Documents
    # ===================

    def find_stop_documents(self, dossier_id: str) -> List[Document]:
        """Stop-qualifying documents of a dossier, oldest first."""
        rows = self.store.select(
            constants.DOCUMENTS,
            [
                eq("dossier_id", dossier_id),
                is_in("type", [t.value for t in DocumentType.stop_artifacts()]),
            ],
            order_by="created_at",
        )
        return [Document(**row) for row in rows]

    # ===================
    # Settings
    # ===================

    def load_settings_map(self) -> Dict[str, str]:
        rows = self.store.select(
            constants.SETTINGS,
            [is_in("key", list(constants.SETTING_KEYS.values()))],
        )
        return {
            row["key"]: row.get("value")
            for row in rows
            if row.get("key") and row.get("value") is not None
        }

    # ===================
    # Payments
    # ===================

    def list_unpaid_payments(self) -> Tuple[List[Payment], List[str]]:
        """Pending or overdue payments, plus the ids of rows that failed to parse."""
        rows = self.store.select(
            constants.PAYMENTS,
            [is_in("status", [s.value for s in PaymentStatus.unpaid()])],
            order_by="due_date",
        )
        payments = []
        invalid = []
        for row in rows:
            try:
                payments.append(Payment(**row))
            except PydanticValidationError as e:
                label = row.get("id") or "<unknown>"
                logger.error(f"Failed to deserialize payment {label}: {e}")
                invalid.append(str(label))
        return payments, invalid

    def mark_payment_reminded(
        self,
        payment_id: str,
        reminded_at: datetime,
        reminder_count: int,
        status: PaymentStatus,
    ) -> int:
        """Record a sent reminder; a payment settled meanwhile is left alone."""
        return self.store.update(
            constants.PAYMENTS,
            [
                eq("id", payment_id),
                is_in("status", [s.value for s in PaymentStatus.unpaid()]),
            ],
            {
                "last_reminder_at": reminded_at,
                "reminder_count": reminder_count,
                "status": status.value,
                "updated_at": utc_now(),
            },
        )

    # ===================
    # Reminder Ledger
    # ===================

    def insert_attempt(self, attempt: ReminderAttempt) -> ReminderAttempt:
        row = self.store.insert(constants.REMINDER_ATTEMPTS, attempt.model_dump(mode="json"))
        return ReminderAttempt(**row)

    def list_attempts(
        self,
        dossier_id: Optional[str] = None,
        channels: Optional[List[ReminderChannel]] = None,
        outcome: Optional[ReminderOutcome] = None,
        limit: Optional[int] = 100,
    ) -> List[ReminderAttempt]:
        """Ledger rows, newest first."""
        filters: List[Filter] = []
        if dossier_id:
            filters.append(eq("dossier_id", dossier_id))
        if channels:
            filters.append(is_in("channel", [c.value for c in channels]))
        if outcome:
            filters.append(eq("outcome", outcome.value))

        rows = self.store.select(
            constants.REMINDER_ATTEMPTS,
            filters,
            order_by="created_at",
            descending=True,
            limit=limit,
        )
        return [ReminderAttempt(**row) for row in rows]

    def last_expert_reminder_at(self, dossier_id: str) -> Optional[datetime]:
        """Time of the latest successful expert reminder according to the ledger."""
        rows = self.store.select(
            constants.REMINDER_ATTEMPTS,
            [
                eq("dossier_id", dossier_id),
                is_in(
                    "channel",
                    [ReminderChannel.EXPERT_PORTAL.value, ReminderChannel.EXPERT_EMAIL.value],
                ),
                is_in("outcome", [o.value for o in ReminderOutcome.successful()]),
            ],
        )
        timestamps = [coerce_datetime(r.get("created_at")) for r in rows]
        timestamps = [t for t in timestamps if isinstance(t, datetime)]
        return max(timestamps) if timestamps else None

    def has_stop_record(self, dossier_id: str) -> bool:
        row = self.store.first(
            constants.REMINDER_ATTEMPTS,
            [
                eq("dossier_id", dossier_id),
                eq("channel", ReminderChannel.SYSTEM_STOP.value),
            ],
        )
        return row is not None
