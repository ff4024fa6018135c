# followup/models/enums.py
from enum import Enum
from typing import List


class DossierStatus(str, Enum):
    NEW = "new"
    AWAITING_EXPERT = "awaiting_expert"
    EXPERT_REMINDED = "expert_reminded"
    REPORT_RECEIVED = "report_received"
    IN_REPAIR = "in_repair"
    INVOICED = "invoiced"
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    DISPUTED = "disputed"

    @classmethod
    def reminder_statuses(cls) -> List["DossierStatus"]:
        """Statuses in which the expert is still owed a reminder."""
        return [cls.AWAITING_EXPERT, cls.EXPERT_REMINDED]

    @classmethod
    def advanced_statuses(cls) -> List["DossierStatus"]:
        """Statuses at or past report reception."""
        return [
            cls.REPORT_RECEIVED,
            cls.IN_REPAIR,
            cls.INVOICED,
            cls.AWAITING_PAYMENT,
            cls.PAID,
        ]


class DocumentType(str, Enum):
    QUOTE = "quote"
    PHOTOS_BEFORE = "photos_before"
    PHOTOS_AFTER = "photos_after"
    REGISTRATION = "registration"
    EXPERT_REPORT = "expert_report"
    SETTLEMENT_RECORD = "settlement_record"
    DIRECT_PAYMENT_PROOF = "direct_payment_proof"
    INVOICE = "invoice"
    OTHER = "other"

    @classmethod
    def stop_artifacts(cls) -> List["DocumentType"]:
        """Documents whose arrival ends expert reminders."""
        return [cls.EXPERT_REPORT, cls.SETTLEMENT_RECORD, cls.DIRECT_PAYMENT_PROOF]


class PaymentStatus(str, Enum):
    PENDING = "pending"
    OVERDUE = "overdue"
    PAID = "paid"

    @classmethod
    def unpaid(cls) -> List["PaymentStatus"]:
        return [cls.PENDING, cls.OVERDUE]


class AuthMode(str, Enum):
    NONE = "none"
    FORM_LOGIN = "form_login"
    API_KEY = "api_key"


class ReminderChannel(str, Enum):
    EXPERT_PORTAL = "expert_portal"
    EXPERT_EMAIL = "expert_email"
    CLIENT_SMS = "client_sms"
    CLIENT_EMAIL = "client_email"
    INVOICE_EMAIL = "invoice_email"
    SYSTEM_STOP = "system_stop"


class ReminderOutcome(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def successful(cls) -> List["ReminderOutcome"]:
        return [cls.SENT, cls.DELIVERED, cls.READ]


class StopReason(str, Enum):
    ARTIFACT_RECEIVED = "artifact_received"
    STATUS_ADVANCED = "status_advanced"
    REPORT_TIMESTAMP_SET = "report_timestamp_set"
    DOCUMENT_UPLOADED = "document_uploaded"


class AutomationState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    SEARCHED = "searched"
    MESSAGE_SENT = "message_sent"
    REPORT_FOUND = "report_found"
    RELEASED = "released"
