# followup/core/constants.py
"""Application constants."""

from typing import Dict


# ===================
# Store Collections
# ===================

DOSSIERS = "dossiers"
CLIENTS = "clients"
VEHICLES = "vehicles"
CLIENT_PREFERENCES = "client_preferences"
DOCUMENTS = "documents"
AUTOMATION_PROFILES = "automation_profiles"
SETTINGS = "settings"
REMINDER_ATTEMPTS = "reminder_attempts"
PAYMENTS = "payments"


# ===================
# Reminder Settings
# ===================

# ReminderSettings field -> key in the settings collection
SETTING_KEYS: Dict[str, str] = {
    "sender_email": "sender_email",
    "min_days_between_reminders": "expert_reminder_interval_days",
    "expert_portal_template": "expert_portal_message_template",
    "expert_email_template": "expert_email_message_template",
    "client_sms_template": "client_sms_message_template",
    "client_email_template": "client_email_message_template",
    "portal_reminders_enabled": "expert_portal_reminders_enabled",
    "client_sms_enabled": "client_sms_reminders_enabled",
    "payments_sender_email": "payments_sender_email",
    "invoice_template": "invoice_reminder_message_template",
    "invoice_reminders_enabled": "invoice_reminders_enabled",
}

DEFAULT_MIN_DAYS_BETWEEN_REMINDERS = 2

DEFAULT_EXPERT_PORTAL_TEMPLATE = (
    "Hello, we are following up on file {dossier_id}. "
    "Please send us the assessment report as soon as possible."
)
DEFAULT_EXPERT_EMAIL_TEMPLATE = DEFAULT_EXPERT_PORTAL_TEMPLATE
DEFAULT_CLIENT_SMS_TEMPLATE = (
    "Hello {client_name}, we chased the expert about your file {dossier_id} today "
    "({days_waiting} days waiting). We will let you know as soon as the report arrives."
)
DEFAULT_CLIENT_EMAIL_TEMPLATE = (
    "Hello, we chased the expert about your file {dossier_id} today. "
    "We will let you know as soon as the report arrives."
)

EXPERT_EMAIL_SUBJECT = "Follow-up - File {dossier_id}"
CLIENT_EMAIL_SUBJECT = "Update - File {dossier_id}"


# ===================
# Unpaid Invoices
# ===================

# Days past the due date on which the client is reminded
INVOICE_REMINDER_DAYS = (30, 45, 60)

# Past this many days an unpaid invoice is flagged overdue
INVOICE_OVERDUE_AFTER_DAYS = 30

DEFAULT_INVOICE_TEMPLATE = (
    "Hello, your invoice for file {dossier_id} ({amount} EUR) has been awaiting "
    "payment for {days_overdue} days."
)
INVOICE_EMAIL_SUBJECT = "Reminder - Invoice {dossier_id}"


# ===================
# Portal Selectors
# ===================

# Keys used by portal configurations created before the selector rename
SELECTOR_ALIASES: Dict[str, str] = {
    "search_input_numero_sinistre": "search_input_claim_number",
    "search_input_immatriculation": "search_input_plate",
    "dossier_row": "result_row",
    "rapport_link": "report_link",
}

REPORT_CONTENT_TYPES = ("application/pdf", "application/octet-stream")
