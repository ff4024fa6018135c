# followup/core/dependencies.py
from followup.core.config import settings
from followup.core.exceptions import ConfigurationError
from followup.core.logging import get_logger

logger = get_logger(__name__)

# ===================
# Store
# ===================

_store = None
_repository = None

def get_store():
    """Get the store selected by STORE_BACKEND."""
    global _store
    if _store is None:
        backend = settings.STORE_BACKEND.lower()
        if backend == "memory":
            from followup.storage.memory_store import MemoryStore
            _store = MemoryStore()
        elif backend == "json":
            from followup.storage.json_store import JsonFileStore
            _store = JsonFileStore(settings.DATA_DIR, settings.STORE_FILENAME)
        elif backend == "postgrest":
            if not settings.is_postgrest_configured:
                raise ConfigurationError(
                    "STORE_BACKEND=postgrest needs SUPABASE_URL and SUPABASE_KEY",
                    setting="SUPABASE_URL",
                )
            from followup.storage.postgrest_store import PostgrestStore
            _store = PostgrestStore(
                settings.SUPABASE_URL,
                settings.SUPABASE_KEY,
                timeout=settings.STORE_TIMEOUT_SECONDS,
            )
        else:
            raise ConfigurationError(f"unknown STORE_BACKEND {settings.STORE_BACKEND!r}", setting="STORE_BACKEND")
        logger.info(f"Store initialized ({backend})")
    return _store

def get_repository():
    """Get the repository over the configured store."""
    global _repository
    if _repository is None:
        from followup.storage.repository import FollowUpRepository
        _repository = FollowUpRepository(get_store())
    return _repository

# ===================
# Transports
# ===================

_email_transport = None
_sms_transport = None

def get_email_transport():
    global _email_transport
    if _email_transport is None:
        from followup.services.transports.email import ResendEmailTransport
        _email_transport = ResendEmailTransport(
            api_key=settings.RESEND_API_KEY,
            api_url=settings.RESEND_API_URL,
            timeout=settings.EMAIL_TIMEOUT_SECONDS,
        )
        if not settings.RESEND_API_KEY:
            logger.warning("RESEND_API_KEY not set, email reminders will be recorded as failed")
    return _email_transport

def get_sms_transport():
    global _sms_transport
    if _sms_transport is None:
        from followup.services.transports.sms import TwilioSmsTransport
        _sms_transport = TwilioSmsTransport(
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            from_number=settings.TWILIO_PHONE_NUMBER,
            api_url=settings.TWILIO_API_URL,
            timeout=settings.SMS_TIMEOUT_SECONDS,
        )
        if not settings.is_twilio_configured:
            logger.warning("Twilio not configured, SMS reminders will be recorded as failed")
    return _sms_transport

# ===================
# Services
# ===================

_stop_evaluator = None
_orchestrator = None

def get_stop_evaluator():
    """Get the stop-condition evaluator."""
    global _stop_evaluator
    if _stop_evaluator is None:
        from followup.services.audit import AuditRecorder
        from followup.services.stop_conditions import StopConditionEvaluator
        _stop_evaluator = StopConditionEvaluator(get_repository(), AuditRecorder(get_repository()))
    return _stop_evaluator

def get_orchestrator():
    """Get the reminder cycle orchestrator."""
    global _orchestrator
    if _orchestrator is None:
        from followup.automation.factory import create_automation_handler
        from followup.services.client_dispatcher import ClientReminderDispatcher
        from followup.services.expert_dispatcher import ExpertReminderDispatcher
        from followup.services.invoice_dispatcher import InvoiceReminderDispatcher
        from followup.services.reminder_cycle import ReminderCycleOrchestrator

        repository = get_repository()
        stop_evaluator = get_stop_evaluator()
        _orchestrator = ReminderCycleOrchestrator(
            repository=repository,
            stop_evaluator=stop_evaluator,
            expert_dispatcher=ExpertReminderDispatcher(
                repository,
                stop_evaluator.audit,
                get_email_transport(),
                lambda profile: create_automation_handler(profile, settings),
            ),
            client_dispatcher=ClientReminderDispatcher(
                repository,
                stop_evaluator.audit,
                get_sms_transport(),
                get_email_transport(),
                country_code=settings.DEFAULT_COUNTRY_CODE,
            ),
            invoice_dispatcher=InvoiceReminderDispatcher(
                repository,
                stop_evaluator.audit,
                get_email_transport(),
            ),
        )
        logger.info("Reminder orchestrator initialized")
    return _orchestrator

# ===================
# Cleanup
# ===================

def cleanup_resources():
    """Close the store and drop every cached instance."""
    global _store, _repository, _email_transport, _sms_transport, _stop_evaluator, _orchestrator
    if _store is not None:
        _store.close()
        logger.info("Store closed")
    _store = None
    _repository = None
    _email_transport = None
    _sms_transport = None
    _stop_evaluator = None
    _orchestrator = None
