# tests/conftest.py
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import pytest

from followup.automation.base import AutomationResult, BaseAutomation
from followup.core import constants
from followup.models.dossier import Client, ClientPreference, Document, Dossier, Vehicle
from followup.models.enums import AutomationState
from followup.models.payment import Payment
from followup.services.audit import AuditRecorder
from followup.services.client_dispatcher import ClientReminderDispatcher
from followup.services.expert_dispatcher import ExpertReminderDispatcher
from followup.services.invoice_dispatcher import InvoiceReminderDispatcher
from followup.services.reminder_cycle import ReminderCycleOrchestrator
from followup.services.stop_conditions import StopConditionEvaluator
from followup.services.transports.email import EmailMessage, EmailReceipt, EmailTransport
from followup.services.transports.sms import SmsReceipt, SmsTransport
from followup.storage.memory_store import MemoryStore
from followup.storage.repository import FollowUpRepository

NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)


class FakeEmailTransport(EmailTransport):
    def __init__(self):
        self.sent: List[EmailMessage] = []
        self.error: Optional[Exception] = None

    async def send(self, message: EmailMessage) -> EmailReceipt:
        if self.error is not None:
            raise self.error
        self.sent.append(message)
        return EmailReceipt(id=f"email_{len(self.sent)}")


class FakeSmsTransport(SmsTransport):
    def __init__(self):
        self.sent: List[Tuple[str, str]] = []
        self.error: Optional[Exception] = None

    async def send(self, to: str, body: str) -> SmsReceipt:
        if self.error is not None:
            raise self.error
        self.sent.append((to, body))
        return SmsReceipt(message_id=f"SM{len(self.sent)}", status="queued")


class FakeAutomation(BaseAutomation):
    """Returns a canned follow-up result and counts cleanups."""

    def __init__(self, profile, outcome: AutomationResult):
        super().__init__(profile)
        self.outcome = outcome
        self.follow_ups = []
        self.cleanup_calls = 0

    async def connect(self):
        return AutomationResult(success=True, action="connect")

    async def search(self, primary_key, secondary_key=None):
        return AutomationResult(success=True, action="search", found=True)

    async def check_and_retrieve_report(self):
        return AutomationResult(success=True, action="report", found=False)

    async def send_message(self, body):
        return AutomationResult(success=True, action="message")

    async def execute_follow_up(self, primary_key, secondary_key, message):
        self.follow_ups.append((primary_key, secondary_key, message))
        return self.outcome

    async def cleanup(self):
        self.cleanup_calls += 1
        self.state = AutomationState.RELEASED


class FakeAutomationFactory:
    def __init__(self):
        self.outcome = AutomationResult(success=True, action="message")
        self.instances: List[FakeAutomation] = []

    def __call__(self, profile):
        automation = FakeAutomation(profile, self.outcome)
        self.instances.append(automation)
        return automation


class Seeder:
    """Writes fixture rows straight into the store."""

    def __init__(self, store: MemoryStore):
        self.store = store

    def dossier(self, **overrides) -> Dossier:
        values = {
            "reference": "DOS-001",
            "status": "awaiting_expert",
            "entry_date": NOW - timedelta(days=20),
        }
        values.update(overrides)
        dossier = Dossier(**values)
        self.store.insert(constants.DOSSIERS, dossier.model_dump(mode="json"))
        return dossier

    def client(self, **overrides) -> Client:
        client = Client(**{"name": "Marie Martin", **overrides})
        self.store.insert(constants.CLIENTS, client.model_dump(mode="json"))
        return client

    def vehicle(self, **overrides) -> Vehicle:
        vehicle = Vehicle(**{"plate": "AB-123-CD", **overrides})
        self.store.insert(constants.VEHICLES, vehicle.model_dump(mode="json"))
        return vehicle

    def preference(self, client_id: str, **overrides) -> ClientPreference:
        preference = ClientPreference(client_id=client_id, **overrides)
        self.store.insert(constants.CLIENT_PREFERENCES, preference.model_dump(mode="json"))
        return preference

    def document(self, dossier_id: str, doc_type: str, **overrides) -> Document:
        document = Document(dossier_id=dossier_id, type=doc_type, **overrides)
        self.store.insert(constants.DOCUMENTS, document.model_dump(mode="json"))
        return document

    def profile(self, **overrides) -> dict:
        row = {
            "id": "site_1",
            "name": "Expert Portal",
            "search_url": "https://portal.example.com/search",
            "auth_mode": "form_login",
            "credentials": {"login": "garage", "password": "hunter22"},
            "selectors": {"search_input": "#q"},
            "active": True,
        }
        row.update(overrides)
        self.store.insert(constants.AUTOMATION_PROFILES, row)
        return row

    def payment(self, dossier_id: str, **overrides) -> Payment:
        values = {"dossier_id": dossier_id, "amount": 1250.0, "due_date": NOW - timedelta(days=30)}
        values.update(overrides)
        payment = Payment(**values)
        self.store.insert(constants.PAYMENTS, payment.model_dump(mode="json"))
        return payment

    def setting(self, key: str, value: str):
        self.store.insert(constants.SETTINGS, {"key": key, "value": value})


# ===================
# Fixtures
# ===================

@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def repository(store):
    return FollowUpRepository(store)


@pytest.fixture
def audit(repository):
    return AuditRecorder(repository)


@pytest.fixture
def seed(store):
    return Seeder(store)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def email():
    return FakeEmailTransport()


@pytest.fixture
def sms():
    return FakeSmsTransport()


@pytest.fixture
def automation_factory():
    return FakeAutomationFactory()


@pytest.fixture
def stop_evaluator(repository, audit, clock):
    return StopConditionEvaluator(repository, audit, clock=clock)


@pytest.fixture
def expert_dispatcher(repository, audit, email, automation_factory, clock):
    return ExpertReminderDispatcher(repository, audit, email, automation_factory, clock=clock)


@pytest.fixture
def client_dispatcher(repository, audit, sms, email, clock):
    return ClientReminderDispatcher(repository, audit, sms, email, country_code="+33", clock=clock)


@pytest.fixture
def invoice_dispatcher(repository, audit, email, clock):
    return InvoiceReminderDispatcher(repository, audit, email, clock=clock)


@pytest.fixture
def orchestrator(repository, stop_evaluator, expert_dispatcher, client_dispatcher, invoice_dispatcher, clock):
    return ReminderCycleOrchestrator(
        repository,
        stop_evaluator,
        expert_dispatcher,
        client_dispatcher,
        invoice_dispatcher=invoice_dispatcher,
        clock=clock,
    )
