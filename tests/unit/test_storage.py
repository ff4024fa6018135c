# tests/unit/test_storage.py
import json
from datetime import timedelta

import httpx
import pytest

from followup.core import constants
from followup.core.exceptions import PersistenceError
from followup.models.enums import ReminderChannel, ReminderOutcome
from followup.models.reminder import ReminderAttempt
from followup.storage.base import Filter, eq, is_in, is_null
from followup.storage.json_store import JsonFileStore
from followup.storage.memory_store import MemoryStore
from followup.storage.postgrest_store import PostgrestStore, filter_params

from conftest import NOW


def test_filters_cover_every_operator():
    row = {"status": "awaiting_expert", "n": 3, "gone": None}
    assert eq("status", "awaiting_expert").matches(row)
    assert Filter("status", "neq", "paid").matches(row)
    assert is_in("n", [1, 3]).matches(row)
    assert is_null("gone").matches(row)
    assert Filter("n", "not_null").matches(row)
    assert Filter("n", "gt", 2).matches(row)
    assert Filter("n", "gte", 3).matches(row)
    assert Filter("n", "lt", 4).matches(row)
    assert Filter("n", "lte", 3).matches(row)
    assert not Filter("gone", "gt", 0).matches(row)

    with pytest.raises(ValueError):
        Filter("n", "like", "x")


def test_memory_store_orders_with_nulls_last_and_limits():
    store = MemoryStore()
    store.insert("items", {"id": "a", "rank": 2})
    store.insert("items", {"id": "b", "rank": None})
    store.insert("items", {"id": "c", "rank": 1})

    assert [r["id"] for r in store.select("items", order_by="rank")] == ["c", "a", "b"]
    assert [r["id"] for r in store.select("items", order_by="rank", descending=True, limit=2)] == ["a", "c"]


def test_memory_store_returns_copies():
    store = MemoryStore()
    store.insert("items", {"id": "a", "tags": ["x"]})
    row = store.first("items", [eq("id", "a")])
    row["tags"].append("mutated")
    assert store.first("items", [eq("id", "a")])["tags"] == ["x"]


def test_memory_store_update_counts_rows():
    store = MemoryStore(seed={"items": [{"id": "a", "v": 1}, {"id": "b", "v": 1}]})
    assert store.update("items", [eq("v", 1)], {"v": 2}) == 2
    assert store.update("items", [eq("id", "zzz")], {"v": 3}) == 0


def test_unserializable_row_is_a_persistence_error():
    store = MemoryStore()
    with pytest.raises(PersistenceError):
        store.insert("items", {"id": "a", "blob": object()})


def test_json_store_writes_through_and_reloads(tmp_path):
    store = JsonFileStore(str(tmp_path), "data.json")
    store.insert("dossiers", {"id": "d1", "reference": "DOS-1", "entry_date": NOW})
    store.update("dossiers", [eq("id", "d1")], {"status": "expert_reminded"})

    on_disk = json.loads((tmp_path / "data.json").read_text(encoding="utf-8"))
    assert on_disk["dossiers"][0]["status"] == "expert_reminded"
    assert on_disk["dossiers"][0]["entry_date"] == NOW.isoformat()

    reloaded = JsonFileStore(str(tmp_path), "data.json")
    assert reloaded.first("dossiers", [eq("id", "d1")])["reference"] == "DOS-1"


def test_json_store_rejects_corrupt_file(tmp_path):
    (tmp_path / "data.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(PersistenceError):
        JsonFileStore(str(tmp_path), "data.json")


def test_postgrest_filter_params():
    params = filter_params([
        eq("id", "d1"),
        is_in("status", ["awaiting_expert", "expert reminded"]),
        is_null("report_received_at"),
        Filter("active", "eq", True),
    ])
    assert params == [
        ("id", "eq.d1"),
        ("status", 'in.(awaiting_expert,"expert reminded")'),
        ("report_received_at", "is.null"),
        ("active", "eq.true"),
    ]


def test_postgrest_store_requests():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "GET":
            return httpx.Response(200, json=[{"id": "d1"}])
        if request.method == "POST":
            return httpx.Response(201, json=[json.loads(request.content)])
        return httpx.Response(200, json=[{"id": "d1"}, {"id": "d2"}])

    client = httpx.Client(base_url="https://db.example.com/rest/v1", transport=httpx.MockTransport(handler))
    store = PostgrestStore("https://db.example.com", "key", client=client)

    assert store.select("dossiers", [eq("id", "d1")], order_by="created_at", descending=True, limit=5) == [{"id": "d1"}]
    assert store.insert("reminder_attempts", {"id": "r1"}) == {"id": "r1"}
    assert store.update("dossiers", [eq("status", "new")], {"status": "awaiting_expert"}) == 2

    query = dict(seen[0].url.params)
    assert query["order"] == "created_at.desc.nullslast"
    assert query["limit"] == "5"
    assert seen[1].headers["Prefer"] == "return=representation"
    assert seen[2].method == "PATCH"


def test_postgrest_errors_and_unfiltered_update():
    client = httpx.Client(
        base_url="https://db.example.com/rest/v1",
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
    )
    store = PostgrestStore("https://db.example.com/rest/v1", "key", client=client)

    with pytest.raises(PersistenceError):
        store.select("dossiers")
    with pytest.raises(PersistenceError):
        store.update("dossiers", [], {"status": "paid"})


def test_repository_lists_only_dossiers_awaiting_a_report(seed, repository):
    waiting = seed.dossier(reference="A")
    seed.dossier(reference="B", status="expert_reminded")
    seed.dossier(reference="C", status="in_repair")
    seed.dossier(reference="D", report_received_at=NOW)
    seed.dossier(reference="E", status="new")

    dossiers, invalid = repository.list_awaiting_report()
    assert [d.reference for d in dossiers] == ["A", "B"]
    assert invalid == []
    assert repository.get_dossier(waiting.id).reference == "A"
    assert repository.get_dossier("missing") is None


def test_repository_skips_rows_that_fail_to_parse(store, seed, repository):
    store.insert(constants.DOSSIERS, {"id": "broken", "status": "awaiting_expert"})
    seed.dossier(reference="OK")
    dossiers, invalid = repository.list_awaiting_report()
    assert [d.reference for d in dossiers] == ["OK"]
    assert invalid == ["broken"]


def test_repository_ledger_queries(repository):
    def attempt(channel, outcome, days_ago):
        repository.insert_attempt(ReminderAttempt(
            dossier_id="d1",
            channel=channel,
            recipient="x",
            outcome=outcome,
            created_at=NOW - timedelta(days=days_ago),
        ))

    attempt(ReminderChannel.EXPERT_EMAIL, ReminderOutcome.SENT, 5)
    attempt(ReminderChannel.EXPERT_PORTAL, ReminderOutcome.FAILED, 1)
    attempt(ReminderChannel.CLIENT_SMS, ReminderOutcome.SENT, 0)

    assert repository.last_expert_reminder_at("d1") == NOW - timedelta(days=5)
    assert repository.last_expert_reminder_at("other") is None
    assert not repository.has_stop_record("d1")

    history = repository.list_attempts(dossier_id="d1")
    assert [a.channel for a in history] == [
        ReminderChannel.CLIENT_SMS,
        ReminderChannel.EXPERT_PORTAL,
        ReminderChannel.EXPERT_EMAIL,
    ]
    failed = repository.list_attempts(outcome=ReminderOutcome.FAILED)
    assert len(failed) == 1


def test_repository_settings_map_ignores_unknown_keys(seed, repository):
    seed.setting("sender_email", "garage@example.com")
    seed.setting("unrelated", "x")
    assert repository.load_settings_map() == {"sender_email": "garage@example.com"}


def test_mark_expert_reminded_never_moves_a_stopped_dossier_back(seed, repository):
    waiting = seed.dossier(reference="WAITING")
    stopped = seed.dossier(reference="STOPPED", status="report_received", report_received_at=NOW)
    flagged = seed.dossier(reference="FLAGGED", report_received_at=NOW)

    assert repository.mark_expert_reminded(waiting.id, NOW) == 1
    assert repository.mark_expert_reminded(stopped.id, NOW) == 0
    assert repository.mark_expert_reminded(flagged.id, NOW) == 0

    assert repository.get_dossier(waiting.id).status.value == "expert_reminded"
    assert repository.get_dossier(stopped.id).status.value == "report_received"
    assert repository.get_dossier(flagged.id).last_expert_reminder_at is None
