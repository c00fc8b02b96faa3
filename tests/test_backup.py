"""Tests for whole-store export/import."""

from __future__ import annotations

import json

import pytest

import auth
import backup
import reminders
from db import RecordStore
from models import AppSettings, STORAGE_KEYS, Task
from services import Services


@pytest.fixture
def populated(services: Services, make_client) -> Services:
    client = make_client()
    services.tasks.save(Task(id="", title="Call", client_id=client.id))
    services.save_settings(AppSettings(event_reminder_days=3))
    services.store.save("users", {"id": "u1", "email": "a@b.cz", "name": "A", "role": "admin"})
    return services


class TestExport:
    def test_document_shape(self, populated: Services):
        doc = backup.export_all_data(populated.store, now="2024-06-01T00:00:00+00:00")
        assert doc["version"] == backup.EXPORT_VERSION
        assert doc["exportDate"] == "2024-06-01T00:00:00+00:00"
        assert len(doc["data"]["clients"]) == 1
        assert len(doc["data"]["tasks"]) == 1
        assert doc["data"]["settings"]["event_reminder_days"] == 3
        assert doc["data"]["notes"] == []

    def test_session_not_exported(self, populated: Services):
        populated.store.set_json(STORAGE_KEYS["session"], {"id": "u1"})
        doc = backup.export_all_data(populated.store)
        assert "session" not in doc["data"]

    def test_export_json_is_parseable(self, populated: Services):
        text = backup.export_json(populated.store)
        assert json.loads(text)["data"]["clients"][0]["first_name"] == "Jana"


class TestImport:
    def test_round_trip_reproduces_store(self, populated: Services, tmp_path):
        exported = backup.export_all_data(populated.store)

        fresh = RecordStore(tmp_path / "other.db")
        fresh.init_db()
        backup.import_data(fresh, exported)
        assert backup.export_all_data(fresh, now=exported["exportDate"]) == exported

    def test_round_trip_on_same_store(self, populated: Services):
        exported = backup.export_json(populated.store, now="2024-06-01T00:00:00+00:00")
        backup.import_json(populated.store, exported)
        assert backup.export_json(populated.store, now="2024-06-01T00:00:00+00:00") == exported

    def test_replaces_never_merges(self, populated: Services, make_client):
        doc = backup.export_all_data(populated.store)
        make_client(first_name="Extra", last_name="Client")
        backup.import_data(populated.store, doc)
        assert [c.first_name for c in populated.clients.list()] == ["Jana"]

    def test_missing_array_leaves_state_untouched(self, populated: Services):
        before = backup.export_all_data(populated.store, now="x")
        doc = backup.export_all_data(populated.store)
        del doc["data"]["reviews"]
        doc["data"]["clients"] = []

        with pytest.raises(backup.ImportValidationError):
            backup.import_data(populated.store, doc)
        assert backup.export_all_data(populated.store, now="x") == before

    def test_non_array_field_rejected(self, populated: Services):
        doc = backup.export_all_data(populated.store)
        doc["data"]["plans"] = {"id": "p1"}
        with pytest.raises(backup.ImportValidationError):
            backup.import_data(populated.store, doc)

    def test_duplicate_ids_rejected(self, populated: Services):
        doc = backup.export_all_data(populated.store)
        event = {"id": "e1", "title": "Visit", "type": "meeting", "date": "2024-05-01"}
        doc["data"]["events"] = [event, dict(event)]
        with pytest.raises(backup.ImportValidationError, match="duplicate"):
            backup.import_data(populated.store, doc)

    def test_unloadable_records_rejected(self, populated: Services):
        before = backup.export_all_data(populated.store, now="x")
        doc = backup.export_all_data(populated.store)
        doc["data"]["clients"] = [{"id": "c1", "firstName": "Jana", "lastName": "Nováková"}]

        with pytest.raises(backup.ImportValidationError, match="Client"):
            backup.import_data(populated.store, doc)
        assert backup.export_all_data(populated.store, now="x") == before
        assert reminders.dashboard_summary(populated)["total_clients"] == 1

    def test_missing_version_rejected(self, populated: Services):
        doc = backup.export_all_data(populated.store)
        del doc["version"]
        with pytest.raises(backup.ImportValidationError):
            backup.import_data(populated.store, doc)

    def test_invalid_json(self, store: RecordStore):
        with pytest.raises(backup.ImportValidationError):
            backup.import_json(store, "{nope")

    def test_older_export_without_new_collections(self, populated: Services):
        doc = {
            "version": "1.0",
            "exportDate": "2023-01-01T00:00:00Z",
            "data": {
                "users": [], "clients": [], "profiles": [],
                "plans": [], "events": [], "reviews": [],
            },
        }
        backup.import_data(populated.store, doc)
        assert populated.tasks.list() == []
        assert populated.get_settings() == AppSettings()


class TestClearAllData:
    def test_keeps_session_only(self, populated: Services):
        populated.store.set_json(
            STORAGE_KEYS["session"], {"id": "u1", "email": "a@b.cz", "name": "A", "role": "admin"}
        )
        backup.clear_all_data(populated.store)
        assert populated.store.keys() == [STORAGE_KEYS["session"]]
        assert auth.get_current_user(populated.store) is not None
