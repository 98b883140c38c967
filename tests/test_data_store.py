"""
Tests for the in-memory data store and the dataset loader.

Run with: pytest tests/test_data_store.py -v
"""

import sys
import json
import pathlib
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent))

import pytest
from allocation.engine.data_loader import load_dataset, normalize_dataset_keys
from allocation.engine.data_store import DataStore
from allocation.engine.errors import (
    DuplicateRecordError,
    DuplicateRuleError,
    InvalidEntityError,
    InvalidRecordError,
    RecordNotFoundError,
    RuleNotFoundError,
    status_code_for,
)


@pytest.fixture
def store():
    data_store = DataStore()
    data_store.set_records("tasks", [
        {"TaskID": "T1", "TaskName": "Build"},
        {"TaskID": "T2", "TaskName": "Report"},
    ], file_name="tasks.csv")
    return data_store


class TestRecords:
    """Record CRUD"""

    def test_set_records_metadata(self, store):
        meta = store.get_metadata("tasks")
        assert meta["rowCount"] == 2
        assert meta["fileName"] == "tasks.csv"
        assert meta["lastUpdated"] is not None

    def test_bulk_keeps_duplicates(self, store):
        store.set_records("tasks", [{"TaskID": "T1"}, {"TaskID": "T1"}])
        assert len(store.get_records("tasks")) == 2

    def test_returned_records_are_copies(self, store):
        records = store.get_records("tasks")
        records[0]["TaskName"] = "changed"
        assert store.get_record("tasks", "T1")["TaskName"] == "Build"

    def test_create_record(self, store):
        store.create_record("tasks", {"TaskID": "T3"})
        assert store.get_record("tasks", " T3 ") == {"TaskID": "T3"}
        assert store.get_metadata("tasks")["rowCount"] == 3

    def test_create_duplicate(self, store):
        with pytest.raises(DuplicateRecordError):
            store.create_record("tasks", {"TaskID": "T1"})

    def test_create_without_id(self, store):
        with pytest.raises(InvalidRecordError):
            store.create_record("tasks", {"TaskName": "No id"})

    def test_update_merges(self, store):
        updated = store.update_record("tasks", "T1", {"Duration": 3})
        assert updated == {"TaskID": "T1", "TaskName": "Build", "Duration": 3}

    def test_rename_collision(self, store):
        with pytest.raises(DuplicateRecordError):
            store.update_record("tasks", "T1", {"TaskID": "T2"})

    def test_update_cannot_blank_id(self, store):
        for blank in ("", "  ", None):
            with pytest.raises(InvalidRecordError):
                store.update_record("tasks", "T1", {"TaskID": blank, "Duration": 5})
        assert store.get_record("tasks", "T1") == {"TaskID": "T1", "TaskName": "Build"}

    def test_missing_record(self, store):
        with pytest.raises(RecordNotFoundError):
            store.get_record("tasks", "T9")
        with pytest.raises(RecordNotFoundError):
            store.delete_record("tasks", "T9")

    def test_delete_record(self, store):
        removed = store.delete_record("tasks", "T1")
        assert removed["TaskID"] == "T1"
        assert [r["TaskID"] for r in store.get_records("tasks")] == ["T2"]

    def test_invalid_entity(self, store):
        with pytest.raises(InvalidEntityError):
            store.get_records("projects")

    def test_search(self, store):
        assert [r["TaskID"] for r in store.search_records("tasks", "rep")] == ["T2"]
        assert store.search_records("tasks", "build", ["TaskID"]) == []
        assert len(store.search_records("tasks", None)) == 2

    def test_clear_and_stats(self, store):
        store.create_record("clients", {"ClientID": "C1"})
        stats = store.get_stats()
        assert stats["totalRecords"] == 3
        assert stats["recordCounts"] == {"clients": 1, "workers": 0, "tasks": 2}
        store.clear_entity("tasks")
        assert store.get_metadata("tasks")["rowCount"] == 0
        store.clear_all()
        assert store.get_stats()["totalRecords"] == 0


class TestRules:
    """Raw rule storage"""

    def test_rule_crud(self, store):
        store.add_rule({"id": "r1", "type": "coRun"})
        with pytest.raises(DuplicateRuleError):
            store.add_rule({"id": "r1", "type": "coRun"})
        store.replace_rule("r1", {"id": "r1", "type": "loadLimit"})
        assert store.get_rule("r1")["type"] == "loadLimit"
        store.delete_rule("r1")
        with pytest.raises(RuleNotFoundError):
            store.get_rule("r1")

    def test_snapshot_is_detached(self, store):
        store.set_rules([{"id": "r1"}])
        snapshot = store.snapshot()
        snapshot["tasks"][0]["TaskID"] = "X"
        snapshot["rules"].clear()
        assert store.get_record("tasks", "T1")["TaskID"] == "T1"
        assert len(store.get_rules()) == 1


class TestErrors:
    """HTTP status mapping"""

    def test_status_codes(self):
        assert status_code_for(InvalidEntityError("x")) == 400
        assert status_code_for(RecordNotFoundError("x")) == 404
        assert status_code_for(DuplicateRuleError("x")) == 409


class TestDataLoader:
    """Dataset files"""

    def test_aliases_and_defaults(self):
        dataset = normalize_dataset_keys({"Clients": [{"ClientID": "C1"}], "tasksData": []})
        assert dataset == {"clients": [{"ClientID": "C1"}], "workers": [], "tasks": [], "rules": []}

    def test_load_file(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text(json.dumps({"workers": [{"WorkerID": "W1"}]}))
        assert load_dataset(path)["workers"] == [{"WorkerID": "W1"}]

    def test_load_errors(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_dataset(tmp_path / "missing.json")
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        with pytest.raises(ValueError):
            load_dataset(bad)
        listed = tmp_path / "list.json"
        listed.write_text("[]")
        with pytest.raises(ValueError):
            load_dataset(listed)
