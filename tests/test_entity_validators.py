"""
Tests for structural (per-entity) validation.

Run with: pytest tests/test_entity_validators.py -v
"""

import sys
import pathlib
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent))

import pytest
from allocation.engine.entity_validators import (
    validate_clients,
    validate_entity,
    validate_tasks,
    validate_workers,
)
from allocation.engine.findings import FindingCode, FindingType, Severity


def _client(**overrides):
    record = {"ClientID": "C1", "ClientName": "Acme", "PriorityLevel": 3}
    record.update(overrides)
    return record


def _worker(**overrides):
    record = {
        "WorkerID": "W1",
        "WorkerName": "Ada",
        "Skills": "python,sql",
        "AvailableSlots": [1, 2, 3],
        "MaxLoadPerPhase": 2,
    }
    record.update(overrides)
    return record


def _task(**overrides):
    record = {"TaskID": "T1", "TaskName": "Build", "Duration": 1, "RequiredSkills": "python"}
    record.update(overrides)
    return record


def _codes(findings):
    return [f.code for f in findings]


class TestRequiredFields:
    """Missing required columns"""

    def test_clean_records(self):
        assert validate_clients([_client()]) == []
        assert validate_workers([_worker()]) == []
        assert validate_tasks([_task()]) == []

    def test_missing_client_name(self):
        record = _client()
        del record["ClientName"]
        findings = validate_clients([record])
        assert len(findings) == 1
        finding = findings[0]
        assert finding.type == FindingType.MISSING_FIELD
        assert finding.code == FindingCode.MISSING_REQUIRED_COLUMN
        assert finding.field == "ClientName"
        assert finding.record_id == "C1"
        assert finding.severity is Severity.ERROR

    def test_blank_string_counts_as_missing(self):
        findings = validate_tasks([_task(TaskName="   ")])
        assert _codes(findings) == [FindingCode.MISSING_REQUIRED_COLUMN]

    def test_zero_is_not_missing(self):
        findings = validate_workers([_worker(MaxLoadPerPhase=0)])
        assert FindingCode.MISSING_REQUIRED_COLUMN not in _codes(findings)

    def test_one_finding_per_missing_field(self):
        findings = validate_workers([{"WorkerID": "W9"}])
        fields = sorted(f.field for f in findings if f.code == FindingCode.MISSING_REQUIRED_COLUMN)
        assert fields == ["AvailableSlots", "MaxLoadPerPhase", "Skills", "WorkerName"]


class TestDuplicateIds:
    """Identifier uniqueness"""

    def test_k_occurrences_yield_k_minus_one(self):
        tasks = [_task(), _task(), _task(), _task(TaskID="T2")]
        findings = [f for f in validate_tasks(tasks) if f.code == FindingCode.DUPLICATE_ID]
        assert len(findings) == 2
        assert [f.row for f in findings] == [2, 3]
        assert all(f.record_id == "T1" for f in findings)

    def test_ids_compared_after_trimming(self):
        findings = validate_clients([_client(ClientID="C1"), _client(ClientID=" C1 ")])
        assert _codes(findings) == [FindingCode.DUPLICATE_ID]


class TestFieldValues:
    """Type and range conformance"""

    def test_duration_zero_is_range_error(self):
        findings = validate_tasks([_task(Duration=0)])
        assert len(findings) == 1
        assert findings[0].type == FindingType.RANGE_ERROR
        assert findings[0].field == "Duration"

    def test_duration_text_is_type_error(self):
        findings = validate_tasks([_task(Duration="abc")])
        assert len(findings) == 1
        assert findings[0].type == FindingType.TYPE_ERROR
        assert findings[0].code == FindingCode.MALFORMED_DATA

    def test_fractional_negative_duration_reports_both(self):
        findings = validate_tasks([_task(Duration=-1.5)])
        assert sorted(f.type for f in findings) == [FindingType.RANGE_ERROR, FindingType.TYPE_ERROR]

    def test_priority_out_of_range(self):
        findings = validate_clients([_client(PriorityLevel=7)])
        assert _codes(findings) == [FindingCode.OUT_OF_RANGE]

    def test_priority_numeric_string_accepted(self):
        assert validate_clients([_client(PriorityLevel="4")]) == []

    def test_malformed_available_slots(self):
        findings = validate_workers([_worker(AvailableSlots="mon,tue")])
        assert _codes(findings) == [FindingCode.MALFORMED_DATA]
        assert findings[0].field == "AvailableSlots"

    def test_phase_below_one(self):
        findings = validate_workers([_worker(AvailableSlots="0-2")])
        assert _codes(findings) == [FindingCode.OUT_OF_RANGE]
        assert findings[0].details == {"invalidValues": [0]}

    def test_range_string_slots_accepted(self):
        assert validate_workers([_worker(AvailableSlots="1-3")]) == []

    def test_oversized_range_is_malformed(self):
        findings = validate_workers([_worker(AvailableSlots="1-20000000")])
        assert _codes(findings) == [FindingCode.MALFORMED_DATA]
        assert findings[0].field == "AvailableSlots"
        findings = validate_tasks([_task(PreferredPhases="1-999999999")])
        assert _codes(findings) == [FindingCode.MALFORMED_DATA]
        assert findings[0].field == "PreferredPhases"

    def test_max_concurrent_optional_but_checked(self):
        assert validate_tasks([_task(MaxConcurrent=2)]) == []
        findings = validate_tasks([_task(MaxConcurrent=0)])
        assert _codes(findings) == [FindingCode.OUT_OF_RANGE]

    def test_empty_skill_list_warns(self):
        findings = validate_workers([_worker(Skills=[])])
        assert len(findings) == 1
        assert findings[0].code == FindingCode.EMPTY_SKILL_SET
        assert findings[0].severity is Severity.WARNING

    def test_attributes_json(self):
        assert validate_clients([_client(AttributesJSON='{"region": "north"}')]) == []
        findings = validate_clients([_client(AttributesJSON="{region: north}")])
        assert _codes(findings) == [FindingCode.MALFORMED_DATA]
        assert findings[0].field == "AttributesJSON"

    def test_non_record_row(self):
        findings = validate_tasks([_task(), "not a record"])
        assert _codes(findings) == [FindingCode.MALFORMED_DATA]
        assert findings[0].row == 2


class TestValidateEntity:
    """Entry point guards"""

    def test_unknown_entity(self):
        with pytest.raises(ValueError):
            validate_entity("projects", [])

    def test_not_a_list(self):
        with pytest.raises(TypeError):
            validate_entity("tasks", {"TaskID": "T1"})

    def test_empty_collection(self):
        assert validate_entity("clients", []) == []
