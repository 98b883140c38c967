"""
Tests for cross-entity (referential) and business feasibility checks.

Run with: pytest tests/test_referential_business.py -v
"""

import sys
import pathlib
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent))

from allocation.engine.business_validator import (
    check_phase_saturation,
    check_worker_overload,
    phase_capacity,
    phase_demand,
)
from allocation.engine.findings import FindingCode, FindingType, Severity
from allocation.engine.referential_validator import (
    check_requested_tasks,
    check_skill_coverage,
    skill_universe,
    validate_references,
)


class TestRequestedTasks:
    """Client RequestedTaskIDs must point at existing tasks"""

    def test_known_tasks_pass(self):
        clients = [{"ClientID": "C1", "RequestedTaskIDs": "T1,T2"}]
        tasks = [{"TaskID": "T1"}, {"TaskID": "T2"}]
        assert check_requested_tasks(clients, tasks) == []

    def test_one_finding_per_missing_id(self):
        clients = [{"ClientID": "C1", "RequestedTaskIDs": ["T1", "T9", "T8", "T9"]}]
        tasks = [{"TaskID": "T1"}]
        findings = check_requested_tasks(clients, tasks)
        assert [f.affected_records for f in findings] == [("T9",), ("T8",)]
        assert all(f.type == FindingType.UNKNOWN_REFERENCE for f in findings)
        assert all(f.record_id == "C1" for f in findings)

    def test_trimmed_comparison(self):
        clients = [{"ClientID": "C1", "RequestedTaskIDs": " T1 "}]
        assert check_requested_tasks(clients, [{"TaskID": "T1"}]) == []

    def test_no_requests(self):
        assert check_requested_tasks([{"ClientID": "C1"}], []) == []


class TestSkillCoverage:
    """Every required skill must be held by some worker"""

    def test_gap_reported(self):
        workers = [{"WorkerID": "W1", "Skills": "python"}]
        tasks = [{"TaskID": "T1", "RequiredSkills": "python,Go"}]
        findings = check_skill_coverage(tasks, workers)
        assert len(findings) == 1
        assert findings[0].type == FindingType.SKILL_GAP
        assert findings[0].details == {"skill": "Go"}
        assert "Go" in findings[0].message

    def test_case_sensitive(self):
        workers = [{"WorkerID": "W1", "Skills": ["go"]}]
        tasks = [{"TaskID": "T1", "RequiredSkills": ["Go"]}]
        assert len(check_skill_coverage(tasks, workers)) == 1

    def test_skill_universe(self):
        workers = [{"Skills": " a, b"}, {"Skills": ["b", "c"]}, "junk"]
        assert skill_universe(workers) == {"a", "b", "c"}

    def test_validate_references_combines(self):
        clients = [{"ClientID": "C1", "RequestedTaskIDs": "T5"}]
        workers = [{"WorkerID": "W1", "Skills": "x"}]
        tasks = [{"TaskID": "T1", "RequiredSkills": "y"}]
        codes = [f.code for f in validate_references(clients, workers, tasks)]
        assert codes == [FindingCode.UNKNOWN_REFERENCE, FindingCode.SKILL_COVERAGE_GAP]


class TestWorkerOverload:
    """Fewer available slots than MaxLoadPerPhase"""

    def test_overload_warning(self):
        workers = [{"WorkerID": "W1", "AvailableSlots": [1], "MaxLoadPerPhase": 3}]
        findings = check_worker_overload(workers)
        assert len(findings) == 1
        assert findings[0].severity is Severity.WARNING
        assert findings[0].details == {"availableSlots": 1, "maxLoadPerPhase": 3}

    def test_equal_is_fine(self):
        workers = [{"WorkerID": "W1", "AvailableSlots": "1-3", "MaxLoadPerPhase": 3}]
        assert check_worker_overload(workers) == []

    def test_unparseable_values_skipped(self):
        workers = [
            {"WorkerID": "W1", "AvailableSlots": "x", "MaxLoadPerPhase": 3},
            {"WorkerID": "W2", "AvailableSlots": [1], "MaxLoadPerPhase": "lots"},
            {"WorkerID": "W3", "AvailableSlots": "", "MaxLoadPerPhase": 3},
        ]
        assert check_worker_overload(workers) == []


class TestPhaseSaturation:
    """Task demand per phase versus worker capacity"""

    def test_capacity_and_demand(self):
        workers = [
            {"AvailableSlots": [1, 2], "MaxLoadPerPhase": 1},
            {"AvailableSlots": [2], "MaxLoadPerPhase": 2},
        ]
        tasks = [
            {"TaskID": "T1", "PreferredPhases": [2], "Duration": 2},
            {"TaskID": "T2", "PreferredPhases": "1-2", "Duration": 1},
        ]
        assert phase_capacity(workers) == {1: 1, 2: 3}
        demand, contributors = phase_demand(tasks)
        assert demand == {1: 1, 2: 3}
        assert contributors[2] == ["T1", "T2"]
        assert check_phase_saturation(workers, tasks) == []

    def test_saturated_phase(self):
        workers = [{"AvailableSlots": [1], "MaxLoadPerPhase": 1}]
        tasks = [
            {"TaskID": "T1", "PreferredPhases": [1], "Duration": 1},
            {"TaskID": "T2", "PreferredPhases": [1, 4], "Duration": 2},
        ]
        findings = check_phase_saturation(workers, tasks)
        assert [f.details for f in findings] == [
            {"phase": 1, "demand": 3, "capacity": 1, "utilisation": 300.0},
            {"phase": 4, "demand": 2, "capacity": 0, "utilisation": None},
        ]
        assert findings[0].code == FindingCode.PHASE_SLOT_SATURATION
        assert findings[0].affected_records == ("T1", "T2")
        assert findings[0].is_error
