"""
Validation findings and the aggregated validation result.

Every validator in the pipeline returns a list of Finding values. The
orchestrator collects them per stage into a ValidationResult, which splits
them by severity and builds the summary block.

Finding taxonomy (type / code):
  MissingField       / missing_required_column
  TypeError          / malformed_data, invalid_input_shape, malformed_rule
  RangeError         / out_of_range
  DuplicateID        / duplicate_id
  UnknownReference   / unknown_reference, rule_reference_missing
  SkillGap           / skill_coverage_gap
  WorkerOverload     / worker_overload
  LogicalConflict    / phase_slot_saturation, empty_skill_set,
                       phase_window_mismatch, insufficient_common_slots
  ConcurrencyIssue   / max_concurrency_infeasible
  CircularReference  / circular_corun
  RuleConflict       / rule_conflict
  SystemError        / system_error

Only findings with severity "error" make a result invalid.
"""

import hashlib
import json
from collections import OrderedDict
import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Severity(Enum):
    """Finding severity"""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Category(Enum):
    """Pipeline stage that produced a finding"""
    STRUCTURAL = "structural"
    REFERENTIAL = "referential"
    BUSINESS = "business"
    OPERATIONAL = "operational"


# Stage order used by the orchestrator and the summary breakdown
CATEGORY_ORDER = [
    Category.STRUCTURAL,
    Category.REFERENTIAL,
    Category.BUSINESS,
    Category.OPERATIONAL,
]


class FindingType:
    """Taxonomy classes carried in Finding.type"""
    MISSING_FIELD = "MissingField"
    TYPE_ERROR = "TypeError"
    RANGE_ERROR = "RangeError"
    DUPLICATE_ID = "DuplicateID"
    UNKNOWN_REFERENCE = "UnknownReference"
    SKILL_GAP = "SkillGap"
    WORKER_OVERLOAD = "WorkerOverload"
    LOGICAL_CONFLICT = "LogicalConflict"
    CONCURRENCY_ISSUE = "ConcurrencyIssue"
    CIRCULAR_REFERENCE = "CircularReference"
    RULE_CONFLICT = "RuleConflict"
    SYSTEM_ERROR = "SystemError"


class FindingCode:
    """Machine-readable codes carried in Finding.code"""
    MISSING_REQUIRED_COLUMN = "missing_required_column"
    MALFORMED_DATA = "malformed_data"
    INVALID_INPUT_SHAPE = "invalid_input_shape"
    MALFORMED_RULE = "malformed_rule"
    OUT_OF_RANGE = "out_of_range"
    DUPLICATE_ID = "duplicate_id"
    UNKNOWN_REFERENCE = "unknown_reference"
    RULE_REFERENCE_MISSING = "rule_reference_missing"
    SKILL_COVERAGE_GAP = "skill_coverage_gap"
    WORKER_OVERLOAD = "worker_overload"
    EMPTY_SKILL_SET = "empty_skill_set"
    PHASE_SLOT_SATURATION = "phase_slot_saturation"
    PHASE_WINDOW_MISMATCH = "phase_window_mismatch"
    INSUFFICIENT_COMMON_SLOTS = "insufficient_common_slots"
    MAX_CONCURRENCY_INFEASIBLE = "max_concurrency_infeasible"
    CIRCULAR_CORUN = "circular_corun"
    RULE_CONFLICT = "rule_conflict"
    SYSTEM_ERROR = "system_error"


@dataclass(frozen=True)
class Finding:
    """One validation problem. Produced by a validator, never mutated."""
    type: str
    code: str
    severity: Severity
    entity: str
    message: str
    field: Optional[str] = None
    record_id: Optional[str] = None
    row: Optional[int] = None
    suggested_fix: Optional[str] = None
    affected_records: Optional[Tuple[str, ...]] = None
    details: Optional[Dict[str, Any]] = None
    id: str = dataclasses.field(default="", compare=False)

    def __post_init__(self):
        if self.affected_records is not None and not isinstance(self.affected_records, tuple):
            object.__setattr__(self, "affected_records", tuple(self.affected_records))
        if not self.id:
            object.__setattr__(self, "id", self._derive_id())

    def _derive_id(self) -> str:
        # Content-derived so identical inputs always yield identical ids
        key = json.dumps(
            [self.code, self.entity, self.field, self.record_id, self.row,
             self.message, list(self.affected_records or ())],
            sort_keys=True, default=str,
        )
        digest = hashlib.sha256(key.encode()).hexdigest()[:12]
        return f"{self.code}_{digest}"

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (camelCase keys, unset optional keys omitted)."""
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "code": self.code,
            "severity": self.severity.value,
            "entity": self.entity,
            "field": self.field,
            "message": self.message,
        }
        if self.record_id is not None:
            data["recordId"] = self.record_id
        if self.row is not None:
            data["row"] = self.row
        if self.suggested_fix is not None:
            data["suggestedFix"] = self.suggested_fix
        if self.affected_records is not None:
            data["affectedRecords"] = list(self.affected_records)
        if self.details is not None:
            data["details"] = dict(self.details)
        return data


class ValidationResult:
    """Aggregated result of a validation run"""

    def __init__(self):
        self.errors: List[Finding] = []
        self.warnings: List[Finding] = []
        self.info: List[Finding] = []
        self._stage_counts: "OrderedDict[Category, int]" = OrderedDict(
            (category, 0) for category in CATEGORY_ORDER
        )
        self._stages_run: List[Category] = []
        self._by_type: Dict[str, int] = {}
        self._by_entity: Dict[str, int] = {}

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    @property
    def findings(self) -> List[Finding]:
        return self.errors + self.warnings + self.info

    def add(self, finding: Finding, category: Category = Category.STRUCTURAL):
        if finding.severity is Severity.ERROR:
            self.errors.append(finding)
        elif finding.severity is Severity.WARNING:
            self.warnings.append(finding)
        else:
            self.info.append(finding)
        self._stage_counts[category] += 1
        self._by_type[finding.type] = self._by_type.get(finding.type, 0) + 1
        self._by_entity[finding.entity] = self._by_entity.get(finding.entity, 0) + 1

    def add_stage(self, category: Category, findings: List[Finding]):
        """Record that a stage ran and collect its findings."""
        if category not in self._stages_run:
            self._stages_run.append(category)
        for finding in findings:
            self.add(finding, category)

    def has_code(self, code: str) -> bool:
        return any(f.code == code for f in self.findings)

    def by_code(self, code: str) -> List[Finding]:
        return [f for f in self.findings if f.code == code]

    @property
    def summary(self) -> Dict[str, Any]:
        return {
            "totalFindings": len(self.errors) + len(self.warnings) + len(self.info),
            "totalErrors": len(self.errors),
            "totalWarnings": len(self.warnings),
            "totalInfo": len(self.info),
            "validationTypes": [c.value for c in self._stages_run],
            "breakdown": {c.value: n for c, n in self._stage_counts.items()},
            "byType": dict(sorted(self._by_type.items())),
            "byEntity": dict(sorted(self._by_entity.items())),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "info": [i.to_dict() for i in self.info],
            "summary": self.summary,
        }


# Suggestions shown next to findings in reports, keyed by finding code
_FIX_SUGGESTIONS: Dict[str, List[str]] = {
    FindingCode.MISSING_REQUIRED_COLUMN: [
        "Add the missing column to the source file",
        "Fill in a value for every record",
    ],
    FindingCode.DUPLICATE_ID: [
        "Give each record a unique identifier",
        "Remove the duplicate record if it was imported twice",
    ],
    FindingCode.MALFORMED_DATA: [
        "Check the value has the expected type (number, list or JSON)",
        "Use a comma-separated list or a range such as 1-3 for phase lists",
    ],
    FindingCode.OUT_OF_RANGE: [
        "Adjust the value to fall within the allowed range",
    ],
    FindingCode.UNKNOWN_REFERENCE: [
        "Create the referenced task",
        "Remove the reference from RequestedTaskIDs",
    ],
    FindingCode.SKILL_COVERAGE_GAP: [
        "Add a worker who has the required skill",
        "Remove the skill from the task's RequiredSkills",
    ],
    FindingCode.WORKER_OVERLOAD: [
        "Lower MaxLoadPerPhase",
        "Add more AvailableSlots for the worker",
    ],
    FindingCode.PHASE_SLOT_SATURATION: [
        "Move some tasks to other preferred phases",
        "Add workers available in the saturated phase",
        "Increase MaxLoadPerPhase for available workers",
    ],
    FindingCode.MAX_CONCURRENCY_INFEASIBLE: [
        "Lower MaxConcurrent for the task",
        "Train or add workers with the required skills",
    ],
    FindingCode.CIRCULAR_CORUN: [
        "Merge the co-run rules into a single rule",
        "Remove one of the co-run rules in the cycle",
    ],
    FindingCode.RULE_CONFLICT: [
        "Deactivate or edit one of the conflicting rules",
    ],
}


def generate_fix_suggestions(finding: Finding) -> List[str]:
    """Return human-readable fix suggestions for a finding."""
    suggestions = list(_FIX_SUGGESTIONS.get(finding.code, []))
    if finding.suggested_fix and finding.suggested_fix not in suggestions:
        suggestions.insert(0, finding.suggested_fix)
    return suggestions
