"""
Structural validation for client, worker and task records.

Each validator takes the full record list for one entity and returns a list
of findings. Malformed values never raise; they become findings and the
remaining records are still checked.

Checks (in order, per entity):
  1. Required fields present (missing key, None or blank string)
  2. Identifier uniqueness (second and later occurrences are flagged)
  3. Per-field type / range conformance
"""

import logging
from typing import Any, Dict, List, Optional

from allocation.engine.field_parsers import (
    MAX_PHASE_NUMBER,
    find_duplicates,
    is_empty,
    is_valid_integer,
    is_valid_json,
    is_valid_number,
    normalize_string,
    parse_int_sequence,
    parse_integer,
    parse_number,
    parse_string_list,
)
from allocation.engine.findings import Finding, FindingCode, FindingType, Severity

logger = logging.getLogger(__name__)


ENTITIES = ("clients", "workers", "tasks")

ID_FIELDS = {
    "clients": "ClientID",
    "workers": "WorkerID",
    "tasks": "TaskID",
}

REQUIRED_FIELDS = {
    "clients": ["ClientID", "ClientName", "PriorityLevel"],
    "workers": ["WorkerID", "WorkerName", "Skills", "AvailableSlots", "MaxLoadPerPhase"],
    "tasks": ["TaskID", "TaskName", "Duration", "RequiredSkills"],
}

# (field, minimum, maximum) for integer-valued fields; None means unbounded
INTEGER_FIELDS = {
    "clients": [("PriorityLevel", 1, 5)],
    "workers": [("MaxLoadPerPhase", 0, None)],
    "tasks": [("Duration", 1, None), ("MaxConcurrent", 1, None)],
}

PHASE_LIST_FIELDS = {
    "clients": [],
    "workers": ["AvailableSlots"],
    "tasks": ["PreferredPhases"],
}

SKILL_FIELDS = {
    "clients": [],
    "workers": ["Skills"],
    "tasks": ["RequiredSkills"],
}


def get_record_id(record: Any, entity: str) -> Optional[str]:
    """Normalised identifier of a record, or None when absent."""
    if not isinstance(record, dict):
        return None
    value = record.get(ID_FIELDS[entity])
    if is_empty(value):
        return None
    return normalize_string(value)


def well_formed_records(records: List[Any]) -> List[Dict[str, Any]]:
    """Only mapping records; the rest are reported by check_record_shapes."""
    return [r for r in records if isinstance(r, dict)]


def _describe_range(minimum: Optional[int], maximum: Optional[int]) -> str:
    if minimum is not None and maximum is not None:
        return f"between {minimum} and {maximum}"
    if minimum is not None:
        return f"at least {minimum}"
    return f"at most {maximum}"


def check_record_shapes(records: List[Any], entity: str) -> List[Finding]:
    findings = []
    for index, record in enumerate(records):
        if isinstance(record, dict):
            continue
        findings.append(Finding(
            type=FindingType.TYPE_ERROR,
            code=FindingCode.MALFORMED_DATA,
            severity=Severity.ERROR,
            entity=entity,
            field=None,
            row=index + 1,
            message=f"Row {index + 1} in {entity} is not a record (got {type(record).__name__})",
            suggested_fix="Each row must be an object of column name to value",
        ))
    return findings


def check_required_fields(records: List[Any], entity: str) -> List[Finding]:
    """One missing_required_column finding per absent required field per record."""
    findings = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            continue
        record_id = get_record_id(record, entity)
        for field in REQUIRED_FIELDS[entity]:
            if not is_empty(record.get(field)):
                continue
            label = f"{entity} record {record_id}" if record_id else f"{entity} row {index + 1}"
            findings.append(Finding(
                type=FindingType.MISSING_FIELD,
                code=FindingCode.MISSING_REQUIRED_COLUMN,
                severity=Severity.ERROR,
                entity=entity,
                field=field,
                record_id=record_id,
                row=index + 1,
                message=f"Required field '{field}' is missing in {label}",
                suggested_fix=f"Add a value for '{field}'",
            ))
    return findings


def check_duplicate_ids(records: List[Any], entity: str) -> List[Finding]:
    """
    Flag every repeat of an identifier after its first occurrence.

    An identifier seen k times yields k-1 findings, each pointing at the row
    of the repeated record.
    """
    id_field = ID_FIELDS[entity]
    record_ids = [get_record_id(record, entity) for record in records]
    repeated = set(find_duplicates(r for r in record_ids if r is not None))
    if not repeated:
        return []

    first_rows: Dict[str, int] = {}
    findings = []
    for index, record_id in enumerate(record_ids):
        if record_id not in repeated:
            continue
        if record_id not in first_rows:
            first_rows[record_id] = index + 1
            continue
        findings.append(Finding(
            type=FindingType.DUPLICATE_ID,
            code=FindingCode.DUPLICATE_ID,
            severity=Severity.ERROR,
            entity=entity,
            field=id_field,
            record_id=record_id,
            row=index + 1,
            message=(
                f"Duplicate {id_field} '{record_id}' at row {index + 1} "
                f"(first seen at row {first_rows[record_id]})"
            ),
            suggested_fix=f"Give each {entity[:-1]} a unique {id_field}",
        ))
    return findings


def _check_integer_field(record: Dict[str, Any], entity: str, row: int, field: str,
                         minimum: Optional[int], maximum: Optional[int]) -> List[Finding]:
    value = record.get(field)
    if is_empty(value) or is_valid_integer(value, minimum, maximum):
        return []

    record_id = get_record_id(record, entity)
    findings = []
    if parse_integer(value) is None:
        findings.append(Finding(
            type=FindingType.TYPE_ERROR,
            code=FindingCode.MALFORMED_DATA,
            severity=Severity.ERROR,
            entity=entity,
            field=field,
            record_id=record_id,
            row=row,
            message=f"{field} must be an integer, got {value!r}",
            suggested_fix=f"Enter a whole number for {field}",
        ))
    if parse_number(value) is not None and not is_valid_number(value, minimum, maximum):
        findings.append(Finding(
            type=FindingType.RANGE_ERROR,
            code=FindingCode.OUT_OF_RANGE,
            severity=Severity.ERROR,
            entity=entity,
            field=field,
            record_id=record_id,
            row=row,
            message=f"{field} must be {_describe_range(minimum, maximum)}, got {value!r}",
            suggested_fix=f"Set {field} {_describe_range(minimum, maximum)}",
        ))
    return findings


def _check_phase_list(record: Dict[str, Any], entity: str, row: int, field: str) -> List[Finding]:
    value = record.get(field)
    if is_empty(value):
        return []

    record_id = get_record_id(record, entity)
    phases = parse_int_sequence(value)
    if phases is None:
        return [Finding(
            type=FindingType.TYPE_ERROR,
            code=FindingCode.MALFORMED_DATA,
            severity=Severity.ERROR,
            entity=entity,
            field=field,
            record_id=record_id,
            row=row,
            message=f"{field} must be a list of phase numbers, got {value!r}",
            suggested_fix=(
                "Use a list such as [1,2,3], a comma list '1,2,3' or a range '1-3' "
                f"with phases up to {MAX_PHASE_NUMBER}"
            ),
        )]

    invalid = [p for p in phases if p < 1]
    if invalid:
        return [Finding(
            type=FindingType.RANGE_ERROR,
            code=FindingCode.OUT_OF_RANGE,
            severity=Severity.ERROR,
            entity=entity,
            field=field,
            record_id=record_id,
            row=row,
            message=f"{field} contains phase numbers below 1: {invalid}",
            suggested_fix="Phase numbers start at 1",
            details={"invalidValues": invalid},
        )]
    return []


def _check_skill_field(record: Dict[str, Any], entity: str, row: int, field: str) -> List[Finding]:
    value = record.get(field)
    if is_empty(value):
        return []

    record_id = get_record_id(record, entity)
    if not isinstance(value, (str, list, tuple, set, frozenset)):
        return [Finding(
            type=FindingType.TYPE_ERROR,
            code=FindingCode.MALFORMED_DATA,
            severity=Severity.ERROR,
            entity=entity,
            field=field,
            record_id=record_id,
            row=row,
            message=f"{field} must be a list or comma-separated string, got {type(value).__name__}",
        )]
    if not parse_string_list(value):
        return [Finding(
            type=FindingType.LOGICAL_CONFLICT,
            code=FindingCode.EMPTY_SKILL_SET,
            severity=Severity.WARNING,
            entity=entity,
            field=field,
            record_id=record_id,
            row=row,
            message=f"{field} is empty for {entity[:-1]} {record_id or f'at row {row}'}",
            suggested_fix=f"List at least one skill in {field}",
        )]
    return []


def _check_client_extras(record: Dict[str, Any], row: int) -> List[Finding]:
    findings = []
    record_id = get_record_id(record, "clients")

    requested = record.get("RequestedTaskIDs")
    if not is_empty(requested) and not isinstance(requested, (str, list, tuple, int)):
        findings.append(Finding(
            type=FindingType.TYPE_ERROR,
            code=FindingCode.MALFORMED_DATA,
            severity=Severity.ERROR,
            entity="clients",
            field="RequestedTaskIDs",
            record_id=record_id,
            row=row,
            message=f"RequestedTaskIDs must be a list of task IDs, got {type(requested).__name__}",
        ))

    attributes = record.get("AttributesJSON")
    if not is_empty(attributes) and not is_valid_json(attributes):
        findings.append(Finding(
            type=FindingType.TYPE_ERROR,
            code=FindingCode.MALFORMED_DATA,
            severity=Severity.ERROR,
            entity="clients",
            field="AttributesJSON",
            record_id=record_id,
            row=row,
            message="AttributesJSON is not valid JSON",
            suggested_fix='Use well-formed JSON, e.g. {"location": "north"}',
        ))
    return findings


def check_field_values(records: List[Any], entity: str) -> List[Finding]:
    """Type and range conformance for every known field of every record."""
    findings = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            continue
        row = index + 1
        for field, minimum, maximum in INTEGER_FIELDS[entity]:
            findings.extend(_check_integer_field(record, entity, row, field, minimum, maximum))
        for field in PHASE_LIST_FIELDS[entity]:
            findings.extend(_check_phase_list(record, entity, row, field))
        for field in SKILL_FIELDS[entity]:
            findings.extend(_check_skill_field(record, entity, row, field))
        if entity == "clients":
            findings.extend(_check_client_extras(record, row))
    return findings


def validate_entity(entity: str, records: List[Any]) -> List[Finding]:
    """
    Run all structural checks for one entity collection.

    Raises:
        ValueError: unknown entity name
        TypeError: records is not a list
    """
    if entity not in ENTITIES:
        raise ValueError(f"Unknown entity '{entity}'")
    if not isinstance(records, (list, tuple)):
        raise TypeError(f"{entity} must be a list of records, got {type(records).__name__}")

    findings = []
    findings.extend(check_record_shapes(records, entity))
    findings.extend(check_required_fields(records, entity))
    findings.extend(check_duplicate_ids(records, entity))
    findings.extend(check_field_values(records, entity))
    logger.debug(f"{entity}: {len(records)} records, {len(findings)} structural findings")
    return findings


def validate_clients(clients: List[Any]) -> List[Finding]:
    return validate_entity("clients", clients)


def validate_workers(workers: List[Any]) -> List[Finding]:
    return validate_entity("workers", workers)


def validate_tasks(tasks: List[Any]) -> List[Finding]:
    return validate_entity("tasks", tasks)
