"""
Validation orchestrator.

Runs the pipeline in a fixed order and aggregates every finding into one
ValidationResult:

  1. structural   entity validators (clients, workers, tasks)
  2. referential  requested tasks, skill coverage
  3. business     worker overload, phase-slot saturation
  4. operational  max concurrency; rule checks when rules are given

Never raises. A wrong input shape short-circuits with a single
invalid_input_shape finding; any internal fault becomes a single
system_error finding.

Usage:
    from allocation.engine.orchestrator import validate_all

    result = validate_all(clients, workers, tasks, rules)
    if not result.is_valid:
        for finding in result.errors:
            print(finding.message)
"""

import logging
from typing import Any, Dict, List, Optional

from allocation.engine.business_validator import validate_business
from allocation.engine.entity_validators import ENTITIES, validate_entity, well_formed_records
from allocation.engine.findings import (
    Category,
    Finding,
    FindingCode,
    FindingType,
    Severity,
    ValidationResult,
)
from allocation.engine.operational_validator import validate_operational
from allocation.engine.referential_validator import validate_references

logger = logging.getLogger(__name__)


def _shape_problem(clients: Any, workers: Any, tasks: Any, rules: Any) -> Optional[Finding]:
    for name, value in (("clients", clients), ("workers", workers), ("tasks", tasks)):
        if not isinstance(value, (list, tuple)):
            return Finding(
                type=FindingType.TYPE_ERROR,
                code=FindingCode.INVALID_INPUT_SHAPE,
                severity=Severity.ERROR,
                entity=name,
                message=f"{name} must be a list of records, got {type(value).__name__}",
            )
    if rules is not None and not isinstance(rules, (list, tuple)):
        return Finding(
            type=FindingType.TYPE_ERROR,
            code=FindingCode.INVALID_INPUT_SHAPE,
            severity=Severity.ERROR,
            entity="rules",
            message=f"rules must be a list, got {type(rules).__name__}",
        )
    return None


def _system_error(exc: Exception) -> ValidationResult:
    result = ValidationResult()
    result.add(Finding(
        type=FindingType.SYSTEM_ERROR,
        code=FindingCode.SYSTEM_ERROR,
        severity=Severity.ERROR,
        entity="system",
        message="Validation system encountered an error",
        details={"error": f"{type(exc).__name__}: {exc}"},
    ))
    return result


def _run_pipeline(clients: List[Any], workers: List[Any], tasks: List[Any],
                  rules: List[Any]) -> ValidationResult:
    result = ValidationResult()

    structural: List[Finding] = []
    for entity, records in zip(ENTITIES, (clients, workers, tasks)):
        structural.extend(validate_entity(entity, records))
    result.add_stage(Category.STRUCTURAL, structural)

    # Later stages only see mapping records; the rest were reported above
    clients = well_formed_records(clients)
    workers = well_formed_records(workers)
    tasks = well_formed_records(tasks)

    result.add_stage(Category.REFERENTIAL, validate_references(clients, workers, tasks))
    result.add_stage(Category.BUSINESS, validate_business(workers, tasks))
    result.add_stage(Category.OPERATIONAL, validate_operational(clients, workers, tasks, rules))
    return result


def validate_all(clients: List[Any], workers: List[Any], tasks: List[Any],
                 rules: Optional[List[Any]] = None) -> ValidationResult:
    """
    Validate a full snapshot of clients, workers, tasks and rules.

    Inputs are read, never modified. Identical inputs always produce an
    identical result.
    """
    problem = _shape_problem(clients, workers, tasks, rules)
    if problem is not None:
        logger.warning(f"Rejected validation input: {problem.message}")
        result = ValidationResult()
        result.add(problem)
        return result

    try:
        result = _run_pipeline(list(clients), list(workers), list(tasks), list(rules or []))
    except Exception as e:
        logger.exception("Validation pipeline failed")
        return _system_error(e)

    logger.info(
        f"Validation finished: {len(clients)} clients, {len(workers)} workers, "
        f"{len(tasks)} tasks, {len(rules or [])} rules → "
        f"{len(result.errors)} errors, {len(result.warnings)} warnings"
    )
    return result


def validate_entity_records(entity: str, records: List[Any]) -> ValidationResult:
    """Structural checks for a single entity collection."""
    result = ValidationResult()
    if entity not in ENTITIES:
        result.add(Finding(
            type=FindingType.TYPE_ERROR,
            code=FindingCode.INVALID_INPUT_SHAPE,
            severity=Severity.ERROR,
            entity=str(entity),
            message=f"Unknown entity '{entity}'. Expected one of: {', '.join(ENTITIES)}",
        ))
        return result
    if not isinstance(records, (list, tuple)):
        result.add(Finding(
            type=FindingType.TYPE_ERROR,
            code=FindingCode.INVALID_INPUT_SHAPE,
            severity=Severity.ERROR,
            entity=entity,
            message=f"{entity} must be a list of records, got {type(records).__name__}",
        ))
        return result

    try:
        result.add_stage(Category.STRUCTURAL, validate_entity(entity, list(records)))
    except Exception as e:
        logger.exception(f"Validation of {entity} failed")
        return _system_error(e)
    return result


def get_validation_summary(clients: List[Any], workers: List[Any], tasks: List[Any],
                           rules: Optional[List[Any]] = None) -> Dict[str, Any]:
    """Dashboard view: record counts and per-entity error/warning counts."""
    result = validate_all(clients, workers, tasks, rules)
    collections = {"clients": clients, "workers": workers, "tasks": tasks}

    breakdown = {}
    for entity, records in collections.items():
        breakdown[entity] = {
            "records": len(records) if isinstance(records, (list, tuple)) else 0,
            "errors": sum(1 for f in result.errors if f.entity == entity),
            "warnings": sum(1 for f in result.warnings if f.entity == entity),
        }
    breakdown["rules"] = {
        "records": len(rules) if isinstance(rules, (list, tuple)) else 0,
        "errors": sum(1 for f in result.errors if f.entity == "rules"),
        "warnings": sum(1 for f in result.warnings if f.entity == "rules"),
    }

    return {
        "isValid": result.is_valid,
        "totalRecords": sum(b["records"] for e, b in breakdown.items() if e != "rules"),
        "totalErrors": len(result.errors),
        "totalWarnings": len(result.warnings),
        "entityBreakdown": breakdown,
    }
