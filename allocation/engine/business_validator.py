"""
Resource-feasibility arithmetic over workers and tasks.

Worker overload:
    count(AvailableSlots) < MaxLoadPerPhase  →  warning

Phase-slot saturation, per phase p:
    capacity[p] = Σ MaxLoadPerPhase  over workers with p in AvailableSlots
    demand[p]   = Σ Duration         over tasks with p in PreferredPhases
    demand[p] > capacity[p]  →  error

Values that do not parse are skipped here; the structural stage reports them.
"""

import logging
from typing import Any, Dict, List, Tuple

from allocation.engine.entity_validators import get_record_id, well_formed_records
from allocation.engine.field_parsers import (
    calculate_percentage,
    is_empty,
    parse_int_sequence,
    parse_integer,
)
from allocation.engine.findings import Finding, FindingCode, FindingType, Severity

logger = logging.getLogger(__name__)


def check_worker_overload(workers: List[Dict[str, Any]]) -> List[Finding]:
    findings = []
    for index, worker in enumerate(workers):
        if not isinstance(worker, dict):
            continue
        if is_empty(worker.get("AvailableSlots")):
            continue
        slots = parse_int_sequence(worker.get("AvailableSlots"))
        max_load = parse_integer(worker.get("MaxLoadPerPhase"))
        if slots is None or max_load is None:
            continue
        if len(slots) >= max_load:
            continue
        worker_id = get_record_id(worker, "workers")
        findings.append(Finding(
            type=FindingType.WORKER_OVERLOAD,
            code=FindingCode.WORKER_OVERLOAD,
            severity=Severity.WARNING,
            entity="workers",
            field="MaxLoadPerPhase",
            record_id=worker_id,
            row=index + 1,
            message=(
                f"Worker {worker_id or f'at row {index + 1}'} has {len(slots)} available slots "
                f"but MaxLoadPerPhase is {max_load}"
            ),
            suggested_fix="Lower MaxLoadPerPhase or add available slots",
            details={"availableSlots": len(slots), "maxLoadPerPhase": max_load},
        ))
    return findings


def phase_capacity(workers: List[Dict[str, Any]]) -> Dict[int, int]:
    capacity: Dict[int, int] = {}
    for worker in well_formed_records(workers):
        slots = parse_int_sequence(worker.get("AvailableSlots"))
        max_load = parse_integer(worker.get("MaxLoadPerPhase"))
        if not slots or max_load is None:
            continue
        for phase in slots:
            capacity[phase] = capacity.get(phase, 0) + max_load
    return capacity


def phase_demand(tasks: List[Dict[str, Any]]) -> Tuple[Dict[int, int], Dict[int, List[str]]]:
    """Demand per phase plus the task IDs contributing to it."""
    demand: Dict[int, int] = {}
    contributors: Dict[int, List[str]] = {}
    for index, task in enumerate(tasks):
        if not isinstance(task, dict):
            continue
        phases = parse_int_sequence(task.get("PreferredPhases"))
        duration = parse_integer(task.get("Duration"))
        if not phases or duration is None:
            continue
        task_id = get_record_id(task, "tasks") or f"row-{index + 1}"
        for phase in phases:
            demand[phase] = demand.get(phase, 0) + duration
            contributors.setdefault(phase, []).append(task_id)
    return demand, contributors


def check_phase_saturation(workers: List[Dict[str, Any]], tasks: List[Dict[str, Any]]) -> List[Finding]:
    capacity = phase_capacity(workers)
    demand, contributors = phase_demand(tasks)

    findings = []
    for phase in sorted(demand):
        available = capacity.get(phase, 0)
        if demand[phase] <= available:
            continue
        findings.append(Finding(
            type=FindingType.LOGICAL_CONFLICT,
            code=FindingCode.PHASE_SLOT_SATURATION,
            severity=Severity.ERROR,
            entity="tasks",
            field="PreferredPhases",
            message=(
                f"Phase {phase} is oversubscribed: task demand {demand[phase]} "
                f"exceeds worker capacity {available}"
            ),
            suggested_fix="Spread tasks over other phases or add worker capacity in this phase",
            affected_records=contributors[phase],
            details={
                "phase": phase,
                "demand": demand[phase],
                "capacity": available,
                "utilisation": calculate_percentage(demand[phase], available) if available else None,
            },
        ))
    return findings


def validate_business(workers: List[Dict[str, Any]], tasks: List[Dict[str, Any]]) -> List[Finding]:
    findings = check_worker_overload(workers)
    findings.extend(check_phase_saturation(workers, tasks))
    logger.debug(f"business: {len(findings)} findings")
    return findings
