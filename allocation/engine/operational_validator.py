"""
Operational feasibility: concurrency and rule-driven checks.

Always run:
  - max-concurrency feasibility (MaxConcurrent vs. qualified workers)

Run only when the rule set is non-empty:
  - rule shape (malformed rules are reported and skipped)
  - rule references and rule/data feasibility
  - circular co-run detection
  - advisory rule conflicts
"""

import logging
from typing import Any, Dict, List, Set, Tuple

from pydantic import BaseModel, ValidationError

from allocation.engine.circular_dependency import detect_circular_coruns
from allocation.engine.entity_validators import get_record_id, well_formed_records
from allocation.engine.field_parsers import (
    has_common_elements,
    is_empty,
    normalize_string,
    parse_int_sequence,
    parse_integer,
    parse_string_list,
)
from allocation.engine.findings import Finding, FindingCode, FindingType, Severity
from allocation.rules.conflicts import detect_rule_conflicts
from allocation.rules.models import (
    BaseRule,
    CoRunRule,
    PhaseWindowRule,
    SlotRestrictionRule,
    format_validation_errors,
    parse_rule,
)
from allocation.rules.validator import RuleContext, check_rule_shape, find_rule_references

logger = logging.getLogger(__name__)


def _skill_set(value: Any) -> Set[str]:
    return {skill.lower() for skill in parse_string_list(value)}


def check_max_concurrency(workers: List[Dict[str, Any]], tasks: List[Dict[str, Any]]) -> List[Finding]:
    """Warn when MaxConcurrent exceeds the workers holding every required skill."""
    worker_skills = [
        _skill_set(w.get("Skills"))
        for w in well_formed_records(workers)
        if isinstance(w.get("Skills"), (str, list, tuple, set, frozenset))
    ]

    findings = []
    for index, task in enumerate(tasks):
        if not isinstance(task, dict):
            continue
        max_concurrent = parse_integer(task.get("MaxConcurrent"))
        required = task.get("RequiredSkills")
        if max_concurrent is None or max_concurrent < 1:
            continue
        if not isinstance(required, (str, list, tuple, set, frozenset)):
            continue
        required_skills = _skill_set(required)
        if not required_skills:
            continue

        qualified = sum(1 for skills in worker_skills if required_skills <= skills)
        if max_concurrent <= qualified:
            continue
        deficit = max_concurrent - qualified
        task_id = get_record_id(task, "tasks")
        findings.append(Finding(
            type=FindingType.CONCURRENCY_ISSUE,
            code=FindingCode.MAX_CONCURRENCY_INFEASIBLE,
            severity=Severity.WARNING,
            entity="tasks",
            field="MaxConcurrent",
            record_id=task_id,
            row=index + 1,
            message=(
                f"Task {task_id or f'at row {index + 1}'} allows {max_concurrent} concurrent workers "
                f"but only {qualified} qualified workers exist (deficit of {deficit})"
            ),
            suggested_fix=f"Reduce MaxConcurrent to {qualified} or add workers with the required skills",
            details={"maxConcurrent": max_concurrent, "qualifiedWorkers": qualified, "deficit": deficit},
        ))
    return findings


def _rule_payload(rule: Any, index: int) -> Any:
    if isinstance(rule, BaseModel):
        rule = rule.model_dump()
    if isinstance(rule, dict) and is_empty(rule.get("id")):
        # Stable fallback id so repeated runs report identical findings
        rule = dict(rule, id=f"rule-{index + 1}")
    return rule


def prepare_rules(rules: List[Any]) -> Tuple[List[BaseRule], List[Finding]]:
    """
    Parse raw rules into typed models.

    Returns:
        (active well-formed rules, malformed_rule findings)
    """
    parsed: List[BaseRule] = []
    findings = []
    for index, raw in enumerate(rules):
        payload = _rule_payload(raw, index)
        errors = check_rule_shape(payload)
        if not errors:
            try:
                model = parse_rule(payload)
            except ValidationError as e:
                errors = format_validation_errors(e)
        if errors:
            rule_id = payload.get("id") if isinstance(payload, dict) else None
            findings.append(Finding(
                type=FindingType.TYPE_ERROR,
                code=FindingCode.MALFORMED_RULE,
                severity=Severity.ERROR,
                entity="rules",
                field=None,
                record_id=normalize_string(rule_id) or None,
                row=index + 1,
                message=f"Rule {rule_id or f'at position {index + 1}'} is malformed: {'; '.join(errors)}",
                suggested_fix="Fix the rule definition or delete it",
            ))
            continue
        if model.isActive:
            parsed.append(model)
    return parsed, findings


def check_rule_references(rules: List[BaseRule], context: RuleContext) -> List[Finding]:
    findings = []
    for rule in rules:
        for message in find_rule_references(rule, context):
            findings.append(Finding(
                type=FindingType.UNKNOWN_REFERENCE,
                code=FindingCode.RULE_REFERENCE_MISSING,
                severity=Severity.ERROR,
                entity="rules",
                field=None,
                record_id=rule.id,
                message=f"Rule {rule.id} ({rule.type}): {message}",
                suggested_fix="Update the rule to reference existing records",
            ))
    return findings


def check_phase_windows(rules: List[BaseRule], tasks: List[Dict[str, Any]]) -> List[Finding]:
    """Warn when a phase window shares no phase with the task's preferred phases."""
    preferred: Dict[str, List[int]] = {}
    for task in well_formed_records(tasks):
        task_id = get_record_id(task, "tasks")
        phases = parse_int_sequence(task.get("PreferredPhases"))
        if task_id is not None and phases:
            preferred.setdefault(task_id, phases)

    findings = []
    for rule in rules:
        if not isinstance(rule, PhaseWindowRule):
            continue
        phases = preferred.get(rule.task_id())
        if not phases or has_common_elements(phases, rule.allowedPhases):
            continue
        findings.append(Finding(
            type=FindingType.LOGICAL_CONFLICT,
            code=FindingCode.PHASE_WINDOW_MISMATCH,
            severity=Severity.WARNING,
            entity="rules",
            field="allowedPhases",
            record_id=rule.id,
            message=(
                f"Rule {rule.id} allows task {rule.task_id()} only in phases {rule.allowedPhases}, "
                f"none of which are in its PreferredPhases {phases}"
            ),
            affected_records=[rule.task_id()],
        ))
    return findings


def check_common_slots(rules: List[BaseRule], workers: List[Dict[str, Any]]) -> List[Finding]:
    """Warn when a group's workers share fewer phases than a slotRestriction demands."""
    group_slots: Dict[str, List[Set[int]]] = {}
    for worker in well_formed_records(workers):
        group = normalize_string(worker.get("WorkerGroup"))
        slots = parse_int_sequence(worker.get("AvailableSlots"))
        if group and slots is not None:
            group_slots.setdefault(group, []).append(set(slots))

    findings = []
    for rule in rules:
        if not isinstance(rule, SlotRestrictionRule):
            continue
        members = group_slots.get(rule.targetGroup.strip())
        if not members:
            continue
        common = set.intersection(*members)
        if len(common) >= rule.minCommonSlots:
            continue
        findings.append(Finding(
            type=FindingType.LOGICAL_CONFLICT,
            code=FindingCode.INSUFFICIENT_COMMON_SLOTS,
            severity=Severity.WARNING,
            entity="rules",
            field="minCommonSlots",
            record_id=rule.id,
            message=(
                f"Rule {rule.id} needs {rule.minCommonSlots} common slots in group "
                f"{rule.targetGroup} but its workers share {len(common)}"
            ),
            details={"commonSlots": sorted(common), "required": rule.minCommonSlots},
        ))
    return findings


def check_rule_conflicts(rules: List[BaseRule]) -> List[Finding]:
    findings = []
    for conflict in detect_rule_conflicts(rules):
        findings.append(Finding(
            type=FindingType.RULE_CONFLICT,
            code=FindingCode.RULE_CONFLICT,
            severity=Severity.WARNING,
            entity="rules",
            field=None,
            record_id=conflict["ruleId"],
            message=f"Rule {conflict['ruleId']} conflicts with {conflict['conflictWith']}: {conflict['message']}",
            affected_records=[conflict["ruleId"], conflict["conflictWith"]],
            details={"conflictType": conflict["type"]},
        ))
    return findings


def validate_operational(clients: List[Dict[str, Any]], workers: List[Dict[str, Any]],
                         tasks: List[Dict[str, Any]], rules: List[Any]) -> List[Finding]:
    findings = check_max_concurrency(workers, tasks)
    if not rules:
        return findings

    parsed, malformed = prepare_rules(rules)
    findings.extend(malformed)
    context = RuleContext(clients, workers, tasks)
    findings.extend(check_rule_references(parsed, context))
    findings.extend(check_phase_windows(parsed, tasks))
    findings.extend(check_common_slots(parsed, workers))
    findings.extend(detect_circular_coruns(tasks, [r for r in parsed if isinstance(r, CoRunRule)]))
    findings.extend(check_rule_conflicts(parsed))
    logger.debug(f"operational: {len(rules)} rules, {len(findings)} findings")
    return findings
