"""
Cross-entity checks: client task requests and task skill coverage.
"""

import logging
from typing import Any, Dict, List, Set

from allocation.engine.entity_validators import get_record_id, well_formed_records
from allocation.engine.field_parsers import parse_string_list
from allocation.engine.findings import Finding, FindingCode, FindingType, Severity

logger = logging.getLogger(__name__)


def task_id_set(tasks: List[Dict[str, Any]]) -> Set[str]:
    ids = set()
    for task in well_formed_records(tasks):
        task_id = get_record_id(task, "tasks")
        if task_id is not None:
            ids.add(task_id)
    return ids


def skill_universe(workers: List[Dict[str, Any]]) -> Set[str]:
    """Every skill any worker holds, trimmed, case preserved."""
    skills: Set[str] = set()
    for worker in well_formed_records(workers):
        skills.update(parse_string_list(worker.get("Skills")))
    return skills


def check_requested_tasks(clients: List[Dict[str, Any]], tasks: List[Dict[str, Any]]) -> List[Finding]:
    """One unknown_reference finding per requested task ID that has no task record."""
    known_tasks = task_id_set(tasks)
    findings = []
    for index, client in enumerate(clients):
        if not isinstance(client, dict):
            continue
        requested = client.get("RequestedTaskIDs")
        if isinstance(requested, int) and not isinstance(requested, bool):
            requested = [requested]
        if not isinstance(requested, (str, list, tuple)):
            continue
        client_id = get_record_id(client, "clients")
        seen = set()
        for task_id in parse_string_list(requested):
            if task_id in known_tasks or task_id in seen:
                continue
            seen.add(task_id)
            findings.append(Finding(
                type=FindingType.UNKNOWN_REFERENCE,
                code=FindingCode.UNKNOWN_REFERENCE,
                severity=Severity.ERROR,
                entity="clients",
                field="RequestedTaskIDs",
                record_id=client_id,
                row=index + 1,
                message=f"Client {client_id or f'at row {index + 1}'} requests unknown task '{task_id}'",
                suggested_fix=f"Create task '{task_id}' or remove it from RequestedTaskIDs",
                affected_records=[task_id],
            ))
    return findings


def check_skill_coverage(tasks: List[Dict[str, Any]], workers: List[Dict[str, Any]]) -> List[Finding]:
    """
    One skill_coverage_gap finding per required skill that no worker holds.

    Membership is case-sensitive after trimming.
    """
    available = skill_universe(workers)
    findings = []
    for index, task in enumerate(tasks):
        if not isinstance(task, dict):
            continue
        required = task.get("RequiredSkills")
        if not isinstance(required, (str, list, tuple, set, frozenset)):
            continue
        task_id = get_record_id(task, "tasks")
        reported = set()
        for skill in parse_string_list(required):
            if skill in available or skill in reported:
                continue
            reported.add(skill)
            findings.append(Finding(
                type=FindingType.SKILL_GAP,
                code=FindingCode.SKILL_COVERAGE_GAP,
                severity=Severity.ERROR,
                entity="tasks",
                field="RequiredSkills",
                record_id=task_id,
                row=index + 1,
                message=f"No worker has skill '{skill}' required by task {task_id or f'at row {index + 1}'}",
                suggested_fix=f"Add a worker with '{skill}' or drop it from RequiredSkills",
                details={"skill": skill},
            ))
    return findings


def validate_references(clients: List[Dict[str, Any]], workers: List[Dict[str, Any]],
                        tasks: List[Dict[str, Any]]) -> List[Finding]:
    findings = check_requested_tasks(clients, tasks)
    findings.extend(check_skill_coverage(tasks, workers))
    logger.debug(f"referential: {len(findings)} findings")
    return findings
