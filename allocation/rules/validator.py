"""
Rule validation against the current entity collections.

validate_rule checks, in order:
  1. the rule is a mapping with an id
  2. its type is one of the supported rule types
  3. the payload has the right shape for that type (pydantic model)
  4. every referenced task / worker group exists in the context
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Set

from pydantic import BaseModel, ValidationError

from allocation.engine.field_parsers import is_empty, normalize_string
from allocation.rules.models import (
    RULE_MODELS,
    RULE_TYPES,
    BaseRule,
    CoRunRule,
    LoadLimitRule,
    PatternMatchRule,
    PhaseWindowRule,
    PrecedenceOverrideRule,
    SlotRestrictionRule,
    format_validation_errors,
    parse_rule,
)

logger = logging.getLogger(__name__)


class RuleContext:
    """
    Read-only view of the entity collections a rule may reference.

    Anything with get_clients/get_workers/get_tasks works as a context; the
    data store provides the same three methods.
    """

    def __init__(self, clients: Optional[List[Dict[str, Any]]] = None,
                 workers: Optional[List[Dict[str, Any]]] = None,
                 tasks: Optional[List[Dict[str, Any]]] = None):
        self._clients = clients or []
        self._workers = workers or []
        self._tasks = tasks or []

    def get_clients(self) -> List[Dict[str, Any]]:
        return self._clients

    def get_workers(self) -> List[Dict[str, Any]]:
        return self._workers

    def get_tasks(self) -> List[Dict[str, Any]]:
        return self._tasks


def known_task_ids(context) -> Set[str]:
    return {
        normalize_string(t.get("TaskID"))
        for t in context.get_tasks()
        if isinstance(t, dict) and not is_empty(t.get("TaskID"))
    }


def known_worker_groups(context) -> Set[str]:
    return {
        normalize_string(w.get("WorkerGroup"))
        for w in context.get_workers()
        if isinstance(w, dict) and not is_empty(w.get("WorkerGroup"))
    }


def _check_corun(rule: CoRunRule, context) -> List[str]:
    tasks = known_task_ids(context)
    return [f"Task {task_id} does not exist" for task_id in rule.task_ids() if task_id not in tasks]


def _check_slot_restriction(rule: SlotRestrictionRule, context) -> List[str]:
    if rule.targetGroup.strip() not in known_worker_groups(context):
        return [f"Worker group {rule.targetGroup} does not exist"]
    return []


def _check_load_limit(rule: LoadLimitRule, context) -> List[str]:
    if rule.workerGroup.strip() not in known_worker_groups(context):
        return [f"Worker group {rule.workerGroup} does not exist"]
    return []


def _check_phase_window(rule: PhaseWindowRule, context) -> List[str]:
    if rule.task_id() not in known_task_ids(context):
        return [f"Task {rule.task_id()} does not exist"]
    return []


def _no_references(rule: BaseRule, context) -> List[str]:
    return []


# Reference checks per rule variant
REFERENCE_CHECKS: Dict[type, Callable[[Any, Any], List[str]]] = {
    CoRunRule: _check_corun,
    SlotRestrictionRule: _check_slot_restriction,
    LoadLimitRule: _check_load_limit,
    PhaseWindowRule: _check_phase_window,
    PatternMatchRule: _no_references,
    PrecedenceOverrideRule: _no_references,
}

_unhandled = [model.__name__ for model in RULE_MODELS if model not in REFERENCE_CHECKS]
if _unhandled:
    raise RuntimeError(f"Rule variants without reference checks: {_unhandled}")


def find_rule_references(rule: BaseRule, context) -> List[str]:
    """Messages for every entity the rule references that does not exist."""
    return REFERENCE_CHECKS[type(rule)](rule, context)


def check_rule_shape(rule: Any) -> List[str]:
    """Envelope, type and payload problems, without looking at entity data."""
    if isinstance(rule, BaseModel):
        rule = rule.model_dump()
    if not isinstance(rule, dict):
        return ["Rule must be an object"]

    errors = []
    if is_empty(rule.get("id")):
        errors.append("Rule ID is required")
    rule_type = rule.get("type")
    if rule_type not in RULE_TYPES:
        errors.append(f"Invalid rule type: {rule_type}. Supported types: {', '.join(RULE_TYPES)}")
        return errors
    try:
        parse_rule(rule)
    except ValidationError as e:
        errors.extend(format_validation_errors(e))
    return errors


def validate_rule(rule: Any, context) -> Dict[str, Any]:
    """
    Validate a rule against its schema and the entities in context.

    Args:
        rule: raw mapping or parsed rule model
        context: object exposing get_clients(), get_workers(), get_tasks()

    Returns:
        {"valid": bool, "errors": [str]}
    """
    errors = check_rule_shape(rule)
    if not errors:
        parsed = rule if isinstance(rule, BaseRule) else parse_rule(rule)
        errors = find_rule_references(parsed, context)

    if errors:
        logger.debug(f"Rule rejected: {errors}")
    return {"valid": len(errors) == 0, "errors": errors}
