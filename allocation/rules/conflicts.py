"""
Pairwise conflict detection over the active rule set.

Conflicts are advisory: they are reported, never enforced, and never block
a rule from being stored.

  coRun vs phaseWindow on a shared task     → task_phase_conflict
  loadLimit vs loadLimit, same workerGroup,
      different maxSlotsPerPhase            → load_limit_conflict
  slotRestriction vs slotRestriction, same
      targetGroup, different minCommonSlots → slot_restriction_conflict
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ValidationError

from allocation.rules.models import (
    BaseRule,
    CoRunRule,
    LoadLimitRule,
    PhaseWindowRule,
    SlotRestrictionRule,
    parse_rule,
)

logger = logging.getLogger(__name__)


def _corun_vs_phase_window(corun: CoRunRule, window: PhaseWindowRule) -> Optional[Tuple[str, str]]:
    if window.task_id() in corun.task_ids():
        return (
            "task_phase_conflict",
            f"{window.task_id()} is co-run with {', '.join(t for t in corun.task_ids() if t != window.task_id())} "
            f"but restricted to phases {window.allowedPhases}",
        )
    return None


def _load_limits(first: LoadLimitRule, second: LoadLimitRule) -> Optional[Tuple[str, str]]:
    if first.workerGroup.strip() == second.workerGroup.strip() and first.maxSlotsPerPhase != second.maxSlotsPerPhase:
        return (
            "load_limit_conflict",
            f"Worker group {first.workerGroup} has load limits {first.maxSlotsPerPhase} "
            f"and {second.maxSlotsPerPhase}",
        )
    return None


def _slot_restrictions(first: SlotRestrictionRule, second: SlotRestrictionRule) -> Optional[Tuple[str, str]]:
    if first.targetGroup.strip() == second.targetGroup.strip() and first.minCommonSlots != second.minCommonSlots:
        return (
            "slot_restriction_conflict",
            f"Worker group {first.targetGroup} requires {first.minCommonSlots} "
            f"and {second.minCommonSlots} common slots",
        )
    return None


# (first type, second type) → check; pairs are tried in both orders
_PAIR_CHECKS: Dict[Tuple[type, type], Callable[[Any, Any], Optional[Tuple[str, str]]]] = {
    (CoRunRule, PhaseWindowRule): _corun_vs_phase_window,
    (LoadLimitRule, LoadLimitRule): _load_limits,
    (SlotRestrictionRule, SlotRestrictionRule): _slot_restrictions,
}


def _conflict_between(first: BaseRule, second: BaseRule) -> Optional[Dict[str, str]]:
    check = _PAIR_CHECKS.get((type(first), type(second)))
    outcome = check(first, second) if check else None
    if outcome is None:
        check = _PAIR_CHECKS.get((type(second), type(first)))
        outcome = check(second, first) if check else None
    if outcome is None:
        return None
    conflict_type, message = outcome
    return {
        "ruleId": first.id,
        "conflictWith": second.id,
        "type": conflict_type,
        "message": message,
    }


def active_rules(rules: List[Any]) -> List[BaseRule]:
    """Parsed active rules; malformed entries are skipped."""
    parsed = []
    for rule in rules or []:
        if isinstance(rule, BaseRule):
            model = rule
        else:
            if isinstance(rule, BaseModel):
                rule = rule.model_dump()
            if not isinstance(rule, dict):
                continue
            try:
                model = parse_rule(rule)
            except ValidationError:
                logger.debug(f"Skipping malformed rule {rule.get('id')!r} in conflict scan")
                continue
        if model.isActive:
            parsed.append(model)
    return parsed


def detect_rule_conflicts(rules: List[Any]) -> List[Dict[str, str]]:
    """
    Compare every pair of active rules (i < j, input order).

    Returns:
        List of {ruleId, conflictWith, type, message}
    """
    candidates = active_rules(rules)
    conflicts = []
    for i in range(len(candidates)):
        for j in range(i + 1, len(candidates)):
            conflict = _conflict_between(candidates[i], candidates[j])
            if conflict:
                conflicts.append(conflict)
    return conflicts
