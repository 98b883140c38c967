"""
Circular co-run detection.

Nodes are task IDs (in task-record order). Every active coRun rule adds a
bidirectional edge between each unordered pair of its tasks, as long as both
tasks exist. A cycle that stays inside a single rule's task set is just that
rule's own clique and is not reported; the first cycle that chains tasks
across rules is reported as one circular_corun error.

Only one back edge per edge is offered as a candidate, so two rules sharing
two tasks ([A,B,C] and [A,B,D]) do not surface the cycle A-C-B-D-A: both
candidates fall inside a single rule and are filtered out.
"""

import logging
from typing import Any, Dict, Hashable, List, Optional, Set

from allocation.engine import graph_utils
from allocation.engine.entity_validators import get_record_id
from allocation.engine.findings import Finding, FindingCode, FindingType, Severity
from allocation.rules.models import CoRunRule

logger = logging.getLogger(__name__)


def build_corun_graph(tasks: List[Dict[str, Any]], corun_rules: List[CoRunRule]) -> graph_utils.Graph:
    graph = graph_utils.create_graph(
        task_id for task_id in (get_record_id(t, "tasks") for t in tasks) if task_id is not None
    )
    for rule in corun_rules:
        members = rule.task_ids()
        for i in range(len(members)):
            for j in range(i + 1, len(members)):
                if members[i] in graph and members[j] in graph:
                    graph_utils.add_bidirectional_edge(graph, members[i], members[j])
    return graph


def _spans_several_rules(corun_rules: List[CoRunRule]):
    rule_sets: List[Set[str]] = [set(rule.task_ids()) for rule in corun_rules]

    def accept(cycle: List[Hashable]) -> bool:
        nodes = set(cycle)
        return not any(nodes <= members for members in rule_sets)

    return accept


def find_corun_cycle(tasks: List[Dict[str, Any]], corun_rules: List[CoRunRule]) -> Optional[List[str]]:
    """First cross-rule co-run cycle as [t1, ..., tn, t1], or None."""
    active = [rule for rule in corun_rules if rule.isActive]
    if not active:
        return None
    graph = build_corun_graph(tasks, active)
    cycles = graph_utils.find_undirected_cycles(graph, cycle_filter=_spans_several_rules(active), limit=1)
    return cycles[0] if cycles else None


def detect_circular_coruns(tasks: List[Dict[str, Any]], corun_rules: List[CoRunRule]) -> List[Finding]:
    """Zero or one circular_corun finding."""
    cycle = find_corun_cycle(tasks, corun_rules)
    if cycle is None:
        return []

    members = list(dict.fromkeys(cycle))
    involved = [
        rule.id for rule in corun_rules
        if rule.isActive and len(set(rule.task_ids()) & set(members)) >= 2
    ]
    logger.info(f"Circular co-run dependency: {' -> '.join(cycle)}")
    return [Finding(
        type=FindingType.CIRCULAR_REFERENCE,
        code=FindingCode.CIRCULAR_CORUN,
        severity=Severity.ERROR,
        entity="rules",
        field="tasks",
        message=f"Circular co-run dependency detected: {' -> '.join(cycle)}",
        suggested_fix="Merge the co-run rules into one rule or remove one link of the cycle",
        affected_records=members,
        details={"cycle": cycle, "rules": involved},
    )]
