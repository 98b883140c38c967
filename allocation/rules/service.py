"""
Rule lifecycle: add, update, delete, export.

A rule is normalised (id, name, defaults, metadata) and validated against
the store's current entities before it is stored. Any validation error
rejects the whole operation and leaves the store unchanged.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import BaseModel

from allocation.engine.errors import DuplicateRuleError, RuleValidationError
from allocation.rules.models import RULE_TYPES, new_rule_id, parse_rule, rule_to_dict
from allocation.rules.validator import validate_rule

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_rule(rule: Dict[str, Any]) -> Dict[str, Any]:
    """Fill envelope defaults and audit metadata; payload keys are kept as given."""
    if isinstance(rule, BaseModel):
        rule = rule.model_dump()
    if not isinstance(rule, dict):
        raise RuleValidationError(["Rule object is required"])
    if rule.get("type") not in RULE_TYPES:
        raise RuleValidationError(
            [f"Invalid rule type: {rule.get('type')}. Supported types: {', '.join(RULE_TYPES)}"]
        )

    timestamp = _now()
    metadata = dict(rule.get("metadata") or {})
    normalized = {
        "id": rule.get("id") or new_rule_id(),
        "name": rule.get("name") or f"Rule {rule['type']}",
        "description": rule.get("description") or "",
        "priority": rule.get("priority", 5),
        "isActive": rule.get("isActive", True),
    }
    for key, value in rule.items():
        if key not in normalized and key != "metadata":
            normalized[key] = value
    normalized["metadata"] = {
        "createdBy": metadata.get("createdBy") or "System",
        "createdAt": metadata.get("createdAt") or timestamp,
        "updatedAt": timestamp,
        **{k: v for k, v in metadata.items() if k not in ("createdBy", "createdAt", "updatedAt")},
    }
    return normalized


def _validated(rule: Dict[str, Any], store) -> Dict[str, Any]:
    validation = validate_rule(rule, store)
    if not validation["valid"]:
        raise RuleValidationError(validation["errors"])
    return rule_to_dict(parse_rule(rule))


def add_rule(store, rule: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and store a new rule.

    Raises:
        RuleValidationError: rule rejected (nothing stored)
        DuplicateRuleError: a rule with the same id exists
    """
    normalized = normalize_rule(rule)
    if any(existing.get("id") == normalized["id"] for existing in store.get_rules()):
        raise DuplicateRuleError(f"Rule with ID {normalized['id']} already exists")
    stored = store.add_rule(_validated(normalized, store))
    logger.info(f"Rule added: {stored['id']} ({stored['type']})")
    return stored


def update_rule(store, rule_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge fields into an existing rule and re-validate the result.

    The id never changes; metadata is merged and updatedAt refreshed.

    Raises:
        RuleNotFoundError: no rule with rule_id
        RuleValidationError: merged rule rejected (original kept)
    """
    existing = store.get_rule(rule_id)
    merged = dict(existing)
    merged.update({k: v for k, v in fields.items() if k not in ("id", "metadata")})
    merged["id"] = rule_id
    merged["metadata"] = {
        **(existing.get("metadata") or {}),
        **(fields.get("metadata") or {}),
        "updatedAt": _now(),
    }
    stored = store.replace_rule(rule_id, _validated(merged, store))
    logger.info(f"Rule updated: {rule_id}")
    return stored


def delete_rule(store, rule_id: str) -> Dict[str, Any]:
    """
    Raises:
        RuleNotFoundError: no rule with rule_id
    """
    store.delete_rule(rule_id)
    logger.info(f"Rule deleted: {rule_id}")
    return {"success": True, "message": f"Rule {rule_id} deleted successfully"}


def get_rules_by_type(store, rule_type: str) -> List[Dict[str, Any]]:
    return [r for r in store.get_rules() if r.get("type") == rule_type]


def export_rules_as_json(store) -> str:
    return json.dumps(store.get_rules(), indent=2)
