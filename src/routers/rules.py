"""
Rules router.

Endpoints:
- GET    /rules              - all rules
- POST   /rules              - add a rule (validated, rejected atomically)
- POST   /rules/validate     - dry-run validation, nothing stored
- GET    /rules/conflicts    - pairwise conflicts among active rules
- GET    /rules/graph        - co-run dependency graph analysis + DOT text
- GET    /rules/export       - rules as a JSON document
- GET    /rules/{rule_id}    - one rule
- PATCH  /rules/{rule_id}    - partial update (re-validated)
- DELETE /rules/{rule_id}    - delete
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import ORJSONResponse, Response

from allocation.engine import graph_utils
from allocation.engine.circular_dependency import build_corun_graph
from allocation.engine.data_store import DataStore
from allocation.rules import service
from allocation.rules.conflicts import active_rules, detect_rule_conflicts
from allocation.rules.models import CoRunRule
from allocation.rules.validator import validate_rule
from src.dependencies import get_store
from src.models import (
    DeleteResponse,
    RuleConflictsResponse,
    RuleValidateRequest,
    RuleValidationResponse,
)

logger = logging.getLogger("allocation.api.rules")

router = APIRouter(prefix="/rules", tags=["rules"])


@router.get("", response_class=ORJSONResponse)
async def list_rules(
    rule_type: Optional[str] = Query(None, alias="type", description="Only rules of this type"),
    store: DataStore = Depends(get_store),
):
    rules = service.get_rules_by_type(store, rule_type) if rule_type else store.get_rules()
    return {"count": len(rules), "rules": rules}


@router.post("", status_code=201, response_class=ORJSONResponse)
async def create_rule(rule: Dict[str, Any] = Body(...), store: DataStore = Depends(get_store)):
    return service.add_rule(store, rule)


@router.post("/validate", response_model=RuleValidationResponse)
async def validate_rule_endpoint(payload: RuleValidateRequest, store: DataStore = Depends(get_store)):
    return validate_rule(payload.rule, store)


@router.get("/conflicts", response_model=RuleConflictsResponse)
async def rule_conflicts(store: DataStore = Depends(get_store)):
    rules = store.get_rules()
    conflicts = detect_rule_conflicts(rules)
    logger.info(f"Conflict scan: {len(conflicts)} conflicts across {len(rules)} rules")
    return {"count": len(conflicts), "conflicts": conflicts}


@router.get("/graph", response_class=ORJSONResponse)
async def rule_graph(store: DataStore = Depends(get_store)):
    corun = [r for r in active_rules(store.get_rules()) if isinstance(r, CoRunRule)]
    graph = build_corun_graph(store.get_tasks(), corun)
    return {
        "analysis": graph_utils.analyze_graph(graph),
        "dot": graph_utils.to_dot_format(graph, "corun_dependencies"),
    }


@router.get("/export")
async def export_rules(store: DataStore = Depends(get_store)):
    return Response(
        content=service.export_rules_as_json(store),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="rules.json"'},
    )


@router.get("/{rule_id}", response_class=ORJSONResponse)
async def get_rule(rule_id: str, store: DataStore = Depends(get_store)):
    return store.get_rule(rule_id)


@router.patch("/{rule_id}", response_class=ORJSONResponse)
async def update_rule(rule_id: str, fields: Dict[str, Any] = Body(...),
                      store: DataStore = Depends(get_store)):
    return service.update_rule(store, rule_id, fields)


@router.delete("/{rule_id}", response_model=DeleteResponse)
async def delete_rule(rule_id: str, store: DataStore = Depends(get_store)):
    return service.delete_rule(store, rule_id)
