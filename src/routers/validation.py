"""
Validation router.

Endpoints:
- POST /validate            - full pipeline over a posted snapshot (collections
                              left out of the body are taken from the store)
- GET  /validation-summary  - per-entity counts for the stored data
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import ORJSONResponse

from allocation.engine.data_store import DataStore
from allocation.engine.orchestrator import get_validation_summary
from src.dependencies import get_request_id, get_store, get_validation_cache
from src.models import ValidateRequest
from src.validation_cache import ValidationCache, validate_all_cached

logger = logging.getLogger("allocation.api.validation")

router = APIRouter(tags=["validation"])


@router.post("/validate", response_class=ORJSONResponse)
async def validate_endpoint(
    request: Request,
    payload: Optional[ValidateRequest] = None,
    store: DataStore = Depends(get_store),
    cache: ValidationCache = Depends(get_validation_cache),
):
    """
    Validate clients, workers, tasks and rules.

    Returns {isValid, errors, warnings, info, summary}. Validation problems
    are reported in the body with status 200; the request itself only fails
    when the body is not JSON.
    """
    snapshot = store.snapshot()
    if payload is not None and not payload.is_empty():
        for key in ("clients", "workers", "tasks", "rules"):
            value = getattr(payload, key)
            if value is not None:
                snapshot[key] = value

    started = time.perf_counter()
    result = validate_all_cached(
        snapshot["clients"], snapshot["workers"], snapshot["tasks"], snapshot["rules"], cache=cache
    )
    logger.info(
        f"requestId={get_request_id(request)} validate isValid={result['isValid']} "
        f"errors={result['summary']['totalErrors']} warnings={result['summary']['totalWarnings']} "
        f"in {time.perf_counter() - started:.3f}s"
    )
    return result


@router.get("/validation-summary", response_class=ORJSONResponse)
async def validation_summary(store: DataStore = Depends(get_store)):
    snapshot = store.snapshot()
    return get_validation_summary(
        snapshot["clients"], snapshot["workers"], snapshot["tasks"], snapshot["rules"]
    )
