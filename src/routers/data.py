"""
Entity data router.

Endpoints:
- GET    /data/{entity}                  - all records plus metadata
- PUT    /data/{entity}                  - replace the collection (bulk ingestion)
- POST   /data/{entity}                  - create one record
- DELETE /data/{entity}                  - clear the collection
- GET    /data/{entity}/search           - substring search (?q=...&fields=a,b)
- GET    /data/{entity}/stats            - metadata for one collection
- POST   /data/{entity}/validate         - structural validation of one collection
- GET    /data/{entity}/{record_id}      - one record
- PATCH  /data/{entity}/{record_id}      - partial update
- DELETE /data/{entity}/{record_id}      - delete one record

Errors from the store (unknown entity, missing record, duplicate ID) are
mapped to status codes by the application's AllocationError handler.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Body
from fastapi.responses import ORJSONResponse

from allocation.engine.data_store import DataStore
from allocation.engine.orchestrator import validate_entity_records
from src.dependencies import get_store
from src.models import BulkRecordsRequest, EntityValidateRequest

logger = logging.getLogger("allocation.api.data")

router = APIRouter(prefix="/data", tags=["data"])


@router.get("/{entity}", response_class=ORJSONResponse)
async def list_records(entity: str, store: DataStore = Depends(get_store)):
    records = store.get_records(entity)
    return {"entity": entity, "count": len(records), "records": records,
            "metadata": store.get_metadata(entity)}


@router.put("/{entity}", response_class=ORJSONResponse)
async def replace_records(entity: str, payload: BulkRecordsRequest,
                          store: DataStore = Depends(get_store)):
    store.set_records(entity, payload.records, file_name=payload.fileName)
    logger.info(f"Replaced {entity}: {len(payload.records)} records (source={payload.fileName})")
    return {"entity": entity, "metadata": store.get_metadata(entity)}


@router.post("/{entity}", status_code=201, response_class=ORJSONResponse)
async def create_record(entity: str, record: Dict[str, Any] = Body(...),
                        store: DataStore = Depends(get_store)):
    return store.create_record(entity, record)


@router.delete("/{entity}", response_class=ORJSONResponse)
async def clear_records(entity: str, store: DataStore = Depends(get_store)):
    store.clear_entity(entity)
    return {"success": True, "message": f"All {entity} records cleared"}


@router.get("/{entity}/search", response_class=ORJSONResponse)
async def search_records(
    entity: str,
    q: Optional[str] = Query(None, description="Case-insensitive search text"),
    fields: Optional[str] = Query(None, description="Comma-separated field names to search"),
    store: DataStore = Depends(get_store),
):
    field_list = [f.strip() for f in fields.split(",") if f.strip()] if fields else None
    results = store.search_records(entity, q, field_list)
    return {"entity": entity, "query": q, "count": len(results), "records": results}


@router.get("/{entity}/stats", response_class=ORJSONResponse)
async def entity_stats(entity: str, store: DataStore = Depends(get_store)):
    return {"entity": entity, "metadata": store.get_metadata(entity)}


@router.post("/{entity}/validate", response_class=ORJSONResponse)
async def validate_entity(entity: str, payload: Optional[EntityValidateRequest] = None,
                          store: DataStore = Depends(get_store)):
    records = payload.records if payload and payload.records is not None else store.get_records(entity)
    result = validate_entity_records(entity, records)
    return result.to_dict()


@router.get("/{entity}/{record_id}", response_class=ORJSONResponse)
async def get_record(entity: str, record_id: str, store: DataStore = Depends(get_store)):
    return store.get_record(entity, record_id)


@router.patch("/{entity}/{record_id}", response_class=ORJSONResponse)
async def update_record(entity: str, record_id: str, fields: Dict[str, Any] = Body(...),
                        store: DataStore = Depends(get_store)):
    return store.update_record(entity, record_id, fields)


@router.delete("/{entity}/{record_id}", response_class=ORJSONResponse)
async def delete_record(entity: str, record_id: str, store: DataStore = Depends(get_store)):
    removed = store.delete_record(entity, record_id)
    return {"success": True, "message": f"{entity} record {record_id} deleted", "record": removed}
