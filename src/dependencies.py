"""
Request-scoped accessors for application state.

The data store and validation cache are created once in src.api_server and
attached to app.state; routers reach them through these helpers so tests
can swap either on a fresh app.
"""

from fastapi import Request

from allocation.engine.data_store import DataStore
from src.validation_cache import ValidationCache


def get_store(request: Request) -> DataStore:
    return request.app.state.store


def get_validation_cache(request: Request) -> ValidationCache:
    return request.app.state.validation_cache


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")
