"""
Allocation Validator FastAPI Application.

Main entry point for the REST API.
Exposes the data store, the validation pipeline and the rule lifecycle.

Run with:
    uvicorn src.api_server:app --reload --port 8080

Or production:
    uvicorn src.api_server:app --host 0.0.0.0 --port 8080 --workers 2
"""

import os
import sys
import uuid
import logging
import pathlib
from datetime import datetime

# Setup path
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent))

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from allocation.engine.data_store import DataStore
from allocation.engine.errors import AllocationError, RuleValidationError, status_code_for
from allocation.rules.models import RULE_TYPES
from src.models import ErrorResponse, HealthResponse, VersionResponse
from src.routers import data_router, rules_router, validation_router
from src.validation_cache import ValidationCache

API_VERSION = "1.0.0"
ENGINE_VERSION = "allocation-engine-1.0.0"

# ============================================================================
# LOGGING SETUP
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("allocation.api")

# ============================================================================
# MIDDLEWARE: REQUEST ID TRACKING
# ============================================================================

class RequestIdMiddleware(BaseHTTPMiddleware):
    """Add request ID to all requests for tracing."""

    async def dispatch(self, request: Request, call_next):
        # Use incoming X-Request-ID or generate new UUID
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        return response


def _error_body(request: Request, error: str, details=None) -> dict:
    return ErrorResponse(
        error=error,
        details=details or [],
        meta={
            "requestId": getattr(request.state, "request_id", "unknown"),
            "timestamp": datetime.now().isoformat(),
        },
    ).model_dump()


# ============================================================================
# FASTAPI APP
# ============================================================================

def create_app(store: DataStore = None, validation_cache: ValidationCache = None) -> FastAPI:
    """
    Build the application.

    Args:
        store: data store to serve (a fresh empty one by default)
        validation_cache: cache to use (configured from the environment by default)
    """
    app = FastAPI(
        title="Allocation Validator API",
        description="REST API for workforce allocation data validation and rules",
        version=API_VERSION,
        docs_url="/docs",
        openapi_url="/openapi.json"
    )

    app.state.store = store if store is not None else DataStore()
    app.state.validation_cache = (
        validation_cache if validation_cache is not None else ValidationCache.from_env()
    )

    app.add_middleware(RequestIdMiddleware)

    cors_origins = os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000"
    ).split(",")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(data_router)
    app.include_router(validation_router)
    app.include_router(rules_router)

    # ------------------------------------------------------------------------
    # ENDPOINTS
    # ------------------------------------------------------------------------

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        """Health check endpoint."""
        cache = request.app.state.validation_cache
        return HealthResponse(status="ok", cache="enabled" if cache.enabled else "disabled")

    @app.get("/version", response_model=VersionResponse)
    async def get_version():
        """Get API and engine version information."""
        return VersionResponse(
            apiVersion=API_VERSION,
            engineVersion=ENGINE_VERSION,
            ruleTypes=list(RULE_TYPES),
        )

    @app.get("/stats", response_class=ORJSONResponse)
    async def get_stats(request: Request):
        """Record counts across all collections plus cache statistics."""
        stats = request.app.state.store.get_stats()
        stats["cache"] = request.app.state.validation_cache.stats()
        return stats

    # ------------------------------------------------------------------------
    # ERROR HANDLERS
    # ------------------------------------------------------------------------

    @app.exception_handler(AllocationError)
    async def allocation_error_handler(request: Request, exc: AllocationError):
        """Store and rule-lifecycle rejections (400 / 404 / 409)."""
        status_code = status_code_for(exc)
        logger.info(
            "Rejected requestId=%s status=%s: %s",
            getattr(request.state, "request_id", "unknown"),
            status_code,
            exc.message,
        )
        return ORJSONResponse(
            status_code=status_code,
            content=_error_body(
                request,
                exc.message,
                exc.errors if isinstance(exc, RuleValidationError) else None,
            ),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler."""
        logger.error(
            "Unhandled exception requestId=%s: %s",
            getattr(request.state, "request_id", "unknown"),
            str(exc),
            exc_info=True
        )
        return ORJSONResponse(
            status_code=500,
            content=_error_body(request, "Internal server error"),
        )

    return app


app = create_app()


# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8080"))
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info"
    )
