"""
Pydantic models for the Allocation Validator API.

Defines request/response schemas for validation and documentation.
Record and rule payloads stay loosely typed (plain dicts): malformed
records must reach the validators so they can be reported as findings
rather than rejected by request parsing.
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, List, Any
from datetime import datetime


class ValidateRequest(BaseModel):
    """
    Request payload for POST /validate.

    Every collection is optional. When none of clients/workers/tasks/rules
    is given, the current contents of the data store are validated.
    Collections are not type-checked here; a non-list value comes back as
    an invalid_input_shape finding.
    """
    clients: Optional[Any] = Field(None, description="Client records")
    workers: Optional[Any] = Field(None, description="Worker records")
    tasks: Optional[Any] = Field(None, description="Task records")
    rules: Optional[Any] = Field(None, description="Rule objects")

    model_config = ConfigDict(extra='allow')

    def is_empty(self) -> bool:
        return all(v is None for v in (self.clients, self.workers, self.tasks, self.rules))


class BulkRecordsRequest(BaseModel):
    """Request payload for PUT /data/{entity} (replace the whole collection)."""
    records: List[Any] = Field(..., description="Records exactly as ingested")
    fileName: Optional[str] = Field(None, description="Source file name, kept in metadata")


class EntityValidateRequest(BaseModel):
    """Request payload for POST /data/{entity}/validate."""
    records: Optional[List[Any]] = Field(
        None, description="Records to check; defaults to the stored collection"
    )


class RuleValidateRequest(BaseModel):
    """Request payload for POST /rules/validate (dry run, nothing stored)."""
    rule: Dict[str, Any] = Field(..., description="Rule object to validate")


class RuleValidationResponse(BaseModel):
    """Outcome of a rule dry run."""
    valid: bool
    errors: List[str] = Field(default_factory=list)


class RuleConflict(BaseModel):
    """One pairwise rule conflict."""
    ruleId: str
    conflictWith: str
    type: str
    message: str


class RuleConflictsResponse(BaseModel):
    """Response from GET /rules/conflicts."""
    count: int
    conflicts: List[RuleConflict]


class DeleteResponse(BaseModel):
    success: bool = True
    message: str


class HealthResponse(BaseModel):
    """Response from GET /health endpoint."""
    status: str = Field("ok")
    cache: str = Field("disabled", description="Validation cache state: enabled / disabled")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())


class VersionResponse(BaseModel):
    """Response from GET /version endpoint."""
    apiVersion: str
    engineVersion: str
    ruleTypes: List[str]
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())


class ErrorResponse(BaseModel):
    """Error envelope returned for rejected requests."""
    status: str = Field("ERROR")
    error: str
    details: List[str] = Field(default_factory=list)
    meta: Dict[str, Any] = Field(default_factory=dict)
