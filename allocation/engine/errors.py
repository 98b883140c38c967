"""
Exceptions raised by the mutation APIs (data store and rule lifecycle).

Validation itself never raises: problems in records and rules are reported
as findings. These exceptions only surface when a caller asks to create,
update or delete something that cannot be accepted.
"""

from typing import Dict, List, Optional


class AllocationError(Exception):
    """Base class for data-store and rule-lifecycle failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidEntityError(AllocationError):
    """Entity name is not one of clients, workers, tasks."""


class InvalidRecordError(AllocationError):
    """Record payload cannot be stored (e.g. no identifier)."""


class RecordNotFoundError(AllocationError):
    """No record with the requested identifier."""


class DuplicateRecordError(AllocationError):
    """Creating or renaming a record would duplicate an identifier."""


class RuleNotFoundError(AllocationError):
    """No rule with the requested id."""


class DuplicateRuleError(AllocationError):
    """A rule with the same id already exists."""


class RuleValidationError(AllocationError):
    """Rule rejected by validate_rule. Carries every validation message."""

    def __init__(self, errors: List[str], message: Optional[str] = None):
        super().__init__(message or f"Rule validation failed: {', '.join(errors)}")
        self.errors = list(errors)


# HTTP status codes used by the API layer for each failure class
ERROR_STATUS_CODES: Dict[type, int] = {
    InvalidEntityError: 400,
    InvalidRecordError: 400,
    RuleValidationError: 400,
    RecordNotFoundError: 404,
    RuleNotFoundError: 404,
    DuplicateRecordError: 409,
    DuplicateRuleError: 409,
}


def status_code_for(exc: AllocationError) -> int:
    """Map an AllocationError to an HTTP status code (400 when unmapped)."""
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 400
