"""
Allocation Validator API Routers Package.

This package contains the API routers:
- data: entity collections (clients, workers, tasks)
- validation: full-pipeline validation and dashboard summary
- rules: rule lifecycle, conflicts and dependency graph
"""

from .data import router as data_router
from .rules import router as rules_router
from .validation import router as validation_router

__all__ = ['data_router', 'rules_router', 'validation_router']
