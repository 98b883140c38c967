"""
In-memory store for entity collections and rules.

The store is the single owner of clients, workers, tasks and rules. The
validation engine never reads it implicitly: callers take a snapshot() and
pass the copies to validate_all. The store also satisfies the rule context
protocol (get_clients / get_workers / get_tasks).

Bulk ingestion (set_records) stores rows exactly as received, duplicates
included, so validation can report them. Single-record create/update keep
identifiers unique.
"""

import copy
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from allocation.engine.entity_validators import ENTITIES, ID_FIELDS
from allocation.engine.errors import (
    DuplicateRecordError,
    DuplicateRuleError,
    InvalidEntityError,
    InvalidRecordError,
    RecordNotFoundError,
    RuleNotFoundError,
)
from allocation.engine.field_parsers import is_empty, normalize_string


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _empty_metadata() -> Dict[str, Any]:
    return {"lastUpdated": None, "fileName": None, "rowCount": 0}


class DataStore:
    """
    Thread-safe in-memory store.

    Entities: clients, workers, tasks. Anything else raises InvalidEntityError.
    """

    def __init__(self):
        self.lock = threading.RLock()
        self._data: Dict[str, List[Dict[str, Any]]] = {entity: [] for entity in ENTITIES}
        self._metadata: Dict[str, Dict[str, Any]] = {entity: _empty_metadata() for entity in ENTITIES}
        self._rules: List[Dict[str, Any]] = []

    # ------------------------------------------------------------------
    # Entity records
    # ------------------------------------------------------------------

    def _check_entity(self, entity: str):
        if entity not in ENTITIES:
            raise InvalidEntityError(f"Invalid entity: {entity}. Expected one of: {', '.join(ENTITIES)}")

    def _touch(self, entity: str):
        meta = self._metadata[entity]
        meta["lastUpdated"] = _now()
        meta["rowCount"] = len(self._data[entity])

    def _find_index(self, entity: str, record_id: Any) -> Optional[int]:
        key = normalize_string(record_id)
        id_field = ID_FIELDS[entity]
        for index, record in enumerate(self._data[entity]):
            if isinstance(record, dict) and normalize_string(record.get(id_field)) == key:
                return index
        return None

    def set_records(self, entity: str, records: List[Dict[str, Any]], file_name: Optional[str] = None):
        """Replace a whole collection (bulk ingestion)."""
        self._check_entity(entity)
        with self.lock:
            self._data[entity] = [dict(r) if isinstance(r, dict) else r for r in records]
            self._touch(entity)
            self._metadata[entity]["fileName"] = file_name

    def get_records(self, entity: str) -> List[Dict[str, Any]]:
        self._check_entity(entity)
        with self.lock:
            return copy.deepcopy(self._data[entity])

    def get_record(self, entity: str, record_id: Any) -> Dict[str, Any]:
        self._check_entity(entity)
        with self.lock:
            index = self._find_index(entity, record_id)
            if index is None:
                raise RecordNotFoundError(f"{entity} record {record_id} not found")
            return copy.deepcopy(self._data[entity][index])

    def create_record(self, entity: str, record: Dict[str, Any]) -> Dict[str, Any]:
        self._check_entity(entity)
        id_field = ID_FIELDS[entity]
        if is_empty(record.get(id_field)):
            raise InvalidRecordError(f"{id_field} is required to create a {entity[:-1]}")
        with self.lock:
            if self._find_index(entity, record[id_field]) is not None:
                raise DuplicateRecordError(f"{id_field} {normalize_string(record[id_field])} already exists")
            stored = dict(record)
            self._data[entity].append(stored)
            self._touch(entity)
            return copy.deepcopy(stored)

    def update_record(self, entity: str, record_id: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Merge fields into an existing record. Blanking the ID or renaming to a taken one is rejected."""
        self._check_entity(entity)
        id_field = ID_FIELDS[entity]
        with self.lock:
            index = self._find_index(entity, record_id)
            if index is None:
                raise RecordNotFoundError(f"{entity} record {record_id} not found")
            if id_field in fields and is_empty(fields[id_field]):
                raise InvalidRecordError(f"{id_field} cannot be blank")
            new_id = fields.get(id_field)
            if new_id is not None and normalize_string(new_id) != normalize_string(record_id):
                if self._find_index(entity, new_id) is not None:
                    raise DuplicateRecordError(f"{id_field} {normalize_string(new_id)} already exists")
            updated = dict(self._data[entity][index])
            updated.update(fields)
            self._data[entity][index] = updated
            self._touch(entity)
            return copy.deepcopy(updated)

    def delete_record(self, entity: str, record_id: Any) -> Dict[str, Any]:
        self._check_entity(entity)
        with self.lock:
            index = self._find_index(entity, record_id)
            if index is None:
                raise RecordNotFoundError(f"{entity} record {record_id} not found")
            removed = self._data[entity].pop(index)
            self._touch(entity)
            return removed

    def clear_entity(self, entity: str):
        self._check_entity(entity)
        with self.lock:
            self._data[entity] = []
            self._metadata[entity] = _empty_metadata()

    def clear_all(self):
        with self.lock:
            for entity in ENTITIES:
                self._data[entity] = []
                self._metadata[entity] = _empty_metadata()
            self._rules = []

    def search_records(self, entity: str, query: Optional[str],
                       fields: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Case-insensitive substring search over all fields or the given ones."""
        self._check_entity(entity)
        with self.lock:
            records = copy.deepcopy(self._data[entity])
        if not query:
            return records
        term = query.lower()

        def matches(record: Dict[str, Any]) -> bool:
            if fields:
                return any(
                    not is_empty(record.get(f)) and term in str(record.get(f)).lower()
                    for f in fields
                )
            return any(term in str(value).lower() for value in record.values())

        return [r for r in records if isinstance(r, dict) and matches(r)]

    def get_metadata(self, entity: Optional[str] = None) -> Dict[str, Any]:
        with self.lock:
            if entity is not None:
                self._check_entity(entity)
                return dict(self._metadata[entity])
            return copy.deepcopy(self._metadata)

    def get_stats(self) -> Dict[str, Any]:
        with self.lock:
            counts = {entity: len(self._data[entity]) for entity in ENTITIES}
            updated = [m["lastUpdated"] for m in self._metadata.values() if m["lastUpdated"]]
            return {
                "totalRecords": sum(counts.values()),
                "recordCounts": counts,
                "rulesCount": len(self._rules),
                "lastUpdated": max(updated) if updated else None,
            }

    # Rule context protocol
    def get_clients(self) -> List[Dict[str, Any]]:
        return self.get_records("clients")

    def get_workers(self) -> List[Dict[str, Any]]:
        return self.get_records("workers")

    def get_tasks(self) -> List[Dict[str, Any]]:
        return self.get_records("tasks")

    # ------------------------------------------------------------------
    # Rules (stored already normalised by allocation.rules.service)
    # ------------------------------------------------------------------

    def get_rules(self) -> List[Dict[str, Any]]:
        with self.lock:
            return copy.deepcopy(self._rules)

    def get_rule(self, rule_id: str) -> Dict[str, Any]:
        with self.lock:
            for rule in self._rules:
                if rule.get("id") == rule_id:
                    return copy.deepcopy(rule)
        raise RuleNotFoundError(f"Rule {rule_id} not found")

    def add_rule(self, rule: Dict[str, Any]) -> Dict[str, Any]:
        with self.lock:
            if any(r.get("id") == rule.get("id") for r in self._rules):
                raise DuplicateRuleError(f"Rule with ID {rule.get('id')} already exists")
            self._rules.append(copy.deepcopy(rule))
            return copy.deepcopy(rule)

    def replace_rule(self, rule_id: str, rule: Dict[str, Any]) -> Dict[str, Any]:
        with self.lock:
            for index, existing in enumerate(self._rules):
                if existing.get("id") == rule_id:
                    self._rules[index] = copy.deepcopy(rule)
                    return copy.deepcopy(rule)
        raise RuleNotFoundError(f"Rule {rule_id} not found")

    def delete_rule(self, rule_id: str) -> Dict[str, Any]:
        with self.lock:
            for index, existing in enumerate(self._rules):
                if existing.get("id") == rule_id:
                    return self._rules.pop(index)
        raise RuleNotFoundError(f"Rule {rule_id} not found")

    def set_rules(self, rules: List[Dict[str, Any]]):
        with self.lock:
            self._rules = copy.deepcopy(list(rules))

    # ------------------------------------------------------------------

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        """Deep copies of every collection, for one validation run."""
        with self.lock:
            return {
                "clients": copy.deepcopy(self._data["clients"]),
                "workers": copy.deepcopy(self._data["workers"]),
                "tasks": copy.deepcopy(self._data["tasks"]),
                "rules": copy.deepcopy(self._rules),
            }
