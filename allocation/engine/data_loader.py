import json
import pathlib
from typing import Any, Dict, Union

from allocation.engine.entity_validators import ENTITIES

# Alternative top-level keys seen in exported datasets
_KEY_ALIASES = {
    "clients": ("clients", "Clients", "clientsData"),
    "workers": ("workers", "Workers", "workersData"),
    "tasks": ("tasks", "Tasks", "tasksData"),
    "rules": ("rules", "Rules"),
}


def normalize_dataset_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a loaded dataset onto clients / workers / tasks / rules keys.

    Missing collections become empty lists. Values are passed through
    untouched, so a collection that is not a list is still reported by
    validation instead of being silently replaced.

    Args:
        data: parsed dataset dict

    Returns:
        dict with exactly the keys clients, workers, tasks, rules
    """
    dataset = {}
    for key in list(ENTITIES) + ["rules"]:
        dataset[key] = []
        for alias in _KEY_ALIASES[key]:
            if alias in data:
                dataset[key] = data[alias]
                break
    return dataset


def load_dataset(path: Union[str, pathlib.Path, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Load a dataset from a JSON file path or an already-parsed dict.

    Raises:
        FileNotFoundError: path does not exist
        ValueError: file is not valid JSON or not a JSON object
    """
    if isinstance(path, dict):
        data = path
    else:
        p = pathlib.Path(path)
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {p}: {e}")
    if not isinstance(data, dict):
        raise ValueError("Dataset must be a JSON object with clients, workers, tasks and rules")
    return normalize_dataset_keys(data)
