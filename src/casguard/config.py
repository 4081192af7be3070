"""
Process-wide configuration store for casguard.

The store holds nested configuration and addresses it with dotted keys,
so "permission.api.model.config_type" reaches into

    {"permission": {"api": {"model": {"config_type": ...}}}}

Design:
    - Single global store (default_store) shared by everything in the process
    - Separate stores can be created for testing/isolation
    - Values are returned as stored; callers validate what they read
    - Writes take effect immediately and are not validated

Usage:
    from casguard.config import default_store

    default_store.load_file("casguard.yaml")
    default_store.get_conf("permission.default")
    default_store.set_conf("permission.default", "api")
"""

import copy
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from casguard.errors import ConfigInvalidError


class ConfigStore:
    """
    Nested key-value configuration addressed by dotted keys.

    Attributes:
        _data: The nested configuration mapping
        _lock: Serializes writes so a reader never sees a half-built section
    """

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        """
        Initialize the store.

        Args:
            data: Optional initial configuration (deep-copied)
        """
        self._data: dict[str, Any] = {}
        self._lock = threading.RLock()
        if data is not None:
            self.load_dict(data)

    def get_conf(self, key: str, default: Any = None) -> Any:
        """
        Read a value by dotted key.

        Args:
            key: Dotted key, e.g. "permission.api"
            default: Returned when any segment is missing

        Returns:
            The stored value (a nested dict for sections) or default
        """
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return default
            node = node[part]
        return node

    def set_conf(self, key: str, value: Any) -> None:
        """
        Write a value by dotted key, creating intermediate sections.

        Args:
            key: Dotted key, e.g. "permission.default"
            value: Value to store
        """
        parts = key.split(".")
        with self._lock:
            node = self._data
            for part in parts[:-1]:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = {}
                    node[part] = child
                node = child
            node[parts[-1]] = value

    def has(self, key: str) -> bool:
        """Check whether a dotted key is present."""
        sentinel = object()
        return self.get_conf(key, sentinel) is not sentinel

    def load_dict(self, data: Mapping[str, Any]) -> None:
        """
        Merge a mapping into the store.

        Top-level keys replace existing top-level keys wholesale.

        Args:
            data: Configuration mapping
        """
        with self._lock:
            for key, value in data.items():
                self._data[str(key)] = copy.deepcopy(value)

    def load_file(self, path: Path | str) -> None:
        """
        Merge a YAML file into the store.

        Args:
            path: Path to the YAML file

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigInvalidError: If the document is not a mapping
        """
        path = Path(path)
        with path.open() as f:
            data = yaml.safe_load(f)

        if data is None:
            return
        if not isinstance(data, Mapping):
            raise ConfigInvalidError(
                key=str(path),
                validation_error=f"expected a mapping at top level, got {type(data).__name__}",
            )
        self.load_dict(data)

    def clear(self) -> None:
        """Remove all configuration."""
        with self._lock:
            self._data.clear()

    def to_dict(self) -> dict[str, Any]:
        """Return a deep copy of the whole configuration."""
        with self._lock:
            return copy.deepcopy(self._data)

    def __contains__(self, key: str) -> bool:
        """Check a dotted key using 'in' operator."""
        return self.has(key)

    def __repr__(self) -> str:
        """String representation of the store."""
        keys = ", ".join(sorted(self._data))
        return f"<ConfigStore: [{keys}]>"


# Global default store instance
# This is the store the default registry reads unless overridden
default_store = ConfigStore()
