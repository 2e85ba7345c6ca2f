"""Persistence port for the application store.

The store loads every slice once at startup and saves a slice each time it
changes. Values are plain JSON-compatible data.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Protocol, Union

logger = logging.getLogger(__name__)


class PersistencePort(Protocol):
    def load(self) -> Dict[str, Any]:
        ...

    def save(self, key: str, value: Any) -> None:
        ...


class InMemoryPersistence:
    """Keeps state in a dict. Used by tests and ephemeral sessions."""

    def __init__(self, initial: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = dict(initial or {})

    def load(self) -> Dict[str, Any]:
        return json.loads(json.dumps(self.data))

    def save(self, key: str, value: Any) -> None:
        self.data[key] = json.loads(json.dumps(value))


class JsonFilePersistence:
    """Keeps all slices in one JSON document on disk."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._data: Dict[str, Any] = {}

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            self._data = {}
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read state file {self.path}: {e}")
            data = {}
        if not isinstance(data, dict):
            logger.error(f"State file {self.path} does not hold an object; starting empty")
            data = {}
        self._data = data
        return dict(data)

    def save(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # atomic replace
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".culinai-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
