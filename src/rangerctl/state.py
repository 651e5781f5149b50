"""
Markers for one-time initialisation steps.

A marker is a key with a small record of when and how the step completed,
so a rerun can skip work that already happened.
"""

import os
import json
import logging
import tempfile
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class MarkerStore:
    """Key-value record of completed steps"""

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def _put(self, key: str, record: Dict[str, Any]):
        raise NotImplementedError

    def _delete(self, key: str):
        raise NotImplementedError

    def is_done(self, key: str) -> bool:
        return self.get(key) is not None

    def mark_done(self, key: str, **details: Any) -> Dict[str, Any]:
        record = {"completed_at": datetime.now(timezone.utc).isoformat(), **details}
        self._put(key, record)
        logger.info(f"Marked '{key}' as done")
        return record

    def clear(self, key: str):
        self._delete(key)
        logger.info(f"Cleared marker '{key}'")


class InMemoryMarkerStore(MarkerStore):
    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return self._records.get(key)

    def _put(self, key: str, record: Dict[str, Any]):
        self._records[key] = record

    def _delete(self, key: str):
        self._records.pop(key, None)


class JsonMarkerStore(MarkerStore):
    """Markers kept in a single JSON document, replaced atomically on write"""

    def __init__(self, path: str):
        self.path = os.path.expanduser(path)
        self._lock = Lock()

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot read state file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"State file {self.path} does not hold a JSON object")
        return data

    def _save(self, data: Dict[str, Dict[str, Any]]):
        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".state-", suffix=".json")
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._load().get(key)

    def _put(self, key: str, record: Dict[str, Any]):
        with self._lock:
            data = self._load()
            data[key] = record
            self._save(data)

    def _delete(self, key: str):
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)
