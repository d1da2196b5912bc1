"""Key-value cache with JSON values and glob-style pattern invalidation"""
import fnmatch
import json
import logging
import threading
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

class InMemoryCacheStore:
    """
    Process-local cache store.

    Values are stored JSON-encoded so readers never share mutable state with
    writers. `delete_pattern` accepts glob patterns (`entries:12:*`).
    """

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value, default=str)
        with self._lock:
            self._data[key] = encoded

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching pattern; returns the number removed"""
        with self._lock:
            matched = [key for key in self._data if fnmatch.fnmatchcase(key, pattern)]
            for key in matched:
                del self._data[key]
        if matched:
            logger.debug(f"Invalidated {len(matched)} cache keys matching {pattern}")
        return len(matched)

    def keys(self):
        with self._lock:
            return list(self._data)
