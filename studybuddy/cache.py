"""Persistent memo of LLM responses.

The whole cache is a single JSON object mapping cache-key strings to the
response value (a string or any JSON-compatible structure). It is read once in
:meth:`ResponseCache.init` and rewritten in full after every write.
"""

import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ResponseCache:
    """JSON-file backed key/value store for gateway responses."""

    def __init__(self, path: str = "responseCache.json") -> None:
        self.path = path
        self._data: Dict[str, Any] = {}
        self._loaded = False
        self._lock = threading.Lock()

    def init(self) -> "ResponseCache":
        """Load the durable file. A missing or unreadable file starts an empty cache."""
        with self._lock:
            if self._loaded:
                return self
            self._data = self._read_file()
            self._loaded = True
        logger.debug("Loaded %d cached responses from %s", len(self._data), self.path)
        return self

    def close(self) -> None:
        with self._lock:
            if self._loaded:
                self._flush()
            self._data = {}
            self._loaded = False

    def __enter__(self) -> "ResponseCache":
        return self.init()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _read_file(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            logger.info("No response cache at %s, starting empty", self.path)
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("Couldn't read response cache %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Response cache %s is not a JSON object, ignoring it", self.path)
            return {}
        return data

    def _flush(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".responseCache.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self._data, handle, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.init()

    def get(self, key: str) -> Optional[Any]:
        self._ensure_loaded()
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` and persist the entire cache before returning."""
        self._ensure_loaded()
        with self._lock:
            self._data[key] = value
            self._flush()

    def __contains__(self, key: str) -> bool:
        self._ensure_loaded()
        return key in self._data

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._data)
