"""In-memory memoization of conversion results."""
import json
import threading
from pathlib import Path
from typing import Any, Mapping, Optional

from crushify.conversion.models import ConversionResult

CacheKey = tuple[str, str, str]


def make_cache_key(format_name: str, input_path: Path, options: Mapping[str, Any]) -> CacheKey:
    """Key on target format, input path and the merged options.

    Options are serialized with sorted keys so insertion order never changes the key.
    """
    serialized = json.dumps(dict(options), sort_keys=True, separators=(",", ":"), default=str)
    return (format_name, str(input_path), serialized)


class ResultCache:
    """Unbounded; entries live until clear()."""

    def __init__(self):
        self._entries: dict[CacheKey, ConversionResult] = {}
        self._lock = threading.Lock()

    def get(self, key: CacheKey) -> Optional[ConversionResult]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: CacheKey, result: ConversionResult) -> None:
        with self._lock:
            self._entries[key] = result

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
