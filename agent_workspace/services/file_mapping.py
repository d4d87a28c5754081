"""
File Mapping Store

Associates the name a user uploaded a file under with where it was stored.

  key       → original file name, lower-cased (lookups are case-insensitive)
  value     → FileMapping(original_name, stored_path, stored_file_name, timestamp)
  duplicate → re-uploading the same name overwrites the previous entry

One instance is owned by the application and handed to the upload service
and the agent as a dependency. Entries never expire.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class FileMapping:
    original_name:    str
    stored_path:      str
    stored_file_name: str
    timestamp:        int = field(default_factory=_now_ms)

    @property
    def is_tabular(self) -> bool:
        return (
            self.original_name.lower().endswith(".csv")
            or self.stored_path.lower().endswith(".csv")
        )


class FileMappingStore:
    """Thread-safe, process-wide map; last write wins per original name."""

    def __init__(self) -> None:
        self._lock    = threading.Lock()
        self._entries: dict[str, FileMapping] = {}

    def add(self, mapping: FileMapping) -> None:
        with self._lock:
            self._entries[mapping.original_name.lower()] = mapping

    def find_by_original_name(self, name: str) -> FileMapping | None:
        """Exact (case-insensitive) match first, then a partial match either way round."""
        needle = (name or "").lower()
        if not needle:
            return None
        with self._lock:
            exact = self._entries.get(needle)
            if exact is not None:
                return exact
            for key, mapping in self._entries.items():
                if needle in key or key in needle:
                    return mapping
        return None

    def all(self) -> list[FileMapping]:
        with self._lock:
            return list(self._entries.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
