"""
In-Memory Profiler Storage

Process-local profile storage.

DESIGN RULES:
- No persistence across restarts
- Stores serialized snapshots, not live objects
- Thread-safe for concurrent access
"""

from threading import Lock
from typing import Any, Dict, List, Optional

from profiler.profile import Profile
from profiler.storage import (
    ProfilerStorage,
    RowFilter,
    flatten_profile,
    index_row,
    restore_profile,
    row_matches,
)


class InMemoryProfilerStorage(ProfilerStorage):
    """
    Profiles keyed by token, kept in process memory.

    Useful for tests and single-process development servers.
    """

    def __init__(self):
        self._profiles: Dict[str, Dict[str, Any]] = {}
        self._index: Dict[str, Dict[str, Any]] = {}
        self._lock = Lock()

    def read(self, token: str) -> Optional[Profile]:
        data = self._load(token)
        if data is None:
            return None
        return restore_profile(token, data, self._load)

    def write(self, profile: Profile) -> bool:
        data = flatten_profile(profile)

        with self._lock:
            self._profiles[profile.token] = data
            # Keep the original position of an already indexed token
            self._index.setdefault(profile.token, index_row(profile))

        return True

    def purge(self) -> None:
        with self._lock:
            self._profiles.clear()
            self._index.clear()

    def find(
        self,
        ip: Optional[str],
        url: Optional[str],
        limit: Optional[int],
        method: Optional[str],
        start: Optional[int] = None,
        end: Optional[int] = None,
        status_code: Optional[str] = None,
        filter: Optional[RowFilter] = None,
    ) -> List[Profile]:
        with self._lock:
            rows = list(self._index.values())

        results = []
        for row in reversed(rows):
            if limit is not None and len(results) >= limit:
                break
            if not row_matches(row, ip, url, method, start, end, status_code, filter):
                continue

            profile = self.read(row["token"])
            if profile is not None:
                results.append(profile)

        return results

    def count(self) -> int:
        """Number of stored profiles."""
        with self._lock:
            return len(self._profiles)

    def _load(self, token: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._profiles.get(token)
