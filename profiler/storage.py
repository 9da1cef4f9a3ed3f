"""
Profiler Storage Interface

Abstract interface for persisting profiles.
Storage-agnostic - implementations can write to files, memory, databases, etc.

DESIGN RULES:
- write() reports failure with False, never raises
- find() applies the same criteria on every backend
- Stored rows are flat: children are referenced by token
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from profiler.profile import Profile


# Predicate applied to index rows during find()
RowFilter = Callable[[Dict[str, Any]], bool]


class ProfilerStorage(ABC):
    """
    Abstract base for profile persistence.

    Implementations:
    - FileProfilerStorage (JSON files + JSONL index)
    - InMemoryProfilerStorage (process memory)
    """

    @abstractmethod
    def read(self, token: str) -> Optional[Profile]:
        """
        Read a profile by token.

        Returns:
            The profile with its children, or None if unknown.
        """
        pass

    @abstractmethod
    def write(self, profile: Profile) -> bool:
        """
        Persist a profile.

        Returns:
            True on success, False if the profile could not be stored.
        """
        pass

    @abstractmethod
    def purge(self) -> None:
        """Remove every stored profile."""
        pass

    @abstractmethod
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
        """
        Find profiles matching the criteria, most recent first.

        Args:
            ip: Substring of the client IP
            url: Substring of the URL
            limit: Maximum number of profiles to return
            method: Exact HTTP method
            start: Earliest capture time (epoch seconds)
            end: Latest capture time (epoch seconds)
            status_code: Exact status code
            filter: Extra predicate on the index row
        """
        pass


# ============================================================
# SHARED HELPERS
# ============================================================

def index_row(profile: Profile) -> Dict[str, Any]:
    """Build the search index row for a profile."""
    return {
        "token": profile.token,
        "ip": profile.ip,
        "method": profile.method,
        "url": profile.url,
        "time": profile.time,
        "parent": profile.parent_token,
        "status_code": profile.status_code,
    }


def flatten_profile(profile: Profile) -> Dict[str, Any]:
    """Serialize a profile with its children replaced by their tokens."""
    data = profile.to_dict()
    data["children"] = [child.token for child in profile.children]
    return data


def row_matches(
    row: Dict[str, Any],
    ip: Optional[str] = None,
    url: Optional[str] = None,
    method: Optional[str] = None,
    start: Optional[int] = None,
    end: Optional[int] = None,
    status_code: Optional[str] = None,
    filter: Optional[RowFilter] = None,
) -> bool:
    """Check an index row against find() criteria."""
    if ip and ip not in (row.get("ip") or ""):
        return False
    if url and url not in (row.get("url") or ""):
        return False
    if method and method.upper() != (row.get("method") or "").upper():
        return False
    if status_code and str(status_code) != str(row.get("status_code")):
        return False

    row_time = row.get("time") or 0
    if start is not None and row_time < start:
        return False
    if end is not None and row_time > end:
        return False

    if filter is not None and not filter(row):
        return False
    return True


def restore_profile(
    token: str,
    data: Dict[str, Any],
    load_data: Callable[[str], Optional[Dict[str, Any]]],
    parent: Optional[Profile] = None,
) -> Profile:
    """
    Rebuild a profile from a flat row, loading relatives through load_data.

    The parent is loaded (without re-entering this profile) so the parent
    token survives; children are loaded recursively.
    """
    nested = dict(data)
    nested["token"] = token
    nested["children"] = []
    profile = Profile.from_dict(nested)

    if parent is None and data.get("parent"):
        parent_data = load_data(data["parent"])
        if parent_data is not None:
            parent = restore_profile(data["parent"], parent_data, load_data)

    if parent is not None:
        profile.set_parent(parent)

    for child_token in data.get("children") or []:
        if not child_token:
            continue
        child_data = load_data(child_token)
        if child_data is None:
            continue
        profile.add_child(restore_profile(child_token, child_data, load_data, parent=profile))

    return profile


def create_storage(dsn: str, lifetime: Optional[int] = None) -> ProfilerStorage:
    """
    Build a storage backend from a DSN.

    Supported:
    - "file:<directory>"
    - "memory:"

    Raises:
        ValueError: for an unsupported scheme
    """
    scheme, _, target = dsn.partition(":")

    if scheme == "file":
        from profiler.file_storage import FileProfilerStorage
        return FileProfilerStorage(target, lifetime=lifetime)

    if scheme == "memory":
        from profiler.memory_storage import InMemoryProfilerStorage
        return InMemoryProfilerStorage()

    raise ValueError(f'Unsupported profiler storage DSN "{dsn}".')
