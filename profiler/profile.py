"""
Profile Model

Captured diagnostic data for a single request.
Profiles link into a tree: sub-requests are children of the request
that issued them.

DESIGN RULES:
- Children are owned top-down; the parent link is weak
- The parent link is only set through add_child()
- Only the persisted fields are serialized
"""

import weakref
from typing import Any, Dict, Iterable, List, Optional

from collectors.base import DataCollector, restore_collector
from profiler.exceptions import NotFoundError


# Fields that make up the persisted state of a profile
PERSISTED_FIELDS = (
    "token",
    "parent",
    "children",
    "collectors",
    "ip",
    "method",
    "url",
    "time",
    "status_code",
)


class Profile:
    """
    Diagnostic snapshot of one request/response pair.

    Holds:
    - Identity (token, parent/children links)
    - Request metadata (ip, method, url, time, status_code)
    - Collector snapshots keyed by collector name
    """

    def __init__(self, token: str):
        self.token = token
        self.ip: Optional[str] = None
        self.method: Optional[str] = None
        self.url: Optional[str] = None
        self.time: int = 0
        self.status_code: Optional[int] = None
        self._parent_ref: Optional[weakref.ref] = None
        self._parent_token: Optional[str] = None
        self._children: List["Profile"] = []
        self._collectors: Dict[str, DataCollector] = {}

    def __repr__(self) -> str:
        return f"Profile(token={self.token!r}, method={self.method!r}, url={self.url!r})"

    # --- Tree ---

    @property
    def parent(self) -> Optional["Profile"]:
        """The enclosing profile, if it is still alive."""
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @property
    def parent_token(self) -> Optional[str]:
        """Token of the enclosing profile, None for a root profile."""
        parent = self.parent
        if parent is not None:
            return parent.token
        return self._parent_token

    def set_parent(self, parent: "Profile") -> None:
        """
        Point this profile at its parent.

        Does not register this profile in the parent's children;
        add_child() on the parent does both.
        """
        self._parent_ref = weakref.ref(parent)
        self._parent_token = parent.token

    @property
    def children(self) -> List["Profile"]:
        return list(self._children)

    def set_children(self, children: Iterable["Profile"]) -> None:
        """
        Replace the children.

        Profiles dropped from the list keep their parent link.
        """
        self._children = []
        for child in children:
            self.add_child(child)

    def add_child(self, child: "Profile") -> None:
        """
        Append a child and link it back to this profile.

        No duplicate or cycle detection: adding the same child twice
        lists it twice.
        """
        self._children.append(child)
        child.set_parent(self)

    def get_child_by_token(self, token: str) -> Optional["Profile"]:
        """Find an immediate child by token (grandchildren are not searched)."""
        for child in self._children:
            if child.token == token:
                return child
        return None

    # --- Collectors ---

    @property
    def collectors(self) -> Dict[str, DataCollector]:
        return dict(self._collectors)

    def set_collectors(self, collectors: Iterable[DataCollector]) -> None:
        self._collectors = {}
        for collector in collectors:
            self.add_collector(collector)

    def add_collector(self, collector: DataCollector) -> None:
        """Store a collector snapshot; an existing one with the same name is replaced."""
        self._collectors[collector.name] = collector

    def has_collector(self, name: str) -> bool:
        return name in self._collectors

    def get_collector(self, name: str) -> DataCollector:
        """
        Get a collector snapshot by name.

        Raises:
            NotFoundError: if no collector with that name was captured
        """
        if name not in self._collectors:
            raise NotFoundError(name)
        return self._collectors[name]

    # --- Serialization ---

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the persisted fields, children included."""
        return {
            "token": self.token,
            "parent": self.parent_token,
            "children": [child.to_dict() for child in self._children],
            "collectors": {
                name: collector.to_dict()
                for name, collector in self._collectors.items()
            },
            "ip": self.ip,
            "method": self.method,
            "url": self.url,
            "time": self.time,
            "status_code": self.status_code,
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        parent: Optional["Profile"] = None,
    ) -> "Profile":
        """
        Rebuild a profile tree from to_dict() output.

        Args:
            data: Serialized profile
            parent: Already rebuilt parent profile, if any. When omitted,
                the stored parent token is kept.
        """
        profile = cls(data["token"])
        profile.ip = data.get("ip")
        profile.method = data.get("method")
        profile.url = data.get("url")
        profile.time = data.get("time") or 0
        profile.status_code = data.get("status_code")

        if parent is not None:
            profile.set_parent(parent)
        else:
            profile._parent_token = data.get("parent")

        profile.set_collectors(
            restore_collector(payload)
            for payload in (data.get("collectors") or {}).values()
        )

        for child_data in data.get("children") or []:
            profile.add_child(cls.from_dict(child_data, parent=profile))

        return profile
