"""
Data Collector Interface

Canonical contract for pluggable data collectors.
A collector inspects a request/response pair and keeps a named snapshot.

CAPABILITY CONTRACT:
- name: unique collector identifier
- collect(): populate the snapshot from request/response/exception
- reset(): clear the snapshot between requests
- clone(): explicit deep copy stored in the profile
- late_collect(): optional, only on LateDataCollector
"""

import copy
import importlib
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

from starlette.requests import Request
from starlette.responses import Response


class DataCollector(ABC):
    """
    Abstract base class for all data collectors.

    Only `data` is persisted. Anything else on the instance is runtime
    state and is gone once the snapshot is restored from storage.
    """

    def __init__(self):
        self.data: Dict[str, Any] = {}

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique collector identifier."""
        pass

    @abstractmethod
    def collect(
        self,
        request: Request,
        response: Response,
        exception: Optional[BaseException] = None,
    ) -> None:
        """
        Populate the snapshot for this request.

        Args:
            request: The incoming request
            response: The outgoing response
            exception: Exception raised while handling, if any
        """
        pass

    def reset(self) -> None:
        """Clear collected data."""
        self.data = {}

    def clone(self) -> "DataCollector":
        """Independent deep copy of this collector and its snapshot."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for storage."""
        cls = type(self)
        return {
            "name": self.name,
            "class": f"{cls.__module__}:{cls.__qualname__}",
            "data": copy.deepcopy(self.data),
        }

    @classmethod
    def restore(cls, data: Dict[str, Any]) -> "DataCollector":
        """
        Rebuild a snapshot from stored data.

        The constructor is bypassed: restored collectors carry data only.
        """
        collector = cls.__new__(cls)
        collector.data = copy.deepcopy(data)
        return collector


class LateDataCollector(DataCollector):
    """
    Collector with a deferred step.

    late_collect() runs when the profile is saved, after the response
    has been sent.
    """

    @abstractmethod
    def late_collect(self) -> None:
        pass


def import_collector_class(path: str) -> Type[DataCollector]:
    """
    Import a collector class from a "module:Class" path.

    Raises:
        ValueError: if the path is malformed or not a DataCollector
    """
    module_name, _, class_name = path.partition(":")
    if not module_name or not class_name:
        raise ValueError(f"Invalid collector class path: {path!r}")

    module = importlib.import_module(module_name)
    target: Any = module
    for part in class_name.split("."):
        target = getattr(target, part)

    if not (isinstance(target, type) and issubclass(target, DataCollector)):
        raise ValueError(f"{path!r} is not a DataCollector")
    return target


def restore_collector(payload: Dict[str, Any]) -> DataCollector:
    """Rebuild a collector snapshot from DataCollector.to_dict() output."""
    cls = import_collector_class(payload["class"])
    return cls.restore(payload.get("data") or {})
