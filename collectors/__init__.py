# Collectors Package
from typing import List, Optional

import yaml

from collectors.base import DataCollector, LateDataCollector, import_collector_class, restore_collector
from collectors.exception import ExceptionDataCollector
from collectors.request import RequestDataCollector
from collectors.timing import TimeDataCollector

__all__ = [
    "DataCollector",
    "LateDataCollector",
    "RequestDataCollector",
    "TimeDataCollector",
    "ExceptionDataCollector",
    "default_collectors",
    "load_collectors",
    "restore_collector",
]


def default_collectors() -> List[DataCollector]:
    """Fresh instances of the built-in collectors, in collection order."""
    return [
        RequestDataCollector(),
        TimeDataCollector(),
        ExceptionDataCollector(),
    ]


def load_collectors(path: Optional[str] = None) -> List[DataCollector]:
    """
    Build collectors from a YAML file.

    Format:
        collectors:
          - class: collectors.request:RequestDataCollector
            options:
              redact_headers: [authorization, cookie]
          - class: collectors.timing:TimeDataCollector

    Falls back to default_collectors() when no path is given.
    """
    if not path:
        return default_collectors()

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    collectors = []
    for entry in data.get("collectors", []):
        cls = import_collector_class(entry["class"])
        collectors.append(cls(**(entry.get("options") or {})))
    return collectors
