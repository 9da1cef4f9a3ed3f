import pytest
from typing import Dict, Optional, Tuple
from unittest.mock import MagicMock

from starlette.requests import Request
from starlette.responses import Response

from collectors.base import DataCollector, LateDataCollector
from profiler.memory_storage import InMemoryProfilerStorage
from profiler.profiler import Profiler


class RecordingCollector(DataCollector):
    """Collector that remembers how often it ran."""

    def __init__(self, name: str = "recording"):
        super().__init__()
        self._name = name
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    def collect(self, request, response, exception=None):
        self.calls += 1
        self.data = {
            "path": request.url.path,
            "status_code": response.status_code,
            "calls": self.calls,
            "exception": type(exception).__name__ if exception else None,
        }


class CountingLateCollector(LateDataCollector):
    """Late collector that counts late_collect() calls."""

    def __init__(self):
        super().__init__()
        self.late_calls = 0

    @property
    def name(self) -> str:
        return "late"

    def collect(self, request, response, exception=None):
        self.data = {"collected": True}

    def late_collect(self):
        self.late_calls += 1
        self.data["late"] = self.late_calls


def make_request(
    path: str = "/",
    method: str = "GET",
    headers: Optional[Dict[str, str]] = None,
    client: Optional[Tuple[str, int]] = ("127.0.0.1", 50000),
    query_string: bytes = b"",
) -> Request:
    """Build a Starlette request from a bare ASGI scope."""
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": query_string,
        "headers": [
            (key.lower().encode("latin-1"), value.encode("latin-1"))
            for key, value in (headers or {}).items()
        ],
        "client": client,
        "server": ("testserver", 80),
    }
    return Request(scope)


@pytest.fixture
def request_factory():
    return make_request


@pytest.fixture
def storage():
    return InMemoryProfilerStorage()


@pytest.fixture
def mock_storage():
    mock = MagicMock()
    mock.write.return_value = True
    mock.read.return_value = None
    mock.find.return_value = []
    return mock


@pytest.fixture
def profiler(storage):
    return Profiler(storage)


@pytest.fixture
def response():
    return Response(content=b"ok", status_code=200, media_type="text/plain")
