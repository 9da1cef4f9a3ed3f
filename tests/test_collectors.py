"""
Collector Tests

Built-in collectors, snapshot restore and YAML loading.
"""

import pytest
from starlette.responses import Response

from collectors import (
    ExceptionDataCollector,
    RequestDataCollector,
    TimeDataCollector,
    default_collectors,
    load_collectors,
)
from collectors.base import import_collector_class, restore_collector
from collectors.timing import START_TIME_SCOPE_KEY
from conftest import make_request


def test_request_collector_redacts_sensitive_headers():
    """Test: authorization/cookie values are masked."""
    collector = RequestDataCollector()
    request = make_request(
        "/quiz",
        method="POST",
        headers={"Authorization": "Bearer secret", "Accept": "application/json"},
        query_string=b"page=2",
    )
    response = Response(content=b"{}", status_code=201, media_type="application/json")

    collector.collect(request, response)

    assert collector.method == "POST"
    assert collector.path == "/quiz"
    assert collector.status_code == 201
    assert collector.data["query"] == {"page": "2"}
    assert collector.data["request_headers"]["authorization"] == "******"
    assert collector.data["request_headers"]["accept"] == "application/json"
    assert collector.data["content_type"] == "application/json"


def test_time_collector_uses_scope_start_and_late_collects():
    """Test: duration is computed at late_collect()."""
    collector = TimeDataCollector()
    request = make_request("/quiz")
    request.scope[START_TIME_SCOPE_KEY] = 1000.0

    collector.collect(request, Response())
    assert collector.duration_ms is None

    collector.late_collect()
    assert collector.data["start_time"] == 1000.0
    assert collector.duration_ms > 0


def test_exception_collector():
    """Test: exception details are captured only when present."""
    collector = ExceptionDataCollector()

    collector.collect(make_request("/"), Response())
    assert not collector.has_exception

    try:
        raise KeyError("question")
    except KeyError as exc:
        collector.collect(make_request("/"), Response(status_code=500), exc)

    assert collector.has_exception
    assert collector.data["class"] == "KeyError"
    assert "question" in collector.message
    assert any("KeyError" in line for line in collector.data["traceback"])


def test_clone_is_independent():
    """Test: clone() deep-copies the snapshot."""
    collector = RequestDataCollector()
    collector.collect(make_request("/a"), Response())
    clone = collector.clone()

    collector.collect(make_request("/b"), Response())

    assert clone.path == "/a"
    assert collector.path == "/b"


def test_reset_clears_data():
    """Test: reset() empties the snapshot."""
    collector = RequestDataCollector()
    collector.collect(make_request("/a"), Response())

    collector.reset()

    assert collector.data == {}


def test_restore_from_dict():
    """Test: to_dict() output restores to the same class and data."""
    collector = RequestDataCollector()
    collector.collect(make_request("/a"), Response())

    restored = restore_collector(collector.to_dict())

    assert isinstance(restored, RequestDataCollector)
    assert restored.name == "request"
    assert restored.data == collector.data


def test_import_collector_class_rejects_bad_paths():
    """Test: malformed or non-collector paths raise ValueError."""
    with pytest.raises(ValueError):
        import_collector_class("collectors.request")
    with pytest.raises(ValueError):
        import_collector_class("profiler.profile:Profile")


def test_default_collectors():
    """Test: defaults are request, time, exception in order."""
    assert [c.name for c in default_collectors()] == ["request", "time", "exception"]
    assert [c.name for c in load_collectors(None)] == ["request", "time", "exception"]


def test_load_collectors_from_yaml(tmp_path):
    """Test: YAML config picks classes and passes options."""
    config = tmp_path / "collectors.yaml"
    config.write_text(
        "collectors:\n"
        "  - class: collectors.request:RequestDataCollector\n"
        "    options:\n"
        "      redact_headers: [x-api-key]\n"
        "  - class: collectors.timing:TimeDataCollector\n"
    )

    collectors = load_collectors(str(config))

    assert [c.name for c in collectors] == ["request", "time"]
    request_collector = collectors[0]
    request_collector.collect(
        make_request("/", headers={"X-Api-Key": "k", "Authorization": "Bearer t"}),
        Response(),
    )
    assert request_collector.data["request_headers"]["x-api-key"] == "******"
    assert request_collector.data["request_headers"]["authorization"] == "Bearer t"
