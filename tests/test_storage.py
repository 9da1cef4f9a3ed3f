"""
Profiler Storage Tests

Runs the storage contract against both backends:
- write/read round-trip with parent and children
- find() criteria, ordering and limit
- purge()
Plus file-specific behaviour: index, expiry, write failures.
"""

import json
import time

import pytest
from starlette.responses import Response

from collectors.request import RequestDataCollector
from conftest import make_request
from profiler.file_storage import FileProfilerStorage
from profiler.memory_storage import InMemoryProfilerStorage
from profiler.profile import Profile
from profiler.storage import create_storage, row_matches


def make_profile(token, url="http://testserver/quiz", method="GET", ip="127.0.0.1", time=1700000000, status_code=200):
    profile = Profile(token)
    profile.url = url
    profile.method = method
    profile.ip = ip
    profile.time = time
    profile.status_code = status_code
    return profile


@pytest.fixture(params=["file", "memory"])
def any_storage(request, tmp_path):
    if request.param == "file":
        return FileProfilerStorage(str(tmp_path / "profiler"))
    return InMemoryProfilerStorage()


# ============================================================
# CONTRACT (both backends)
# ============================================================

def test_read_unknown_token_returns_none(any_storage):
    """Test: unknown tokens read as None."""
    assert any_storage.read("nope00") is None


def test_write_read_round_trip(any_storage):
    """Test: a written profile reads back with its collectors."""
    profile = make_profile("abc123", method="POST", status_code=201)
    collector = RequestDataCollector()
    collector.collect(make_request("/quiz", method="POST"), Response(status_code=201))
    profile.add_collector(collector.clone())

    assert any_storage.write(profile) is True
    loaded = any_storage.read("abc123")

    assert loaded.token == "abc123"
    assert loaded.method == "POST"
    assert loaded.status_code == 201
    assert loaded.url == "http://testserver/quiz"
    assert loaded.get_collector("request").data == collector.data


def test_read_rebuilds_parent_and_children(any_storage):
    """Test: children load recursively and keep the parent token."""
    root = make_profile("root00")
    child = make_profile("child0", url="http://testserver/quiz/sub")
    grandchild = make_profile("grand0", url="http://testserver/quiz/sub/sub")
    root.add_child(child)
    child.add_child(grandchild)

    for profile in (grandchild, child, root):
        assert any_storage.write(profile)

    loaded_root = any_storage.read("root00")
    assert [c.token for c in loaded_root.children] == ["child0"]
    loaded_child = loaded_root.get_child_by_token("child0")
    assert loaded_child.parent is loaded_root
    assert [c.token for c in loaded_child.children] == ["grand0"]

    loaded_child_alone = any_storage.read("child0")
    assert loaded_child_alone.parent_token == "root00"


def test_find_filters_and_orders_newest_first(any_storage):
    """Test: criteria combine; results come newest first."""
    any_storage.write(make_profile("aaa001", url="http://testserver/quiz", time=100))
    any_storage.write(make_profile("aaa002", url="http://testserver/answers", method="POST", time=200))
    any_storage.write(make_profile("aaa003", url="http://testserver/quiz/2", ip="10.0.0.5", time=300, status_code=404))

    all_tokens = [p.token for p in any_storage.find(None, None, None, None)]
    assert all_tokens == ["aaa003", "aaa002", "aaa001"]

    assert [p.token for p in any_storage.find(None, "/quiz", None, None)] == ["aaa003", "aaa001"]
    assert [p.token for p in any_storage.find("10.0.0", None, None, None)] == ["aaa003"]
    assert [p.token for p in any_storage.find(None, None, None, "post")] == ["aaa002"]
    assert [p.token for p in any_storage.find(None, None, None, None, status_code="404")] == ["aaa003"]
    assert [p.token for p in any_storage.find(None, None, None, None, start=150, end=250)] == ["aaa002"]
    assert [p.token for p in any_storage.find(None, None, 2, None)] == ["aaa003", "aaa002"]


def test_find_applies_row_filter(any_storage):
    """Test: the filter predicate sees index rows."""
    any_storage.write(make_profile("aaa001", status_code=200))
    any_storage.write(make_profile("aaa002", status_code=500))

    found = any_storage.find(None, None, None, None, filter=lambda row: row["status_code"] >= 500)

    assert [p.token for p in found] == ["aaa002"]


def test_rewrite_keeps_single_index_entry(any_storage):
    """Test: writing the same token twice indexes it once."""
    profile = make_profile("abc123")
    any_storage.write(profile)
    profile.status_code = 500
    any_storage.write(profile)

    found = any_storage.find(None, None, None, None)

    assert [p.token for p in found] == ["abc123"]
    assert found[0].status_code == 500


def test_purge_removes_everything(any_storage):
    """Test: purge() empties the store."""
    any_storage.write(make_profile("abc123"))

    any_storage.purge()

    assert any_storage.read("abc123") is None
    assert any_storage.find(None, None, None, None) == []


def test_stored_snapshot_is_isolated(any_storage):
    """Test: mutating a profile after write does not change stored data."""
    profile = make_profile("abc123")
    any_storage.write(profile)

    profile.url = "http://testserver/changed"

    assert any_storage.read("abc123").url == "http://testserver/quiz"


# ============================================================
# FILE STORAGE
# ============================================================

def test_file_layout_and_index(tmp_path):
    """Test: profile files are sharded by token and indexed once."""
    storage = FileProfilerStorage(str(tmp_path))
    storage.write(make_profile("abc123"))

    path = tmp_path / "23" / "c1" / "abc123.json"
    assert path.exists()
    assert json.loads(path.read_text())["token"] == "abc123"

    rows = [json.loads(line) for line in storage.index_path.read_text().splitlines()]
    assert rows == [{
        "token": "abc123",
        "ip": "127.0.0.1",
        "method": "GET",
        "url": "http://testserver/quiz",
        "time": 1700000000,
        "parent": None,
        "status_code": 200,
    }]


def test_file_write_failure_returns_false(tmp_path):
    """Test: unserializable data makes write() return False."""
    storage = FileProfilerStorage(str(tmp_path))
    profile = make_profile("abc123")
    collector = RequestDataCollector()
    collector.data = {"bad": object()}
    profile.add_collector(collector)

    assert storage.write(profile) is False
    assert storage.read("abc123") is None


def test_file_remove_expired(tmp_path):
    """Test: profiles older than the lifetime are dropped."""
    writer = FileProfilerStorage(str(tmp_path))
    writer.write(make_profile("old001", time=1000))
    writer.write(make_profile("new001", time=5000))

    storage = FileProfilerStorage(str(tmp_path), lifetime=100)
    removed = storage.remove_expired(now=1150)

    assert removed == 1
    assert storage.read("old001") is None
    assert storage.read("new001") is not None
    assert [p.token for p in storage.find(None, None, None, None)] == ["new001"]
    assert storage.remove_expired(now=1150) == 0


def test_file_write_triggers_expiry(tmp_path):
    """Test: indexing a new profile drops expired ones."""
    now = int(time.time())
    storage = FileProfilerStorage(str(tmp_path), lifetime=3600)
    storage.write(make_profile("old001", time=now - 7200))
    storage.write(make_profile("new001", time=now))

    assert storage.read("old001") is None
    assert storage.read("new001") is not None


def test_file_write_survives_expiry_failure(tmp_path, monkeypatch):
    """Test: an I/O error while expiring is logged, write() still succeeds."""
    storage = FileProfilerStorage(str(tmp_path), lifetime=3600)

    def broken_remove_expired(now=None):
        raise OSError("index is read-only")

    monkeypatch.setattr(storage, "remove_expired", broken_remove_expired)

    assert storage.write(make_profile("new001", time=int(time.time()))) is True
    assert storage.read("new001") is not None


def test_file_storage_requires_folder():
    """Test: an empty folder is rejected."""
    with pytest.raises(ValueError):
        FileProfilerStorage("")


# ============================================================
# HELPERS
# ============================================================

def test_create_storage_from_dsn(tmp_path):
    """Test: DSN schemes select the backend."""
    assert isinstance(create_storage(f"file:{tmp_path}"), FileProfilerStorage)
    assert isinstance(create_storage("memory:"), InMemoryProfilerStorage)

    with pytest.raises(ValueError):
        create_storage("redis://localhost")


def test_row_matches_open_bounds():
    """Test: None criteria match everything."""
    row = {"token": "abc123", "ip": None, "url": None, "method": None, "time": 0, "status_code": None}

    assert row_matches(row)
    assert not row_matches(row, ip="127")
