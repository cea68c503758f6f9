"""Tests for flow/store.py — CRUD, queries, invalid-entry policies, locking.

All tests use real file I/O via tmp_path fixtures.
"""

from __future__ import annotations

import json
import os
import threading
import time
from datetime import UTC, datetime

import pytest

from flow import config
from flow.errors import (
    InvalidFilenameError,
    ReadError,
    SessionNotFoundError,
    StorageUnavailableError,
    WriteError,
)
from flow.filename import encode_filename
from flow.models import InvalidEntryPolicy, SessionsFilters, TimeRange
from flow.store import FileSystemSessionStore, SessionStore, open_store

from conftest import at, make_session

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def root(tmp_path):
    return tmp_path / "sessions"


@pytest.fixture
def store(root):
    return FileSystemSessionStore(root)


@pytest.fixture
def timeline(store):
    """Three sessions at t=10, 20, 30 across two projects."""
    sessions = [
        make_session(id="s20", project="Flow", start_time=at(20), tags=["b", "a"]),
        make_session(id="s10", project="Flow", start_time=at(10), tags=["a"]),
        make_session(id="s30", project="Other", start_time=at(30), tags=["c"]),
    ]
    for s in sessions:
        store.save(s)
    return sessions


def _files(root):
    return sorted(p.name for p in root.iterdir() if not p.name.startswith("."))


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------


class TestInit:
    def test_creates_missing_directory_with_parents(self, tmp_path):
        root = tmp_path / "a" / "b" / "sessions"
        FileSystemSessionStore(root)
        assert root.is_dir()

    def test_existing_directory_is_kept(self, root):
        root.mkdir()
        (root / "x-Flow-1.json").write_text("{}")
        FileSystemSessionStore(root)
        assert _files(root) == ["x-Flow-1.json"]

    def test_uncreatable_directory_is_fatal(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(StorageUnavailableError):
            FileSystemSessionStore(blocker / "sessions")

    def test_is_a_session_store(self, store):
        assert isinstance(store, SessionStore)


# ---------------------------------------------------------------------------
# save / find_by_id
# ---------------------------------------------------------------------------


class TestSave:
    def test_writes_one_file_named_by_codec(self, store, root):
        s = make_session()
        store.save(s)
        assert _files(root) == [encode_filename(s)]

    def test_body_is_indented_json(self, store, root):
        s = make_session()
        store.save(s)
        raw = (root / encode_filename(s)).read_text(encoding="utf-8")
        assert raw.startswith('{\n  "id": "abc123"')
        assert json.loads(raw) == s.to_dict()

    def test_unicode_project_kept_in_body(self, store, root):
        s = make_session(project="Café ☕")
        store.save(s)
        data = json.loads((root / encode_filename(s)).read_text(encoding="utf-8"))
        assert data["project"] == "Café ☕"

    def test_overwrites_same_name(self, store, root):
        store.save(make_session(tags=["one"]))
        store.save(make_session(tags=["two"]))
        assert len(_files(root)) == 1
        assert store.find_by_id("abc123").tags == ["two"]

    def test_leaves_no_temp_files(self, store, root):
        store.save(make_session())
        assert not [p for p in root.iterdir() if p.suffix == ".tmp"]

    def test_rejects_id_with_delimiter(self, store, root):
        with pytest.raises(ValueError):
            store.save(make_session(id="has-dash"))
        assert _files(root) == []

    def test_rejects_path_like_id(self, store):
        with pytest.raises(ValueError):
            store.save(make_session(id="../escape"))

    def test_rejects_pre_epoch_start(self, store):
        with pytest.raises(ValueError):
            store.save(make_session(start_time=datetime(1960, 1, 1, tzinfo=UTC)))

    @pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
    def test_write_failure(self, store, root):
        root.chmod(0o500)
        try:
            with pytest.raises(WriteError):
                store.save(make_session())
        finally:
            root.chmod(0o755)


class TestFindById:
    def test_roundtrip(self, store):
        s = make_session(end_time=datetime(2024, 4, 13, 18, 0, tzinfo=UTC))
        store.save(s)
        assert store.find_by_id(s.id) == s

    def test_roundtrip_truncates_sub_seconds(self, store):
        start = datetime(2024, 4, 13, 17, 20, 0, 123456, tzinfo=UTC)
        store.save(make_session(start_time=start))
        loaded = store.find_by_id("abc123")
        assert loaded.start_time == start.replace(microsecond=0)
        assert loaded.project == "Flow"
        assert loaded.tags == ["start"]

    def test_not_found_returns_none(self, store, timeline):
        assert store.find_by_id("missing") is None

    def test_empty_store(self, store):
        assert store.find_by_id("abc123") is None

    def test_corrupt_body_is_fatal(self, store, root):
        (root / "bad-Flow-10.json").write_text("{not json")
        with pytest.raises(ReadError):
            store.find_by_id("bad")

    def test_missing_fields_is_fatal(self, store, root):
        (root / "bad-Flow-10.json").write_text('{"id": "bad"}')
        with pytest.raises(ReadError):
            store.find_by_id("bad")

    @pytest.mark.parametrize("tags", ["abc", ["a", 1], {"a": 1}])
    def test_malformed_tags_is_fatal(self, store, root, tags):
        body = make_session(id="x1", start_time=at(10)).to_dict()
        body["tags"] = tags
        (root / "x1-Flow-10.json").write_text(json.dumps(body))
        with pytest.raises(ReadError):
            store.find_by_id("x1")

    def test_symlink_refused(self, store, root, tmp_path):
        target = tmp_path / "elsewhere.json"
        target.write_text(json.dumps(make_session(id="link").to_dict()))
        (root / "link-Flow-10.json").symlink_to(target)
        with pytest.raises(ReadError):
            store.find_by_id("link")

    def test_invalid_name_fails_lookup(self, store, root, timeline):
        (root / "garbage.json").write_text("{}")
        with pytest.raises(InvalidFilenameError):
            store.find_by_id("s30")


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDelete:
    def test_removes_exactly_one_file(self, store, root, timeline):
        store.delete("s20")
        assert len(_files(root)) == 2
        assert store.find_by_id("s20") is None
        assert store.find_by_id("s10") is not None

    def test_not_found(self, store, root, timeline):
        before = _files(root)
        with pytest.raises(SessionNotFoundError) as exc_info:
            store.delete("missing")
        assert exc_info.value.session_id == "missing"
        assert _files(root) == before


# ---------------------------------------------------------------------------
# find_all
# ---------------------------------------------------------------------------


class TestFindAll:
    def test_sorted_ascending_by_start_time(self, store, timeline):
        assert [s.id for s in store.find_all()] == ["s10", "s20", "s30"]

    def test_empty_store(self, store):
        assert store.find_all() == []

    def test_empty_filters_return_everything(self, store, timeline):
        assert len(store.find_all(SessionsFilters())) == 3

    @pytest.mark.parametrize("time_range, expected", [
        (TimeRange(), ["s10", "s20", "s30"]),
        (TimeRange(until=at(25)), ["s10", "s20"]),
        (TimeRange(since=at(15)), ["s20", "s30"]),
        (TimeRange(since=at(15), until=at(25)), ["s20"]),
    ])
    def test_time_range(self, store, timeline, time_range, expected):
        sessions = store.find_all(SessionsFilters(time_range=time_range))
        assert [s.id for s in sessions] == expected

    def test_project_filter(self, store, timeline):
        sessions = store.find_all(SessionsFilters(project="Flow"))
        assert [s.id for s in sessions] == ["s10", "s20"]

    def test_project_and_time_range(self, store, timeline):
        sessions = store.find_all(
            SessionsFilters(project="Flow", time_range=TimeRange(since=at(15)))
        )
        assert [s.id for s in sessions] == ["s20"]

    def test_project_filter_matches_sanitized_name(self, store):
        store.save(make_session(id="x1", project="My App", start_time=at(10)))
        sessions = store.find_all(SessionsFilters(project="My-App"))
        assert [s.project for s in sessions] == ["My App"]

    def test_invalid_name_fails_listing(self, store, root, timeline):
        (root / "garbage.json").write_text("{}")
        with pytest.raises(InvalidFilenameError):
            store.find_all()

    def test_invalid_name_skipped_when_configured(self, root, timeline):
        (root / "garbage.json").write_text("{}")
        skipping = FileSystemSessionStore(root, InvalidEntryPolicy.SKIP)
        assert [s.id for s in skipping.find_all()] == ["s10", "s20", "s30"]

    def test_reflects_disk_without_caching(self, store, root, timeline):
        assert len(store.find_all()) == 3
        (root / encode_filename(timeline[0])).unlink()
        assert len(store.find_all()) == 2


# ---------------------------------------------------------------------------
# find_last
# ---------------------------------------------------------------------------


class TestFindLast:
    def test_returns_latest_start(self, store, timeline):
        assert store.find_last().id == "s30"

    def test_empty_store(self, store):
        assert store.find_last() is None

    def test_reads_only_latest_body(self, store, root, timeline):
        # An older file with a broken body is never opened.
        (root / "old-Flow-1.json").write_text("{not json")
        assert store.find_last().id == "s30"

    def test_invalid_name_fails(self, store, root, timeline):
        (root / "garbage.json").write_text("{}")
        with pytest.raises(InvalidFilenameError):
            store.find_last()

    def test_invalid_name_skipped_when_configured(self, root, timeline):
        (root / "garbage.json").write_text("{}")
        skipping = FileSystemSessionStore(root, InvalidEntryPolicy.SKIP)
        assert skipping.find_last().id == "s30"


# ---------------------------------------------------------------------------
# Distinct derivations
# ---------------------------------------------------------------------------


class TestDistinct:
    def test_projects_first_seen_order(self, store):
        for i, project in enumerate(["B", "A", "B", "C", "A"]):
            store.save(make_session(id=f"s{i}", project=project, start_time=at(10 + i)))
        assert store.find_all_projects() == ["B", "A", "C"]

    def test_projects_empty(self, store):
        assert store.find_all_projects() == []

    def test_project_tags_first_seen_order(self, store, timeline):
        store.save(make_session(id="s40", project="Flow", start_time=at(40), tags=["a", "d", "b"]))
        assert store.find_all_project_tags("Flow") == ["a", "b", "d"]

    def test_project_tags_exclude_other_projects(self, store, timeline):
        assert store.find_all_project_tags("Other") == ["c"]

    def test_project_tags_unknown_project(self, store, timeline):
        assert store.find_all_project_tags("Nope") == []


# ---------------------------------------------------------------------------
# Locking
# ---------------------------------------------------------------------------


class TestLock:
    def test_lock_file_is_hidden_from_index(self, store, root):
        with store.lock():
            store.save(make_session())
        assert (root / ".lock").exists()
        assert [s.id for s in store.find_all()] == ["abc123"]

    def test_lock_serializes_holders(self, store):
        order = []

        def worker(name):
            with store.lock():
                order.append(f"{name}-in")
                time.sleep(0.05)
                order.append(f"{name}-out")

        threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert order[0].endswith("-in")
        assert order[1] == order[0].replace("-in", "-out")


# ---------------------------------------------------------------------------
# open_store
# ---------------------------------------------------------------------------


class TestOpenStore:
    def test_uses_configured_directory(self, isolate_config):
        store = open_store()
        assert store.root == isolate_config / "sessions"
        assert store.root.is_dir()

    def test_uses_configured_policy(self, isolate_config):
        settings = config.FlowSettings(invalid_entry_policy=InvalidEntryPolicy.SKIP)
        store = open_store(settings)
        assert store.index.invalid_entry_policy == InvalidEntryPolicy.SKIP
