"""Tests for collector module."""

import io
import json
import os
import queue
import time

import pytest

from dirwatcher.collector import Collector
from dirwatcher.exceptions import (
    CollectorProtocolError,
    PersistenceError,
    WatcherAlreadyRunningError,
)
from dirwatcher.models import EventType, FileStat
from dirwatcher.scan import Scan


class FixedScan(Scan):
    """A Scan with predetermined results."""

    def __init__(self, *stats):
        super().__init__([])
        self._fixed = list(stats)

    def run(self):
        return self._fixed


def drain(q):
    events = []
    while True:
        try:
            events.append(q.get_nowait())
        except queue.Empty:
            return events


def summary(events):
    return [(e.type.value, e.path) for e in events]


@pytest.fixture
def notifications():
    return queue.Queue()


@pytest.fixture
def collection():
    return queue.Queue()


def make_collector(notifications, collection, **kwargs):
    return Collector(notifications, collection, **kwargs)


class TestCollectorEvents:
    """Tests for event derivation across scans."""

    def test_first_observation_is_added_once(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))

        assert summary(drain(notifications)) == [("added", "/a")]

    def test_unchanged_without_stability_emits_nothing(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))
        drain(notifications)

        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))

        assert drain(notifications) == []

    def test_modified(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))
        collector.on_scan(FixedScan(FileStat("/a", 2.0, 10)))

        assert summary(drain(notifications)) == [("added", "/a"), ("modified", "/a")]

    def test_missing_path_is_removed(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10), FileStat("/b", 1.0, 10)))
        drain(notifications)

        collector.on_scan(FixedScan(FileStat("/b", 1.0, 10)))

        assert summary(drain(notifications)) == [("removed", "/a")]
        assert "/a" not in collector.stats
        assert "/b" in collector.stats

    def test_removed_event_emitted_once(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))
        collector.on_scan(FixedScan())
        collector.on_scan(FixedScan())

        assert summary(drain(notifications)) == [("added", "/a"), ("removed", "/a")]

    def test_removals_follow_additions_in_same_scan(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.on_scan(FixedScan(FileStat("/z", 1.0, 10)))
        drain(notifications)

        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))

        assert summary(drain(notifications)) == [("added", "/a"), ("removed", "/z")]

    def test_reconciliation_disabled(self, notifications, collection):
        collector = make_collector(notifications, collection, reconcile_removed=False)
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))
        drain(notifications)

        collector.on_scan(FixedScan())

        assert drain(notifications) == []
        assert "/a" in collector.stats

    def test_on_stat_removed_sentinel(self, notifications, collection):
        collector = make_collector(notifications, collection, reconcile_removed=False)
        collector.on_stat(FileStat("/a", 1.0, 10))
        collector.on_stat(FileStat.for_removed_path("/a"))

        assert summary(drain(notifications)) == [("added", "/a"), ("removed", "/a")]
        assert collector.stats == {}

    def test_on_stat_without_emit_updates_state(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.on_stat(FileStat("/a", 1.0, 10), emit_event=False)

        assert drain(notifications) == []
        assert collector.stats["/a"] == FileStat("/a", 1.0, 10)

    def test_file_lifecycle_on_disk(self, notifications, collection, tmp_path):
        collector = make_collector(notifications, collection)
        pattern = str(tmp_path / "*")
        target = tmp_path / "a"

        collector.on_scan(Scan(pattern))
        assert drain(notifications) == []

        target.write_bytes(b"x" * 10)
        collector.on_scan(Scan(pattern))
        assert summary(drain(notifications)) == [("added", str(target))]

        target.write_bytes(b"x" * 20)
        collector.on_scan(Scan(pattern))
        assert summary(drain(notifications)) == [("modified", str(target))]

        target.unlink()
        collector.on_scan(Scan(pattern))
        assert summary(drain(notifications)) == [("removed", str(target))]
        assert str(target) not in collector.stats


class TestCollectorPreLoad:
    """Tests for seeding state without events."""

    def test_pre_load_suppresses_added(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)), emit_events=False)
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))

        assert drain(notifications) == []
        assert "/a" in collector.stats

    def test_pre_load_then_modification(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)), emit_events=False)
        collector.on_scan(FixedScan(FileStat("/a", 5.0, 10)))

        assert summary(drain(notifications)) == [("modified", "/a")]

    def test_pre_load_does_not_arm_stability(self, notifications, collection):
        collector = make_collector(notifications, collection, stable=1)
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)), emit_events=False)
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))

        assert drain(notifications) == []
        assert collector.stable_counts == {}


class TestCollectorStability:
    """Tests for the stable event policy."""

    def test_threshold_two(self, notifications, collection):
        collector = make_collector(notifications, collection, stable=2)
        stat = FileStat("/b", 1.0, 10)

        collector.on_scan(FixedScan(stat))
        assert summary(drain(notifications)) == [("added", "/b")]

        collector.on_scan(FixedScan(stat))
        assert drain(notifications) == []
        assert collector.stable_counts == {"/b": 1}

        collector.on_scan(FixedScan(stat))
        assert summary(drain(notifications)) == [("stable", "/b")]
        assert collector.stable_counts == {}

        collector.on_scan(FixedScan(stat))
        collector.on_scan(FixedScan(stat))
        collector.on_scan(FixedScan(stat))
        assert drain(notifications) == []

    def test_fewer_observations_than_threshold(self, notifications, collection):
        collector = make_collector(notifications, collection, stable=3)
        stat = FileStat("/a", 1.0, 10)

        collector.on_scan(FixedScan(stat))
        collector.on_scan(FixedScan(stat))
        collector.on_scan(FixedScan(stat))

        assert [e.type for e in drain(notifications)] == [EventType.ADDED]

    def test_modification_resets_counter(self, notifications, collection):
        collector = make_collector(notifications, collection, stable=2)

        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))
        assert collector.stable_counts == {"/a": 1}

        collector.on_scan(FixedScan(FileStat("/a", 2.0, 10)))
        assert collector.stable_counts == {"/a": 0}

        collector.on_scan(FixedScan(FileStat("/a", 2.0, 10)))
        collector.on_scan(FixedScan(FileStat("/a", 2.0, 10)))

        assert summary(drain(notifications)) == [
            ("added", "/a"),
            ("modified", "/a"),
            ("stable", "/a"),
        ]

    def test_stable_rearmed_by_modification(self, notifications, collection):
        collector = make_collector(notifications, collection, stable=1)

        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))
        collector.on_scan(FixedScan(FileStat("/a", 2.0, 10)))
        collector.on_scan(FixedScan(FileStat("/a", 2.0, 10)))

        assert summary(drain(notifications)) == [
            ("added", "/a"),
            ("stable", "/a"),
            ("modified", "/a"),
            ("stable", "/a"),
        ]

    def test_removed_disarms(self, notifications, collection):
        collector = make_collector(notifications, collection, stable=2)
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))
        collector.on_scan(FixedScan())

        assert collector.stable_counts == {}

    def test_disabled_stability_never_emits_stable(self, notifications, collection):
        collector = make_collector(notifications, collection)
        for _ in range(5):
            collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))

        assert [e.type for e in drain(notifications)] == [EventType.ADDED]
        assert collector.stable_counts == {"/a": 0}


class TestCollectorSorting:
    """Tests for event ordering within a scan."""

    STATS = [
        FileStat("/b", 3.0, 100),
        FileStat("/c", 1.0, 300),
        FileStat("/a", 2.0, 200),
    ]

    def paths_for(self, notifications, collection, **kwargs):
        collector = make_collector(notifications, collection, **kwargs)
        collector.on_scan(FixedScan(*self.STATS))
        return [e.path for e in drain(notifications)]

    def test_path_ascending(self, notifications, collection):
        assert self.paths_for(notifications, collection) == ["/a", "/b", "/c"]

    def test_path_descending(self, notifications, collection):
        assert self.paths_for(notifications, collection, order_by="descending") == ["/c", "/b", "/a"]

    def test_mtime_ascending(self, notifications, collection):
        assert self.paths_for(notifications, collection, sort_by="mtime") == ["/c", "/a", "/b"]

    def test_mtime_descending(self, notifications, collection):
        paths = self.paths_for(notifications, collection, sort_by="mtime", order_by="descending")
        assert paths == ["/b", "/a", "/c"]

    def test_size_ascending(self, notifications, collection):
        assert self.paths_for(notifications, collection, sort_by="size") == ["/b", "/a", "/c"]

    def test_size_descending(self, notifications, collection):
        paths = self.paths_for(notifications, collection, sort_by="size", order_by="descending")
        assert paths == ["/c", "/a", "/b"]

    def test_mtime_descending_on_disk(self, notifications, collection, tmp_path):
        names = ["m", "a", "z", "q", "c"]
        for offset, name in enumerate(names):
            path = tmp_path / name
            path.write_text(name)
            mtime = 1_000_000 + offset * 10
            os.utime(path, (mtime, mtime))

        collector = make_collector(
            notifications, collection, sort_by="mtime", order_by="descending"
        )
        collector.on_scan(Scan(str(tmp_path / "*")))

        mtimes = [e.stat.mtime for e in drain(notifications)]
        assert len(mtimes) == len(names)
        assert all(a > b for a, b in zip(mtimes, mtimes[1:]))


class TestCollectorLoop:
    """Tests for draining the collection queue."""

    def test_run_processes_scans_and_stats(self, notifications, collection):
        collector = make_collector(notifications, collection, reconcile_removed=False)
        collection.put(FixedScan(FileStat("/a", 1.0, 10)))
        collection.put(FileStat("/b", 1.0, 10))
        collection.put(FileStat.for_removed_path("/a"))

        collector.run()

        assert summary(drain(notifications)) == [
            ("added", "/a"),
            ("added", "/b"),
            ("removed", "/a"),
        ]
        assert collection.empty()

    def test_run_on_empty_queue(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.run()
        assert notifications.empty()

    def test_unknown_item_raises(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collection.put("not a scan")

        with pytest.raises(CollectorProtocolError, match="Unknown item"):
            collector.run()

    def test_unknown_item_aborts_loop(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.start()
        collection.put(object())

        collector.join(timeout=2.0)

        assert collector.running is False
        assert isinstance(collector.error, CollectorProtocolError)

    def test_background_loop_collects(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.start()
        try:
            collection.put(FixedScan(FileStat("/a", 1.0, 10)))
            event = notifications.get(timeout=2.0)
        finally:
            collector.stop()

        assert (event.type, event.path) == (EventType.ADDED, "/a")
        assert collector.running is False


    def test_run_after_stop_drains_queue(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.start()
        collector.stop()
        collection.put(FixedScan(FileStat("/a", 1.0, 10)))

        collector.run()

        assert summary(drain(notifications)) == [("added", "/a")]


class TestCollectorPersistence:
    """Tests for dump_stats/load_stats."""

    def test_round_trip(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.on_scan(FixedScan(FileStat("/a", 1.25, 10), FileStat("/b", 1700000000.123456, 0)))

        buffer = io.StringIO()
        collector.dump_stats(buffer)
        buffer.seek(0)

        restored = make_collector(queue.Queue(), queue.Queue())
        restored.load_stats(buffer)

        assert restored.stats == collector.stats
        assert {p: (s.mtime, s.size) for p, s in restored.stats.items()} == {
            "/a": (1.25, 10),
            "/b": (1700000000.123456, 0),
        }

    def test_round_trip_removed_sentinel(self, notifications, collection):
        document = {"version": 1, "stats": {"/gone": {"mtime": None, "size": None}}}
        collector = make_collector(notifications, collection)
        collector.load_stats(io.StringIO(json.dumps(document)))

        buffer = io.StringIO()
        collector.dump_stats(buffer)
        buffer.seek(0)

        assert json.load(buffer) == document
        assert collector.stats["/gone"].removed is True

    def test_load_replaces_state(self, notifications, collection):
        collector = make_collector(notifications, collection, stable=2)
        collector.on_scan(FixedScan(FileStat("/old", 1.0, 1)))

        document = {"version": 1, "stats": {"/new": {"mtime": 2.0, "size": 2}}}
        collector.load_stats(io.StringIO(json.dumps(document)))

        assert list(collector.stats) == ["/new"]
        assert collector.stable_counts == {}

    def test_loaded_state_is_baseline(self, notifications, collection):
        document = {"version": 1, "stats": {"/a": {"mtime": 1.0, "size": 10}}}
        collector = make_collector(notifications, collection)
        collector.load_stats(io.StringIO(json.dumps(document)))

        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))

        assert drain(notifications) == []

    @pytest.mark.parametrize("payload", ["not json", "[]", '{"stats": 5}', "{}"])
    def test_malformed_document(self, notifications, collection, payload):
        collector = make_collector(notifications, collection)
        with pytest.raises(PersistenceError):
            collector.load_stats(io.StringIO(payload))

    def test_load_while_running_rejected(self, notifications, collection):
        collector = make_collector(notifications, collection)
        collector.start()
        try:
            with pytest.raises(WatcherAlreadyRunningError):
                collector.load_stats(io.StringIO('{"stats": {}}'))
        finally:
            collector.stop()

    def test_reset(self, notifications, collection):
        collector = make_collector(notifications, collection, stable=2)
        collector.on_scan(FixedScan(FileStat("/a", 1.0, 10)))

        collector.reset()

        assert collector.stats == {}
        assert collector.stable_counts == {}
