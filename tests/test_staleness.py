"""Tests for staleness timers and time-bounded directory caching."""

from __future__ import annotations

import threading
import time

from iotfs.tree import CacheState, Node, StalenessScheduler


class TestScheduler:
    """The timer heap, driven by hand."""

    def test_fires_only_after_deadline(self, scheduler: StalenessScheduler, clock) -> None:
        fired = []
        scheduler.schedule(10, lambda: fired.append("x"))
        clock.advance(9.9)
        assert scheduler.run_due() == 0
        clock.advance(0.2)
        assert scheduler.run_due() == 1
        assert fired == ["x"]

    def test_fires_once(self, scheduler: StalenessScheduler, clock) -> None:
        fired = []
        scheduler.schedule(1, lambda: fired.append("x"))
        clock.advance(5)
        scheduler.run_due()
        scheduler.run_due()
        assert fired == ["x"]

    def test_fires_in_deadline_order(self, scheduler: StalenessScheduler, clock) -> None:
        fired = []
        scheduler.schedule(3, lambda: fired.append("late"))
        scheduler.schedule(1, lambda: fired.append("early"))
        clock.advance(5)
        scheduler.run_due()
        assert fired == ["early", "late"]

    def test_cancelled_timer_does_not_fire(self, scheduler: StalenessScheduler, clock) -> None:
        fired = []
        flip = scheduler.schedule(1, lambda: fired.append("x"))
        flip.cancel()
        assert scheduler.pending == 0
        clock.advance(5)
        assert scheduler.run_due() == 0
        assert fired == []

    def test_failing_callback_does_not_stop_others(
        self, scheduler: StalenessScheduler, clock
    ) -> None:
        fired = []

        def boom() -> None:
            raise RuntimeError("boom")

        scheduler.schedule(1, boom)
        scheduler.schedule(2, lambda: fired.append("x"))
        clock.advance(5)
        assert scheduler.run_due() == 2
        assert fired == ["x"]

    def test_background_thread_fires(self) -> None:
        scheduler = StalenessScheduler()
        done = threading.Event()
        try:
            scheduler.schedule(0.01, done.set)
            assert done.wait(timeout=5)
        finally:
            scheduler.stop()

    def test_stop_drops_pending(self) -> None:
        scheduler = StalenessScheduler()
        fired = []
        scheduler.schedule(0.05, lambda: fired.append("x"))
        scheduler.stop()
        time.sleep(0.1)
        assert fired == []
        assert scheduler.pending == 0


class TestNodeStaleness:
    """A fresh node flips to stale once its interval has passed."""

    def test_flip_only_changes_state(self, scheduler, clock) -> None:
        root = Node(None, "", is_dir=True, scheduler=scheduler)
        d = root.add_child(Node(root, "d", is_dir=True, refresh_interval=30))
        d.add_child(Node(d, "keep"))
        d.ensure_fresh()
        clock.advance(31)
        scheduler.run_due()
        assert d.state is CacheState.STALE
        assert "keep" in d.children

    def test_no_interval_never_goes_stale(self, scheduler, clock) -> None:
        root = Node(None, "", is_dir=True, scheduler=scheduler)
        d = root.add_child(Node(root, "d", is_dir=True))
        d.ensure_fresh()
        assert scheduler.pending == 0

    def test_reconfigure_cancels_pending_flip(self, scheduler, clock) -> None:
        root = Node(None, "", is_dir=True, scheduler=scheduler)
        d = root.add_child(Node(root, "d", is_dir=True, refresh_interval=30))
        d.ensure_fresh()
        d.set_refresh_interval(None)
        clock.advance(60)
        assert scheduler.run_due() == 0
        assert d.state is CacheState.FRESH

    def test_reconfigure_rearms_fresh_node(self, scheduler, clock) -> None:
        root = Node(None, "", is_dir=True, scheduler=scheduler)
        d = root.add_child(Node(root, "d", is_dir=True, refresh_interval=30))
        d.ensure_fresh()
        d.set_refresh_interval(5)
        assert scheduler.pending == 1
        clock.advance(6)
        scheduler.run_due()
        assert d.state is CacheState.STALE
        assert d.refresh_interval == 5.0


class SlowDir(Node):
    """Directory whose refresh blocks until released."""

    def __init__(self, parent, name) -> None:
        super().__init__(parent, name, is_dir=True)
        self.refreshes = 0
        self.entered = threading.Event()
        self.proceed = threading.Event()

    def refresh(self) -> None:
        self.refreshes += 1
        self.entered.set()
        self.proceed.wait(timeout=5)
        self.reconcile_children([Node(self, "only")])


class TestConcurrentAccess:
    """Concurrent readers share a single refresh per node."""

    def test_parallel_listings_refresh_once(self, scheduler) -> None:
        root = Node(None, "", is_dir=True, scheduler=scheduler)
        d = root.add_child(SlowDir(root, "d"))
        results = []
        threads = [
            threading.Thread(target=lambda: results.append(d.list_entries())) for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        assert d.entered.wait(timeout=5)
        time.sleep(0.05)
        d.proceed.set()
        for thread in threads:
            thread.join(timeout=5)

        assert d.refreshes == 1
        assert results == [["only"]] * 8
        assert d.state is CacheState.FRESH


class TestCollectionTTL:
    """Listings are reused within the interval and re-fetched after it."""

    def test_access_within_interval_reuses_listing(self, ops, seeded_catalog, clock, scheduler) -> None:
        ops.readdir("/things")
        clock.advance(10)
        scheduler.run_due()
        ops.readdir("/things")
        ops.getattr("/things/lamp-1")
        assert seeded_catalog.count("list_things") == 1

    def test_refetch_happens_on_next_access_not_before(
        self, ops, seeded_catalog, clock, scheduler
    ) -> None:
        ops.readdir("/things")
        seeded_catalog.add_thing("lamp-2")
        clock.advance(31)
        scheduler.run_due()
        assert seeded_catalog.count("list_things") == 1

        entries = ops.readdir("/things")

        assert seeded_catalog.count("list_things") == 2
        assert "lamp-2" in entries

    def test_surviving_entries_keep_identity(self, iotfs, seeded_catalog, clock, scheduler) -> None:
        things = iotfs.root.resolve("/things")
        lamp = things.resolve("lamp-1")
        seeded_catalog.add_thing("lamp-2")
        clock.advance(31)
        scheduler.run_due()
        things.list_entries()
        assert things.get_child("lamp-1") is lamp

    def test_vanished_entries_are_dropped(self, ops, seeded_catalog, clock, scheduler) -> None:
        ops.readdir("/things")
        del seeded_catalog.things["lamp-1"]
        clock.advance(31)
        scheduler.run_due()
        assert "lamp-1" not in ops.readdir("/things")

    def test_failed_refetch_keeps_cached_listing(
        self, ops, seeded_catalog, clock, scheduler
    ) -> None:
        ops.readdir("/things")
        clock.advance(31)
        scheduler.run_due()
        seeded_catalog.fail("list_things")
        assert ops.invoke("readdir", "/things") < 0
        seeded_catalog.heal("list_things")
        assert "lamp-1" in ops.readdir("/things")
