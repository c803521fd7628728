"""Pin ownership tracker."""

from __future__ import annotations

from pinsync.sync.tracker import PinOwnershipTracker


def test_mark_and_query():
    tracker = PinOwnershipTracker()
    tracker.mark_pinned("Qm1")
    tracker.mark_pinned("Qm2")
    tracker.mark_pinned("Qm1")

    assert tracker.contains("Qm1")
    assert "Qm2" in tracker
    assert len(tracker) == 2
    assert tracker.all() == {"Qm1", "Qm2"}

    tracker.mark_unpinned("Qm1")
    tracker.mark_unpinned("QmNeverPinned")
    assert not tracker.contains("Qm1")
    assert tracker.all() == {"Qm2"}


def test_all_is_a_snapshot():
    tracker = PinOwnershipTracker()
    tracker.mark_pinned("Qm1")
    snapshot = tracker.all()
    tracker.mark_pinned("Qm2")
    assert snapshot == {"Qm1"}


def test_instances_are_independent():
    a = PinOwnershipTracker()
    b = PinOwnershipTracker()
    a.mark_pinned("Qm1")
    assert not b.contains("Qm1")
