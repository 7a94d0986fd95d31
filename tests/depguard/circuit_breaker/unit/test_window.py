from __future__ import annotations

import pytest

from depguard.circuit_breaker import BucketedFailureWindow, SlidingFailureWindow


def test_sliding_window_excludes_entry_exactly_window_old() -> None:
    window = SlidingFailureWindow()
    window.add(10.0)
    window.add(12.0)

    assert window.count(15.0, 5.0) == 1
    assert window.count(14.5, 5.0) == 2


def test_sliding_window_count_does_not_prune() -> None:
    window = SlidingFailureWindow()
    window.add(1.0)

    assert window.count(100.0, 5.0) == 0
    assert window.count(2.0, 5.0) == 1


def test_sliding_window_prune_drops_expired_entries() -> None:
    window = SlidingFailureWindow()
    for at in (1.0, 2.0, 3.0, 4.0, 8.0):
        window.add(at)

    assert window.prune(8.0, 5.0) == 2
    assert window.count(4.0, 5.0) == 2


def test_sliding_window_clear_forgets_everything() -> None:
    window = SlidingFailureWindow()
    window.add(1.0)
    window.clear()

    assert window.prune(1.0, 5.0) == 0


def test_bucketed_window_groups_failures_per_bucket() -> None:
    window = BucketedFailureWindow(bucket_seconds=1.0)
    window.add(10.1)
    window.add(10.9)
    window.add(11.5)

    assert window.count(11.5, 5.0) == 3
    assert len(window._buckets) == 2


def test_bucketed_window_expires_whole_buckets() -> None:
    window = BucketedFailureWindow(bucket_seconds=1.0)
    window.add(10.5)
    window.add(12.5)

    assert window.count(15.5, 5.0) == 2
    assert window.prune(16.0, 5.0) == 1
    assert window.prune(18.0, 5.0) == 0


def test_bucketed_window_rejects_non_positive_bucket() -> None:
    with pytest.raises(ValueError, match="bucket_seconds"):
        BucketedFailureWindow(bucket_seconds=0)
