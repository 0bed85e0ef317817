import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from counters import AtomicCounter, ProgressSnapshot, SharedCounters


def test_atomic_counter():
    c = AtomicCounter()
    assert c.add(3) == 3
    assert c.add(0) == 3
    assert c.load() == 3
    with pytest.raises(ValueError):
        c.add(-1)
    assert c.load() == 3


def test_atomic_counter_hands_out_slots():
    slots = AtomicCounter()
    assert [next(slots) for _ in range(3)] == [0, 1, 2]


def test_atomic_counter_concurrent_adds():
    c = AtomicCounter()

    def worker():
        for _ in range(10_000):
            c.add(1)

    with ThreadPoolExecutor(max_workers=8) as executor:
        for _ in range(8):
            executor.submit(worker)
    assert c.load() == 80_000


def test_publish_and_snapshot():
    counters = SharedCounters(2, 100)
    counters.publish(0, 30, 40)
    counters.publish(1, 10, 10)
    snapshot = counters.snapshot()
    assert snapshot == ProgressSnapshot(40, 50, 100, (40, 10))
    assert snapshot.fraction == 0.5
    assert snapshot.percent == 50.0
    assert not snapshot.done


def test_snapshot_fraction_capped_and_done():
    assert ProgressSnapshot(0, 0, 0, ()).fraction == 1.0
    snapshot = ProgressSnapshot(80, 120, 100, (120,))
    assert snapshot.fraction == 1.0
    assert snapshot.done


def test_shared_counters_need_workers():
    with pytest.raises(ValueError):
        SharedCounters(0, 100)


def test_observed_counters_stay_consistent():
    counters = SharedCounters(4, 4 * 2000 * 5)
    observed = []
    writing = threading.Event()

    def reader():
        while not writing.is_set():
            observed.append(counters.snapshot())

    def writer(worker_id):
        for _ in range(2000):
            counters.publish(worker_id, 3, 5)

    watcher = threading.Thread(target=reader)
    watcher.start()
    with ThreadPoolExecutor(max_workers=4) as executor:
        for i in range(4):
            executor.submit(writer, i)
    writing.set()
    watcher.join()
    observed.append(counters.snapshot())

    totals = [s.total for s in observed]
    assert totals == sorted(totals)
    assert all(0 <= s.hits <= s.total for s in observed)
    final = observed[-1]
    assert final.total == 40_000
    assert final.hits == 24_000
    assert final.per_worker == (10_000,) * 4
