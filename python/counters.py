#!/usr/bin/env python3
import threading
from typing import NamedTuple, Tuple


class AtomicCounter:
    """
    Non-decreasing integer shared between threads.

    CPython offers no lock-free integer, so each operation takes a small lock.
    Readers get a value that was current at some instant of the run, nothing
    stronger.
    """

    def __init__(self, value=0):
        self._value = value
        self._lock = threading.Lock()

    def add(self, delta):
        if delta < 0:
            raise ValueError(f"Counter can only grow, got delta {delta}")
        with self._lock:
            self._value += delta
            return self._value

    def load(self):
        with self._lock:
            return self._value

    def __iter__(self):
        return self

    def __next__(self):
        # returns the pre-increment value so slots start at 0
        return self.add(1) - 1

    def __repr__(self):
        return f"AtomicCounter({self.load()})"


class ProgressSnapshot(NamedTuple):
    hits: int
    total: int
    target: int
    per_worker: Tuple[int, ...]

    @property
    def fraction(self):
        if self.target <= 0:
            return 1.0
        return min(self.total / self.target, 1.0)

    @property
    def percent(self):
        return self.fraction * 100.0

    @property
    def done(self):
        return self.total >= self.target


class SharedCounters:
    def __init__(self, workers, target):
        if workers <= 0:
            raise ValueError(f"workers must be positive, got {workers}")
        self.target = target
        self.hits = AtomicCounter()
        self.total = AtomicCounter()
        self.progress = [AtomicCounter() for _ in range(workers)]

    @property
    def workers(self):
        return len(self.progress)

    def publish(self, worker_id, hits, samples):
        # total before hits: a reader loading hits then total never sees hits > total
        self.total.add(samples)
        self.hits.add(hits)
        self.progress[worker_id].add(samples)

    def snapshot(self):
        hits = self.hits.load()
        total = self.total.load()
        per_worker = tuple(c.load() for c in self.progress)
        return ProgressSnapshot(hits, total, self.target, per_worker)
