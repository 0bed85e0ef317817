#!/usr/bin/env python3
import enum
import logging
import math
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import NamedTuple

import numpy as np

from counters import AtomicCounter, SharedCounters
from errors import DegenerateAggregation, InvalidSampleCount, RunCancelled, WorkerFailure
from partition import partition

logger = logging.getLogger(__name__)

MIN_SAMPLES = 1000
DEFAULT_SAMPLES = 1_000_000
BATCH_SIZE = 10_000
SAMPLE_BLOCK = 65_536


# Linear Congruential Generator - same recurrence across all languages
class LCG:
    def __init__(self, seed):
        self.seed = seed & 0xFFFFFFFF

    def _next(self):
        self.seed = (self.seed * 1664525 + 1013904223) & 0xFFFFFFFF
        # 2**31 keeps the result in [0, 1)
        return (self.seed & 0x7FFFFFFF) / 0x80000000

    def random(self, size=None):
        if size is None:
            return self._next()
        count = int(np.prod(size))
        values = np.fromiter((self._next() for _ in range(count)), dtype=np.float64, count=count)
        return values.reshape(size)


def lcg_source(index):
    return LCG(12345 + index * 67890)  # Consistent seed pattern


def numpy_sources(seed, count):
    """Independent generators, one per chunk, derived from a single seed."""
    return [np.random.default_rng(child) for child in np.random.SeedSequence(seed).spawn(count)]


def sample_points(rng, n):
    return rng.random((n, 2))


def inside_quarter_circle(points):
    x = points[..., 0]
    y = points[..., 1]
    # a point exactly on the arc counts as inside
    return x * x + y * y <= 1.0


def count_hits(rng, n, block=SAMPLE_BLOCK):
    hits = 0
    while n > 0:
        size = min(n, block)
        hits += int(np.count_nonzero(inside_quarter_circle(sample_points(rng, size))))
        n -= size
    return hits


def process_batch(counters, worker_id, rng, size):
    """
    Count hits for `size` fresh samples without touching shared state, then
    publish the batch to the shared counters in one step.
    """
    if size == 0:
        return 0
    hits = count_hits(rng, size)
    counters.publish(worker_id, hits, size)
    return hits


_worker = threading.local()


def _bind_worker_slot(slots):
    _worker.slot = next(slots)


def current_worker_slot():
    return getattr(_worker, "slot", 0)


def run_chunk(counters, chunk, rng, batch_size=BATCH_SIZE, cancel=None, halt=None):
    if cancel is not None and cancel.is_set():
        raise RunCancelled(f"Cancelled before samples [{chunk.start}, {chunk.end})")

    worker_id = current_worker_slot()
    hits = 0
    for start in range(chunk.start, chunk.end, batch_size):
        # halt is raised by the coordinator once another chunk has failed
        if halt is not None and halt.is_set():
            raise RunCancelled(f"Halted at sample {start} of [{chunk.start}, {chunk.end})")
        hits += process_batch(counters, worker_id, rng, min(batch_size, chunk.end - start))
    return hits


def validate_sample_count(samples, minimum=MIN_SAMPLES):
    if isinstance(samples, bool) or not isinstance(samples, (int, np.integer)):
        raise InvalidSampleCount(samples, minimum)
    if samples < minimum:
        raise InvalidSampleCount(samples, minimum)
    return int(samples)


def default_worker_count():
    return os.cpu_count() or 1


def estimate_pi(hits, total):
    if total == 0:
        raise DegenerateAggregation("Cannot estimate pi from zero samples")
    return 4.0 * hits / total


class RunResult(NamedTuple):
    pi_estimate: float
    hits: int
    total: int
    workers: int
    elapsed: float
    throughput: float
    chunks: int

    @property
    def error(self):
        return abs(self.pi_estimate - math.pi)


class RunState(enum.Enum):
    IDLE = "idle"
    PARTITIONED = "partitioned"
    RUNNING = "running"
    JOINED = "joined"
    AGGREGATED = "aggregated"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS = {
    RunState.IDLE: RunState.PARTITIONED,
    RunState.PARTITIONED: RunState.RUNNING,
    RunState.RUNNING: RunState.JOINED,
    RunState.JOINED: RunState.AGGREGATED,
    RunState.AGGREGATED: RunState.DONE,
}


class PiRun:
    """
    A single estimation run.

    The run owns its shared counters from construction until it is discarded.
    Steps must happen in order: partition(), start(), join(), aggregate();
    run() drives all of them. Workers are the threads of a ThreadPoolExecutor;
    each chunk draws from its own random source, so a fixed seed gives the same
    hit count however the chunks are scheduled.
    """

    def __init__(self, samples, workers=None, policy="equal", seed=None,
                 batch_size=BATCH_SIZE, rng_factory=None, cancel=None):
        self.samples = validate_sample_count(samples)
        self.workers = default_worker_count() if workers is None else workers
        if self.workers <= 0:
            raise ValueError(f"workers must be positive, got {self.workers}")
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.policy = policy
        self.seed = seed
        self.batch_size = batch_size
        self.rng_factory = rng_factory
        self.cancel = cancel

        self.state = RunState.IDLE
        self.counters = SharedCounters(self.workers, self.samples)
        self.chunks = []
        self.elapsed = None
        self.result = None
        self._executor = None
        self._futures = []
        self._started = None
        self._halt = threading.Event()

    def _advance(self, state):
        if _TRANSITIONS.get(self.state) is not state:
            raise RuntimeError(f"Cannot move run from {self.state.name} to {state.name}")
        self.state = state

    def _sources(self):
        if self.rng_factory is not None:
            return [self.rng_factory(i) for i in range(len(self.chunks))]
        return numpy_sources(self.seed, len(self.chunks))

    def snapshot(self):
        return self.counters.snapshot()

    def partition(self):
        self._advance(RunState.PARTITIONED)
        self.chunks = partition(self.samples, self.workers, self.policy)
        return self.chunks

    def start(self):
        self._advance(RunState.RUNNING)
        sources = self._sources()
        slots = AtomicCounter()

        self._started = time.perf_counter()
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers,
            thread_name_prefix="pi-worker",
            initializer=_bind_worker_slot,
            initargs=(slots,),
        )
        self._futures = [
            (chunk, self._executor.submit(run_chunk, self.counters, chunk, rng, self.batch_size,
                                          self.cancel, self._halt))
            for chunk, rng in zip(self.chunks, sources)
        ]
        logger.debug("Dispatched %d chunks to %d workers", len(self._futures), self.workers)

    def _shutdown(self):
        self._executor.shutdown(wait=True)
        self._executor = None
        self.elapsed = time.perf_counter() - self._started

    def abort(self):
        """Stop a started run early: no new chunks, running ones halt at the next batch."""
        if self.state is not RunState.RUNNING:
            raise RuntimeError(f"Cannot abort a run in state {self.state.name}")
        self._halt.set()
        for _, future in self._futures:
            future.cancel()
        self._shutdown()
        self.state = RunState.FAILED
        logger.debug("Run aborted after %.2fms", self.elapsed * 1000)

    def join(self):
        if self.state is not RunState.RUNNING:
            raise RuntimeError(f"Cannot join a run in state {self.state.name}")

        failure = None
        cancelled = None
        try:
            for chunk, future in self._futures:
                if future.cancelled():
                    continue
                try:
                    future.result()
                except RunCancelled as exc:
                    cancelled = cancelled or exc
                except Exception as exc:
                    if failure is None:
                        logger.exception("Worker failed on chunk %s", chunk)
                        failure = (chunk, exc)
                        self._halt.set()
                        for _, pending in self._futures:
                            pending.cancel()
        finally:
            self._shutdown()

        if failure is not None:
            self.state = RunState.FAILED
            chunk, exc = failure
            raise WorkerFailure(chunk, exc) from exc
        if cancelled is not None:
            self.state = RunState.FAILED
            raise cancelled
        self._advance(RunState.JOINED)
        logger.debug("All workers joined after %.2fms", self.elapsed * 1000)

    def aggregate(self):
        self._advance(RunState.AGGREGATED)
        hits = self.counters.hits.load()
        total = self.counters.total.load()
        try:
            pi_estimate = estimate_pi(hits, total)
        except DegenerateAggregation:
            self.state = RunState.FAILED
            raise

        throughput = total / self.elapsed if self.elapsed > 0 else 0.0
        self.result = RunResult(pi_estimate, hits, total, self.workers, self.elapsed,
                                throughput, len(self.chunks))
        logger.debug("Aggregated %d/%d hits: %.10f", hits, total, pi_estimate)
        return self.result

    def run(self, reporter=None):
        self.partition()
        self.start()
        if reporter is not None:
            try:
                reporter.start()
            except Exception:
                self.abort()
                raise
        try:
            self.join()
        finally:
            if reporter is not None:
                reporter.stop()
        result = self.aggregate()
        self._advance(RunState.DONE)
        return result


def approximate_pi(samples, workers=None, policy="equal", seed=None, reporter_factory=None):
    run = PiRun(samples, workers=workers, policy=policy, seed=seed)
    reporter = None if reporter_factory is None else reporter_factory(run.snapshot)
    return run.run(reporter)
