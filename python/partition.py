#!/usr/bin/env python3
import logging
from typing import NamedTuple

logger = logging.getLogger(__name__)

MIN_CHUNK_SIZE = 10_000
CHUNKS_PER_WORKER = 10

POLICIES = ("equal", "bounded")


class Chunk(NamedTuple):
    start: int
    end: int

    @property
    def size(self):
        return self.end - self.start


def _check(total, workers):
    if total < 0:
        raise ValueError(f"total must be non-negative, got {total}")
    if workers <= 0:
        raise ValueError(f"workers must be positive, got {workers}")


def equal_split(total, workers):
    """One chunk per worker; the last one also takes the remainder."""
    _check(total, workers)
    samples_per_worker = total // workers
    remainder = total % workers

    chunks = []
    for i in range(workers):
        start = i * samples_per_worker
        end = start + samples_per_worker
        if i == workers - 1:
            end += remainder
        chunks.append(Chunk(start, end))
    return chunks


def chunk_size_for(total, workers, min_chunk=MIN_CHUNK_SIZE, chunks_per_worker=CHUNKS_PER_WORKER):
    _check(total, workers)
    size = max(total // (workers * chunks_per_worker), min_chunk)
    return min(size, total)


def bounded_chunks(total, workers, chunk_size=None):
    """
    Fixed-size chunks, roughly ten per worker but never below MIN_CHUNK_SIZE.
    The chunk count is independent of the worker count, so an executor can
    hand chunks to whichever worker is free.
    """
    _check(total, workers)
    if chunk_size is None:
        chunk_size = chunk_size_for(total, workers)
        if total == 0:
            return []
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    return [Chunk(start, min(start + chunk_size, total))
            for start in range(0, total, chunk_size)]


def partition(total, workers, policy="equal"):
    if policy == "equal":
        chunks = equal_split(total, workers)
    elif policy == "bounded":
        chunks = bounded_chunks(total, workers)
    else:
        raise ValueError(f"Unknown partition policy {policy!r}, expected one of {POLICIES}")
    logger.debug("Partitioned %d samples for %d workers into %d chunks (%s)",
                 total, workers, len(chunks), policy)
    return chunks
