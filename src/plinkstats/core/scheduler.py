"""Work distribution primitives shared by every scan.

- WorkQueue: a cursor over a contiguous index range, advanced by
  fetch-and-add. Workers call claim(max_size) until it returns None; every
  index is handed out exactly once with no barrier at the end.
- OnceLatch: exactly one of many concurrent callers wins try_claim_once().
- ComputeOnceLatch: double-checked "compute once, then read" gate. The
  first caller runs the computation under a lock; later callers see the
  published result without taking the lock.

Python exposes no user-level atomics, so the fetch-and-add and the
compare-and-swap are a short critical section under a threading.Lock.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class WorkQueue:
    """Claimable cursor over the index range [start, end).

    Args:
        start: First index of the range.
        end: Past-the-end index of the range.

    Example:
        >>> queue = WorkQueue(0, 300)
        >>> queue.claim(128), queue.claim(128), queue.claim(128), queue.claim(128)
        (range(0, 128), range(128, 256), range(256, 300), None)
    """

    def __init__(self, start: int, end: int):
        if end < start:
            raise ValueError(f"work range end {end} precedes start {start}")
        self.start = start
        self.end = end
        self._cursor = start
        self._lock = threading.Lock()

    def _fetch_add(self, amount: int) -> int:
        with self._lock:
            previous = self._cursor
            self._cursor += amount
        return previous

    def claim(self, max_size: int) -> range | None:
        """Claim up to max_size consecutive indices.

        Returns:
            The claimed range, or None once the range is exhausted.
        """
        if max_size < 1:
            raise ValueError(f"claim size must be positive, got {max_size}")
        claim_start = self._fetch_add(max_size)
        if claim_start >= self.end:
            return None
        return range(claim_start, min(claim_start + max_size, self.end))

    def claim_one(self) -> int | None:
        """Claim a single index, or None once the range is exhausted."""
        claimed = self.claim(1)
        return None if claimed is None else claimed.start

    @property
    def exhausted(self) -> bool:
        with self._lock:
            return self._cursor >= self.end

    def __len__(self) -> int:
        return self.end - self.start


class OnceLatch:
    """Single-use latch: the first try_claim_once() returns True, all later
    calls (from any thread) return False."""

    def __init__(self) -> None:
        self._claimed = False
        self._lock = threading.Lock()

    def try_claim_once(self) -> bool:
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            return True

    @property
    def claimed(self) -> bool:
        return self._claimed


class ComputeOnceLatch(Generic[T]):
    """Run a computation once and share its result with every caller.

    The unlocked fast path reads the published flag; only callers that
    arrive before the result is published contend on the lock. If the
    computation raises, nothing is published and the exception propagates
    to the caller that ran it; the next caller retries.
    """

    def __init__(self) -> None:
        self._done = False
        self._result: T | None = None
        self._lock = threading.Lock()

    def get(self, compute: Callable[[], T]) -> T:
        if self._done:
            return self._result  # type: ignore[return-value]
        with self._lock:
            if not self._done:
                self._result = compute()
                self._done = True
        return self._result  # type: ignore[return-value]

    @property
    def done(self) -> bool:
        return self._done
