"""Worker pool and BLAS thread management for parallel scans.

Every kernel is exposed as a ParallelScan: per-worker local state plus a
scan() call that fills at most max_rows output rows and returns an empty
list once the worker has nothing left. run_scan drives several workers over
one scan with a ThreadPoolExecutor and streams their row chunks back to the
caller as they complete.

numpy releases the GIL in its vectorised kernels, so threads give real
parallelism for the per-variant work. Workers run under a BLAS limit of one
thread so N workers do not each spawn N BLAS threads.
"""

from __future__ import annotations

import os
import queue
import threading
from collections.abc import Generator, Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Protocol

import psutil
from loguru import logger
from threadpoolctl import threadpool_limits

from plinkstats.core.config import STANDARD_CHUNK_ROWS

MAX_SCAN_WORKERS = 16
_QUEUE_POLL_S = 0.1


def get_worker_count() -> int:
    """Determine the number of scan workers.

    Priority:
    1. PLINKSTATS_THREADS env var (explicit override)
    2. Physical core count via psutil (avoids hyperthreading oversubscription)

    Returns:
        Positive integer worker count, capped at os.cpu_count().
    """
    max_threads = os.cpu_count() or 64

    env_override = os.environ.get("PLINKSTATS_THREADS")
    if env_override is not None:
        try:
            n = int(env_override)
        except ValueError:
            logger.warning(
                f"PLINKSTATS_THREADS={env_override!r} is not a valid integer, "
                "falling back to physical core count"
            )
        else:
            n = max(1, min(n, max_threads))
            logger.debug(f"Scan workers from PLINKSTATS_THREADS: {n}")
            return n

    n = psutil.cpu_count(logical=False) or max_threads
    n = max(1, min(n, max_threads))
    logger.debug(f"Scan workers from physical core count: {n}")
    return n


def max_workers_for(item_ct: int, items_per_worker: int) -> int:
    """Worker ceiling for a scan over item_ct items.

    One worker per items_per_worker items (at least one), at most
    MAX_SCAN_WORKERS.
    """
    return min(item_ct // items_per_worker + 1, MAX_SCAN_WORKERS)


_worker_blas_lock = threading.Lock()
_worker_blas_users = 0
_worker_blas_limiter: threadpool_limits | None = None


@contextmanager
def worker_blas_limit() -> Generator[None, None, None]:
    """Hold BLAS at one thread while at least one scan worker is computing.

    threadpool_limits is process-wide, so concurrent workers share a single
    limiter: the first to enter applies it and the last to leave restores
    the original limits. Callers consuming rows between scan() calls run
    with their own BLAS settings.
    """
    global _worker_blas_users, _worker_blas_limiter
    with _worker_blas_lock:
        if _worker_blas_users == 0:
            _worker_blas_limiter = threadpool_limits(limits=1, user_api="blas")
        _worker_blas_users += 1
    try:
        yield
    finally:
        with _worker_blas_lock:
            _worker_blas_users -= 1
            if _worker_blas_users == 0:
                _worker_blas_limiter.restore_original_limits()
                _worker_blas_limiter = None


class ParallelScan(Protocol):
    """A kernel scan that any number of workers can drive concurrently.

    Attributes:
        max_workers: Upper bound on useful workers for this scan.
    """

    max_workers: int

    def init_local(self) -> Any: ...

    def scan(self, local: Any, max_rows: int) -> list: ...


class _WorkerFailed:
    def __init__(self, error: BaseException):
        self.error = error


_WORKER_DONE = object()


def _drain_worker(
    scan: ParallelScan,
    chunk_rows: int,
    out: queue.Queue,
    stop: threading.Event,
) -> None:
    def put(item: Any) -> bool:
        while not stop.is_set():
            try:
                out.put(item, timeout=_QUEUE_POLL_S)
                return True
            except queue.Full:
                continue
        return False

    try:
        local = scan.init_local()
        while not stop.is_set():
            with worker_blas_limit():
                rows = scan.scan(local, chunk_rows)
            if not rows:
                break
            if not put(rows):
                break
    except BaseException as e:
        stop.set()
        out.put(_WorkerFailed(e))
    finally:
        out.put(_WORKER_DONE)


def run_scan(
    scan: ParallelScan,
    threads: int | None = None,
    chunk_rows: int = STANDARD_CHUNK_ROWS,
) -> Iterator:
    """Run a scan across a pool of workers and yield its rows.

    Rows from one scan() call keep their order; chunks from different
    workers interleave in completion order. The first worker error stops
    all other workers and is re-raised here. Rows already yielded are not
    retracted.

    Args:
        scan: The kernel scan to drive.
        threads: Worker cap. None uses get_worker_count().
        chunk_rows: Maximum rows per scan() call.

    Yields:
        Output rows.
    """
    n_workers = min(scan.max_workers, threads or get_worker_count())
    n_workers = max(1, n_workers)
    logger.debug(f"Running {type(scan).__name__} with {n_workers} worker(s)")

    if n_workers == 1:
        local = scan.init_local()
        while True:
            with worker_blas_limit():
                rows = scan.scan(local, chunk_rows)
            if not rows:
                return
            yield from rows

    # Workers add at most two items (failure, done) after stop is set
    out: queue.Queue = queue.Queue(maxsize=n_workers * 4)
    stop = threading.Event()
    executor = ThreadPoolExecutor(
        max_workers=n_workers, thread_name_prefix="plinkstats-scan"
    )
    try:
        for _ in range(n_workers):
            executor.submit(_drain_worker, scan, chunk_rows, out, stop)
        finished = 0
        while finished < n_workers:
            item = out.get()
            if item is _WORKER_DONE:
                finished += 1
            elif isinstance(item, _WorkerFailed):
                raise item.error
            else:
                yield from item
    finally:
        stop.set()
        while True:
            try:
                out.get_nowait()
            except queue.Empty:
                break
        executor.shutdown(wait=True)
