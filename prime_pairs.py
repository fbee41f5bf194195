#!/usr/bin/env python3
"""
Parallel search for primes of the form n = p^2 + 4q^2 with p, q prime.

Pipeline (fan-out / fan-in):

  producer thread --jobs--> N workers --results--> consumer
                                 \
                                  collector thread: join all workers, then
                                  close the result stream

The job stream is closed with one sentinel per worker; the result stream is
closed with a single sentinel, put only after every worker has been joined, so
no result can arrive after it. Workers run as processes by default (the
primality test is CPU bound) or as threads.
"""

import itertools
import logging
import multiprocessing
import os
import queue
import signal
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, NamedTuple, Optional

from prime_oracle import DEFAULT_ALGORITHM, check_algorithm, get_oracle, is_certified
from prime_sieve import DEFAULT_SIEVE, primes_upto

logger = logging.getLogger(__name__)

BACKENDS = ("process", "thread")
DEFAULT_BACKEND = "process"
RESULT_QUEUE_SIZE = 100

# end-of-stream marker on both queues
_DONE = None


class UncertifiedRangeError(ValueError):
    """Raised when a certified-only run would need Miller-Rabin past its exact range."""


class WorkerFailedError(RuntimeError):
    """Raised after a run in which a worker process exited abnormally."""


class Job(NamedTuple):
    p: int
    q: int


class Result(NamedTuple):
    p: int
    q: int
    n: int


def check_backend(name: str) -> str:
    if name not in BACKENDS:
        raise ValueError(f"unknown backend {name!r}; expected one of {', '.join(BACKENDS)}")
    return name


def candidate(p: int, q: int) -> int:
    """n = p^2 + 4q^2 on Python ints, which never overflow."""
    p, q = int(p), int(q)
    return p * p + 4 * q * q


def iter_pairs(primes: Iterable[int]) -> Iterator[Job]:
    """All (p, q) pairs, p outer and q inner, in prime-list order."""
    primes = tuple(primes)
    for p, q in itertools.product(primes, repeat=2):
        yield Job(p, q)


def produce_pairs(primes, jobs, workers: int, cancel=None) -> int:
    """Put one Job per pair on 'jobs', then close the stream for 'workers' consumers.

    Returns the number of jobs emitted. If 'cancel' gets set, emission stops
    early but the stream is still closed, so no worker is left waiting.
    """
    produced = 0
    try:
        for job in iter_pairs(primes):
            if cancel is not None and cancel.is_set():
                logger.debug("producer cancelled after %d jobs", produced)
                break
            jobs.put(job)
            produced += 1
    finally:
        for _ in range(workers):
            jobs.put(_DONE)
    return produced


def pair_worker(jobs, results, algorithm: str, cancel=None) -> int:
    """Consume jobs until the end-of-stream sentinel; emit a Result per prime n.

    Returns how many jobs this worker evaluated. After cancellation the worker
    keeps draining jobs without testing them, which releases a producer that
    is blocked on a full queue.
    """
    is_prime = get_oracle(algorithm)
    evaluated = 0
    while True:
        job = jobs.get()
        if job is _DONE:
            break
        if cancel is not None and cancel.is_set():
            continue
        n = candidate(job.p, job.q)
        evaluated += 1
        if is_prime(n):
            results.put(Result(job.p, job.q, n))
    return evaluated


class WorkerTally(NamedTuple):
    """Sent by each pool worker on the result stream just before it exits."""
    worker: str
    evaluated: int


def _process_worker(jobs, results, algorithm, cancel):
    # Ctrl-C reaches the whole process group; the parent handles it through 'cancel'
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    evaluated = pair_worker(jobs, results, algorithm, cancel)
    results.put(WorkerTally(multiprocessing.current_process().name, evaluated))


def _thread_worker(jobs, results, algorithm, cancel, crashed):
    name = threading.current_thread().name
    try:
        evaluated = pair_worker(jobs, results, algorithm, cancel)
    except Exception:
        logger.exception("%s crashed", name)
        crashed.append(name)
        cancel.set()
        return
    results.put(WorkerTally(name, evaluated))


def collect(workers, results, crashed=()) -> list[str]:
    """Join every worker, then close the result stream exactly once.

    Returns the names of workers that died: processes with a non-zero exit
    code and threads listed in 'crashed'.
    """
    failed = []
    for w in workers:
        w.join()
        if w.name in crashed:
            failed.append(w.name)
        # threads have no exit code
        elif getattr(w, "exitcode", 0):
            logger.error("%s exited with code %s", w.name, w.exitcode)
            failed.append(w.name)
    results.put(_DONE)
    return failed


class PairSearch:
    """One run of the producer / worker pool / collector pipeline over a prime list.

    All configuration is checked in the constructor, before any thread or
    process exists. Iterate results() to drive the run.
    """

    def __init__(
        self,
        primes: Iterable[int],
        algorithm: str = DEFAULT_ALGORITHM,
        workers: Optional[int] = None,
        backend: str = DEFAULT_BACKEND,
        queue_size: Optional[int] = None,
        result_queue_size: int = RESULT_QUEUE_SIZE,
        certified_only: bool = False,
    ):
        self.primes = tuple(int(p) for p in primes)
        self.algorithm = check_algorithm(algorithm)
        self.backend = check_backend(backend)

        self.workers = workers if workers else (os.cpu_count() or 1)
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        # one row of the pair grid by default
        self.queue_size = queue_size if queue_size is not None else max(1, len(self.primes))
        if self.queue_size < 1 or result_queue_size < 1:
            raise ValueError("queue sizes must be >= 1")
        self.result_queue_size = result_queue_size

        largest = max(self.primes, default=0)
        self.max_candidate = candidate(largest, largest)
        self.certified = is_certified(self.max_candidate, self.algorithm)
        if not self.certified:
            if certified_only:
                raise UncertifiedRangeError(
                    f"largest candidate {self.max_candidate} is beyond the exact range of "
                    f"{self.algorithm!r}; use 'trial' or a smaller limit"
                )
            logger.warning(
                "candidates up to %d exceed the deterministic Miller-Rabin bound; "
                "reported values are probable primes",
                self.max_candidate,
            )

        if backend == "process":
            self._ctx = multiprocessing.get_context()
            self._cancel = self._ctx.Event()
        else:
            self._ctx = None
            self._cancel = threading.Event()

        self.jobs_produced = 0
        self.jobs_evaluated = 0
        self.results_found = 0
        self.failed_workers: list[str] = []
        self._crashed: list[str] = []
        self._started = False

    @property
    def pairs(self) -> int:
        return len(self.primes) ** 2

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Ask the producer and workers to stop early; results() then ends cleanly."""
        self._cancel.set()

    def _spawn_workers(self, jobs, results):
        args = (jobs, results, self.algorithm, self._cancel)
        if self.backend == "process":
            Worker, target = self._ctx.Process, _process_worker
        else:
            Worker, target = threading.Thread, _thread_worker
            args += (self._crashed,)
        pool = [
            Worker(
                target=target,
                args=args,
                name=f"pair-worker-{i}",
                daemon=True,
            )
            for i in range(self.workers)
        ]
        for w in pool:
            w.start()
        return pool

    def _produce(self, jobs):
        self.jobs_produced = produce_pairs(self.primes, jobs, self.workers, self._cancel)

    def _collect(self, pool, results):
        self.failed_workers = collect(pool, results, self._crashed)

    def results(self) -> Iterator[Result]:
        """Yield each Result as a worker finds it, in no particular order.

        Closing the generator early cancels the run and drains the pipeline
        before returning, so no thread or process outlives it.
        """
        if self._started:
            raise RuntimeError("a PairSearch can only be run once")
        self._started = True

        Queue = self._ctx.Queue if self._ctx is not None else queue.Queue
        jobs = Queue(maxsize=self.queue_size)
        results = Queue(maxsize=self.result_queue_size)

        logger.info(
            "evaluating %d pairs with %d %s worker(s), primetest=%s",
            self.pairs, self.workers, self.backend, self.algorithm,
        )
        pool = self._spawn_workers(jobs, results)
        producer = threading.Thread(target=self._produce, args=(jobs,), name="pair-producer", daemon=True)
        collector = threading.Thread(target=self._collect, args=(pool, results), name="pair-collector", daemon=True)
        producer.start()
        collector.start()

        finished = False
        try:
            while True:
                result = results.get()
                if result is _DONE:
                    finished = True
                    break
                if isinstance(result, WorkerTally):
                    self.jobs_evaluated += result.evaluated
                    continue
                self.results_found += 1
                yield result
        finally:
            if not finished:
                self.cancel()
                while (result := results.get()) is not _DONE:
                    if isinstance(result, WorkerTally):
                        self.jobs_evaluated += result.evaluated
            collector.join()
            if self.failed_workers:
                # a dead worker no longer drains jobs, so the producer may be stuck on a full queue
                self.cancel()
                while producer.is_alive():
                    try:
                        jobs.get(timeout=0.1)
                    except queue.Empty:
                        pass
            producer.join()
            logger.debug(
                "pipeline shut down: %d jobs produced, %d evaluated",
                self.jobs_produced, self.jobs_evaluated,
            )

        if self.failed_workers:
            raise WorkerFailedError(f"worker(s) failed: {', '.join(self.failed_workers)}")


@dataclass
class SearchReport:
    limit: int
    algorithm: str
    workers: int
    primes: int
    pairs: int
    results: list[Result] = field(default_factory=list)
    elapsed: float = 0.0
    certified: bool = True
    cancelled: bool = False

    @property
    def count(self) -> int:
        return len(self.results)


def search(
    limit: int,
    algorithm: str = DEFAULT_ALGORITHM,
    workers: Optional[int] = None,
    backend: str = DEFAULT_BACKEND,
    sieve: str = DEFAULT_SIEVE,
    queue_size: Optional[int] = None,
    certified_only: bool = False,
    on_result: Optional[Callable[[Result], None]] = None,
) -> SearchReport:
    """Sieve the primes <= limit and report every prime n = p^2 + 4q^2 among their pairs."""
    t0 = time.perf_counter()
    # validate before sieving, which can take a while for a large limit
    check_algorithm(algorithm)
    check_backend(backend)
    primes = primes_upto(limit, sieve)
    logger.info("%d primes found up to %d", len(primes), limit)

    run = PairSearch(
        primes,
        algorithm=algorithm,
        workers=workers,
        backend=backend,
        queue_size=queue_size,
        certified_only=certified_only,
    )
    report = SearchReport(
        limit=limit,
        algorithm=algorithm,
        workers=run.workers,
        primes=len(primes),
        pairs=run.pairs,
        certified=run.certified,
    )
    for result in run.results():
        report.results.append(result)
        if on_result is not None:
            on_result(result)
    report.cancelled = run.cancelled
    report.elapsed = time.perf_counter() - t0
    return report
