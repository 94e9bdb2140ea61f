from __future__ import annotations

import itertools
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from taskservice.exceptions import TaskRejected
from taskservice.worker.cancellation import CancellationToken, bound

logger = logging.getLogger("taskservice.worker")

UncaughtExceptionHandler = Callable[[BaseException, int], None]


class RejectionPolicy(str, Enum):
    """What happens when every worker is busy and the queue is full."""

    ABORT = "abort"
    CALLER_RUNS = "caller_runs"


@dataclass(frozen=True)
class ExecutorStats:
    submitted: int
    completed: int
    failed: int
    rejected: int
    caller_runs: int
    running: int
    active_workers: int
    queued: int
    largest_pool_size: int


@dataclass(frozen=True)
class _Submission:
    task_id: int
    fn: Callable[[], None]
    token: CancellationToken


def _log_uncaught(exc: BaseException, task_id: int) -> None:
    logger.exception(
        "uncaught_task_error task_id=%s thread=%s error=%r",
        task_id,
        threading.current_thread().name,
        exc,
        exc_info=exc,
    )


class TaskExecutor:
    """Bounded thread pool for fire-and-forget work.

    Submission rules:
    - start a new worker while fewer than ``core_pool_size`` are alive;
    - else buffer in the queue while it holds fewer than ``queue_capacity``;
    - else start a worker while fewer than ``max_pool_size`` are alive;
    - else apply ``rejection_policy``.

    Workers beyond the core size exit after ``keep_alive_seconds`` idle.
    A task's exception goes to ``uncaught_exception_handler`` (logs by default)
    and never reaches the submitter.
    """

    def __init__(
        self,
        *,
        core_pool_size: int = 5,
        max_pool_size: int = 10,
        queue_capacity: int = 50,
        keep_alive_seconds: float = 60.0,
        rejection_policy: RejectionPolicy | str = RejectionPolicy.ABORT,
        thread_name_prefix: str = "task-",
        uncaught_exception_handler: UncaughtExceptionHandler | None = None,
    ) -> None:
        if core_pool_size < 1:
            raise ValueError("core_pool_size must be >= 1")
        if max_pool_size < core_pool_size:
            raise ValueError("max_pool_size must be >= core_pool_size")
        if queue_capacity < 0:
            raise ValueError("queue_capacity must be >= 0")
        if keep_alive_seconds <= 0:
            raise ValueError("keep_alive_seconds must be > 0")

        self._core_pool_size = core_pool_size
        self._max_pool_size = max_pool_size
        self._queue_capacity = queue_capacity
        self._keep_alive = keep_alive_seconds
        self._policy = RejectionPolicy(rejection_policy)
        self._thread_name_prefix = thread_name_prefix
        self._on_uncaught = uncaught_exception_handler or _log_uncaught

        self._lock = threading.Lock()
        self._work_available = threading.Condition(self._lock)
        self._queue: deque[_Submission] = deque()
        self._workers: set[threading.Thread] = set()
        self._running: dict[int, CancellationToken] = {}
        self._task_ids = itertools.count(1)
        self._thread_ids = itertools.count(1)
        self._shutdown = False

        self._submitted = 0
        self._completed = 0
        self._failed = 0
        self._rejected = 0
        self._caller_runs = 0
        self._largest_pool_size = 0

    @property
    def rejection_policy(self) -> RejectionPolicy:
        return self._policy

    def submit(self, fn: Callable[[], None]) -> int:
        """Schedule ``fn`` and return its task id without waiting for it.

        Raises TaskRejected when the executor is shut down, or when it is
        saturated under the ``abort`` policy.
        """

        with self._lock:
            if self._shutdown:
                self._rejected += 1
                raise TaskRejected("Executor has been shut down")

            sub = _Submission(task_id=next(self._task_ids), fn=fn, token=CancellationToken())

            if len(self._workers) < self._core_pool_size:
                self._accept(sub)
                self._start_worker(sub)
                return sub.task_id

            if len(self._queue) < self._queue_capacity:
                self._accept(sub)
                self._queue.append(sub)
                self._work_available.notify()
                return sub.task_id

            if len(self._workers) < self._max_pool_size:
                self._accept(sub)
                self._start_worker(sub)
                return sub.task_id

            if self._policy is RejectionPolicy.ABORT:
                self._rejected += 1
                raise TaskRejected(
                    f"Executor saturated (max_pool_size={self._max_pool_size}, "
                    f"queue_capacity={self._queue_capacity})"
                )

            self._accept(sub)
            self._caller_runs += 1

        logger.warning(
            "executor_saturated task_id=%s running on caller thread=%s",
            sub.task_id,
            threading.current_thread().name,
        )
        self._run(sub)
        return sub.task_id

    def shutdown(self, *, wait: bool = True, interrupt: bool = False) -> None:
        """Stop accepting work.

        Queued tasks still run unless ``interrupt`` is set, in which case they
        are discarded and running tasks have their tokens signalled.
        """

        with self._lock:
            if not self._shutdown:
                self._shutdown = True
                discarded = 0
                if interrupt:
                    discarded = len(self._queue)
                    self._queue.clear()
                    for token in self._running.values():
                        token.interrupt()
                logger.info(
                    "executor_shutdown interrupt=%s running=%s discarded=%s",
                    interrupt,
                    len(self._running),
                    discarded,
                )
            self._work_available.notify_all()
            workers = [t for t in self._workers if t is not threading.current_thread()]

        if wait:
            for t in workers:
                t.join()

    def stats(self) -> ExecutorStats:
        with self._lock:
            return ExecutorStats(
                submitted=self._submitted,
                completed=self._completed,
                failed=self._failed,
                rejected=self._rejected,
                caller_runs=self._caller_runs,
                running=len(self._running),
                active_workers=len(self._workers),
                queued=len(self._queue),
                largest_pool_size=self._largest_pool_size,
            )

    def __enter__(self) -> "TaskExecutor":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown(wait=True)

    # "Lock held" in a docstring means the caller must hold self._lock.

    def _accept(self, sub: _Submission) -> None:
        """Count an accepted submission. Lock held."""

        self._submitted += 1
        logger.debug("task_submitted task_id=%s", sub.task_id)

    def _start_worker(self, first: _Submission) -> None:
        """Start a worker that runs ``first`` before polling the queue. Lock held."""

        t = threading.Thread(
            target=self._work,
            args=(first,),
            name=f"{self._thread_name_prefix}{next(self._thread_ids)}",
            daemon=True,
        )
        self._workers.add(t)
        self._largest_pool_size = max(self._largest_pool_size, len(self._workers))
        t.start()

    def _work(self, first: _Submission) -> None:
        sub: _Submission | None = first
        try:
            while sub is not None:
                self._run(sub)
                sub = self._next_submission()
        finally:
            with self._lock:
                self._workers.discard(threading.current_thread())

    def _next_submission(self) -> _Submission | None:
        with self._lock:
            deadline = time.monotonic() + self._keep_alive
            while not self._queue:
                if self._shutdown:
                    return None
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    if len(self._workers) > self._core_pool_size:
                        self._workers.discard(threading.current_thread())
                        logger.debug("worker_idle_exit thread=%s", threading.current_thread().name)
                        return None
                    deadline = time.monotonic() + self._keep_alive
                    remaining = self._keep_alive
                self._work_available.wait(remaining)
            return self._queue.popleft()

    def _run(self, sub: _Submission) -> None:
        with self._lock:
            self._running[sub.task_id] = sub.token
        try:
            with bound(sub.token):
                sub.fn()
        except Exception as exc:
            with self._lock:
                self._failed += 1
            self._report_uncaught(exc, sub.task_id)
        else:
            with self._lock:
                self._completed += 1
        finally:
            with self._lock:
                self._running.pop(sub.task_id, None)

    def _report_uncaught(self, exc: BaseException, task_id: int) -> None:
        try:
            self._on_uncaught(exc, task_id)
        except Exception:
            logger.exception("uncaught_exception_handler_failed task_id=%s", task_id)
