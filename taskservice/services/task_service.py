from __future__ import annotations

import logging
import threading

from taskservice.exceptions import Interrupted, TaskInterrupted
from taskservice.worker.cancellation import current_token
from taskservice.worker.pool import TaskExecutor

logger = logging.getLogger("taskservice.tasks")

DEFAULT_TASK_DURATION_SECONDS = 5.0


class TaskService:
    """Submits the simulated long-running task to the executor."""

    def __init__(
        self,
        executor: TaskExecutor,
        *,
        duration_seconds: float = DEFAULT_TASK_DURATION_SECONDS,
    ) -> None:
        self._executor = executor
        self._duration_seconds = duration_seconds

    def execute_task(self) -> None:
        """Fire-and-forget: returns as soon as the executor accepts the task.

        Raises TaskRejected if the executor refuses the submission.
        """

        self._executor.submit(self.simulate_work)

    def simulate_work(self) -> None:
        """The unit of work: wait on the current cancellation token, then log."""

        thread_name = threading.current_thread().name
        logger.info("Executing task in thread: %s", thread_name)

        token = current_token()
        try:
            token.sleep(self._duration_seconds)
        except Interrupted as exc:
            # Keep the interrupt visible to whatever runs next on this token.
            token.interrupt()
            raise TaskInterrupted("Task interrupted") from exc

        logger.info("Task completed in thread: %s", thread_name)
