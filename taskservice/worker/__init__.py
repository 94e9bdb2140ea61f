from taskservice.worker.cancellation import CancellationToken
from taskservice.worker.pool import ExecutorStats, RejectionPolicy, TaskExecutor

__all__ = ["CancellationToken", "ExecutorStats", "RejectionPolicy", "TaskExecutor"]
