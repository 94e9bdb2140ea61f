from __future__ import annotations


class IllegalStateError(RuntimeError):
    """The application reached a state it cannot continue from."""


class TaskInterrupted(IllegalStateError):
    """A running task was interrupted through its cancellation token."""


class TaskRejected(RuntimeError):
    """The executor could not accept a submission (saturated or shut down)."""


class Interrupted(Exception):
    """Raised from a blocking wait when the cancellation token is signalled."""
