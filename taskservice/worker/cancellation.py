from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from taskservice.exceptions import Interrupted


class CancellationToken:
    """Cooperative interruption flag for a single task.

    The task owns the only blocking point (``sleep``); the executor signals the
    token on an interrupting shutdown. Nothing is ever forcibly terminated.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def interrupt(self) -> None:
        self._event.set()

    def is_interrupted(self) -> bool:
        return self._event.is_set()

    def sleep(self, seconds: float) -> None:
        """Wait ``seconds`` unless interrupted first.

        Like a thread interrupt, the flag is consumed when it fires: callers
        that want it to stay visible must call ``interrupt()`` again.
        """

        if self._event.wait(timeout=seconds):
            self._event.clear()
            raise Interrupted("sleep interrupted")


_local = threading.local()


def current_token() -> CancellationToken:
    """Return the token of the task running on this thread.

    Outside an executor there is nothing to interrupt, so a fresh, unbound token
    is returned.
    """

    token = getattr(_local, "token", None)
    return token if token is not None else CancellationToken()


@contextmanager
def bound(token: CancellationToken) -> Iterator[CancellationToken]:
    previous = getattr(_local, "token", None)
    _local.token = token
    try:
        yield token
    finally:
        _local.token = previous
