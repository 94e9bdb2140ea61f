import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def setup_logging(log_level: str = "INFO") -> None:
    """Configure the root logger with a single stdout handler.

    Safe to call more than once (e.g. one app per test); only the level is
    updated after the first call.
    """

    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if any(getattr(h, "_taskservice", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler._taskservice = True  # type: ignore[attr-defined]
    root.addHandler(handler)
