from collections.abc import Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from taskservice.config import Settings
from taskservice.main import create_app


@pytest.fixture()
def make_app() -> Callable[..., FastAPI]:
    """Build an app with settings overrides; tasks are interrupted on exit by default."""

    def _make(**overrides) -> FastAPI:
        overrides.setdefault("task_shutdown_interrupt", True)
        return create_app(Settings(**overrides))

    return _make


@pytest.fixture()
def client(make_app):
    with TestClient(make_app()) as c:
        yield c
