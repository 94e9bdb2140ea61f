import logging

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from taskservice.api.errors import ERROR_RULES, ErrorRule, match_rule, register_exception_handlers
from taskservice.exceptions import IllegalStateError, TaskInterrupted, TaskRejected


def test_exception_route_is_translated_to_400(client):
    for _ in range(3):
        r = client.get("/exception")
        assert r.status_code == 400
        assert r.text == "Handled Exception: Something went wrong!"
        assert r.headers["content-type"].startswith("text/plain")


@pytest.mark.parametrize(
    "exc, status",
    [
        (TaskRejected("full"), 503),
        (TaskInterrupted("Task interrupted"), 500),
        (IllegalStateError("bad state"), 500),
        (RuntimeError("boom"), 400),
        (ValueError("nope"), 400),
    ],
)
def test_most_specific_rule_wins(exc, status):
    assert match_rule(exc).status_code == status


def test_rule_order_is_explicit_not_mro_based():
    # A chain that lists the base first shadows the subclass rule.
    rules = (
        ErrorRule(RuntimeError, 400, "generic: {message}"),
        ErrorRule(IllegalStateError, 500, "state: {message}"),
    )
    assert match_rule(IllegalStateError("x"), rules).status_code == 400


def test_no_matching_rule_raises_lookup_error():
    with pytest.raises(LookupError):
        match_rule(KeyboardInterrupt(), ERROR_RULES)


def _app_raising(exc: BaseException) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/boom")
    def boom():
        raise exc

    return app


def test_illegal_state_is_translated_to_500():
    client = TestClient(_app_raising(TaskInterrupted("Task interrupted")))
    r = client.get("/boom")
    assert r.status_code == 500
    assert r.text == "An error occurred: Task interrupted"


def test_unclassified_exception_falls_back_to_400():
    # Default TestClient re-raises anything that escapes to the server.
    client = TestClient(_app_raising(ValueError("odd input")))
    r = client.get("/boom")
    assert r.status_code == 400
    assert r.text == "Handled Exception: odd input"


def test_unclassified_route_fault_is_logged_as_access_line(make_app, caplog):
    caplog.set_level(logging.INFO, logger="taskservice.api")
    app = make_app()

    @app.get("/odd")
    def odd():
        raise ValueError("odd")

    with TestClient(app) as client:
        r = client.get("/odd", headers={"X-Request-ID": "req-odd"})

    assert r.status_code == 400
    assert r.text == "Handled Exception: odd"
    assert r.headers["x-request-id"] == "req-odd"

    access = [m for m in (rec.getMessage() for rec in caplog.records) if m.startswith("access ")]
    assert len(access) == 1
    assert "request_id=req-odd" in access[0]
    assert "path=/odd" in access[0]
    assert "status=400" in access[0]
