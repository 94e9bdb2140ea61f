import logging
import threading
import time

from fastapi.testclient import TestClient

from tests._waiting import wait_until


def test_start_task_returns_before_task_finishes(make_app):
    app = make_app(task_duration_seconds=5.0)
    with TestClient(app) as client:
        start = time.perf_counter()
        r = client.get("/start-task")
        elapsed = time.perf_counter() - start

        assert r.status_code == 200
        assert r.text == "Task has been started!"
        assert r.headers["content-type"].startswith("text/plain")
        assert elapsed < 1.0
        assert app.state.executor.stats().submitted == 1


def test_task_runs_on_worker_thread(make_app, caplog):
    caplog.set_level(logging.INFO, logger="taskservice.tasks")
    app = make_app(task_duration_seconds=0.0, task_thread_name_prefix="unit-")

    with TestClient(app) as client:
        assert client.get("/start-task").status_code == 200
        wait_until(lambda: app.state.executor.stats().completed == 1)

    started = [r for r in caplog.records if r.getMessage().startswith("Executing task in thread:")]
    assert len(started) == 1
    assert started[0].threadName.startswith("unit-")
    assert started[0].threadName != threading.current_thread().name


def test_twenty_rapid_calls_all_complete_once(make_app, caplog):
    caplog.set_level(logging.INFO, logger="taskservice.tasks")
    app = make_app(
        task_core_pool_size=5,
        task_max_pool_size=10,
        task_queue_capacity=50,
        task_duration_seconds=0.05,
        task_shutdown_interrupt=False,
    )

    with TestClient(app) as client:
        for _ in range(20):
            r = client.get("/start-task")
            assert r.status_code == 200
            assert r.text == "Task has been started!"
    # Leaving the client drains the queue before the executor stops.

    stats = app.state.executor.stats()
    assert stats.submitted == 20
    assert stats.completed == 20
    assert stats.failed == 0
    assert stats.rejected == 0
    # 20 submissions never overflow a 50-slot queue, so only core workers start.
    assert stats.largest_pool_size == 5

    completed = [r for r in caplog.records if r.getMessage().startswith("Task completed in thread:")]
    assert len(completed) == 20


def test_saturated_pool_returns_503(make_app):
    app = make_app(
        task_core_pool_size=1,
        task_max_pool_size=1,
        task_queue_capacity=0,
        task_duration_seconds=5.0,
    )
    with TestClient(app) as client:
        assert client.get("/start-task").status_code == 200

        r = client.get("/start-task")
        assert r.status_code == 503
        assert r.text.startswith("Task rejected: Executor saturated")

        assert app.state.executor.stats().rejected == 1


def test_lifespan_drains_executor_off_the_event_loop(make_app):
    app = make_app(task_duration_seconds=0.0, task_shutdown_interrupt=False)
    executor = app.state.executor
    threads: dict[str, str] = {}
    real_shutdown = executor.shutdown

    def recording_shutdown(**kwargs):
        threads["shutdown"] = threading.current_thread().name
        real_shutdown(**kwargs)

    executor.shutdown = recording_shutdown

    @app.get("/loop-thread")
    async def loop_thread():
        threads["loop"] = threading.current_thread().name
        return {}

    with TestClient(app) as client:
        client.get("/loop-thread")
        client.get("/start-task")

    assert threads["shutdown"] != threads["loop"]
    assert executor.stats().completed == 1
