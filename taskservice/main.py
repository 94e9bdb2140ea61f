import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.concurrency import run_in_threadpool

from taskservice.api.errors import register_exception_handlers
from taskservice.api.router import router as api_router
from taskservice.config import Settings, settings as default_settings
from taskservice.logging_config import setup_logging
from taskservice.services.task_service import TaskService
from taskservice.worker.pool import TaskExecutor

logger = logging.getLogger("taskservice.api")


def build_executor(settings: Settings) -> TaskExecutor:
    return TaskExecutor(
        core_pool_size=settings.task_core_pool_size,
        max_pool_size=settings.task_max_pool_size,
        queue_capacity=settings.task_queue_capacity,
        keep_alive_seconds=settings.task_keep_alive_seconds,
        rejection_policy=settings.task_rejection_policy,
        thread_name_prefix=settings.task_thread_name_prefix,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings.log_level)

    # The executor lives exactly as long as the app: created here, shut down
    # when the lifespan exits.
    executor = build_executor(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "executor_started core=%s max=%s queue=%s policy=%s",
            settings.task_core_pool_size,
            settings.task_max_pool_size,
            settings.task_queue_capacity,
            settings.task_rejection_policy,
        )
        try:
            yield
        finally:
            # Draining can take several task durations; keep the loop free.
            await run_in_threadpool(
                executor.shutdown, wait=True, interrupt=settings.task_shutdown_interrupt
            )
            logger.info("executor_stopped stats=%s", executor.stats())

    app = FastAPI(title="Task Service API", lifespan=lifespan)
    app.state.settings = settings
    app.state.executor = executor
    app.state.task_service = TaskService(executor, duration_seconds=settings.task_duration_seconds)

    # Added first so the catch-all runs inside the access-log middleware.
    register_exception_handlers(app)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Attach a request id to every response and log a compact access line.

        - If the caller provides X-Request-ID, we reuse it.
        - Otherwise we generate a UUID4.
        """

        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "access request_id=%s method=%s path=%s status=%s duration_ms=%.2f",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    app.include_router(api_router)
    return app


app = create_app()
