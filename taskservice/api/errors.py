from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskservice.exceptions import IllegalStateError, TaskRejected

logger = logging.getLogger("taskservice.api")


@dataclass(frozen=True)
class ErrorRule:
    kind: type[BaseException]
    status_code: int
    template: str

    def render(self, exc: BaseException) -> str:
        return self.template.format(message=exc)


# Checked top to bottom: the first rule whose kind matches wins, so subclasses
# must come before their bases. The last rule is the catch-all.
ERROR_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(TaskRejected, 503, "Task rejected: {message}"),
    ErrorRule(IllegalStateError, 500, "An error occurred: {message}"),
    ErrorRule(RuntimeError, 400, "Handled Exception: {message}"),
    ErrorRule(Exception, 400, "Handled Exception: {message}"),
)


def match_rule(exc: BaseException, rules: tuple[ErrorRule, ...] = ERROR_RULES) -> ErrorRule:
    for rule in rules:
        if isinstance(exc, rule.kind):
            return rule
    raise LookupError(f"no error rule for {type(exc).__name__}")


def _get_request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def _with_request_id(response: Response, request_id: str | None) -> Response:
    if request_id:
        response.headers["X-Request-ID"] = request_id
    return response


def register_exception_handlers(app: FastAPI, rules: tuple[ErrorRule, ...] = ERROR_RULES) -> None:
    """Install the error translator on ``app``.

    Starlette picks a handler by walking the exception's MRO, which is not the
    precedence we want, so every typed rule points at one handler that
    re-resolves the rule against ``rules`` in order.

    The catch-all rule is served by an HTTP middleware instead: Starlette sends
    ``Exception`` handlers to its outermost middleware, which re-raises to the
    server after responding. Call this before adding any middleware that must
    see the translated response (e.g. the access log).
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        request_id = _get_request_id(request)
        payload: dict = {"detail": exc.detail, "request_id": request_id}
        return _with_request_id(JSONResponse(status_code=exc.status_code, content=payload), request_id)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        request_id = _get_request_id(request)
        payload: dict = {"detail": exc.errors(), "request_id": request_id}
        return _with_request_id(JSONResponse(status_code=422, content=payload), request_id)

    async def translate_exception(request: Request, exc: Exception):
        request_id = _get_request_id(request)
        rule = match_rule(exc, rules)
        if rule.status_code >= 500:
            logger.error(
                "translated_error request_id=%s kind=%s status=%s",
                request_id,
                type(exc).__name__,
                rule.status_code,
                exc_info=exc,
            )
        else:
            logger.warning(
                "translated_error request_id=%s kind=%s status=%s message=%s",
                request_id,
                type(exc).__name__,
                rule.status_code,
                exc,
            )
        response = PlainTextResponse(rule.render(exc), status_code=rule.status_code)
        return _with_request_id(response, request_id)

    for rule in rules:
        if rule.kind not in (Exception, BaseException):
            app.add_exception_handler(rule.kind, translate_exception)

    @app.middleware("http")
    async def unhandled_exception_middleware(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            return await translate_exception(request, exc)
