"""Request context middleware: tags every request with an ID and its learner.

Lesson calls fan out to the generative service and the store, and several
learners' requests interleave on the same event loop.  The request ID and
the X-User-Id of the request being served live in ContextVars, and
``RequestContextFilter`` copies them onto every LogRecord, so a log line
from deep inside the engine can be tied back to the request that caused it.

setup_logging() installs the filter on the root handler.  Filters attached
to a logger only see records logged on that exact logger, so a handler is
the one place every ``learnx.*`` record passes through.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")
learner_id_var: ContextVar[str | None] = ContextVar("learner_id", default=None)


class RequestContextFilter(logging.Filter):
    """Copy the current request ID and learner onto each record.

    An explicit ``extra={"user_id": ...}`` wins over the header value.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        if getattr(record, "user_id", None) is None:
            record.user_id = learner_id_var.get()  # type: ignore[attr-defined]
        return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request context, time the request and log one summary line.

    A caller-supplied X-Request-ID is kept so clients can correlate their
    own retries; otherwise a UUID4 is generated.  Either way it is echoed
    on the response.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        req_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        learner = (request.headers.get("x-user-id") or "").strip() or None
        req_token = request_id_var.set(req_id)
        learner_token = learner_id_var.set(learner)

        start = time.monotonic()
        try:
            response = await call_next(request)
            duration_ms = round((time.monotonic() - start) * 1000, 1)
            logger.info(
                "%s %s -> %d (%.1fms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "request_id": req_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                    "user_id": learner,
                },
            )
        finally:
            learner_id_var.reset(learner_token)
            request_id_var.reset(req_token)

        response.headers["X-Request-ID"] = req_id
        return response
