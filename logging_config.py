"""JSON logging with per-request correlation ids.

``configure_logging`` installs one stream handler emitting JSON lines. The
``request_id_middleware`` stores the id of the request being served in a
ContextVar; ``RequestIdFilter`` copies it onto every log record so the
formatter can reference ``%(request_id)s``.
"""

import contextvars
import logging
import uuid

from fastapi import Request
from pythonjsonlogger import jsonlogger

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")
REQUEST_ID_HEADER = "X-Request-ID"

logger = logging.getLogger("checkout.http")


class RequestIdFilter(logging.Filter):
    """Attach a ``request_id`` attribute to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = REQUEST_ID_CTX.get()
        return True


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, "_checkout_handler", False):
            root.removeHandler(h)

    handler = logging.StreamHandler()
    handler._checkout_handler = True
    handler.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"))
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)
    root.setLevel(level)


async def request_id_middleware(request: Request, call_next):
    rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    token = REQUEST_ID_CTX.set(rid)
    request.state.request_id = rid
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
    finally:
        logger.info(
            "request handled",
            extra={"path": request.url.path, "method": request.method, "status": status_code},
        )
        REQUEST_ID_CTX.reset(token)
    response.headers[REQUEST_ID_HEADER] = rid
    return response
