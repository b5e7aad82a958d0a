import logging
from typing import List

from accessgate.core import config, request_context


LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(request_id)s] %(name)s: %(message)s"
BUFFER_FORMAT = "%(levelname)s %(name)s: %(message)s"
LOG_BUFFER_KEY = "logs"

_configured = False


class RequestIdFilter(logging.Filter):
    """Stamp every record with the correlation id of the current request scope."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_context.get_correlation_id() or "-"
        return True


class RequestLogBuffer(logging.Handler):
    """
    Collect the formatted records of the current request in its scope.

    The buffer lives in the request context, so it disappears with the scope
    and concurrent requests never share one. Outside a scope nothing is kept.
    """

    def emit(self, record: logging.LogRecord) -> None:
        if not request_context.in_scope():
            return
        try:
            buffer = request_context.get(LOG_BUFFER_KEY)
            if buffer is None:
                buffer = []
                request_context.set(LOG_BUFFER_KEY, buffer)
            buffer.append(self.format(record))
        except Exception:
            self.handleError(record)


def get_request_logs() -> List[str]:
    """Log lines emitted so far in the current request scope."""
    return list(request_context.get(LOG_BUFFER_KEY) or [])


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    global _configured
    if _configured:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())
    buffer = RequestLogBuffer()
    buffer.setFormatter(logging.Formatter(BUFFER_FORMAT))
    root = logging.getLogger("accessgate")
    root.addHandler(handler)
    root.addHandler(buffer)
    root.setLevel(level)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    if not name.startswith("accessgate"):
        name = f"accessgate.{name}"
    return logging.getLogger(name)
