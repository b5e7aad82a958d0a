"""
Request-scoped key/value state.

Each inbound request runs inside its own scope. The scope is a plain dict held
in a ContextVar, so concurrent requests (separate asyncio tasks) never see each
other's state, and code running outside any scope (startup, background jobs,
scripts) simply gets None back.

Usage:
    async def handler():
        request_context.set("role_count", 3)
        ...

    await request_context.run_scoped("01HF...", handler)

    with request_context.request_scope("01HF..."):
        log.info("correlated")
"""
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, TypeVar

import ulid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from accessgate.core import config


T = TypeVar("T")

CORRELATION_ID_KEY = "request_id"

_scope: ContextVar[Optional[Dict[str, Any]]] = ContextVar("request_scope", default=None)


def get(key: str) -> Any:
    """Read a value from the current scope, None outside a scope."""
    store = _scope.get()
    if store is None:
        return None
    return store.get(key)


def set(key: str, value: Any) -> None:
    """Write a value into the current scope; no-op outside a scope."""
    store = _scope.get()
    if store is not None:
        store[key] = value


def clear() -> None:
    """Erase everything held by the current scope."""
    store = _scope.get()
    if store is not None:
        store.clear()


def get_correlation_id() -> Optional[str]:
    return get(CORRELATION_ID_KEY)


def in_scope() -> bool:
    return _scope.get() is not None


@contextmanager
def request_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Open a fresh scope for the duration of the block and clear it on exit."""
    correlation_id = correlation_id or ulid.ulid()
    token = _scope.set({CORRELATION_ID_KEY: correlation_id})
    try:
        yield correlation_id
    finally:
        clear()
        _scope.reset(token)


async def run_scoped(correlation_id: Optional[str], work: Callable[[], Awaitable[T]]) -> T:
    """Await `work()` inside a fresh scope tagged with `correlation_id`."""
    with request_scope(correlation_id):
        return await work()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Wrap every request in its own scope.

    The correlation id is taken from the configured request header when the
    caller supplies one, otherwise a new ULID is minted. It is echoed back on
    the response.
    """

    def __init__(self, app, header_name: str = config.REQUEST_ID_HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next) -> Response:
        incoming = request.headers.get(self.header_name)
        with request_scope(incoming) as correlation_id:
            request.state.request_id = correlation_id
            response: Response = await call_next(request)
            response.headers[self.header_name] = correlation_id
            return response
