"""Endpoint middlewares that reject or delay requests over a rate limit."""

from __future__ import annotations

import functools
from typing import Any, Callable

Endpoint = Callable[[Any, Any], Any]
Middleware = Callable[[Endpoint], Endpoint]


class RateLimitExceeded(Exception):
    """Raised when a request is rejected by the rate limiter."""

    def __init__(self, message: str = "rate limit exceeded") -> None:
        super().__init__(message)


def erroring_limiter(limit: Any) -> Middleware:
    """Return a middleware that rejects requests the limiter does not allow.

    ``limit`` is either an object with an ``allow()`` method or a callable
    taking no arguments and returning a bool.
    """
    allow = getattr(limit, "allow", limit)

    def middleware(next_endpoint: Endpoint) -> Endpoint:
        @functools.wraps(next_endpoint)
        def endpoint(ctx: Any, request: Any) -> Any:
            if not allow():
                raise RateLimitExceeded()
            return next_endpoint(ctx, request)

        return endpoint

    return middleware


def delaying_limiter(limit: Any) -> Middleware:
    """Return a middleware that waits on the limiter before each request.

    ``limit`` is either an object with a ``wait(ctx)`` method or a callable
    taking the context. Whatever it raises is passed on to the caller and
    the wrapped endpoint is not called.
    """
    wait = getattr(limit, "wait", limit)

    def middleware(next_endpoint: Endpoint) -> Endpoint:
        @functools.wraps(next_endpoint)
        def endpoint(ctx: Any, request: Any) -> Any:
            wait(ctx)
            return next_endpoint(ctx, request)

        return endpoint

    return middleware