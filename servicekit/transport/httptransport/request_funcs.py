"""Functions that move data between HTTP messages and the request context."""

from __future__ import annotations

import enum
from typing import Any, Callable, Mapping

from servicekit.transport.httptransport.messages import Request, Response, ResponseWriter

Context = Mapping[Any, Any]

RequestFunc = Callable[[Context, Request], Context]
"""Take information from a request and return an updated context."""

ServerResponseFunc = Callable[[Context, ResponseWriter], Context]
"""Use the context to adjust a response writer before the response is written."""

ClientResponseFunc = Callable[[Context, Response], Context]
"""Take information from a received response before it is decoded."""


class ContextKey(enum.Enum):
    """Keys under which request and response details are kept in a context."""

    REQUEST_METHOD = enum.auto()
    REQUEST_URI = enum.auto()
    REQUEST_PATH = enum.auto()
    REQUEST_PROTO = enum.auto()
    REQUEST_HOST = enum.auto()
    REQUEST_REMOTE_ADDR = enum.auto()
    REQUEST_X_FORWARDED_FOR = enum.auto()
    REQUEST_X_FORWARDED_PROTO = enum.auto()
    REQUEST_AUTHORIZATION = enum.auto()
    REQUEST_REFERER = enum.auto()
    REQUEST_USER_AGENT = enum.auto()
    REQUEST_X_REQUEST_ID = enum.auto()
    REQUEST_ACCEPT = enum.auto()
    RESPONSE_HEADERS = enum.auto()
    RESPONSE_SIZE = enum.auto()


def set_content_type(content_type: str) -> ServerResponseFunc:
    """Return a ServerResponseFunc that sets the Content-Type header."""
    return set_response_header("Content-Type", content_type)


def set_response_header(key: str, value: str) -> ServerResponseFunc:
    """Return a ServerResponseFunc that sets the given response header."""

    def apply(ctx: Context, writer: ResponseWriter) -> Context:
        writer.headers.set(key, value)
        return ctx

    return apply


def set_request_header(key: str, value: str) -> RequestFunc:
    """Return a RequestFunc that sets the given request header."""

    def apply(ctx: Context, request: Request) -> Context:
        request.headers.set(key, value)
        return ctx

    return apply


def populate_request_context(ctx: Context | None, request: Request) -> dict[Any, Any]:
    """Return a new context holding details of ``request`` under ContextKeys."""
    headers = request.headers
    return {
        **(ctx or {}),
        ContextKey.REQUEST_METHOD: request.method,
        ContextKey.REQUEST_URI: request.request_uri,
        ContextKey.REQUEST_PATH: request.path,
        ContextKey.REQUEST_PROTO: request.proto,
        ContextKey.REQUEST_HOST: request.host,
        ContextKey.REQUEST_REMOTE_ADDR: request.remote_addr,
        ContextKey.REQUEST_X_FORWARDED_FOR: headers.get("X-Forwarded-For"),
        ContextKey.REQUEST_X_FORWARDED_PROTO: headers.get("X-Forwarded-Proto"),
        ContextKey.REQUEST_AUTHORIZATION: headers.get("Authorization"),
        ContextKey.REQUEST_REFERER: headers.get("Referer"),
        ContextKey.REQUEST_USER_AGENT: headers.get("User-Agent"),
        ContextKey.REQUEST_X_REQUEST_ID: headers.get("X-Request-Id"),
        ContextKey.REQUEST_ACCEPT: headers.get("Accept"),
    }