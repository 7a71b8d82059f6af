"""An HTTP server binding that wraps an endpoint."""

from __future__ import annotations

import dataclasses
import json
from http import HTTPStatus
from typing import Any, Callable, Iterable, Mapping
from urllib.parse import quote

from servicekit.transport.error_handler import ErrorHandler
from servicekit.transport.httptransport.interceptor import InterceptingWriter
from servicekit.transport.httptransport.messages import (
    DecodeRequestFunc,
    EncodeResponseFunc,
    Headers,
    Request,
    ResponseRecorder,
    ResponseWriter,
)
from servicekit.transport.httptransport.request_funcs import (
    ContextKey,
    RequestFunc,
    ServerResponseFunc,
)

Context = Mapping[Any, Any]
Endpoint = Callable[[Context, Any], Any]

ErrorEncoder = Callable[[Context, BaseException, ResponseWriter], None]
"""Write an error to a response writer."""

ServerFinalizerFunc = Callable[[Context, int, Request], None]
"""Run after a response is written, given the status code and the request."""


def _ignore_error(ctx: Context, err: BaseException) -> None:
    return None


def nop_request_decoder(ctx: Context, request: Request) -> None:
    """Decode nothing: the endpoint receives None."""
    return None


def _attribute(obj: Any, name: str) -> Any:
    value = getattr(obj, name, None)
    return value() if callable(value) else value


def _headers_of(obj: Any) -> Headers | None:
    value = _attribute(obj, "headers")
    if value is None:
        return None
    return value if isinstance(value, Headers) else Headers(value)


def _status_code_of(obj: Any) -> int | None:
    value = _attribute(obj, "status_code")
    return int(value) if value is not None else None


def _add_headers(writer: ResponseWriter, headers: Headers | None) -> None:
    if headers is None:
        return
    for key in headers:
        for value in headers.get_all(key):
            writer.headers.add(key, value)


def _json_default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"object of type {type(obj).__name__} is not JSON serializable")


def encode_json_response(ctx: Context, writer: ResponseWriter, response: Any) -> None:
    """Write ``response`` as JSON.

    Headers from a ``headers`` attribute of the response are added, and a
    ``status_code`` attribute replaces the default 200. Nothing is written
    for 204 No Content.
    """
    writer.headers.set("Content-Type", "application/json; charset=utf-8")
    _add_headers(writer, _headers_of(response))
    code = _status_code_of(response) or HTTPStatus.OK
    writer.write_header(code)
    if code == HTTPStatus.NO_CONTENT:
        return
    text = json.dumps(response, default=_json_default, separators=(",", ":"))
    writer.write((text + "\n").encode("utf-8"))


def default_error_encoder(ctx: Context, err: BaseException, writer: ResponseWriter) -> None:
    """Write ``err`` as plain text with status 500.

    An error with a ``to_json()`` method that succeeds is written as JSON
    instead; ``headers`` and ``status_code`` attributes are honoured.
    """
    content_type, body = "text/plain; charset=utf-8", str(err).encode("utf-8")
    to_json = getattr(err, "to_json", None)
    if callable(to_json):
        try:
            encoded = to_json()
        except Exception:
            encoded = None
        if encoded is not None:
            content_type = "application/json; charset=utf-8"
            body = encoded.encode("utf-8") if isinstance(encoded, str) else bytes(encoded)
    writer.headers.set("Content-Type", content_type)
    _add_headers(writer, _headers_of(err))
    writer.write_header(_status_code_of(err) or HTTPStatus.INTERNAL_SERVER_ERROR)
    writer.write(body)


class Server:
    """Serve an endpoint over HTTP.

    Requests are decoded with ``decode``, passed to ``endpoint`` and the
    result written with ``encode``. Any exception raised on the way goes to
    ``error_handler`` and is then written by ``error_encoder``. Instances
    are also WSGI applications.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        decode: DecodeRequestFunc,
        encode: EncodeResponseFunc,
        *,
        before: Iterable[RequestFunc] = (),
        after: Iterable[ServerResponseFunc] = (),
        error_encoder: ErrorEncoder = default_error_encoder,
        error_handler: Any = None,
        finalizer: Iterable[ServerFinalizerFunc] = (),
    ) -> None:
        self.endpoint = endpoint
        self.decode = decode
        self.encode = encode
        self.before = list(before)
        self.after = list(after)
        self.error_encoder = error_encoder
        self.error_handler = error_handler if error_handler is not None else ErrorHandler(_ignore_error)
        self.finalizer = list(finalizer)

    def _fail(self, ctx: Context, err: BaseException, writer: ResponseWriter) -> None:
        self.error_handler.handle(ctx, err)
        self.error_encoder(ctx, err, writer)

    def serve_http(self, writer: ResponseWriter, request: Request) -> None:
        """Handle one request, writing the response to ``writer``."""
        ctx: Context = request.context
        interceptor: InterceptingWriter | None = None
        if self.finalizer:
            interceptor = InterceptingWriter(writer)
            writer = interceptor

        try:
            for func in self.before:
                ctx = func(ctx, request)

            try:
                decoded = self.decode(ctx, request)
            except Exception as err:
                self._fail(ctx, err, writer)
                return

            try:
                response = self.endpoint(ctx, decoded)
            except Exception as err:
                self._fail(ctx, err, writer)
                return

            for func in self.after:
                ctx = func(ctx, writer)

            try:
                self.encode(ctx, writer, response)
            except Exception as err:
                self._fail(ctx, err, writer)
        finally:
            if interceptor is not None:
                final_ctx = {
                    **ctx,
                    ContextKey.RESPONSE_HEADERS: interceptor.headers,
                    ContextKey.RESPONSE_SIZE: interceptor.written,
                }
                for func in self.finalizer:
                    func(final_ctx, interceptor.code, request)

    def __call__(self, environ: dict[str, Any], start_response: Callable[..., Any]) -> list[bytes]:
        """Serve a WSGI request."""
        request = request_from_environ(environ)
        recorder = ResponseRecorder()
        self.serve_http(recorder, request)

        code = recorder.code
        try:
            reason = HTTPStatus(code).phrase
        except ValueError:
            reason = "Unknown"
        body = bytes(recorder.body)
        headers = [(key, value) for key in recorder.headers for value in recorder.headers.get_all(key)]
        if "Content-Length" not in recorder.headers and code >= 200 and code not in (204, 304):
            headers.append(("Content-Length", str(len(body))))
        start_response(f"{code} {reason}", headers)
        return [body]


def request_from_environ(environ: Mapping[str, Any]) -> Request:
    """Build a Request from a WSGI environment."""
    headers = Headers()
    for key, value in environ.items():
        if key.startswith("HTTP_"):
            headers.add(key[5:].replace("_", "-"), value)
    for key in ("CONTENT_TYPE", "CONTENT_LENGTH"):
        if environ.get(key):
            headers.add(key.replace("_", "-"), environ[key])

    path = environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")
    uri = quote(path.encode("latin-1"), safe="/:@!$&'()*+,;=-._~")
    if environ.get("QUERY_STRING"):
        uri += "?" + environ["QUERY_STRING"]
    uri = environ.get("REQUEST_URI") or environ.get("RAW_URI") or uri

    host = environ.get("HTTP_HOST") or ":".join(
        part for part in (environ.get("SERVER_NAME", ""), environ.get("SERVER_PORT", "")) if part
    )
    remote_addr = environ.get("REMOTE_ADDR", "")
    if remote_addr and environ.get("REMOTE_PORT"):
        remote_addr = f"{remote_addr}:{environ['REMOTE_PORT']}"

    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    stream = environ.get("wsgi.input")
    body = stream.read(length) if stream is not None and length > 0 else b""

    return Request(
        method=environ.get("REQUEST_METHOD", "GET"),
        url=uri,
        headers=headers,
        body=body,
        proto=environ.get("SERVER_PROTOCOL", "HTTP/1.1"),
        host=host,
        remote_addr=remote_addr,
        request_uri=uri,
        context={},
    )