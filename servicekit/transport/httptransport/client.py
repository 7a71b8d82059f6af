"""An HTTP client binding that exposes a remote method as an endpoint."""

from __future__ import annotations

import dataclasses
import json
import urllib.error
import urllib.request
import xml.etree.ElementTree as ET
from typing import Any, Callable, Iterable

from servicekit.transport.httptransport.messages import (
    Context,
    CreateRequestFunc,
    DecodeResponseFunc,
    EncodeRequestFunc,
    Headers,
    Request,
    Response,
)
from servicekit.transport.httptransport.request_funcs import (
    ClientResponseFunc,
    ContextKey,
    RequestFunc,
)

ClientFinalizerFunc = Callable[[Context, "BaseException | None"], None]
"""Run at the end of every client call with the error raised, if any."""


class UrllibClient:
    """Send requests with urllib; error statuses are returned, not raised."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self._opener = urllib.request.build_opener()

    def do(self, request: Request) -> Response:
        """Send ``request`` and return the response with an open body."""
        headers = {key: ", ".join(request.headers.get_all(key)) for key in request.headers}
        outgoing = urllib.request.Request(
            request.url,
            data=request.body or None,
            headers=headers,
            method=request.method,
        )
        try:
            if self.timeout is None:
                raw = self._opener.open(outgoing)
            else:
                raw = self._opener.open(outgoing, timeout=self.timeout)
        except urllib.error.HTTPError as exc:
            raw = exc

        received = Headers(list(raw.headers.items()))
        length = received.get("Content-Length")
        try:
            content_length = int(length) if length else -1
        except ValueError:
            content_length = -1
        return Response(
            status_code=raw.getcode(),
            headers=received,
            body=raw,
            content_length=content_length,
            request=request,
        )


def _close_quietly(body: Any) -> None:
    close = getattr(body, "close", None)
    if close is None:
        return
    try:
        close()
    except Exception:
        pass


class Client:
    """Call a remote HTTP method as an endpoint.

    ``create_request`` builds the outgoing request, ``http_client`` (any
    object with ``do(request)``) sends it and ``decode`` turns the response
    into the result. Unless ``buffered_stream`` is set, the response body
    is closed once decoding is done; with it, the caller must close it.
    """

    def __init__(
        self,
        create_request: CreateRequestFunc,
        decode: DecodeResponseFunc,
        *,
        http_client: Any = None,
        before: Iterable[RequestFunc] = (),
        after: Iterable[ClientResponseFunc] = (),
        finalizer: Iterable[ClientFinalizerFunc] = (),
        buffered_stream: bool = False,
    ) -> None:
        self.create_request = create_request
        self.decode = decode
        self.http_client = http_client if http_client is not None else UrllibClient()
        self.before = list(before)
        self.after = list(after)
        self.finalizer = list(finalizer)
        self.buffered_stream = buffered_stream

    def endpoint(self) -> Callable[[Context, Any], Any]:
        """Return the endpoint that performs the remote call."""
        return self.__call__

    def __call__(self, ctx: Context, request: Any) -> Any:
        """Perform the remote call for ``request`` and return the decoded response."""
        ctx = ctx if ctx is not None else {}
        response: Response | None = None
        error: BaseException | None = None
        try:
            outgoing = self.create_request(ctx, request)
            for func in self.before:
                ctx = func(ctx, outgoing)

            response = self.http_client.do(outgoing.with_context(ctx))
            try:
                for func in self.after:
                    ctx = func(ctx, response)
                return self.decode(ctx, response)
            finally:
                if not self.buffered_stream:
                    _close_quietly(response.body)
        except BaseException as exc:
            error = exc
            raise
        finally:
            if self.finalizer:
                final_ctx: Context = ctx
                if response is not None:
                    final_ctx = {
                        **ctx,
                        ContextKey.RESPONSE_HEADERS: response.headers,
                        ContextKey.RESPONSE_SIZE: response.content_length,
                    }
                for func in self.finalizer:
                    func(final_ctx, error)


def new_client(
    method: str,
    target: Any,
    encode: EncodeRequestFunc,
    decode: DecodeResponseFunc,
    **kwargs: Any,
) -> Client:
    """Return a Client that sends ``method`` requests to ``target``.

    Each request is created empty and then filled in by ``encode``. Keyword
    arguments are passed on to :class:`Client`.
    """
    url = target.geturl() if hasattr(target, "geturl") else str(target)

    def create_request(ctx: Context, request: Any) -> Request:
        outgoing = Request(method=method, url=url)
        encode(ctx, outgoing, request)
        return outgoing

    return Client(create_request, decode, **kwargs)


def _payload_headers(payload: Any) -> Headers | None:
    value = getattr(payload, "headers", None)
    if callable(value):
        value = value()
    if value is None:
        return None
    return value if isinstance(value, Headers) else Headers(value)


def _apply_headers(request: Request, payload: Any) -> None:
    headers = _payload_headers(payload)
    if headers is None:
        return
    for key in headers:
        request.headers.set(key, headers.get(key))


def _json_default(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    raise TypeError(f"object of type {type(obj).__name__} is not JSON serializable")


def encode_json_request(ctx: Context, request: Request, payload: Any) -> None:
    """Write ``payload`` as JSON into the request body.

    Headers offered by a ``headers`` attribute of the payload are set on
    the request.
    """
    request.headers.set("Content-Type", "application/json; charset=utf-8")
    _apply_headers(request, payload)
    text = json.dumps(payload, default=_json_default, separators=(",", ":"))
    request.body = (text + "\n").encode("utf-8")


_XML_NAMES = {bool: "bool", int: "int", float: "float64", str: "string", bytes: "bytes"}


def _xml_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    if isinstance(value, (str, int, float)):
        return str(value)
    raise TypeError(f"unsupported type: {type(value).__name__}")


def _xml_element(tag: str, value: Any) -> ET.Element:
    element = ET.Element(tag)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        for item in dataclasses.fields(value):
            _xml_append(element, item.name, getattr(value, item.name))
    else:
        element.text = _xml_text(value)
    return element


def _xml_append(parent: ET.Element, tag: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _xml_append(parent, tag, item)
        return
    parent.append(_xml_element(tag, value))


def _xml_tag(value: Any) -> str:
    return _XML_NAMES.get(type(value), type(value).__name__)


def encode_xml_request(ctx: Context, request: Request, payload: Any) -> None:
    """Write ``payload`` as XML into the request body.

    A dataclass becomes an element named after its class holding one child
    per field. Headers offered by a ``headers`` attribute are set.
    """
    request.headers.set("Content-Type", "text/xml; charset=utf-8")
    _apply_headers(request, payload)
    items = payload if isinstance(payload, (list, tuple)) else [payload]
    parts = [
        ET.tostring(_xml_element(_xml_tag(item), item), encoding="unicode")
        for item in items
        if item is not None
    ]
    request.body = "".join(parts).encode("utf-8")