"""HTTP message types and the encode/decode function signatures."""

from __future__ import annotations

import dataclasses
import io
import string
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, Iterable, Iterator, Mapping, Protocol, runtime_checkable
from urllib.parse import urlsplit

Context = Mapping[Any, Any]

_TOKEN_CHARS = frozenset(string.ascii_letters + string.digits + "!#$%&'*+-.^_`|~")


def _canonical_key(key: str) -> str:
    if not key or any(ch not in _TOKEN_CHARS for ch in key):
        return key
    return "-".join(part[:1].upper() + part[1:].lower() for part in key.split("-"))


class Headers:
    """A multi-valued map of header names to values.

    Names are stored in canonical form ("x-foo" becomes "X-Foo"), so
    lookups do not depend on case.
    """

    def __init__(
        self,
        initial: "Headers | Mapping[str, str | Iterable[str]] | Iterable[tuple[str, str]] | None" = None,
    ) -> None:
        self._values: dict[str, list[str]] = {}
        if initial is None:
            return
        if isinstance(initial, Headers):
            for key in initial:
                for value in initial.get_all(key):
                    self.add(key, value)
            return
        pairs = initial.items() if isinstance(initial, Mapping) else initial
        for key, value in pairs:
            if isinstance(value, str):
                self.add(key, value)
            else:
                for item in value:
                    self.add(key, item)

    def get(self, key: str) -> str:
        """Return the first value for ``key``, or "" if there is none."""
        values = self._values.get(_canonical_key(key))
        return values[0] if values else ""

    def get_all(self, key: str) -> list[str]:
        """Return every value for ``key``, in the order added."""
        return list(self._values.get(_canonical_key(key), ()))

    def set(self, key: str, value: str) -> None:
        """Replace any values for ``key`` with ``value``."""
        self._values[_canonical_key(key)] = [value]

    def add(self, key: str, value: str) -> None:
        """Append ``value`` to the values for ``key``."""
        self._values.setdefault(_canonical_key(key), []).append(value)

    def delete(self, key: str) -> None:
        """Remove every value for ``key``."""
        self._values.pop(_canonical_key(key), None)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and _canonical_key(key) in self._values

    def __getitem__(self, key: str) -> list[str]:
        return list(self._values[_canonical_key(key)])

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return self._values == other._values
        return NotImplemented

    def __repr__(self) -> str:
        return f"Headers({self._values!r})"


def _as_headers(value: Any) -> Headers:
    return value if isinstance(value, Headers) else Headers(value)


@dataclass
class Request:
    """An HTTP request, either received by a server or sent by a client."""

    method: str = "GET"
    url: str = "/"
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    proto: str = "HTTP/1.1"
    host: str = ""
    remote_addr: str = ""
    request_uri: str = ""
    context: Context = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.headers = _as_headers(self.headers)
        if not self.host:
            self.host = urlsplit(self.url).netloc

    @property
    def path(self) -> str:
        """The path component of the URL."""
        return urlsplit(self.url).path

    def with_context(self, ctx: Context) -> "Request":
        """Return a shallow copy of the request carrying ``ctx``."""
        return dataclasses.replace(self, context=ctx)


@dataclass
class Response:
    """An HTTP response received by a client."""

    status_code: int = 200
    headers: Headers = field(default_factory=Headers)
    body: BinaryIO = field(default_factory=io.BytesIO)
    content_length: int = -1
    request: Request | None = None

    def __post_init__(self) -> None:
        self.headers = _as_headers(self.headers)


@runtime_checkable
class ResponseWriter(Protocol):
    """Where a server writes its response: headers, status, then body."""

    headers: Headers

    def write_header(self, code: int) -> None:
        ...

    def write(self, data: bytes) -> int:
        ...


@dataclass
class ResponseRecorder:
    """A ResponseWriter that keeps everything written to it in memory."""

    code: int = 200
    headers: Headers = field(default_factory=Headers)
    body: bytearray = field(default_factory=bytearray)
    wrote_header: bool = False

    def write_header(self, code: int) -> None:
        """Record the status code; only the first call has effect."""
        if not 100 <= code <= 999:
            raise ValueError(f"invalid status code {code}")
        if self.wrote_header:
            return
        self.code = code
        self.wrote_header = True

    def write(self, data: bytes) -> int:
        """Append ``data`` to the body, sending status 200 first if needed."""
        if not self.wrote_header:
            self.write_header(200)
        self.body.extend(data)
        return len(data)


DecodeRequestFunc = Callable[[Context, Request], Any]
"""Turn a received HTTP request into a domain request object."""

EncodeRequestFunc = Callable[[Context, Request, Any], None]
"""Write a domain request object into an outgoing HTTP request."""

CreateRequestFunc = Callable[[Context, Any], Request]
"""Build an outgoing HTTP request from a domain request object."""

EncodeResponseFunc = Callable[[Context, ResponseWriter, Any], None]
"""Write a domain response object to a response writer."""

DecodeResponseFunc = Callable[[Context, Response], Any]
"""Turn a received HTTP response into a domain response object."""