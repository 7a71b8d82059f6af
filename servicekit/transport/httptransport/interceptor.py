"""A response writer wrapper that records the status code and body size."""

from __future__ import annotations

from typing import Any

from servicekit.transport.httptransport.messages import Headers, ResponseWriter

OPTIONAL_METHODS = frozenset({"flush", "push", "close_notify", "hijack", "read_from"})
"""Methods a response writer may offer beyond the basic ones.

The intercepting writer offers each of them exactly when the writer it
wraps does, so code probing for them behaves the same either way.
"""


class InterceptingWriter:
    """Wrap a ResponseWriter, remembering the status code and bytes written.

    ``code`` starts at 200 because a handler may write a body without ever
    calling ``write_header``.
    """

    def __init__(self, writer: ResponseWriter) -> None:
        self.writer = writer
        self.code = 200
        self.written = 0

    @property
    def headers(self) -> Headers:
        """The headers of the wrapped writer."""
        return self.writer.headers

    def write_header(self, code: int) -> None:
        """Record ``code`` and pass it on to the wrapped writer."""
        self.code = code
        self.writer.write_header(code)

    def write(self, data: bytes) -> int:
        """Write ``data`` through, counting the bytes the writer accepted."""
        count = self.writer.write(data)
        self.written += count
        return count

    def __getattr__(self, name: str) -> Any:
        if name in OPTIONAL_METHODS:
            writer = self.__dict__.get("writer")
            if writer is not None:
                return getattr(writer, name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")