import itertools

import pytest

from servicekit.transport.httptransport.interceptor import OPTIONAL_METHODS, InterceptingWriter
from servicekit.transport.httptransport.messages import ResponseRecorder, ResponseWriter

OPTIONAL = ("flush", "push", "close_notify", "hijack", "read_from")

COMBINATIONS = [
    combo for size in range(len(OPTIONAL) + 1) for combo in itertools.combinations(OPTIONAL, size)
]


class VersatileWriter(ResponseRecorder):
    def __init__(self):
        super().__init__()
        self.calls = []

    def flush(self):
        self.calls.append("flush")

    def push(self, target, opts):
        self.calls.append("push")

    def read_from(self, reader):
        self.calls.append("read_from")
        return 0

    def close_notify(self):
        self.calls.append("close_notify")

    def hijack(self):
        self.calls.append("hijack")
        return None


def test_optional_methods_cover_versatile_writer():
    writer = InterceptingWriter(VersatileWriter())
    exposed = {name for name in OPTIONAL_METHODS if hasattr(writer, name)}
    assert exposed == set(OPTIONAL)


def test_passthroughs():
    inner = VersatileWriter()
    writer = InterceptingWriter(inner)
    writer.flush()
    writer.push("", None)
    writer.close_notify()
    writer.hijack()
    writer.read_from(None)
    assert sorted(inner.calls) == sorted(OPTIONAL)


@pytest.mark.parametrize("present", COMBINATIONS, ids=lambda c: "+".join(c) or "none")
def test_reimplements_exactly_the_inner_interfaces(present):
    attrs = {
        name: (lambda self, *args, _n=name: self.calls.append(_n)) for name in present
    }
    inner_cls = type("Inner", (ResponseRecorder,), attrs)
    inner = inner_cls()
    inner.calls = []
    writer = InterceptingWriter(inner)

    assert isinstance(writer, ResponseWriter)
    for name in OPTIONAL:
        assert hasattr(writer, name) == (name in present), name
    for name in present:
        getattr(writer, name)()
    assert inner.calls == list(present)


def test_default_code_is_ok():
    writer = InterceptingWriter(ResponseRecorder())
    assert writer.code == 200
    assert writer.written == 0


def test_records_code_and_forwards():
    inner = ResponseRecorder()
    writer = InterceptingWriter(inner)
    writer.write_header(418)
    assert writer.code == 418
    assert inner.code == 418


def test_counts_written_bytes():
    inner = ResponseRecorder()
    writer = InterceptingWriter(inner)
    assert writer.write(b"hello ") == 6
    assert writer.write(b"world") == 5
    assert writer.written == 11
    assert bytes(inner.body) == b"hello world"


def test_headers_are_the_inner_headers():
    inner = ResponseRecorder()
    writer = InterceptingWriter(inner)
    writer.headers.set("X-Foo", "bar")
    assert inner.headers.get("X-Foo") == "bar"


def test_unknown_attribute_raises():
    writer = InterceptingWriter(ResponseRecorder())
    with pytest.raises(AttributeError) as info:
        getattr(writer, "nonexistent")
    assert "nonexistent" in str(info.value)
    assert hasattr(writer, "nonexistent") is False
    assert writer.code == 200
    assert writer.written == 0