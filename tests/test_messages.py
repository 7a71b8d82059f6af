import io

import pytest

from servicekit.transport.httptransport.messages import (
    Headers,
    Request,
    Response,
    ResponseRecorder,
    ResponseWriter,
)


def test_headers_lookup_ignores_case():
    headers = Headers()
    headers.set("x-foo", "abcde")
    assert headers.get("X-FOO") == "abcde"
    assert headers.get("X-Foo") == "abcde"
    assert "x-FOO" in headers


def test_headers_keys_are_canonical():
    headers = Headers()
    headers.set("x-request-id", "a1b2c3d4e5")
    assert list(headers) == ["X-Request-Id"]


def test_headers_add_keeps_order():
    headers = Headers()
    headers.add("Vary", "Origin")
    headers.add("vary", "User-Agent")
    assert headers.get_all("Vary") == ["Origin", "User-Agent"]
    assert headers.get("Vary") == "Origin"
    assert headers["VARY"] == ["Origin", "User-Agent"]


def test_headers_set_replaces_values():
    headers = Headers({"Vary": ["Origin", "User-Agent"]})
    headers.set("Vary", "Accept")
    assert headers.get_all("Vary") == ["Accept"]


def test_headers_delete_and_missing():
    headers = Headers({"X-Edward": "Snowden"})
    headers.delete("x-edward")
    assert "X-Edward" not in headers
    assert headers.get("X-Edward") == ""
    assert headers.get_all("X-Edward") == []
    assert len(headers) == 0
    headers.delete("X-Edward")
    assert len(headers) == 0


def test_headers_missing_item_raises():
    with pytest.raises(KeyError):
        Headers()["X-Missing"]


def test_headers_copy_is_independent():
    original = Headers([("X-Foo", "1"), ("X-Foo", "2")])
    copy = Headers(original)
    assert copy == original
    copy.add("X-Foo", "3")
    assert original.get_all("X-Foo") == ["1", "2"]
    assert copy != original


def test_headers_get_all_returns_copy():
    headers = Headers({"X-Foo": "1"})
    headers.get_all("X-Foo").append("2")
    assert headers.get_all("X-Foo") == ["1"]


def test_headers_with_invalid_chars_are_kept_verbatim():
    headers = Headers()
    headers.set("bad key", "v")
    assert list(headers) == ["bad key"]
    assert headers.get("bad key") == "v"


def test_request_derives_path_and_host():
    request = Request("PATCH", "http://example.com/search?q=sympatico")
    assert request.path == "/search"
    assert request.host == "example.com"


def test_request_converts_header_mapping():
    request = Request("GET", "/", headers={"x-request-id": "a1b2c3d4e5"})
    assert request.headers.get("X-Request-Id") == "a1b2c3d4e5"


def test_request_with_context_copies():
    request = Request("GET", "http://example.com/")
    ctx = {"one": 1}
    updated = request.with_context(ctx)
    assert updated.context == {"one": 1}
    assert request.context == {}
    assert updated.url == request.url
    assert updated.headers is request.headers


def test_response_defaults():
    response = Response(headers={"X-Foo": "bar"}, body=io.BytesIO(b"hello"))
    assert response.status_code == 200
    assert response.headers.get("x-foo") == "bar"
    assert response.body.read() == b"hello"


def test_recorder_write_sends_ok_status():
    recorder = ResponseRecorder()
    assert recorder.write(b"hello") == 5
    assert recorder.wrote_header
    assert recorder.code == 200
    assert bytes(recorder.body) == b"hello"


def test_recorder_first_status_wins():
    recorder = ResponseRecorder()
    recorder.write_header(418)
    recorder.write_header(500)
    recorder.write(b"x")
    assert recorder.code == 418


def test_recorder_body_accumulates():
    recorder = ResponseRecorder()
    recorder.write(b"go eat ")
    recorder.write(b"a fly")
    assert bytes(recorder.body) == b"go eat a fly"


@pytest.mark.parametrize("code", [0, 99, 1000])
def test_recorder_rejects_invalid_status(code):
    with pytest.raises(ValueError):
        ResponseRecorder().write_header(code)


def test_recorder_is_a_response_writer():
    recorder = ResponseRecorder()
    assert isinstance(recorder, ResponseWriter)
    assert not isinstance(object(), ResponseWriter)
    assert len(recorder.headers) == 0
    recorder.headers.set("x-foo", "bar")
    assert recorder.headers.get("X-Foo") == "bar"