"""Tests for conduit.server.sender — ASGI message construction."""

import dataclasses

import pytest

from conduit.server.sender import (
    body_allowed,
    body_message,
    encode_chunk,
    encode_headers,
    encode_json,
    start_message,
)


class TestBodyAllowed:
    @pytest.mark.parametrize("status", [100, 101, 199, 204, 304])
    def test_no_body(self, status: int) -> None:
        assert not body_allowed(status)

    @pytest.mark.parametrize("status", [200, 201, 301, 404, 500])
    def test_body(self, status: int) -> None:
        assert body_allowed(status)


class TestMessages:
    def test_start_without_reason(self) -> None:
        message = start_message(200, [(b"a", b"1")])
        assert message == {"type": "http.response.start", "status": 200, "headers": [(b"a", b"1")]}

    def test_start_with_reason(self) -> None:
        assert start_message(404, [], "Nope")["reason"] == "Nope"

    def test_body(self) -> None:
        assert body_message(b"x", more_body=True) == {
            "type": "http.response.body",
            "body": b"x",
            "more_body": True,
        }


class TestEncoding:
    def test_headers_lowercased(self) -> None:
        assert encode_headers([("X-Trace", "abc")]) == [(b"x-trace", b"abc")]

    def test_header_lists_and_ints(self) -> None:
        raw = encode_headers([("Vary", ["Accept", "Origin"]), ("Age", 5)])
        assert raw == [(b"vary", b"Accept"), (b"vary", b"Origin"), (b"age", b"5")]

    def test_chunk(self) -> None:
        assert encode_chunk("é") == "é".encode()
        assert encode_chunk(bytearray(b"ab")) == b"ab"
        assert encode_chunk(memoryview(b"cd")) == b"cd"

    def test_json_compact_unicode(self) -> None:
        assert encode_json({"name": "Zoë", "n": [1, 2]}) == '{"name":"Zoë","n":[1,2]}'.encode()

    def test_json_sets_and_dataclasses(self) -> None:
        @dataclasses.dataclass
        class Point:
            x: int
            y: int

        assert encode_json({"p": Point(1, 2), "s": {3, 1}}) == b'{"p":{"x":1,"y":2},"s":[1,3]}'

    def test_json_rejects_unknown(self) -> None:
        with pytest.raises(TypeError, match="not JSON serializable"):
            encode_json(object())
