"""ASGI message construction for the response surface.

``RequestContext`` decides *when* to write; this module decides *what*
goes on the wire: header encoding, body encoding, and the no-body rules
for informational, 204, and 304 responses.
"""

import dataclasses
import json as json_module
from collections.abc import Iterable
from typing import Any

JSON_CONTENT_TYPE = "application/json; charset=utf-8"

type HeaderValue = str | int | Iterable[str]


def body_allowed(status: int) -> bool:
    """Whether an HTTP status code permits a response body."""
    # RFC: 1xx, 204, and 304 responses do not include a message body.
    return not (100 <= status < 200 or status in {204, 304})


def encode_headers(headers: Iterable[tuple[str, HeaderValue]]) -> list[tuple[bytes, bytes]]:
    """Encode ``(name, value)`` pairs into ASGI header byte pairs.

    List and tuple values are emitted as one header line per item.
    """
    raw: list[tuple[bytes, bytes]] = []
    for name, value in headers:
        key = name.lower().encode("latin-1")
        if isinstance(value, (list, tuple)):
            raw.extend((key, str(item).encode("latin-1")) for item in value)
        else:
            raw.append((key, str(value).encode("latin-1")))
    return raw


def start_message(
    status: int,
    headers: list[tuple[bytes, bytes]],
    reason: str | None = None,
) -> dict[str, Any]:
    """Build an ``http.response.start`` message.

    ASGI has no reason-phrase field; *reason* travels under the
    ``"reason"`` extension key, which servers that don't know it ignore.
    """
    message: dict[str, Any] = {
        "type": "http.response.start",
        "status": status,
        "headers": headers,
    }
    if reason is not None:
        message["reason"] = reason
    return message


def body_message(body: bytes, *, more_body: bool) -> dict[str, Any]:
    """Build an ``http.response.body`` message."""
    return {"type": "http.response.body", "body": body, "more_body": more_body}


def encode_chunk(chunk: str | bytes | bytearray | memoryview) -> bytes:
    """Normalize a text or binary chunk to bytes (text is UTF-8)."""
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return bytes(chunk)


def _json_default(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    msg = f"Object of type {type(value).__name__} is not JSON serializable"
    raise TypeError(msg)


def encode_json(payload: Any) -> bytes:
    """Serialize *payload* to compact UTF-8 JSON."""
    return json_module.dumps(
        payload,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    ).encode("utf-8")
