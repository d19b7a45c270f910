#!/usr/bin/env python3
"""
JSON-RPC 2.0 message framing for the Language Server Protocol.

Messages are sent as a header block terminated by an empty line, followed by
a UTF-8 JSON body of exactly ``Content-Length`` bytes.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, Optional

from .core_types import LspProtocolError

JSONRPC_VERSION = "2.0"
HEADER_ENCODING = "ascii"


def encode_message(payload: Dict[str, Any]) -> bytes:
    """Serialize a JSON-RPC payload with its Content-Length header."""
    body = json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode(
        "utf-8"
    )
    header = f"Content-Length: {len(body)}\r\n\r\n".encode(HEADER_ENCODING)
    return header + body


async def read_message(reader: asyncio.StreamReader) -> Optional[Dict[str, Any]]:
    """
    Read one framed message from a stream.

    Returns:
        The decoded message, or None on end of stream before a header

    Raises:
        LspProtocolError: If the framing or the body is invalid
    """
    content_length: Optional[int] = None
    first_line = True

    while True:
        line = await reader.readline()
        if not line:
            if first_line:
                return None
            raise LspProtocolError(
                "Connection closed while reading message headers",
                error_code="UNEXPECTED_EOF",
            )
        first_line = False

        decoded = line.decode(HEADER_ENCODING, errors="replace").strip()
        if not decoded:
            break

        name, sep, value = decoded.partition(":")
        if not sep:
            raise LspProtocolError(
                f"Malformed header line: {decoded!r}", error_code="INVALID_HEADER"
            )
        if name.strip().lower() == "content-length":
            try:
                content_length = int(value.strip())
            except ValueError:
                raise LspProtocolError(
                    f"Invalid Content-Length: {value.strip()!r}",
                    error_code="INVALID_HEADER",
                ) from None

    if content_length is None or content_length < 0:
        raise LspProtocolError(
            "Message without a valid Content-Length header",
            error_code="MISSING_CONTENT_LENGTH",
        )

    try:
        body = await reader.readexactly(content_length)
    except asyncio.IncompleteReadError as e:
        raise LspProtocolError(
            f"Connection closed after {len(e.partial)} of {content_length} bytes",
            error_code="UNEXPECTED_EOF",
        ) from e

    try:
        message = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise LspProtocolError(
            f"Invalid JSON message body: {e}", error_code="INVALID_JSON"
        ) from e

    if not isinstance(message, dict):
        raise LspProtocolError(
            "JSON-RPC message must be an object", error_code="INVALID_MESSAGE"
        )
    return message


def make_request(request_id: int, method: str, params: Any = None) -> Dict[str, Any]:
    message: Dict[str, Any] = {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": method,
    }
    if params is not None:
        message["params"] = params
    return message


def make_notification(method: str, params: Any = None) -> Dict[str, Any]:
    message: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        message["params"] = params
    return message


def make_response(request_id: Any, result: Any = None) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}
