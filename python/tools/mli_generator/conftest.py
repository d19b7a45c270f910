"""Shared fixtures: an in-memory language server for protocol-level tests."""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

import pytest

from .jsonrpc import encode_message
from .lsp_client import LanguageServerClient

NO_REPLY = object()
CLOSE = object()


@dataclass
class ServerError:
    code: int
    message: str


class FakeServer:
    """
    Stands in for the server side of the connection.

    Acts as the client's writer: every framed message written by the client
    is decoded, recorded in ``received`` and answered by feeding a response
    into the client's reader.
    """

    def __init__(self, reader: asyncio.StreamReader, handlers: Dict[str, Callable]):
        self.reader = reader
        self.handlers = {
            "initialize": lambda params: {"capabilities": {"documentFormattingProvider": True}},
            "shutdown": lambda params: None,
            **handlers,
        }
        self.received: List[Dict[str, Any]] = []
        self.pending_pushes: List[Dict[str, Any]] = []
        self.closed = False
        self.eof = False
        self._buffer = b""

    # StreamWriter interface used by the client
    def write(self, data: bytes) -> None:
        self._buffer += data
        while True:
            header_end = self._buffer.find(b"\r\n\r\n")
            if header_end < 0:
                return
            length = int(self._buffer[:header_end].split(b":", 1)[1])
            start = header_end + 4
            if len(self._buffer) < start + length:
                return
            message = json.loads(self._buffer[start:start + length])
            self._buffer = self._buffer[start + length:]
            self.received.append(message)
            self._respond(message)

    async def drain(self) -> None:
        pass

    def is_closing(self) -> bool:
        return self.closed

    def close(self) -> None:
        self.closed = True

    def push(self, message: Dict[str, Any]) -> None:
        """Queue a server-initiated message, sent before the next response."""
        self.pending_pushes.append(message)

    def methods(self) -> List[str]:
        return [m["method"] for m in self.received if "method" in m]

    def find(self, method: str) -> Dict[str, Any]:
        return next(m for m in self.received if m.get("method") == method)

    def _feed(self, message: Dict[str, Any]) -> None:
        if not self.eof:
            self.reader.feed_data(encode_message(message))

    def hang_up(self) -> None:
        if not self.eof:
            self.eof = True
            self.reader.feed_eof()

    def _respond(self, message: Dict[str, Any]) -> None:
        method = message.get("method")
        if method == "exit":
            self.hang_up()
            return
        if method is None or "id" not in message:
            return

        for push in self.pending_pushes:
            self._feed(push)
        self.pending_pushes.clear()

        handler = self.handlers.get(method, lambda params: None)
        result = handler(message.get("params"))
        if result is NO_REPLY:
            return
        if result is CLOSE:
            self.hang_up()
            return
        if isinstance(result, ServerError):
            self._feed({
                "jsonrpc": "2.0",
                "id": message["id"],
                "error": {"code": result.code, "message": result.message},
            })
            return
        self._feed({"jsonrpc": "2.0", "id": message["id"], "result": result})


class FakeLanguageServerClient(LanguageServerClient):
    """Client wired to a FakeServer instead of a subprocess."""

    def __init__(self, handlers: Dict[str, Callable], root_dir, **kwargs: Any) -> None:
        super().__init__(["fake-lsp"], root_dir, **kwargs)
        self.handlers = handlers
        self.server: FakeServer = None

    async def start(self) -> None:
        reader = asyncio.StreamReader()
        self.server = FakeServer(reader, self.handlers)
        self.attach(reader, self.server)


@pytest.fixture
def make_fake_client(tmp_path):
    """Factory for clients connected to an in-memory server."""

    def factory(handlers=None, root_dir=None, **kwargs):
        return FakeLanguageServerClient(handlers or {}, root_dir or tmp_path, **kwargs)

    return factory
