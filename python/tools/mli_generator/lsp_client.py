#!/usr/bin/env python3
"""
Minimal Language Server Protocol client.

Spawns a language server as a child process and talks JSON-RPC over its
stdin/stdout. Only what interface inference needs is implemented: the
initialize handshake, opening and closing documents, plain requests and the
shutdown sequence.
"""

from __future__ import annotations

import asyncio
import itertools
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from .core_types import (
    LANGUAGE_IDS,
    InferenceError,
    LspProtocolError,
    PathLike,
    ToolchainNotFoundError,
)
from .jsonrpc import (
    encode_message,
    make_notification,
    make_request,
    make_response,
    read_message,
)

NotificationHandler = Callable[[Any], None]

# Grace period for the server to exit after the "exit" notification
EXIT_TIMEOUT = 5.0


class LanguageServerClient:
    """
    Async client for a language server running as a subprocess.

    Usage:
        async with LanguageServerClient(["ocamllsp"], root) as client:
            await client.did_open(path, text)
            result = await client.request("ocamllsp/inferIntf", [uri])
    """

    def __init__(
        self,
        command: List[str],
        root_dir: PathLike,
        request_timeout: Optional[float] = 60.0,
    ) -> None:
        self.command = list(command)
        self.root_dir = Path(root_dir)
        self.request_timeout = request_timeout

        self._process: Optional[asyncio.subprocess.Process] = None
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._pending: Dict[int, asyncio.Future] = {}
        self._ids = itertools.count(1)
        self._closed = False

        self.notification_handlers: Dict[str, NotificationHandler] = {
            "window/logMessage": self._on_log_message,
            "window/showMessage": self._on_log_message,
            "$/progress": self._on_progress,
            "textDocument/publishDiagnostics": lambda params: None,
        }
        self.server_capabilities: Dict[str, Any] = {}

    async def __aenter__(self) -> LanguageServerClient:
        await self.start()
        try:
            await self.initialize()
        except BaseException:
            await self.shutdown()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    async def start(self) -> None:
        """
        Spawn the server process and start reading its output.

        Raises:
            ToolchainNotFoundError: If the server executable cannot be found
        """
        logger.debug(f"Starting language server: {' '.join(self.command)}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,
                cwd=str(self.root_dir),
            )
        except FileNotFoundError as e:
            raise ToolchainNotFoundError(
                f"Language server not found: {self.command[0]}",
                error_code="SERVER_NOT_FOUND",
                command=self.command,
            ) from e
        except OSError as e:
            raise ToolchainNotFoundError(
                f"Failed to start language server {self.command[0]}: {e}",
                error_code="SERVER_START_FAILED",
                command=self.command,
            ) from e

        self.attach(self._process.stdout, self._process.stdin)

    @property
    def closed(self) -> bool:
        return self._closed or self._writer is None

    def attach(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Use the given streams for the connection and start the reader loop."""
        self._reader = reader
        self._writer = writer
        self._closed = False
        self._reader_task = asyncio.create_task(self._read_loop())

    async def _send(self, payload: Dict[str, Any]) -> None:
        if self._writer is None or self._closed:
            raise LspProtocolError(
                "Language server connection is not open", error_code="NOT_CONNECTED"
            )
        self._writer.write(encode_message(payload))
        await self._writer.drain()

    async def request(self, method: str, params: Any = None) -> Any:
        """
        Send a request and wait for its result.

        Raises:
            InferenceError: If the server answers with an error
            LspProtocolError: If the connection closes first or times out
        """
        request_id = next(self._ids)
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        logger.debug(f"-> request {request_id}: {method}")
        try:
            await self._send(make_request(request_id, method, params))
            response = await asyncio.wait_for(future, timeout=self.request_timeout)
        except asyncio.TimeoutError:
            raise LspProtocolError(
                f"Request {method} timed out after {self.request_timeout}s",
                error_code="REQUEST_TIMEOUT",
                method=method,
            ) from None
        finally:
            self._pending.pop(request_id, None)

        if "error" in response:
            error = response["error"] or {}
            raise InferenceError(
                f"{method} failed: {error.get('message', 'unknown error')}",
                error_code="SERVER_ERROR",
                method=method,
                server_code=error.get("code"),
            )
        return response.get("result")

    async def notify(self, method: str, params: Any = None) -> None:
        logger.debug(f"-> notification: {method}")
        await self._send(make_notification(method, params))

    async def _read_loop(self) -> None:
        error: Optional[Exception] = None
        try:
            while True:
                message = await read_message(self._reader)
                if message is None:
                    break
                await self._dispatch(message)
        except LspProtocolError as e:
            error = e
        finally:
            self._closed = True
            self._fail_pending(
                error
                or LspProtocolError(
                    "Language server closed the connection",
                    error_code="CONNECTION_CLOSED",
                )
            )

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    async def _dispatch(self, message: Dict[str, Any]) -> None:
        method = message.get("method")

        if method is None:
            future = self._pending.get(message.get("id"))
            if future is not None and not future.done():
                future.set_result(message)
            else:
                logger.debug(f"Ignoring response to unknown id {message.get('id')}")
            return

        if "id" in message:
            # Server-to-client requests (progress tokens, capability
            # registration, configuration) need a reply but no action.
            logger.debug(f"<- server request: {method}")
            await self._send(make_response(message["id"], None))
            return

        handler = self.notification_handlers.get(method)
        if handler is not None:
            handler(message.get("params"))
        else:
            logger.debug(f"<- unhandled notification: {method}")

    @staticmethod
    def _on_log_message(params: Any) -> None:
        if not isinstance(params, dict):
            params = {}
        logger.debug(f"server message ({params.get('type')}): {params.get('message')}")

    @staticmethod
    def _on_progress(params: Any) -> None:
        if not isinstance(params, dict):
            params = {}
        logger.debug(f"progress {params.get('token')}: {params.get('value')}")

    async def initialize(self) -> Dict[str, Any]:
        """Run the initialize/initialized handshake."""
        root_uri = self.root_dir.as_uri()
        result = await self.request(
            "initialize",
            {
                "processId": os.getpid(),
                "rootUri": root_uri,
                "workspaceFolders": [{"uri": root_uri, "name": "root"}],
                "capabilities": {"window": {"workDoneProgress": True}},
            },
        )
        self.server_capabilities = (result or {}).get("capabilities", {})
        await self.notify("initialized", {})
        return self.server_capabilities

    async def did_open(self, path: PathLike, text: str, version: int = 0) -> None:
        file_path = Path(path)
        await self.notify(
            "textDocument/didOpen",
            {
                "textDocument": {
                    "uri": file_path.as_uri(),
                    "languageId": LANGUAGE_IDS.get(file_path.suffix, "ocaml"),
                    "version": version,
                    "text": text,
                }
            },
        )

    async def did_close(self, path: PathLike) -> None:
        """Close a document; a no-op once the connection is gone."""
        if self.closed:
            logger.debug(f"Connection closed, not sending didClose for {path}")
            return
        await self.notify(
            "textDocument/didClose", {"textDocument": {"uri": Path(path).as_uri()}}
        )

    async def shutdown(self) -> None:
        """
        Shut the server down and reap the process.

        Errors during shutdown are logged; the process is killed if it does
        not exit in time.
        """
        if not self._closed and self._writer is not None:
            try:
                await self.request("shutdown")
                await self.notify("exit")
            except (LspProtocolError, InferenceError, ConnectionError) as e:
                logger.warning(f"Language server did not shut down cleanly: {e}")

        if self._writer is not None and not self._writer.is_closing():
            self._writer.close()

        if self._process is not None and self._process.returncode is None:
            try:
                await asyncio.wait_for(self._process.wait(), timeout=EXIT_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Language server did not exit, killing it")
                self._process.kill()
                await self._process.wait()

        if self._reader_task is not None:
            if not self._reader_task.done():
                self._reader_task.cancel()
            await asyncio.gather(self._reader_task, return_exceptions=True)
            self._reader_task = None

        self._closed = True
