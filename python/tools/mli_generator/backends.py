#!/usr/bin/env python3
"""
Interface inference backends.

Each backend asks the OCaml toolchain for the inferred interface of one
module and returns it as text; none of them inspects the source itself.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Type

from loguru import logger

from .core_types import (
    GeneratorOptions,
    InferenceBackend,
    InferenceError,
    LspProtocolError,
    ToolchainNotFoundError,
)
from .edits import apply_text_edits
from .lsp_client import LanguageServerClient
from .utils import ProcessManager, find_build_artifact, interface_path_for

INFER_INTF_METHOD = "ocamllsp/inferIntf"


@dataclass(frozen=True, slots=True)
class InferredInterface:
    text: str
    formatted: bool = False


def normalize_interface_text(text: str) -> str:
    """Strip trailing blank lines and end the text with a single newline."""
    return text.rstrip("\r\n") + "\n"


class InterfaceInferrer(ABC):
    """Base class for inference backends."""

    backend: InferenceBackend

    def __init__(self, options: GeneratorOptions) -> None:
        self.options = options

    @abstractmethod
    async def infer(self, root: Path, source: Path, source_text: str) -> InferredInterface:
        """Infer the interface of ``source`` inside the project ``root``."""


class LspInferrer(InterfaceInferrer):
    """Infers interfaces through ocamllsp's ``ocamllsp/inferIntf`` request."""

    backend = InferenceBackend.LSP

    def _create_client(self, root: Path) -> LanguageServerClient:
        return LanguageServerClient(
            self.options.server_command,
            root,
            request_timeout=self.options.request_timeout,
        )

    async def infer(self, root: Path, source: Path, source_text: str) -> InferredInterface:
        async with self._create_client(root) as client:
            await client.did_open(source, source_text)
            try:
                text = await client.request(INFER_INTF_METHOD, [source.as_uri()])
            finally:
                await client.did_close(source)

            if not isinstance(text, str):
                raise InferenceError(
                    f"Unexpected {INFER_INTF_METHOD} result for {source}: {text!r}",
                    error_code="INVALID_RESULT",
                )

            if not self.options.format_output:
                return InferredInterface(normalize_interface_text(text))

            return await self._format(client, interface_path_for(source), text)

    async def _format(
        self, client: LanguageServerClient, interface: Path, text: str
    ) -> InferredInterface:
        """Format ``text`` as the interface document; keep it as is on failure."""
        await client.did_open(interface, text)
        try:
            edits = await client.request(
                "textDocument/formatting",
                {
                    "textDocument": {"uri": interface.as_uri()},
                    "options": {
                        "tabSize": self.options.tab_size,
                        "insertSpaces": True,
                    },
                },
            )
        except (InferenceError, LspProtocolError) as e:
            logger.warning(f"Formatting failed, keeping unformatted interface: {e}")
            return InferredInterface(normalize_interface_text(text))
        finally:
            await client.did_close(interface)

        formatted = apply_text_edits(text, edits or [])
        return InferredInterface(normalize_interface_text(formatted), formatted=True)


class PrintIntfInferrer(InterfaceInferrer):
    """Prints the interface stored in the module's compiled build artifact."""

    backend = InferenceBackend.PRINT_INTF

    def __init__(self, options: GeneratorOptions) -> None:
        super().__init__(options)
        self.process_manager = ProcessManager()

    async def infer(self, root: Path, source: Path, source_text: str) -> InferredInterface:
        artifact = find_build_artifact(
            root, source, self.options.build_dir, self.options.build_context
        )
        command = [*self.options.print_intf_command, str(artifact)]

        result = await self.process_manager.run_command_async(
            command, timeout=self.options.request_timeout, cwd=root
        )

        if not result.started:
            raise ToolchainNotFoundError(
                result.stderr, error_code="COMMAND_NOT_FOUND", command=command
            )
        if not result.success:
            raise InferenceError(
                f"{result.command_str} exited with status {result.return_code}: "
                f"{result.stderr}",
                command=command,
                return_code=result.return_code,
                stderr=result.stderr,
            )

        return InferredInterface(normalize_interface_text(result.stdout))


INFERRERS: Dict[InferenceBackend, Type[InterfaceInferrer]] = {
    InferenceBackend.LSP: LspInferrer,
    InferenceBackend.PRINT_INTF: PrintIntfInferrer,
}


def create_inferrer(options: GeneratorOptions) -> InterfaceInferrer:
    """Create the inferrer selected by ``options.backend``."""
    return INFERRERS[options.backend](options)
