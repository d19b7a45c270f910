#!/usr/bin/env python3
"""
Core types and data models for the interface generator.

This module provides the shared configuration model, result types and the
exception hierarchy used across the package.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Dict, List, Optional, TypeAlias, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

PathLike: TypeAlias = Union[str, Path]

# Implementation suffix -> interface suffix
INTERFACE_SUFFIXES: Dict[str, str] = {
    ".ml": ".mli",
    ".re": ".rei",
}

LANGUAGE_IDS: Dict[str, str] = {
    ".ml": "ocaml",
    ".mli": "ocaml",
    ".re": "reason",
    ".rei": "reason",
}


class InferenceBackend(StrEnum):
    """Ways of asking the toolchain for an inferred interface."""

    LSP = "lsp"  # ocamllsp custom request
    PRINT_INTF = "print-intf"  # ocaml-print-intf on the build artifact

    def __str__(self) -> str:
        descriptions = {
            InferenceBackend.LSP: "OCaml language server (ocamllsp/inferIntf)",
            InferenceBackend.PRINT_INTF: "ocaml-print-intf on compiled artifacts",
        }
        return descriptions.get(self, self.value)

    @classmethod
    def resolve(cls, value: Union[str, InferenceBackend]) -> InferenceBackend:
        """
        Resolve a backend name to an InferenceBackend.

        Accepts enum members, canonical values and a few spelling variants
        such as "print_intf" or "LSP".

        Raises:
            ValueError: If the name does not match any backend
        """
        if isinstance(value, InferenceBackend):
            return value

        normalized = str(value).strip().lower().replace("_", "-")
        try:
            return cls(normalized)
        except ValueError:
            valid = ", ".join(b.value for b in cls)
            raise ValueError(
                f"Invalid backend: {value}. Valid backends: {valid}"
            ) from None


class GeneratorOptions(BaseModel):
    """Interface generation options with validation using Pydantic v2."""

    model_config = ConfigDict(
        extra="forbid", validate_assignment=True, str_strip_whitespace=True
    )

    backend: InferenceBackend = Field(
        default=InferenceBackend.LSP, description="Inference backend to use"
    )
    server_command: List[str] = Field(
        default_factory=lambda: ["ocamllsp"],
        description="Language server command line",
    )
    print_intf_command: List[str] = Field(
        default_factory=lambda: ["ocaml-print-intf"],
        description="Command that prints the interface of a compiled artifact",
    )
    build_dir: str = Field(
        default="_build", description="Build directory relative to the root"
    )
    build_context: str = Field(
        default="default", description="Dune build context name"
    )
    format_output: bool = Field(
        default=True, description="Format the inferred interface via the server"
    )
    tab_size: int = Field(
        default=2, ge=1, le=16, description="Indentation passed to the formatter"
    )
    request_timeout: float = Field(
        default=60.0, gt=0, description="Timeout in seconds for toolchain calls"
    )
    write_output: bool = Field(
        default=True, description="Write the interface file to disk"
    )
    backup: bool = Field(
        default=False, description="Back up an existing interface file first"
    )

    @field_validator("backend", mode="before")
    @classmethod
    def validate_backend(cls, v: Any) -> InferenceBackend:
        return InferenceBackend.resolve(v)

    @field_validator("server_command", "print_intf_command")
    @classmethod
    def validate_command(cls, v: List[str]) -> List[str]:
        """Reject empty command lines."""
        if not v or not v[0].strip():
            raise ValueError("command must not be empty")
        return v


@dataclass(frozen=True, slots=True)
class CommandResult:
    """
    Immutable result of a command execution.

    Uses slots for memory efficiency and frozen=True for immutability.
    """

    success: bool
    stdout: str = ""
    stderr: str = ""
    return_code: int = 0
    command: List[str] = field(default_factory=list)
    execution_time: float = 0.0
    timestamp: float = field(default_factory=time.time)
    # False when the process could not be spawned at all
    started: bool = True

    def __post_init__(self) -> None:
        if self.execution_time < 0:
            raise ValueError("execution_time cannot be negative")

    @property
    def output(self) -> str:
        """Get combined output (stdout + stderr)."""
        return f"{self.stdout}\n{self.stderr}".strip()

    @property
    def failed(self) -> bool:
        return not self.success

    @property
    def command_str(self) -> str:
        return " ".join(self.command)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "return_code": self.return_code,
            "command": self.command,
            "execution_time": self.execution_time,
            "timestamp": self.timestamp,
            "started": self.started,
        }


class GenerationResult(BaseModel):
    """Outcome of generating one interface file."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    success: bool = Field(description="Whether generation succeeded")
    source_file: Path = Field(description="Implementation file")
    interface_file: Path = Field(description="Derived interface file path")
    interface_text: str = Field(default="", description="Inferred interface")
    backend: InferenceBackend = Field(description="Backend that produced the text")
    formatted: bool = Field(
        default=False, description="Whether formatter edits were applied"
    )
    written: bool = Field(default=False, description="Whether the file was written")
    duration_ms: float = Field(
        default=0.0, ge=0.0, description="Generation duration in milliseconds"
    )
    errors: List[str] = Field(default_factory=list, description="Errors")

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def add_error(self, error: str) -> None:
        """Add an error message and mark the result failed."""
        self.errors.append(error)
        if self.success:
            self.success = False


class InterfaceGeneratorError(Exception):
    """Base exception for interface generation errors."""

    def __init__(
        self, message: str, *, error_code: Optional[str] = None, **kwargs: Any
    ):
        super().__init__(message)
        self.error_code = error_code or self.__class__.__name__.upper()
        self.context = kwargs

        logger.debug(f"{self.__class__.__name__} [{self.error_code}]: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to structured dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "message": str(self),
            "error_code": self.error_code,
            "context": self.context,
        }


class SourceFileError(InterfaceGeneratorError):
    """Raised when the project root or source file is unusable."""

    pass


class ToolchainNotFoundError(InterfaceGeneratorError):
    """Raised when an external toolchain command cannot be found."""

    pass


class InferenceError(InterfaceGeneratorError):
    """Raised when the toolchain fails to infer an interface."""

    def __init__(
        self,
        message: str,
        command: Optional[List[str]] = None,
        return_code: Optional[int] = None,
        stderr: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(
            message, command=command, return_code=return_code, stderr=stderr, **kwargs
        )
        self.command = command
        self.return_code = return_code
        self.stderr = stderr


class BuildArtifactNotFoundError(InterfaceGeneratorError):
    """Raised when no compiled artifact exists for a module."""

    pass


class LspProtocolError(InterfaceGeneratorError):
    """Raised on malformed language server traffic."""

    pass


class OutputWriteError(InterfaceGeneratorError):
    """Raised when the interface file cannot be written."""

    pass


class ConfigurationError(InterfaceGeneratorError):
    """Raised when a configuration file is invalid."""

    pass
