#!/usr/bin/env python3
"""
Utility functions for the interface generator.

This module provides path resolution for project sources and build artifacts,
async file operations, external process execution and configuration loading.
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
from loguru import logger
from pydantic import BaseModel, ValidationError

from .core_types import (
    INTERFACE_SUFFIXES,
    BuildArtifactNotFoundError,
    CommandResult,
    ConfigurationError,
    OutputWriteError,
    PathLike,
    SourceFileError,
)

# Preferred artifact kinds, best first
ARTIFACT_SUFFIXES = (".cmt", ".cmi")


def resolve_root(root_dir: PathLike) -> Path:
    """
    Canonicalize the project root.

    Raises:
        SourceFileError: If the root does not exist or is not a directory
    """
    root = Path(root_dir).expanduser()
    if not root.is_dir():
        raise SourceFileError(
            f"Project root is not a directory: {root}",
            error_code="ROOT_NOT_FOUND",
            root_dir=str(root),
        )
    return root.resolve()


def resolve_source(root: Path, file: PathLike) -> Path:
    """
    Resolve a module file against the project root.

    Relative paths are joined to the root; absolute paths are used as given.

    Raises:
        SourceFileError: If the file is missing or has no interface suffix
    """
    source = root / Path(file)
    if not source.is_file():
        raise SourceFileError(
            f"Source file not found: {source}",
            error_code="SOURCE_NOT_FOUND",
            source_file=str(source),
        )
    if source.suffix not in INTERFACE_SUFFIXES:
        supported = ", ".join(sorted(INTERFACE_SUFFIXES))
        raise SourceFileError(
            f"Unsupported source suffix '{source.suffix}' (supported: {supported})",
            error_code="UNSUPPORTED_SUFFIX",
            source_file=str(source),
        )
    return source


def interface_path_for(source: PathLike) -> Path:
    """Derive the interface file path, e.g. ``lib/foo.ml`` -> ``lib/foo.mli``."""
    path = Path(source)
    try:
        return path.with_suffix(INTERFACE_SUFFIXES[path.suffix])
    except KeyError:
        raise SourceFileError(
            f"No interface suffix known for '{path.suffix}'",
            error_code="UNSUPPORTED_SUFFIX",
            source_file=str(path),
        ) from None


def module_name_for(source: PathLike) -> str:
    """OCaml module name for a source file: ``foo_bar.ml`` -> ``Foo_bar``."""
    stem = Path(source).stem
    return stem[:1].upper() + stem[1:]


def find_build_artifact(
    root: Path,
    source: Path,
    build_dir: str = "_build",
    context: str = "default",
) -> Path:
    """
    Locate the compiled representation of a module in a dune build tree.

    Dune stores objects of the library or executables defined in a directory
    under ``<build>/<context>/<dir>/.<name>.objs/byte`` (``.eobjs`` for
    executables). Wrapped libraries prefix the module with ``<lib>__``.

    Args:
        root: Canonical project root
        source: Resolved source file
        build_dir: Build directory relative to the root
        context: Dune build context

    Returns:
        Path to the ``.cmt`` (preferred) or ``.cmi`` file

    Raises:
        BuildArtifactNotFoundError: If no artifact matches the module
    """
    try:
        relative_dir = source.parent.relative_to(root)
    except ValueError:
        relative_dir = Path()

    search_dir = root / build_dir / context / relative_dir
    module = module_name_for(source).lower()

    candidates: List[Path] = []
    if search_dir.is_dir():
        for objs_dir in sorted(search_dir.glob(".*objs")):
            byte_dir = objs_dir / "byte"
            if not byte_dir.is_dir():
                continue
            for artifact in sorted(byte_dir.iterdir()):
                if artifact.suffix not in ARTIFACT_SUFFIXES:
                    continue
                name = artifact.stem.lower()
                if name == module or name.endswith(f"__{module}"):
                    candidates.append(artifact)

    if not candidates:
        raise BuildArtifactNotFoundError(
            f"No compiled artifact for module {module_name_for(source)} under "
            f"{search_dir}; build the project first (e.g. `dune build`)",
            error_code="ARTIFACT_NOT_FOUND",
            search_dir=str(search_dir),
        )

    candidates.sort(key=lambda p: ARTIFACT_SUFFIXES.index(p.suffix))
    logger.debug(f"Found build artifact: {candidates[0]}")
    return candidates[0]


class FileManager:
    """File reading and writing with async support."""

    @staticmethod
    async def read_text_async(path: PathLike) -> str:
        """
        Read a UTF-8 text file, keeping its line endings as they are on disk.

        Raises:
            SourceFileError: If the file cannot be read
        """
        file_path = Path(path)
        try:
            async with aiofiles.open(
                file_path, "r", encoding="utf-8", newline=""
            ) as f:
                return await f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise SourceFileError(
                f"Failed to read file {file_path}: {e}",
                error_code="FILE_READ_ERROR",
                file_path=str(file_path),
            ) from e

    @staticmethod
    async def write_text_async(
        path: PathLike, text: str, backup: bool = False
    ) -> None:
        """
        Write a UTF-8 text file, optionally keeping a backup of the old one.

        Raises:
            OutputWriteError: If the file cannot be written
        """
        file_path = Path(path)
        try:
            if backup and file_path.exists():
                backup_path = file_path.with_suffix(f"{file_path.suffix}.backup")
                shutil.copy2(file_path, backup_path)
                logger.debug(f"Created backup: {backup_path}")

            async with aiofiles.open(file_path, "w", encoding="utf-8") as f:
                await f.write(text)

            logger.debug(f"Wrote {len(text)} characters to {file_path}")
        except OSError as e:
            raise OutputWriteError(
                f"Failed to write file {file_path}: {e}",
                error_code="FILE_WRITE_ERROR",
                file_path=str(file_path),
            ) from e


class ProcessManager:
    """External process execution with async support."""

    @staticmethod
    async def run_command_async(
        command: List[str],
        timeout: Optional[float] = None,
        cwd: Optional[PathLike] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        """
        Run a command asynchronously.

        Args:
            command: Command and arguments to execute
            timeout: Command timeout in seconds
            cwd: Working directory for the command
            env: Extra environment variables

        Returns:
            CommandResult with execution details
        """
        start_time = time.time()
        logger.debug(f"Executing command: {' '.join(command)}")

        final_env = os.environ.copy()
        if env:
            final_env.update(env)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=final_env,
            )
        except FileNotFoundError:
            return CommandResult(
                success=False,
                stderr=f"Command not found: {command[0]}",
                return_code=-1,
                command=command,
                execution_time=time.time() - start_time,
                started=False,
            )
        except OSError as e:
            return CommandResult(
                success=False,
                stderr=f"Failed to start {command[0]}: {e}",
                return_code=-1,
                command=command,
                execution_time=time.time() - start_time,
                started=False,
            )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return CommandResult(
                success=False,
                stderr=f"Command timed out after {timeout}s",
                return_code=-1,
                command=command,
                execution_time=time.time() - start_time,
            )

        execution_time = time.time() - start_time
        result = CommandResult(
            success=process.returncode == 0,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace").strip(),
            return_code=process.returncode or 0,
            command=command,
            execution_time=execution_time,
        )

        if result.success:
            logger.debug(f"Command completed successfully in {execution_time:.2f}s")
        else:
            logger.error(
                f"Command failed with code {result.return_code} "
                f"in {execution_time:.2f}s: {result.command_str}"
            )
        return result


class ConfigurationManager:
    """Loading of JSON configuration files."""

    def load_json(self, file_path: PathLike) -> Dict[str, Any]:
        """
        Load and parse a JSON file.

        Raises:
            ConfigurationError: If the file is missing or not valid JSON
        """
        path = Path(file_path)

        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                error_code="FILE_NOT_FOUND",
                file_path=str(path),
            )

        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON in file {path}: {e}",
                error_code="INVALID_JSON",
                file_path=str(path),
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read file {path}: {e}",
                error_code="FILE_READ_ERROR",
                file_path=str(path),
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration in {path} must be a JSON object",
                error_code="INVALID_CONFIGURATION",
                file_path=str(path),
            )
        return data

    def load_config_with_model(
        self, file_path: PathLike, model_class: type[BaseModel]
    ) -> BaseModel:
        """
        Load and validate configuration using a Pydantic model.

        Raises:
            ConfigurationError: If the file cannot be loaded or fails validation
        """
        data = self.load_json(file_path)

        try:
            return model_class.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid configuration in {file_path}: {e}",
                error_code="INVALID_CONFIGURATION",
                file_path=str(file_path),
                validation_errors=e.errors(),
            ) from e
