#!/usr/bin/env python3
"""
Interface generation: resolve the module, ask the toolchain, write the file.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from loguru import logger

from .backends import InterfaceInferrer, create_inferrer
from .core_types import GenerationResult, GeneratorOptions, PathLike
from .utils import (
    FileManager,
    interface_path_for,
    resolve_root,
    resolve_source,
)


class InterfaceGenerator:
    """Generates the interface file of a single module."""

    def __init__(
        self,
        options: Optional[GeneratorOptions] = None,
        inferrer: Optional[InterfaceInferrer] = None,
    ) -> None:
        self.options = options or GeneratorOptions()
        self.inferrer = inferrer or create_inferrer(self.options)
        self.file_manager = FileManager()

    async def generate_async(
        self, root_dir: PathLike, file: PathLike
    ) -> GenerationResult:
        """
        Generate the interface of ``file`` inside the project ``root_dir``.

        Args:
            root_dir: Project root; the toolchain runs from here
            file: Module source, relative to the root

        Returns:
            GenerationResult describing the generated interface

        Raises:
            InterfaceGeneratorError: On any resolution, toolchain or I/O failure
        """
        start_time = time.time()

        root = resolve_root(root_dir)
        source = resolve_source(root, file)
        interface = interface_path_for(source)

        display = source.relative_to(root) if source.is_relative_to(root) else source
        logger.info(
            f"Inferring interface of {display} using {self.inferrer.backend.value}"
        )

        source_text = await self.file_manager.read_text_async(source)
        inferred = await self.inferrer.infer(root, source, source_text)

        written = False
        if self.options.write_output:
            await self.file_manager.write_text_async(
                interface, inferred.text, backup=self.options.backup
            )
            written = True
            logger.info(f"Wrote interface: {interface}")

        duration_ms = (time.time() - start_time) * 1000.0
        logger.debug(f"Interface generation took {duration_ms:.2f}ms")

        return GenerationResult(
            success=True,
            source_file=source,
            interface_file=interface,
            interface_text=inferred.text,
            backend=self.inferrer.backend,
            formatted=inferred.formatted,
            written=written,
            duration_ms=duration_ms,
        )

    def generate(self, root_dir: PathLike, file: PathLike) -> GenerationResult:
        """
        Generate an interface synchronously.

        This is a convenience wrapper around generate_async.
        """
        return asyncio.run(self.generate_async(root_dir, file))
