#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
High-level API for the interface generator.
"""
from typing import Any, Optional

from .core_types import GenerationResult, GeneratorOptions, PathLike
from .generator import InterfaceGenerator


def _merge_options(options: Optional[GeneratorOptions], overrides: Any) -> GeneratorOptions:
    base = options or GeneratorOptions()
    if not overrides:
        return base
    return GeneratorOptions.model_validate({**base.model_dump(), **overrides})


async def generate_interface_async(root_dir: PathLike,
                                   file: PathLike,
                                   options: Optional[GeneratorOptions] = None,
                                   **overrides: Any) -> GenerationResult:
    """
    Generate the interface file for one module of a project.
    """
    generator = InterfaceGenerator(_merge_options(options, overrides))
    return await generator.generate_async(root_dir, file)


def generate_interface(root_dir: PathLike,
                       file: PathLike,
                       options: Optional[GeneratorOptions] = None,
                       **overrides: Any) -> GenerationResult:
    """
    Generate the interface file for one module of a project, synchronously.

    Keyword overrides are applied on top of ``options``, e.g.
    ``generate_interface("proj", "lib/foo.ml", backend="print-intf")``.
    """
    generator = InterfaceGenerator(_merge_options(options, overrides))
    return generator.generate(root_dir, file)
