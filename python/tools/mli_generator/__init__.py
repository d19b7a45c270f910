#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
MLI Generator Module

This module generates interface files (.mli/.rei) for single modules of OCaml
projects. Inference itself is delegated to the toolchain, either through the
OCaml language server or by printing the interface of a compiled artifact.

Features:
- Interface inference through ocamllsp (ocamllsp/inferIntf)
- Formatting of the result through the language server
- Interface printing from dune build artifacts (.cmt/.cmi)
- Configuration via JSON or command-line
- Structured error handling and logging

Usage as CLI:
    mli-generator --root-dir path/to/project --file lib/parser.ml

Usage as library:
    import mli_generator
    result = mli_generator.generate_interface("path/to/project", "lib/parser.ml")
    print(result.interface_file)
"""

__version__ = "0.1.0"
__license__ = "GPL-3.0-or-later"

from .core_types import (
    InferenceBackend,
    GeneratorOptions,
    GenerationResult,
    CommandResult,
    InterfaceGeneratorError,
    SourceFileError,
    ToolchainNotFoundError,
    InferenceError,
    BuildArtifactNotFoundError,
    LspProtocolError,
    OutputWriteError,
    ConfigurationError,
)
from .edits import apply_text_edits
from .lsp_client import LanguageServerClient
from .backends import LspInferrer, PrintIntfInferrer, create_inferrer
from .generator import InterfaceGenerator
from .api import generate_interface, generate_interface_async
from .cli import main


__all__ = [
    # Core types
    'InferenceBackend',
    'GeneratorOptions',
    'GenerationResult',
    'CommandResult',

    # Exceptions
    'InterfaceGeneratorError',
    'SourceFileError',
    'ToolchainNotFoundError',
    'InferenceError',
    'BuildArtifactNotFoundError',
    'LspProtocolError',
    'OutputWriteError',
    'ConfigurationError',

    # Classes
    'LanguageServerClient',
    'LspInferrer',
    'PrintIntfInferrer',
    'InterfaceGenerator',

    # API functions
    'apply_text_edits',
    'create_inferrer',
    'generate_interface',
    'generate_interface_async',

    'main',
]
