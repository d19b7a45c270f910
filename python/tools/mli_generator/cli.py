#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Command-line interface for the interface generator.
"""
import argparse
import shlex
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from . import __version__
from .core_types import GeneratorOptions, InferenceBackend, InterfaceGeneratorError
from .generator import InterfaceGenerator
from .logging_config import level_for_verbosity, setup_logging
from .utils import ConfigurationManager


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mli-generator",
        description="Generate the interface file of an OCaml module using the toolchain's inference",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Infer lib/parser.mli through ocamllsp
  mli-generator --root-dir . --file lib/parser.ml

  # Print the interface of the compiled module instead of writing it
  mli-generator -r . -f bin/main.ml --backend print-intf --stdout

  # Run the language server through opam
  mli-generator -r . -f lib/parser.ml --server-command "opam exec -- ocamllsp"
""",
    )

    parser.add_argument(
        "-r", "--root-dir", type=Path, required=True, help="Project root directory"
    )
    parser.add_argument(
        "-f",
        "--file",
        type=Path,
        required=True,
        help="Module source file, relative to the root",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    toolchain_group = parser.add_argument_group("Toolchain options")
    toolchain_group.add_argument(
        "--backend",
        choices=[b.value for b in InferenceBackend],
        help="Inference backend (default: lsp)",
    )
    toolchain_group.add_argument(
        "--server-command", help="Language server command line (default: ocamllsp)"
    )
    toolchain_group.add_argument(
        "--print-intf-command",
        help="Interface printer command line (default: ocaml-print-intf)",
    )
    toolchain_group.add_argument(
        "--build-dir", help="Build directory relative to the root (default: _build)"
    )
    toolchain_group.add_argument(
        "--build-context", help="Dune build context (default: default)"
    )
    toolchain_group.add_argument(
        "--timeout", type=float, help="Timeout in seconds for toolchain calls"
    )

    output_group = parser.add_argument_group("Output options")
    output_group.add_argument(
        "--no-format",
        dest="format_output",
        action="store_false",
        default=None,
        help="Do not format the inferred interface",
    )
    output_group.add_argument(
        "--tab-size", type=int, help="Indentation width passed to the formatter"
    )
    output_group.add_argument(
        "--stdout",
        action="store_true",
        help="Print the interface instead of writing it",
    )
    output_group.add_argument(
        "--backup",
        action="store_true",
        default=None,
        help="Back up an existing interface file before overwriting it",
    )

    parser.add_argument(
        "--config", type=Path, help="Load options from configuration file (JSON)"
    )
    parser.add_argument(
        "--log-file", help="Also write logs to this file"
    )
    parser.add_argument(
        "--verbose", "-v", action="count", default=0, help="Increase verbosity"
    )
    parser.add_argument(
        "--quiet", "-q", action="store_true", help="Suppress non-error output"
    )
    return parser


def options_from_args(args: argparse.Namespace) -> GeneratorOptions:
    """
    Build generator options from a config file and command line flags.

    Flags given on the command line take precedence over the config file.
    """
    if args.config:
        options = ConfigurationManager().load_config_with_model(
            args.config, GeneratorOptions
        )
    else:
        options = GeneratorOptions()

    overrides = {
        "backend": args.backend,
        "server_command": shlex.split(args.server_command) if args.server_command else None,
        "print_intf_command": (
            shlex.split(args.print_intf_command) if args.print_intf_command else None
        ),
        "build_dir": args.build_dir,
        "build_context": args.build_context,
        "request_timeout": args.timeout,
        "format_output": args.format_output,
        "tab_size": args.tab_size,
        "backup": args.backup,
        "write_output": False if args.stdout else None,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}

    return GeneratorOptions.model_validate({**options.model_dump(), **overrides})


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function for command-line usage.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level_for_verbosity(args.verbose, args.quiet), args.log_file)

    try:
        options = options_from_args(args)
        result = InterfaceGenerator(options).generate(args.root_dir, args.file)
    except InterfaceGeneratorError as e:
        logger.error(f"{e} [{e.error_code}]")
        return 1
    except ValueError as e:
        # pydantic validation of command line values
        logger.error(f"Invalid options: {e}")
        return 1

    if result.written:
        print(result.interface_file)
    else:
        sys.stdout.write(result.interface_text)
    return 0
