import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from . import cli
from .core_types import (
    GenerationResult,
    InferenceBackend,
    InferenceError,
    ToolchainNotFoundError,
)


@pytest.fixture(autouse=True)
def no_logging_setup(mocker):
    """Keep the test session's log sinks untouched."""
    return mocker.patch.object(cli, "setup_logging")


@pytest.fixture
def mock_generator(mocker):
    generator_cls = mocker.patch.object(cli, "InterfaceGenerator")
    generator = MagicMock()
    generator.generate.return_value = GenerationResult(
        success=True,
        source_file=Path("/proj/lib/parser.ml"),
        interface_file=Path("/proj/lib/parser.mli"),
        interface_text="val parse : string -> int\n",
        backend=InferenceBackend.LSP,
        written=True,
    )
    generator_cls.return_value = generator
    return generator_cls


def parse(*argv):
    return cli.build_parser().parse_args(["-r", "/proj", "-f", "lib/parser.ml", *argv])


def test_requires_root_and_file():
    with pytest.raises(SystemExit) as exc_info:
        cli.build_parser().parse_args(["--root-dir", "/proj"])
    assert exc_info.value.code == 2


def test_options_defaults():
    options = cli.options_from_args(parse())
    assert options.backend is InferenceBackend.LSP
    assert options.server_command == ["ocamllsp"]
    assert options.format_output is True
    assert options.write_output is True


def test_options_from_flags():
    options = cli.options_from_args(
        parse(
            "--backend", "print-intf",
            "--server-command", "opam exec -- ocamllsp",
            "--print-intf-command", "dune exec -- ocaml-print-intf",
            "--build-dir", "out",
            "--build-context", "cross",
            "--timeout", "5",
            "--no-format",
            "--tab-size", "4",
            "--stdout",
            "--backup",
        )
    )

    assert options.backend is InferenceBackend.PRINT_INTF
    assert options.server_command == ["opam", "exec", "--", "ocamllsp"]
    assert options.print_intf_command == ["dune", "exec", "--", "ocaml-print-intf"]
    assert options.build_dir == "out"
    assert options.build_context == "cross"
    assert options.request_timeout == 5.0
    assert options.format_output is False
    assert options.tab_size == 4
    assert options.write_output is False
    assert options.backup is True


def test_flags_override_config_file(tmp_path):
    config_file = tmp_path / "mli.json"
    config_file.write_text(
        json.dumps({"backend": "print-intf", "tab_size": 8, "format_output": False})
    )

    options = cli.options_from_args(parse("--config", str(config_file), "--tab-size", "3"))

    assert options.backend is InferenceBackend.PRINT_INTF
    assert options.tab_size == 3
    assert options.format_output is False


def test_main_prints_written_path(mock_generator, capsys):
    assert cli.main(["-r", "/proj", "-f", "lib/parser.ml"]) == 0

    assert capsys.readouterr().out == "/proj/lib/parser.mli\n"
    mock_generator.return_value.generate.assert_called_once_with(
        Path("/proj"), Path("lib/parser.ml")
    )


def test_main_stdout_prints_interface(mock_generator, capsys):
    result = mock_generator.return_value.generate.return_value
    result.written = False

    assert cli.main(["-r", "/proj", "-f", "lib/parser.ml", "--stdout"]) == 0

    assert capsys.readouterr().out == "val parse : string -> int\n"
    options = mock_generator.call_args.args[0]
    assert options.write_output is False


def test_main_returns_1_on_generation_error(mock_generator, capsys):
    mock_generator.return_value.generate.side_effect = ToolchainNotFoundError(
        "Language server not found: ocamllsp"
    )

    assert cli.main(["-r", "/proj", "-f", "lib/parser.ml"]) == 1
    assert capsys.readouterr().out == ""


def test_main_returns_1_on_inference_error(mock_generator):
    mock_generator.return_value.generate.side_effect = InferenceError("exit status 2")
    assert cli.main(["-r", "/proj", "-f", "lib/parser.ml"]) == 1


def test_main_returns_1_on_invalid_config(tmp_path, mock_generator):
    config_file = tmp_path / "mli.json"
    config_file.write_text("{broken")

    assert cli.main(["-r", "/proj", "-f", "lib/parser.ml", "--config", str(config_file)]) == 1
    mock_generator.assert_not_called()


def test_main_returns_1_on_invalid_option_value(mock_generator):
    assert cli.main(["-r", "/proj", "-f", "lib/parser.ml", "--tab-size", "0"]) == 1
    mock_generator.assert_not_called()


@pytest.mark.parametrize(
    "argv, level",
    [([], "INFO"), (["-v"], "DEBUG"), (["-q"], "WARNING")],
)
def test_main_configures_logging(mock_generator, no_logging_setup, argv, level):
    cli.main(["-r", "/proj", "-f", "lib/parser.ml", *argv])
    no_logging_setup.assert_called_once_with(level, None)


@pytest.fixture
def unstartable_toolchain(mocker, tmp_path):
    """A project whose toolchain commands exist but cannot be executed."""
    (tmp_path / "a.ml").write_text("let x = 1\n")
    artifact = tmp_path / "_build" / "default" / ".a.eobjs" / "byte" / "a.cmt"
    artifact.parent.mkdir(parents=True)
    artifact.write_bytes(b"\x00")
    mocker.patch(
        "asyncio.create_subprocess_exec",
        side_effect=PermissionError(13, "Permission denied"),
    )
    return tmp_path


@pytest.mark.parametrize(
    "argv",
    [
        ["--server-command", "./ocamllsp"],
        ["--backend", "print-intf", "--print-intf-command", "./ocaml-print-intf"],
    ],
)
def test_main_returns_1_when_toolchain_cannot_start(unstartable_toolchain, capsys, argv):
    root = unstartable_toolchain

    assert cli.main(["-r", str(root), "-f", "a.ml", *argv]) == 1
    assert capsys.readouterr().out == ""
    assert not (root / "a.mli").exists()
