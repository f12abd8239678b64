"""
Unit tests for CLI error mapping.

Tests for:
- engine errors map to stable error codes and exit codes
- JSON error envelopes carry no tracebacks
- typer exits pass through untouched
"""
from __future__ import annotations

import json
import sys

import pytest
import typer

from costdelta.cli.errors import (
    EXIT_CODE_MAP,
    CliError,
    ErrorCode,
    handle_errors,
    to_cli_error,
)
from costdelta.core.errors import ConfigurationError, CredentialError, StructuralError


class TestToCliError:
    def test_credential_error_is_auth(self):
        error = to_cli_error(CredentialError("expired"))

        assert error.error_code == ErrorCode.AUTH_ERROR
        assert error.exit_code == EXIT_CODE_MAP["auth"]
        assert error.hint

    def test_configuration_error_is_usage(self):
        error = to_cli_error(ConfigurationError("Invalid configuration", config_path="costs.yml"))

        assert error.error_code == ErrorCode.INVALID_CONFIG
        assert error.exit_code == EXIT_CODE_MAP["usage"]
        assert error.hint == "Check costs.yml"

    def test_structural_error_is_usage(self):
        error = to_cli_error(StructuralError("Resource 'X' is missing a Type"))

        assert error.error_code == ErrorCode.INVALID_TEMPLATE
        assert error.exit_code == EXIT_CODE_MAP["usage"]

    def test_unexpected_error_is_internal(self):
        error = to_cli_error(KeyError("boom"))

        assert error.error_code == ErrorCode.INTERNAL_ERROR
        assert error.exit_code == EXIT_CODE_MAP["internal"]

    def test_cli_error_passes_through(self):
        error = CliError(ErrorCode.INVALID_TEMPLATE, "bad template")

        assert to_cli_error(error) is error


class TestHandleErrors:
    def test_json_envelope_on_error(self, capsys):
        @handle_errors
        def command(format=None):
            raise CredentialError("No AWS credentials found")

        with pytest.raises(typer.Exit) as exc_info:
            command(format="json")

        assert exc_info.value.exit_code == EXIT_CODE_MAP["auth"]
        out = capsys.readouterr().out
        payload = json.loads(out)
        assert payload["status"] == "error"
        assert payload["error_code"] == ErrorCode.AUTH_ERROR
        assert "Traceback" not in out

    def test_text_message_on_stderr(self, capsys):
        @handle_errors
        def command(format=None):
            raise StructuralError("Template does not contain a Resources section")

        with pytest.raises(typer.Exit) as exc_info:
            command(format="text")

        captured = capsys.readouterr()
        assert exc_info.value.exit_code == EXIT_CODE_MAP["usage"]
        assert captured.out == ""
        assert "Error: Template does not contain a Resources section" in captured.err

    def test_piped_output_without_format_gets_envelope(self, capsys):
        @handle_errors
        def command(format=None):
            raise StructuralError("Template does not contain a Resources section")

        with pytest.raises(typer.Exit):
            command(format=None)

        payload = json.loads(capsys.readouterr().out)
        assert payload["error_code"] == ErrorCode.INVALID_TEMPLATE

    def test_terminal_output_without_format_gets_text(self, capsys, monkeypatch):
        monkeypatch.setattr(sys.stdout, "isatty", lambda: True)

        @handle_errors
        def command(format=None):
            raise StructuralError("Template does not contain a Resources section")

        with pytest.raises(typer.Exit):
            command(format=None)

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Error: Template does not contain" in captured.err

    def test_exit_passes_through(self):
        @handle_errors
        def command():
            raise typer.Exit(EXIT_CODE_MAP["threshold"])

        with pytest.raises(typer.Exit) as exc_info:
            command()

        assert exc_info.value.exit_code == 1

    def test_bad_parameter_passes_through(self):
        @handle_errors
        def command():
            raise typer.BadParameter("nope")

        with pytest.raises(typer.BadParameter):
            command()
