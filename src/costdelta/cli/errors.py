"""
CLI error handling - structured errors and exit codes.

Exit codes:
    0  success, delta within thresholds
    1  error threshold exceeded
    2  usage, configuration or template error
    3  pricing credentials missing or rejected
    4  internal error
"""
from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Dict, Optional

import click
import typer

from costdelta.core.errors import ConfigurationError, CredentialError, StructuralError
from costdelta.cli.output import OUTPUT_FORMATS, emit_json, resolve_format

log = logging.getLogger(__name__)

EXIT_CODE_MAP: Dict[str, int] = {
    "ok": 0,
    "threshold": 1,
    "usage": 2,
    "auth": 3,
    "internal": 4,
}


class ErrorCode:
    INVALID_TEMPLATE = "INVALID_TEMPLATE"
    INVALID_CONFIG = "INVALID_CONFIG"
    AUTH_ERROR = "AUTH_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CliError(Exception):
    """An error with a stable code, a user-facing message and an exit code."""

    def __init__(
        self,
        error_code: str,
        message: str,
        exit_code: int = EXIT_CODE_MAP["usage"],
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.exit_code = exit_code
        self.hint = hint

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"message": self.message}
        if self.hint:
            payload["hint"] = self.hint
        return payload


def to_cli_error(error: Exception) -> CliError:
    """Map an engine error to its CLI code and exit code."""
    if isinstance(error, CliError):
        return error
    if isinstance(error, CredentialError):
        return CliError(
            ErrorCode.AUTH_ERROR,
            str(error),
            exit_code=EXIT_CODE_MAP["auth"],
            hint="Configure AWS credentials (profile, environment or role) allowed to call pricing:GetProducts",
        )
    if isinstance(error, ConfigurationError):
        return CliError(
            ErrorCode.INVALID_CONFIG,
            str(error),
            hint=f"Check {error.config_path}" if error.config_path != "unknown" else None,
        )
    if isinstance(error, StructuralError):
        return CliError(ErrorCode.INVALID_TEMPLATE, str(error))
    return CliError(ErrorCode.INTERNAL_ERROR, str(error), exit_code=EXIT_CODE_MAP["internal"])


def handle_errors(func: Callable) -> Callable:
    """
    Render errors raised by a command and exit with the mapped code.

    The output format is chosen like the command's own: an explicit
    ``format`` wins, otherwise json when stdout is piped. JSON output gets
    an error envelope on stdout; text output gets a message on stderr.
    Tracebacks are only logged.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (typer.Exit, click.ClickException):
            raise
        except Exception as e:
            if not isinstance(e, (CliError, CredentialError, ConfigurationError, StructuralError)):
                log.debug("Unhandled error", exc_info=True)
            error = to_cli_error(e)
            requested = kwargs.get("format")
            if requested not in OUTPUT_FORMATS:
                requested = None
            if resolve_format(requested) == "json":
                emit_json(
                    error.to_payload(),
                    status="error",
                    error_code=error.error_code,
                    message=error.message,
                )
            else:
                typer.echo(f"Error: {error.message}", err=True)
                if error.hint:
                    typer.echo(f"Hint: {error.hint}", err=True)
            raise typer.Exit(error.exit_code)

    return wrapper
