"""
Output helpers - format selection and the JSON envelope.
"""
from __future__ import annotations

import json
import sys
from typing import Any, Iterable, Optional

import typer

SCHEMA_VERSION = "1.0"
OUTPUT_FORMATS = ("text", "json")


def resolve_format(
    requested: Optional[str],
    *,
    default_tty: str = "text",
    allowed: Iterable[str] = OUTPUT_FORMATS,
) -> str:
    """Explicit format if given, else ``default_tty`` on a terminal and json when piped."""
    allowed = list(allowed)
    if requested is None:
        return default_tty if sys.stdout.isatty() else "json"
    if requested not in allowed:
        raise typer.BadParameter(
            f"Invalid format '{requested}'. Use one of: {', '.join(allowed)}",
            param_hint="--format",
        )
    return requested


def emit_json(
    data: Any,
    *,
    status: str = "success",
    error_code: Optional[str] = None,
    message: Optional[str] = None,
) -> None:
    envelope = {
        "schema_version": SCHEMA_VERSION,
        "status": status,
        "data": data,
    }
    if error_code:
        envelope["error_code"] = error_code
    if message:
        envelope["message"] = message
    typer.echo(json.dumps(envelope, indent=2, default=str))
