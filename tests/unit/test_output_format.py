from __future__ import annotations

import json
import sys
from types import SimpleNamespace

import pytest
import typer

from costdelta.cli.output import emit_json, resolve_format


def test_resolve_format_defaults_to_json_when_not_tty(monkeypatch):
    fake_stdout = SimpleNamespace(isatty=lambda: False)
    monkeypatch.setattr(sys, "stdout", fake_stdout)

    assert resolve_format(None) == "json"


def test_resolve_format_defaults_to_text_on_tty(monkeypatch):
    fake_stdout = SimpleNamespace(isatty=lambda: True)
    monkeypatch.setattr(sys, "stdout", fake_stdout)

    assert resolve_format(None, default_tty="text") == "text"


def test_resolve_format_respects_explicit_format():
    assert resolve_format("text", allowed=["text", "json"]) == "text"


def test_resolve_format_rejects_unknown_format():
    with pytest.raises(typer.BadParameter):
        resolve_format("yaml", allowed=["text", "json"])


def test_emit_json_success_envelope(capsys):
    emit_json({"ok": True})

    payload = json.loads(capsys.readouterr().out)
    assert payload == {"schema_version": "1.0", "status": "success", "data": {"ok": True}}


def test_emit_json_error_envelope(capsys):
    emit_json({"message": "bad"}, status="error", error_code="INVALID_CONFIG", message="bad")

    payload = json.loads(capsys.readouterr().out)
    assert payload["status"] == "error"
    assert payload["error_code"] == "INVALID_CONFIG"
    assert payload["message"] == "bad"
