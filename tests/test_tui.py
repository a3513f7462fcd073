"""Unit tests for the terminal UI (protoforge.tui).

Prompts are driven by replacing ``Prompt.ask`` / ``Confirm.ask`` with
scripted answers; output goes to an in-memory Rich console.
"""

from __future__ import annotations

import asyncio
import io
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from protoforge import tui
from protoforge.config import ConfigStore
from protoforge.errors import ErrorKind
from protoforge.parser.models import Category, PrototypeDocument
from protoforge.pipeline import GenerationFailure, GenerationSuccess
from protoforge.scaffolder.materializer import materialize


pytestmark = pytest.mark.unit


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=120, force_terminal=False)


def _output(console: Console) -> str:
    return console.file.getvalue()


@pytest.fixture
def answers(monkeypatch: pytest.MonkeyPatch):
    """Script prompt answers: ``answers(["1", "text"], confirms=[True])``."""

    def _script(prompts: Iterable[str], confirms: Iterable[bool] = ()) -> list[str]:
        asked: list[str] = []
        prompt_iter = iter(prompts)
        confirm_iter = iter(confirms)

        def ask(prompt: str = "", *args: Any, **kwargs: Any) -> str:
            asked.append(prompt)
            return next(prompt_iter)

        def confirm(prompt: str = "", *args: Any, **kwargs: Any) -> bool:
            asked.append(prompt)
            return next(confirm_iter)

        monkeypatch.setattr(tui.Prompt, "ask", ask)
        monkeypatch.setattr(tui.Confirm, "ask", confirm)
        return asked

    return _script


@pytest.fixture
def connection(monkeypatch: pytest.MonkeyPatch):
    """Patch the connectivity probe; returns the configs it was called with."""
    seen: list[Any] = []

    async def fake(config):
        seen.append(config)
        return True

    monkeypatch.setattr(tui, "test_connection", fake)
    return seen


def _success(tmp_path: Path) -> GenerationSuccess:
    return GenerationSuccess(
        document=PrototypeDocument.from_data({
            "overview": {"projectName": "Todo API", "category": "software", "difficulty": "Beginner"},
            "codeSnippets": [{"filename": "src/app.js", "code": ""}],
        }),
        raw_text="{}",
        output_path=tmp_path / "todo-api",
    )


# ---------------------------------------------------------------------------
# choose
# ---------------------------------------------------------------------------


class TestChoose:
    def test_returns_value_for_number(self, answers, console):
        answers(["2"])
        assert tui.choose("Pick", [("a", "Alpha"), ("b", "Beta")], console=console) == "b"
        assert "1. Alpha" in _output(console)


# ---------------------------------------------------------------------------
# Setup wizard
# ---------------------------------------------------------------------------


class TestSetupWizard:
    def test_ollama(self, config_store, answers, connection, console, tmp_path):
        answers(["1", "http://gpu-box:11434", "llama3.1", str(tmp_path / "projects")], confirms=[False])

        tui.run_setup_wizard(config_store, console=console)

        reopened = ConfigStore(config_store.path)
        assert reopened.get("provider") == "ollama"
        assert reopened.get("base_url") == "http://gpu-box:11434"
        assert reopened.get("model") == "llama3.1"
        assert reopened.get("output_dir") == tmp_path / "projects"
        assert reopened.get("auto_open_web") is False
        assert connection[0].provider_id == "ollama"
        assert "Connection successful" in _output(console)

    def test_key_provider(self, config_store, answers, connection, console, tmp_path):
        answers(["2", "sk-test", "", str(tmp_path / "out")], confirms=[True])

        tui.run_setup_wizard(config_store, console=console)

        assert config_store.get("provider") == "openai"
        assert config_store.get("api_key") == "sk-test"
        assert config_store.get("model") is None
        assert config_store.get("base_url") is None
        assert connection[0].api_key == "sk-test"


# ---------------------------------------------------------------------------
# Result rendering
# ---------------------------------------------------------------------------


class TestRenderResult:
    def test_success(self, console, tmp_path):
        tui.render_result(_success(tmp_path), console=console)
        out = _output(console)
        assert "GENERATION COMPLETE" in out
        assert "Todo API" in out
        assert "src/app.js" in out

    def test_failure(self, console):
        tui.render_result(
            GenerationFailure(reason=ErrorKind.RATE_LIMITED, message="Slow down"), console=console
        )
        out = _output(console)
        assert "GENERATION FAILED" in out
        assert "Slow down" in out
        assert "rate_limited" in out


# ---------------------------------------------------------------------------
# TerminalUI
# ---------------------------------------------------------------------------


class TestTerminalUI:
    def test_new_prototype(self, config_store, answers, console, monkeypatch, tmp_path):
        calls: list[Any] = []

        async def fake_generate(request, provider_config, output_root, **kwargs):
            calls.append((request, provider_config, output_root))
            return _success(tmp_path)

        monkeypatch.setattr(tui, "generate_prototype", fake_generate)
        answers(["2", "A todo API"])

        result = tui.TerminalUI(config_store, console=console).new_prototype()

        assert isinstance(result, GenerationSuccess)
        request, provider_config, output_root = calls[0]
        assert request.category is Category.SOFTWARE
        assert request.description == "A todo API"
        assert provider_config.provider_id == "ollama"
        assert output_root == tmp_path / "output"
        assert "GENERATION COMPLETE" in _output(console)

    def test_empty_description_goes_back(self, config_store, answers, console, monkeypatch):
        async def fail(*args, **kwargs):
            raise AssertionError("should not generate")

        monkeypatch.setattr(tui, "generate_prototype", fail)
        answers(["1", "   "])

        assert tui.TerminalUI(config_store, console=console).new_prototype() is None

    def test_menu_help_then_quit(self, config_store, answers, console):
        answers(["5", "6"])
        tui.TerminalUI(config_store, console=console).run()
        assert "HELP" in _output(console)

    def test_recent_projects_empty(self, config_store, console):
        tui.TerminalUI(config_store, console=console).recent_projects()
        assert "No projects yet" in _output(console)

    def test_recent_projects_show(self, config_store, answers, console, hardware_document_data):
        document = PrototypeDocument.from_data(hardware_document_data)
        asyncio.run(materialize(document, config_store.settings.output_dir))
        answers(["1"])

        tui.TerminalUI(config_store, console=console).recent_projects()

        out = _output(console)
        assert "Smart Plant Monitor" in out
        assert "src/main.cpp" in out
