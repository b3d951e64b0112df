"""Tests for the CLI entry point."""

from __future__ import annotations

import io
import json

import pytest

import memory_recall.cli as cli_module
from conftest import LONG_MESSAGE, FakeManagerFactory, FakeSearchManager, make_results
from memory_recall.cli import main

CONFIG_YAML = """\
agents:
  defaults:
    memoryRecall:
      enabled: true
      randomSlot: false
      maxResults: 2
"""


@pytest.fixture()
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return str(path)


@pytest.fixture()
def patched_factory(monkeypatch) -> FakeManagerFactory:
    """
    Patch chroma_manager_factory so the CLI searches a fake manager
    instead of opening a ChromaDB store on disk.
    """
    factory = FakeManagerFactory(FakeSearchManager(make_results(0.9, 0.8, 0.7)))
    monkeypatch.setattr(cli_module, "chroma_manager_factory", lambda **kwargs: factory)
    return factory


class TestCLI:
    def test_settings_disabled_without_config(self, capsys):
        rc = main(["settings"])
        assert rc == 0
        assert "disabled" in capsys.readouterr().out

    def test_settings_prints_json(self, config_path, capsys):
        rc = main(["--config", config_path, "settings"])
        assert rc == 0
        data = json.loads(capsys.readouterr().out)
        assert data["max_results"] == 2
        assert data["random_slot"] is False
        assert data["min_score"] == 0.5

    def test_missing_config_file_returns_error(self, tmp_path, capsys):
        rc = main(["--config", str(tmp_path / "nope.yaml"), "settings"])
        assert rc == 1
        assert "Error" in capsys.readouterr().err

    def test_invalid_settings_return_error(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text(
            "agents:\n  defaults:\n    memoryRecall:\n      enabled: true\n      maxResults: 0\n",
            encoding="utf-8",
        )
        rc = main(["--config", str(path), "settings"])
        assert rc == 1

    def test_recall_prints_block(self, config_path, patched_factory, capsys):
        rc = main(["--config", config_path, "recall", LONG_MESSAGE])
        assert rc == 0
        out = capsys.readouterr().out
        assert out.startswith("## Auto-recalled from memory")
        assert "[memory/note-0.md#L1]: snippet 0" in out
        assert "[memory/note-1.md#L2]: snippet 1" in out
        assert "snippet 2" not in out

    def test_recall_disabled_prints_notice(self, patched_factory, capsys):
        rc = main(["recall", LONG_MESSAGE])
        assert rc == 0
        assert "No memories recalled." in capsys.readouterr().out
        assert patched_factory.calls == []

    def test_recall_passes_agent_and_session(self, config_path, patched_factory, capsys):
        main(["--config", config_path, "recall", LONG_MESSAGE, "--agent", "helper", "--session", "s-9"])
        assert patched_factory.calls[0][1] == "helper"
        assert patched_factory.manager.calls[0]["session_key"] == "s-9"

    def test_recall_bootstrapped_paths_excluded(self, config_path, patched_factory, capsys):
        main(
            [
                "--config", config_path, "recall", LONG_MESSAGE,
                "--bootstrapped", "memory/note-0.md",
            ]
        )
        out = capsys.readouterr().out
        assert "snippet 0" not in out
        assert "snippet 1" in out
        assert "snippet 2" in out

    def test_recall_heartbeat_skipped(self, config_path, patched_factory, capsys):
        main(["--config", config_path, "recall", LONG_MESSAGE, "--heartbeat"])
        assert "No memories recalled." in capsys.readouterr().out

    def test_recall_reads_stdin(self, config_path, patched_factory, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO(LONG_MESSAGE))
        rc = main(["--config", config_path, "recall"])
        assert rc == 0
        assert patched_factory.manager.calls[0]["query"] == LONG_MESSAGE

    def test_recall_missing_message_returns_error(self, patched_factory, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO(""))
        assert main(["recall"]) == 1
