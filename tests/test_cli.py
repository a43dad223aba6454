"""Tests for the command line entry point."""

from pathlib import Path

import pytest

from memvolve.cli import build_parser, main, open_runtime
from memvolve.core.config import Settings
from memvolve.memory.store import SQLiteMemoryStore


def test_parser_evolve_options():
    args = build_parser().parse_args(["evolve", "--agent", "a1", "--days", "3", "--decay", "0.2"])
    assert args.command == "evolve"
    assert args.agent_id == "a1"
    assert args.older_than_days == 3
    assert args.decay_rate == 0.2


def test_agent_lifecycle_via_cli(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setenv("MEMVOLVE_DATA_DIR", str(tmp_path))

    assert main(["add-agent", "Scout"]) == 0
    agent_id = capsys.readouterr().out.split()[0]

    assert main(["agents"]) == 0
    assert "Scout  (0 memories)" in capsys.readouterr().out

    assert main(["evolve"]) == 0
    assert "Processed 0 memories" in capsys.readouterr().out

    assert main(["stats"]) == 0
    assert "Eligible for evolution: 0" in capsys.readouterr().out
    assert agent_id


def test_cli_reports_errors(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setenv("MEMVOLVE_DATA_DIR", str(tmp_path))

    assert main(["remember", "missing-agent", "fact"]) == 1
    assert "not found" in capsys.readouterr().out


def test_unknown_command_exits():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["bogus"])


@pytest.mark.asyncio
async def test_runtime_closes_store_when_setup_fails(tmp_path: Path, monkeypatch):
    closed = []
    original_close = SQLiteMemoryStore.close

    async def tracking_close(self):
        closed.append(self.db_path)
        await original_close(self)

    monkeypatch.setattr(SQLiteMemoryStore, "close", tracking_close)
    settings = Settings(_env_file=None, data_dir=tmp_path, embedding_provider="bogus")

    with pytest.raises(ValueError, match="Unknown embedding provider"):
        async with open_runtime(settings):
            pass

    assert closed == [settings.db_path]
