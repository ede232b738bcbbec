from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError
from typer.testing import CliRunner

from score_updater import main as cli

runner = CliRunner()


@pytest.fixture
def cli_env(monkeypatch, job_settings):
    """Point the CLI at fake settings and a factory for the fake store."""
    settings = job_settings(batch_size=500)
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)
    return settings


def _use_store(monkeypatch, store) -> list:
    seen_settings: list = []

    def factory(settings):
        seen_settings.append(settings)
        return store

    monkeypatch.setattr(cli, "PostgresRecordStore", factory)
    return seen_settings


def test_info_shows_job_configuration(cli_env) -> None:
    result = runner.invoke(cli.app, ["info"])

    assert result.exit_code == 0
    assert "batch=500" in result.output
    assert "concurrency=8" in result.output
    assert "policy=strict" in result.output


def test_run_applies_overrides_and_persists_report(cli_env, monkeypatch, make_store, tmp_path: Path) -> None:
    store = make_store(rows=4)
    seen = _use_store(monkeypatch, store)
    results_dir = tmp_path / "results"

    result = runner.invoke(
        cli.app,
        ["run", "--batch-size", "2", "--max-concurrency", "1", "--seed", "7", "--results-dir", str(results_dir)],
    )

    assert result.exit_code == 0, result.output
    assert seen[0].batch_size == 2
    assert seen[0].max_concurrency == 1
    assert seen[0].random_seed == 7
    assert store.commits == 2
    assert "[4, 2, " in result.output
    latest = json.loads((results_dir / "latest.json").read_text(encoding="utf-8"))
    assert latest["total_rows"] == 4


def test_run_without_persist_writes_nothing(cli_env, monkeypatch, make_store, tmp_path: Path) -> None:
    _use_store(monkeypatch, make_store(rows=2))
    results_dir = tmp_path / "results"

    result = runner.invoke(cli.app, ["run", "--no-persist", "--results-dir", str(results_dir)])

    assert result.exit_code == 0, result.output
    assert not results_dir.exists()


def test_run_exits_nonzero_when_strict_run_aborts(cli_env, monkeypatch, make_store, tmp_path: Path) -> None:
    _use_store(monkeypatch, make_store(rows=4, fail_on_ids={1}))

    result = runner.invoke(cli.app, ["run", "-b", "2", "--results-dir", str(tmp_path)])

    assert result.exit_code == 1


def test_run_exits_two_on_degraded_tolerant_run(cli_env, monkeypatch, make_store, tmp_path: Path) -> None:
    store = make_store(rows=4, fail_on_ids={1})
    _use_store(monkeypatch, store)

    result = runner.invoke(
        cli.app,
        ["run", "-b", "2", "--failure-policy", "tolerant", "--results-dir", str(tmp_path)],
    )

    assert result.exit_code == 2
    assert store.commits == 1
    assert "Failed Batches" in result.output


@pytest.mark.parametrize(
    "args",
    [["--failure-policy", "sometimes"], ["--batch-size", "0"]],
)
def test_run_rejects_invalid_overrides_as_usage_errors(
    cli_env, monkeypatch, make_store, tmp_path: Path, args: list[str]
) -> None:
    seen = _use_store(monkeypatch, make_store(rows=2))

    result = runner.invoke(cli.app, ["run", *args, "--results-dir", str(tmp_path)])

    assert result.exit_code == 2
    assert not isinstance(result.exception, ValidationError)
    assert seen == []
