from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from maps_harvester.app import AppState, app
from maps_harvester.errors import LocationNotFoundError
from maps_harvester.orchestrator import RunSummary


class StubOrchestrator:
    def __init__(self, summary: RunSummary | None = None, error: Exception | None = None) -> None:
        self.summary = summary
        self.error = error
        self.calls: list = []

    def run(self, config, progress_enabled=None, progress_factory=None) -> RunSummary:
        self.calls.append((config, progress_enabled))
        if self.error is not None:
            raise self.error
        return self.summary


def make_summary() -> RunSummary:
    return RunSummary(
        run_name="coffee-berlin",
        finished=6,
        failed=1,
        skipped=2,
        retries=3,
        elapsed_seconds=4.2,
        reached_max_results=True,
        accepted=20,
        segments=4,
        tasks=4,
        output="/tmp/coffee-berlin.jsonl",
        stats={"seen": 31, "duplicate": 7, "per_search_term": {"coffee": 20}},
    )


@pytest.fixture
def state(temp_config_repository, monkeypatch) -> AppState:
    app_state = AppState(repository=temp_config_repository, orchestrator=StubOrchestrator(make_summary()))
    monkeypatch.setattr("maps_harvester.app.build_state", lambda verbose: app_state)
    return app_state


def test_cli_run_prints_summary(state: AppState) -> None:
    runner = CliRunner()
    result = runner.invoke(
        app, ["run", "coffee", "--location", "Berlin", "--max-results", "20", "--zoom", "11", "-c", "Cafe"]
    )
    assert result.exit_code == 0, result.stdout
    config, progress_enabled = state.orchestrator.calls[0]
    assert config.search_terms == ["coffee"]
    assert config.location == "Berlin"
    assert config.max_results == 20
    assert config.zoom == 11
    assert config.category_filter == ["Cafe"]
    assert progress_enabled is False
    assert "coffee-berlin results" in result.stdout
    assert "Places accepted" in result.stdout
    assert "Reached max results" in result.stdout


def test_cli_run_quiet(state: AppState) -> None:
    result = CliRunner().invoke(app, ["run", "coffee", "-l", "Berlin", "--quiet"])
    assert result.exit_code == 0, result.stdout
    assert "Run finished: 20 accepted" in result.stdout


def test_cli_run_invalid_input_exits_with_configuration_code(state: AppState) -> None:
    result = CliRunner().invoke(app, ["run", "coffee", "-l", "Berlin", "--zoom", "30"])
    assert result.exit_code == 2
    assert "zoom" in result.stdout
    assert state.orchestrator.calls == []


def test_cli_run_requires_location(state: AppState) -> None:
    result = CliRunner().invoke(app, ["run", "coffee"])
    assert result.exit_code == 2
    assert "location" in result.stdout


def test_cli_run_unknown_location(state: AppState) -> None:
    state.orchestrator.error = LocationNotFoundError("Atlantis", "no match")
    result = CliRunner().invoke(app, ["run", "coffee", "-l", "Atlantis"])
    assert result.exit_code == 3
    assert "Atlantis" in result.stdout


def test_cli_run_with_profile_and_override(state: AppState, sample_run_config) -> None:
    state.repository.save_profile(sample_run_config(run_name="weekly", max_results=7))
    result = CliRunner().invoke(app, ["run", "--profile", "weekly", "--max-results", "9"])
    assert result.exit_code == 0, result.stdout
    config, _ = state.orchestrator.calls[0]
    assert config.run_name == "weekly"
    assert config.max_results == 9
    assert config.search_terms == ["coffee"]


def test_cli_run_missing_profile(state: AppState) -> None:
    result = CliRunner().invoke(app, ["run", "--profile", "nope"])
    assert result.exit_code == 1


def test_cli_run_save_profile(state: AppState) -> None:
    result = CliRunner().invoke(app, ["run", "tea", "-l", "Paris", "--name", "tea-paris", "--save-profile"])
    assert result.exit_code == 0, result.stdout
    assert state.repository.load_profile("tea-paris").search_terms == ["tea"]


def test_cli_profile_list_show_remove(state: AppState, sample_run_config) -> None:
    state.repository.save_profile(sample_run_config(run_name="weekly"))
    runner = CliRunner()

    listed = runner.invoke(app, ["profile", "list"])
    assert listed.exit_code == 0, listed.stdout
    assert "weekly" in listed.stdout

    shown = runner.invoke(app, ["profile", "show", "weekly"])
    assert shown.exit_code == 0, shown.stdout
    assert "location: Berlin" in shown.stdout

    removed = runner.invoke(app, ["profile", "remove", "weekly", "--yes"])
    assert removed.exit_code == 0
    assert runner.invoke(app, ["profile", "remove", "weekly", "--yes"]).exit_code == 1


def test_cli_profile_list_empty(state: AppState) -> None:
    result = CliRunner().invoke(app, ["profile", "list"])
    assert result.exit_code == 0
    assert "No profiles yet" in result.stdout


def test_cli_profile_save_from_file(state: AppState, tmp_path: Path) -> None:
    source = tmp_path / "dentists.yaml"
    source.write_text("search_terms: [dentist]\nlocation: Lyon\n", encoding="utf-8")
    result = CliRunner().invoke(app, ["profile", "save", str(source), "--name", "lyon"])
    assert result.exit_code == 0, result.stdout
    assert state.repository.load_profile("lyon").location == "Lyon"


def test_cli_log_commands(state: AppState, isolated_home: Path) -> None:
    runs = isolated_home / "logs" / "runs"
    runs.mkdir(parents=True, exist_ok=True)
    (runs / "coffee-berlin.log").write_text("line one\nline two\nline three\n", encoding="utf-8")
    runner = CliRunner()

    listed = runner.invoke(app, ["log", "list"])
    assert listed.exit_code == 0
    assert "coffee-berlin.log" in listed.stdout

    shown = runner.invoke(app, ["log", "show", "--run", "coffee-berlin", "--tail", "2"])
    assert shown.exit_code == 0
    assert "line two" in shown.stdout
    assert "line one" not in shown.stdout
