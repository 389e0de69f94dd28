from __future__ import annotations

import io

import pytest
from rich.console import Console

from maps_harvester.engine import TaskReport, TaskStatus
from maps_harvester.ui import ProgressReporter


def test_counters_follow_reports(make_task) -> None:
    reporter = ProgressReporter(enabled=False)
    reporter.start(total=2)
    reporter.advance(TaskReport(task=make_task(), status=TaskStatus.SUCCEEDED, attempts=1, accepted=4))
    reporter.advance(TaskReport(task=make_task(depth=2), status=TaskStatus.SUCCEEDED, attempts=1, accepted=1))
    reporter.advance(TaskReport(task=make_task("tea"), status=TaskStatus.FAILED, attempts=3))
    reporter.advance(TaskReport(task=make_task("juice"), status=TaskStatus.SKIPPED, reason="max_results"))
    reporter.close()

    state = reporter.state
    assert (state.succeeded, state.failed, state.skipped) == (2, 1, 1)
    assert state.accepted == 5
    assert state.total == 4
    assert state.current.startswith("juice @ ")


def test_non_terminal_console_disables_rendering(make_task) -> None:
    reporter = ProgressReporter(enabled=True, console=Console(file=io.StringIO()))
    reporter.start(total=1)
    assert reporter.enabled is False
    reporter.advance(TaskReport(task=make_task(), status=TaskStatus.SUCCEEDED, attempts=1))
    reporter.close()
    assert reporter.state.completed == 1


def test_advance_requires_start(make_task) -> None:
    with pytest.raises(RuntimeError):
        ProgressReporter(enabled=False).advance(TaskReport(task=make_task(), status=TaskStatus.SUCCEEDED))
