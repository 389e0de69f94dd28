"""Terminal progress helpers with Rich-based rendering."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock

from rich.console import Console
from rich.errors import LiveError
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text

from ..engine.scheduler import TaskReport
from ..engine.state import TaskStatus


@dataclass
class ProgressState:
    total: int
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    accepted: int = 0
    current: str | None = None

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed + self.skipped


class RateColumn(ProgressColumn):
    """Render the page throughput as ``X.X page/s``."""

    def render(self, task: Task) -> Text:
        speed = task.finished_speed or task.speed
        if speed is None:
            return Text("", style="progress.percentage")
        return Text(f"{speed:.1f} page/s", style="progress.percentage")


class ProgressReporter:
    """Render progress and maintain counters for CLI feedback.

    The task total grows as pagination requeues pages, so ``advance`` raises
    the total whenever completed work would overrun it.
    """

    def __init__(self, enabled: bool = True, label: str = "harvest", console: Console | None = None) -> None:
        self.enabled = enabled
        self.label = label
        self._console = console
        self._progress: Progress | None = None
        self._task_id: TaskID | None = None
        self._lock = Lock()
        self.state: ProgressState | None = None

    def start(self, total: int) -> None:
        self.state = ProgressState(total=total)
        if not self.enabled:
            return
        if self._console is None:
            self._console = Console()
        if not self._console.is_terminal:
            self.enabled = False
            return
        self._progress = Progress(
            SpinnerColumn(style="cyan"),
            TextColumn("[bold blue]{task.fields[label]:<18}", justify="left"),
            BarColumn(bar_width=None, complete_style="green", finished_style="green"),
            TaskProgressColumn(show_speed=False),
            TimeElapsedColumn(),
            RateColumn(),
            TextColumn("[green]✓{task.fields[succeeded]:>3}", justify="right"),
            TextColumn("[red]✗{task.fields[failed]:>3}", justify="right"),
            TextColumn("[yellow]↷{task.fields[skipped]:>3}", justify="right"),
            TextColumn("[cyan]★{task.fields[accepted]:>4}", justify="right"),
            TextColumn("[dim]{task.fields[current]}", justify="left"),
            refresh_per_second=8,
            expand=True,
            transient=True,
            console=self._console,
        )
        try:
            self._progress.__enter__()
        except LiveError:
            self.enabled = False
            self._progress = None
            return
        self._task_id = self._progress.add_task(
            "harvest",
            total=total,
            label=self.label,
            succeeded=0,
            failed=0,
            skipped=0,
            accepted=0,
            current="waiting…",
        )

    def advance(self, report: TaskReport) -> None:
        if self.state is None:
            raise RuntimeError("ProgressReporter.start must be called before advance")
        with self._lock:
            state = self.state
            if report.status is TaskStatus.SUCCEEDED:
                state.succeeded += 1
                state.accepted += report.accepted
            elif report.status is TaskStatus.FAILED:
                state.failed += 1
            elif report.status is TaskStatus.SKIPPED:
                state.skipped += 1
            state.current = f"{report.task.search_term} @ {report.task.segment.label} p{report.task.pagination_depth}"
            if state.completed > state.total:
                state.total = state.completed
            if self._progress is not None and self._task_id is not None:
                self._progress.update(
                    self._task_id,
                    total=state.total,
                    completed=state.completed,
                    succeeded=state.succeeded,
                    failed=state.failed,
                    skipped=state.skipped,
                    accepted=state.accepted,
                    current=state.current,
                )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.__exit__(None, None, None)
            self._progress = None
            self._task_id = None


__all__ = ["ProgressReporter", "ProgressState", "RateColumn"]
