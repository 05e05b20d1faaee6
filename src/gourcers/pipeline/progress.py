"""Progress display for the pipeline.

Prints numbered step headers and shows a rich progress bar for the
per-repository steps and a spinner for steps of unknown length.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, ClassVar

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)


@dataclass
class ProgressStats:
    """Statistics for progress tracking."""

    total_repos: int = 0
    completed_repos: int = 0
    current_step: str = ""
    start_time: float = field(default_factory=time.time)


class RepoTask:
    """Handle for advancing one per-repository progress bar."""

    def __init__(
        self, progress: Progress | None, task_id: TaskID | None, stats: ProgressStats
    ) -> None:
        self._progress = progress
        self._task_id = task_id
        self._stats = stats

    def set_repo(self, repo_full_name: str) -> None:
        """Show the repository currently being processed."""
        if self._progress is not None and self._task_id is not None:
            self._progress.update(self._task_id, status=repo_full_name)

    def advance(self) -> None:
        """Mark one repository as done."""
        self._stats.completed_repos += 1
        if self._progress is not None and self._task_id is not None:
            self._progress.advance(self._task_id)


class PipelineProgress:
    """Step headers and progress bars for a pipeline run."""

    STEPS: ClassVar[list[tuple[str, str]]] = [
        ("fetch", "Fetching repositories from the GitHub API..."),
        ("clone", "Cloning repositories..."),
        ("logs", "Generating gource logs..."),
        ("combine", "Combining and sorting logs..."),
        ("render", "Rendering..."),
    ]

    def __init__(self, console: Console | None = None, quiet: bool = False) -> None:
        """Initialize progress display.

        Args:
            console: Console to print to.
            quiet: Suppress all output.
        """
        self.console = console or Console()
        self.quiet = quiet
        self.stats = ProgressStats()

    def step(self, name: str, note: str = "") -> None:
        """Print the header for a pipeline step.

        Args:
            name: One of the names in ``STEPS``.
            note: Text appended to the header, e.g. ``(skipped)``.
        """
        index = next(i for i, (step_name, _) in enumerate(self.STEPS, start=1) if step_name == name)
        self.stats.current_step = name
        if self.quiet:
            return
        message = self.STEPS[index - 1][1]
        suffix = f" {note}" if note else ""
        self.console.print(f"[bold dim][{index}/{len(self.STEPS)}][/] {message}{suffix}")

    @contextmanager
    def spinner(self, description: str) -> Iterator[None]:
        """Show a spinner while a step of unknown length runs."""
        if self.quiet:
            yield
            return
        with self.console.status(f"[magenta]{description}"):
            yield

    @contextmanager
    def repos(self, description: str, total: int) -> Iterator[RepoTask]:
        """Show a bar advancing once per repository."""
        self.stats.total_repos = total
        self.stats.completed_repos = 0
        if self.quiet:
            yield RepoTask(None, None, self.stats)
            return

        progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[cyan]{task.fields[status]}"),
            TimeElapsedColumn(),
            console=self.console,
            refresh_per_second=4,
        )
        with progress:
            task_id = progress.add_task(description, total=total, status="")
            yield RepoTask(progress, task_id, self.stats)

    def get_summary(self) -> dict[str, Any]:
        """Progress summary as a dictionary."""
        return {
            "elapsed_seconds": round(time.time() - self.stats.start_time, 2),
            "total_repos": self.stats.total_repos,
            "completed_repos": self.stats.completed_repos,
        }
