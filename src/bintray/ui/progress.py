"""progress display for requests, file batches and byte-level uploads."""

from contextlib import contextmanager
from typing import Optional
from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    MofNCompleteColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TransferSpeedColumn,
)


class Tracker:
    """advances a single live progress task."""

    def __init__(self, progress: Progress, task_id: TaskID):
        self.progress = progress
        self.task_id = task_id

    def advance(self, amount: float = 1) -> None:
        self.progress.advance(self.task_id, amount)


class _SilentTracker:
    """used when output is not a terminal; counts but draws nothing."""

    def __init__(self):
        self.completed = 0

    def advance(self, amount: float = 1) -> None:
        self.completed += amount


class ProgressManager:
    """
    owns the console and decides whether live progress is drawn.

    when the console is not a terminal (ci, piped output) each context just
    prints its description once.
    """

    def __init__(self, console: Optional[Console] = None, enabled: Optional[bool] = None):
        self.console = console or Console()
        self.enabled = self.console.is_terminal if enabled is None else enabled

    def print(self, *args, **kwargs):
        self.console.print(*args, **kwargs)

    @contextmanager
    def _track(self, description: str, total: Optional[float], *columns: ProgressColumn, transient: bool = False):
        if not self.enabled:
            self.console.print(f"{description}...")
            yield _SilentTracker()
            return

        with Progress(*columns, console=self.console, transient=transient) as progress:
            yield Tracker(progress, progress.add_task(description, total=total))

    def spinner(self, description: str):
        """indeterminate spinner for a single API call."""
        return self._track(
            description,
            None,
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        )

    def file_progress(self, description: str, total_files: int):
        """bar counting finished files of a release."""
        return self._track(
            description,
            total_files,
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
        )

    def upload_progress(self, file_name: str, total_bytes: int):
        """byte-level bar for one upload, advanced with the sizes of sent chunks."""
        return self._track(
            f"Uploading {file_name}",
            total_bytes,
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
        )
