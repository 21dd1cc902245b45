"""Rich-based progress reporter implementation."""
from __future__ import annotations

import sys
import time
from collections import deque
from typing import Optional

from rich.console import Console
from rich.progress import (
    Progress,
    ProgressColumn,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TimeRemainingColumn,
    TimeElapsedColumn,
    MofNCompleteColumn,
    TaskID,
    Task,
)
from rich.table import Table
from rich.panel import Panel
from rich.text import Text

from ..core.models import IndexStats, Period, TransferOperation, TransferSummary


class FilesPerSecondColumn(ProgressColumn):
    """Renders files per second as a rolling average."""

    def __init__(self, window_size: int = 10):
        super().__init__()
        self._samples: deque[tuple[float, int]] = deque(maxlen=window_size)
        self._last_completed = 0
        self._start_time: Optional[float] = None

    def render(self, task: Task) -> Text:
        """Render the speed column."""
        completed = int(task.completed)
        current_time = time.time()

        if self._start_time is None:
            self._start_time = current_time
            self._last_completed = completed
            return Text("-- f/s", style="magenta")

        if completed > self._last_completed:
            self._samples.append((current_time, completed))
            self._last_completed = completed

        if len(self._samples) >= 2:
            oldest_time, oldest_completed = self._samples[0]
            newest_time, newest_completed = self._samples[-1]
            time_diff = newest_time - oldest_time
            if time_diff > 0:
                speed = (newest_completed - oldest_completed) / time_diff
                return Text(f"{speed:.1f} f/s", style="magenta")

        # Overall average until the window fills
        elapsed = current_time - self._start_time
        if elapsed > 0 and completed > 0:
            return Text(f"{completed / elapsed:.1f} f/s", style="magenta")

        return Text("-- f/s", style="magenta")


class RichProgressReporter:
    """Progress reporter using Rich for terminal output.

    Progress and messages go to stderr; result tables go to stdout.
    """

    def __init__(
        self,
        verbose: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        output: Optional[Console] = None,
    ):
        """Initialize the reporter.

        Args:
            verbose: Enable verbose output.
            quiet: Suppress all non-essential output.
            console: Console for progress and messages.
            output: Console for results (tables, plans).
        """
        self._console = console or Console(stderr=True)
        self._output = output or Console()
        self._verbose = verbose
        self._quiet = quiet
        self._progress: Optional[Progress] = None
        self._current_task_id: Optional[TaskID] = None
        self._phase_name: str = ""

    @property
    def verbose(self) -> bool:
        return self._verbose

    # --- Phase Management ---

    def start_phase(self, name: str, total: int) -> None:
        """Start a new processing phase with progress bar."""
        self._phase_name = name

        if self._quiet:
            return

        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TextColumn("[cyan]•"),
            FilesPerSecondColumn(),
            TextColumn("[cyan]•"),
            TimeElapsedColumn(),
            TextColumn("[cyan]•"),
            TimeRemainingColumn(),
            console=self._console,
            transient=False,
        )
        self._progress.start()
        self._current_task_id = self._progress.add_task(name, total=total)

    def advance_phase(self, amount: int = 1) -> None:
        """Advance the current phase by amount."""
        if self._progress and self._current_task_id is not None:
            self._progress.advance(self._current_task_id, amount)

    def end_phase(self) -> None:
        """End the current phase."""
        if self._progress:
            self._progress.stop()
            self._progress = None
            self._current_task_id = None

    # --- Logging Methods ---

    def info(self, message: str) -> None:
        if not self._quiet:
            self._console.print(f"[blue]ℹ[/blue] {message}")

    def success(self, message: str) -> None:
        if not self._quiet:
            self._console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        self._console.print(f"[yellow]⚠[/yellow] {message}")

    def error(self, message: str) -> None:
        self._console.print(f"[red]✗[/red] {message}", style="red")

    def debug(self, message: str) -> None:
        """Log a debug message (only in verbose mode)."""
        if self._verbose:
            self._console.print(f"[dim]  {message}[/dim]")

    # --- Specialized Output ---

    def print_header(self, title: str) -> None:
        if self._quiet:
            return
        self._console.print(Panel(Text(title, style="bold cyan"), border_style="cyan"))

    def print_config(self, config_items: dict) -> None:
        """Print configuration as a table."""
        if self._quiet:
            return

        table = Table(title="Configuration", show_header=True, header_style="bold")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")
        for key, value in config_items.items():
            table.add_row(key, str(value))
        self._console.print(table)

    def print_index_stats(self, stats: IndexStats, elapsed_seconds: float = 0.0) -> None:
        if self._quiet:
            return

        table = Table(title="Indexing Complete", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Count", style="green", justify="right")

        table.add_row("Files Discovered", str(stats.discovered))
        table.add_row("Files Processed", str(stats.processed))
        if stats.already_processed:
            table.add_row("Already Processed", str(stats.already_processed))
        table.add_row("Records", str(stats.records))
        table.add_row("Errors", str(stats.errors))
        if stats.checkpoints:
            table.add_row("Checkpoints", str(stats.checkpoints))

        if elapsed_seconds > 0:
            table.add_row("", "")
            table.add_row("Time Elapsed", f"{elapsed_seconds:.1f}s")
            table.add_row("Processing Rate", f"{stats.processed / elapsed_seconds:.1f} files/sec")

        self._console.print(table)

    def print_period_table(self, rows: list[tuple[Period, int]], transferred: int = 0) -> None:
        """Print record counts per period."""
        table = Table(title="Photos by Period", show_header=True, header_style="bold")
        table.add_column("Period", style="cyan")
        table.add_column("Count", style="green", justify="right")
        for period, count in rows:
            table.add_row(str(period), str(count))

        total = sum(count for _, count in rows)
        table.add_section()
        table.add_row("[bold]Total[/bold]", f"[bold]{total}[/bold]")
        if transferred:
            table.add_row("Transferred", str(transferred))
        self._output.print(table)

    def print_extension_table(self, rows: list[tuple[str, int]]) -> None:
        """Print file counts per extension."""
        table = Table(title="File Types", show_header=True, header_style="bold")
        table.add_column("Extension", style="cyan")
        table.add_column("Count", style="green", justify="right")
        for extension, count in rows:
            table.add_row(extension, str(count))
        table.add_section()
        table.add_row("[bold]Total[/bold]", f"[bold]{sum(c for _, c in rows)}[/bold]")
        self._output.print(table)

    def print_transfer_plan(self, operations: list[TransferOperation]) -> None:
        """Show what a dry run would do."""
        for op in operations:
            verb = "copy" if op.mode.value == "copy" else "move"
            note = " [yellow](replaces existing)[/yellow]" if op.replaces_existing else ""
            self._output.print(f"Would {verb}: {op.source_path} -> {op.target_path}{note}")
        self._output.print(f"Total: {len(operations)} files would be transferred")

    def print_transfer_summary(self, summary: TransferSummary) -> None:
        for op in summary.failures:
            self._console.print(f"  [red]✗[/red] {op.record.file_name}: {op.error}")
        if self._quiet:
            return

        table = Table(title="Transfer Complete", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Count", style="green", justify="right")
        table.add_row("Planned", str(summary.total))
        table.add_row("Transferred", str(summary.completed))
        table.add_row("Failed", str(summary.failed))
        self._console.print(table)

    # --- Context Managers ---

    def __enter__(self) -> "RichProgressReporter":
        return self

    def __exit__(self, *args) -> None:
        self.end_phase()


class QuietProgressReporter:
    """Minimal progress reporter that only shows errors and results."""

    @property
    def verbose(self) -> bool:
        return False

    def start_phase(self, name: str, total: int) -> None:
        pass

    def advance_phase(self, amount: int = 1) -> None:
        pass

    def end_phase(self) -> None:
        pass

    def info(self, message: str) -> None:
        pass

    def success(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        print(f"WARNING: {message}", file=sys.stderr)

    def error(self, message: str) -> None:
        print(f"ERROR: {message}", file=sys.stderr)

    def debug(self, message: str) -> None:
        pass

    def print_header(self, title: str) -> None:
        pass

    def print_config(self, config_items: dict) -> None:
        pass

    def print_index_stats(self, stats: IndexStats, elapsed_seconds: float = 0.0) -> None:
        pass

    def print_period_table(self, rows: list[tuple[Period, int]], transferred: int = 0) -> None:
        for period, count in rows:
            print(f"{period}\t{count}")

    def print_extension_table(self, rows: list[tuple[str, int]]) -> None:
        for extension, count in rows:
            print(f"{extension}\t{count}")

    def print_transfer_plan(self, operations: list[TransferOperation]) -> None:
        for op in operations:
            print(f"{op.source_path}\t{op.target_path}")

    def print_transfer_summary(self, summary: TransferSummary) -> None:
        for op in summary.failures:
            print(f"ERROR: {op.record.file_name}: {op.error}", file=sys.stderr)

    def __enter__(self) -> "QuietProgressReporter":
        return self

    def __exit__(self, *args) -> None:
        pass
