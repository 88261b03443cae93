"""Progress display for gradient computation and forward modeling.

Provides rich terminal UI for shot-by-shot progress tracking including:
- Progress bar over all shots of all iterations
- Elapsed time and ETA
- Current and peak memory usage
"""

from __future__ import annotations

import threading
import time
from pathlib import Path

import psutil
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from strata_fwi.core.solver import SimulationContext
from strata_fwi.inversion.driver import InversionConfig, ShotData


def format_time(seconds: float) -> str:
    """Format time duration for display.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string like "1m 23s" or "2h 15m"
    """
    if seconds < 60:
        return f"{seconds:.0f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs:02d}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes:02d}m"


def format_bytes(num_bytes: float) -> str:
    """Format byte count for display.

    Args:
        num_bytes: Number of bytes

    Returns:
        Formatted string like "1.5 GB" or "256.0 MB"
    """
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if abs(num_bytes) < 1024.0:
            return f"{num_bytes:.1f} {unit}"
        num_bytes /= 1024.0
    return f"{num_bytes:.1f} PB"


class ShotProgress:
    """Real-time progress display over shots.

    ``update`` matches the driver callback signature and may be called from
    worker threads.

    Example:
        >>> progress = ShotProgress(console, total=shots.ns * config.iterations)
        >>> driver = GradientDriver(..., callback=progress.update)
        >>> for result in driver.run():
        ...     pass
        >>> progress.finish()
    """

    def __init__(
        self,
        console: Console,
        total: int,
        description: str = "Computing",
        verbose: bool = False,
    ):
        """Initialize progress display.

        Args:
            console: Rich console instance
            total: Total number of shot passes
            description: Label shown next to the bar
            verbose: Print a line for every completed shot
        """
        self.console = console
        self.total = total
        self.verbose = verbose

        self.start_time = time.time()
        self.completed = 0
        self.peak_memory = 0.0
        self._lock = threading.Lock()
        self._process = psutil.Process()

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            TextColumn("•"),
            TimeRemainingColumn(),
            TextColumn("[dim]{task.fields[memory]}"),
            console=console,
        )
        self.task = self.progress.add_task(description, total=total, memory="")
        self.progress.start()
        self._finished = False

    def update(self, iteration: int, shot: int):
        """Record one completed shot.

        Args:
            iteration: Iteration number (0-indexed)
            shot: Shot number (0-indexed)
        """
        memory = self._process.memory_info().rss
        with self._lock:
            self.completed += 1
            self.peak_memory = max(self.peak_memory, memory)
            completed = self.completed

        self.progress.update(
            self.task,
            completed=completed,
            memory=f"{format_bytes(memory)} (peak {format_bytes(self.peak_memory)})",
        )
        if self.verbose:
            self.progress.console.print(
                f"  iteration {iteration} shot {shot} done", style="dim"
            )

    @property
    def elapsed(self) -> float:
        return time.time() - self.start_time

    def finish(self):
        """Stop the progress display. Safe to call more than once."""
        if self._finished:
            return
        self._finished = True
        self.progress.stop()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()


def print_inversion_info(
    console: Console,
    context: SimulationContext,
    shots: ShotData,
    config: InversionConfig | None = None,
    outputs: dict[str, Path] | None = None,
):
    """Print run parameters before propagating.

    Args:
        console: Rich console instance
        context: Propagation context for the starting model
        shots: Acquisition and time axis
        config: Gradient options, or None for forward modeling
        outputs: Output file paths by name
    """
    grid = context.grid

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Parameter", style="cyan")
    table.add_column("Value", style="white")

    table.add_row(
        "Grid",
        f"{grid.nz} × {grid.nx} (padded {grid.nzpad} × {grid.nxpad}, border {grid.nb})",
    )
    table.add_row("Spacing", f"dz={grid.dz:g} m, dx={grid.dx:g} m")
    table.add_row("Time axis", f"{shots.nt} steps × {shots.dt:.2e} s")
    table.add_row("Courant", f"{context.courant:.3f}")
    table.add_row(
        "Acquisition",
        f"{shots.ns} shots × {shots.ng} receivers"
        + (" (moving spread)" if shots.acquisition.csdgather else ""),
    )
    table.add_row("Wavelet", f"Ricker {shots.wavelet.frequency:g} Hz")

    if config is not None:
        checkpoint_bytes = 4 * shots.nt * (
            2 * config.order * grid.nz + config.order * grid.nx
        )
        table.add_row("Iterations", str(config.iterations))
        table.add_row(
            "Checkpoint",
            f"order {config.order} ({format_bytes(checkpoint_bytes)} per worker)",
        )
        processing = []
        if config.precondition:
            processing.append("preconditioned")
        if config.smooth:
            processing.append(f"bell smoothing r={config.rbell}")
        if config.mute:
            processing.append(f"mute {config.mute} rows")
        table.add_row("Gradient", ", ".join(processing) or "raw")
        table.add_row("Workers", str(config.workers))

    for name, path in (outputs or {}).items():
        table.add_row(name.capitalize(), str(path))

    console.print(table)
    console.print()
