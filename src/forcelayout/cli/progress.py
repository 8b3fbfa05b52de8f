"""Progress indicators for CLI operations.

All progress output goes to stderr to keep stdout clean for data.

Usage:
    from forcelayout.cli.progress import create_progress

    with create_progress(quiet=args.quiet) as progress:
        task = progress.add_task("Laying out...", total=steps)
        for _ in range(steps):
            layout.compute()
            progress.update(task, advance=1)
"""

import sys


def is_terminal() -> bool:
    """Check if stderr is attached to a terminal."""
    return sys.stderr.isatty()


def create_progress(quiet: bool = False, **kwargs):
    """Create a Rich Progress instance configured for CLI use.

    Args:
        quiet: If True, returns a no-op progress context
        **kwargs: Additional arguments passed to Progress

    Returns:
        Progress context manager (or no-op if quiet or not a terminal)
    """
    if quiet or not is_terminal():
        return _NoOpProgress()

    from rich.progress import (
        BarColumn,
        MofNCompleteColumn,
        Progress,
        SpinnerColumn,
        TextColumn,
        TimeElapsedColumn,
    )

    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("stab {task.fields[stabilization]:.3f}"),
        TimeElapsedColumn(),
        console=_get_stderr_console(),
        **kwargs,
    )


def print_status(message: str, style: str = "bold", quiet: bool = False) -> None:
    """Print a styled status message to stderr."""
    if quiet:
        return

    console = _get_stderr_console()
    console.print(message, style=style)


def _get_stderr_console():
    """Get a Rich Console that outputs to stderr."""
    from rich.console import Console

    return Console(stderr=True, force_terminal=None)


class _NoOpProgress:
    """No-op progress context manager for quiet mode."""

    def __enter__(self):
        return self

    def __exit__(self, *args):
        pass

    def add_task(self, description: str, total: float | None = None, **kwargs) -> int:
        return 0

    def update(self, task_id: int, **kwargs) -> None:
        pass
