"""
Terminal output helpers shared by the CLI and the interactive review.

All user facing text goes through ``click.echo`` so it can be captured by
``click.testing.CliRunner``. Errors and the stderr that git printed go to
standard error; everything else goes to standard output.
"""

from __future__ import annotations

import time
from typing import List, Optional

import click


SUCCESS = "✓"
FAILURE = "✗"
INFO = "ℹ"
WARNING = "⚠"

BOX_WIDTH = 60


class ProgressIndicator:
    """Announce a step that runs git and report how it ended.

    On failure the exception is described on the same line; the caller
    still handles the exception itself.
    """

    def __init__(self, message: str):
        self.message = message
        self.start_time: Optional[float] = None

    def __enter__(self):
        self.start_time = time.monotonic()
        click.echo(f"… {self.message}", nl=False)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.monotonic() - self.start_time
        if exc_type is None:
            click.echo(f"\r{SUCCESS} {self.message} (took {elapsed:.1f}s)")
        else:
            click.echo(f"\r{FAILURE} {self.message} ({exc_type.__name__} after {elapsed:.1f}s)")
        return False


def _emit(symbol: str, message: str, indent: int, err: bool = False) -> None:
    click.echo(f"{'  ' * indent}{symbol} {message}", err=err)


def print_step(step_num: int, total_steps: int, message: str):
    """Print a step heading."""
    click.echo("")
    click.echo(click.style(f"[{step_num}/{total_steps}] {message}", bold=True))


def print_info(message: str, indent: int = 0):
    _emit(INFO, message, indent)


def print_success(message: str, indent: int = 0):
    _emit(SUCCESS, message, indent)


def print_warning(message: str, indent: int = 0):
    _emit(WARNING, message, indent)


def print_error(message: str, indent: int = 0):
    _emit(FAILURE, message, indent, err=True)


def print_process_output(exc: BaseException, indent: int = 2) -> None:
    """Echo the stderr git printed for ``exc``, if any, to standard error.

    Errors that wrap a git failure expose its stderr as ``exc.stderr``.
    """
    stderr = (getattr(exc, "stderr", "") or "").strip()
    prefix = "  " * indent
    for line in stderr.splitlines():
        if line.strip():
            click.echo(f"{prefix}│ {line.rstrip()}", err=True)


def _fit(text: str, width: int) -> str:
    if len(text) <= width:
        return text.ljust(width)
    return text[: width - 1] + "…"


def print_summary_box(title: str, items: List[str]):
    """Print ``title`` and ``items`` in a box no wider than ``BOX_WIDTH``."""
    longest = max([len(title), *(len(item) for item in items)])
    inner = min(longest, BOX_WIDTH - 4)

    click.echo(f"\n┌{'─' * (inner + 2)}┐")
    click.echo(f"│ {_fit(title, inner)} │")
    click.echo(f"├{'─' * (inner + 2)}┤")
    for item in items:
        click.echo(f"│ {_fit(item, inner)} │")
    click.echo(f"└{'─' * (inner + 2)}┘")
