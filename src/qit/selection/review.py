"""
Terminal front-end for the :class:`~qit.selection.selector.Selector`.

:func:`review_changes` draws the change list with ``click`` and translates
what the user types into selector transitions until the selector reaches a
terminal state. The rendering is deliberately plain so it works in any
terminal; all decisions live in the state machine.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence

import click

from qit.changes.model import ChangeEntry, Hunk
from qit.errors import InvalidTransitionError
from qit.grouping.change_classifier import Classification
from qit.output import print_info, print_warning
from qit.selection.selector import Selector, SelectorState


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


MAX_HUNK_LINES = 40

BROWSE_HELP = "<n> toggle | h <n> hunks | a all | n none | c confirm | q quit"
HUNK_HELP = "<n> toggle | a all | n none | b back | q quit"


def _mark(entry: ChangeEntry) -> str:
    if entry.fully_selected:
        return "x"
    if entry.partially_selected:
        return "~"
    return " "


def render_entries(selector: Selector, classifications: Sequence[Classification]) -> None:
    """Print the numbered change list with selection marks."""
    by_path: Dict[str, Classification] = {c.entry.path: c for c in classifications}
    click.echo("")
    for number, entry in enumerate(selector.change_set, start=1):
        line = f"{number:>3}. [{_mark(entry)}] {entry.kind.value:<8} {entry.display_path}"
        if entry.hunks:
            line += f"  ({len(entry.selected_hunks())}/{len(entry.hunks)} hunks)"
        classification = by_path.get(entry.path)
        if classification is not None:
            tag = f"{classification.commit_type.value} {classification.confidence:.0%}"
            line += "  " + click.style(tag, fg="cyan")
        click.echo(line)


def _render_hunk(number: int, hunk: Hunk) -> None:
    mark = "x" if hunk.selected else " "
    lines = hunk.diff_text.rstrip("\n").split("\n")
    click.echo(f"\n{number:>3}. [{mark}] {click.style(lines[0], fg='magenta')}")
    body = lines[1:]
    for line in body[:MAX_HUNK_LINES]:
        if line.startswith("+"):
            click.echo("     " + click.style(line, fg="green"))
        elif line.startswith("-"):
            click.echo("     " + click.style(line, fg="red"))
        else:
            click.echo("     " + line)
    if len(body) > MAX_HUNK_LINES:
        click.echo(f"     ... ({len(body) - MAX_HUNK_LINES} more lines)")


def render_hunks(entry: ChangeEntry) -> None:
    """Print every hunk of ``entry`` with its selection mark."""
    click.echo(f"\n📄 {entry.display_path}")
    for number, hunk in enumerate(entry.hunks, start=1):
        _render_hunk(number, hunk)


def parse_numbers(text: str) -> List[int]:
    """Parse ``"1 3,5-7"`` into zero based indexes.

    Raises
    ------
    ValueError
        If any token is not a positive number or range.
    """
    indexes: List[int] = []
    for token in text.replace(",", " ").split():
        low, sep, high = token.partition("-")
        start = int(low)
        stop = int(high) if sep else start
        if start < 1 or stop < start:
            raise ValueError(f"invalid selection {token!r}")
        indexes.extend(range(start - 1, stop))
    return indexes


def _browse(selector: Selector, command: str) -> None:
    if command in ("c", "confirm"):
        if not selector.confirm():
            print_warning("Nothing selected; select at least one change or quit with 'q'")
    elif command in ("q", "quit"):
        selector.cancel()
    elif command in ("a", "all"):
        selector.select_all()
    elif command in ("n", "none"):
        selector.select_none()
    elif command.startswith("h"):
        indexes = parse_numbers(command[1:])
        if len(indexes) != 1:
            raise ValueError("usage: h <number>")
        selector.review_hunks(indexes[0])
    else:
        for index in parse_numbers(command):
            selector.toggle_entry(index)


def _review_hunks(selector: Selector, command: str) -> None:
    if command in ("b", "back"):
        selector.back()
    elif command in ("q", "quit"):
        selector.cancel()
    elif command in ("a", "all"):
        selector.select_all()
    elif command in ("n", "none"):
        selector.select_none()
    else:
        for index in parse_numbers(command):
            selector.toggle_hunk(index)


def review_changes(
    selector: Selector,
    classifications: Sequence[Classification],
    prompt: Optional[Callable[..., str]] = None,
) -> SelectorState:
    """Drive ``selector`` from terminal input until it is confirmed or cancelled.

    Parameters
    ----------
    selector : Selector
        A selector in the ``BROWSING`` state.
    classifications : Sequence[Classification]
        Shown next to each entry.
    prompt : callable, optional
        Replacement for :func:`click.prompt`, mainly for tests.

    Returns
    -------
    SelectorState
        ``CONFIRMED`` or ``CANCELLED``.
    """
    ask = prompt or click.prompt
    print_info(BROWSE_HELP)
    while not selector.finished:
        reviewing = selector.state is SelectorState.HUNK_REVIEW
        if reviewing:
            assert selector.current_entry is not None
            render_hunks(selector.current_entry)
            label, help_text = "   hunks", HUNK_HELP
        else:
            render_entries(selector, classifications)
            label, help_text = "   select", BROWSE_HELP
        try:
            command = ask(label, default="", show_default=False).strip().lower()
        except click.Abort:
            click.echo("")
            selector.cancel()
            break
        if not command:
            print_info(help_text)
            continue
        try:
            if reviewing:
                _review_hunks(selector, command)
            else:
                _browse(selector, command)
        except (InvalidTransitionError, ValueError) as exc:
            print_warning(str(exc))
    logger.debug("Selection finished in state %s", selector.state.value)
    return selector.state
