"""
Data models for a reviewed change set.

A :class:`ChangeSet` is built fresh by the scanner on every run and is
never persisted. Only the selector mutates it, and only through the
``selected`` flags of entries and hunks.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple


class ChangeKind(str, Enum):
    """How a path differs from the base revision."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    COPIED = "copied"
    BINARY = "binary"


@dataclass
class Hunk:
    """A contiguous block of changed lines within one file's diff.

    Attributes
    ----------
    old_start : int
        First line of the hunk in the base version.
    old_count : int
        Number of base lines covered by the hunk.
    start_line : int
        First line of the hunk in the new version.
    line_count : int
        Number of new lines covered by the hunk.
    diff_text : str
        The ``@@`` header followed by the hunk body, newline terminated.
    selected : bool
        Whether the hunk is part of the commit being prepared.
    """

    old_start: int
    old_count: int
    start_line: int
    line_count: int
    diff_text: str
    selected: bool = False

    def body_lines(self) -> List[str]:
        return self.diff_text.split("\n")[1:-1]

    def changed_lines(self) -> List[str]:
        """Return the added and removed lines of the hunk, in order."""
        return [line for line in self.body_lines() if line[:1] in ("+", "-")]


@dataclass
class ChangeEntry:
    """A single changed path.

    ``old_path`` is set exactly when ``kind`` is renamed or copied. For
    entries with hunks, ``selected`` mirrors whether any hunk is selected;
    entries without hunks (binary files, pure renames, empty files) are
    selected as a whole.
    """

    path: str
    kind: ChangeKind
    old_path: Optional[str] = None
    hunks: List[Hunk] = field(default_factory=list)
    selected: bool = False
    header: Tuple[str, ...] = ()
    untracked: bool = False

    def __post_init__(self) -> None:
        needs_old_path = self.kind in (ChangeKind.RENAMED, ChangeKind.COPIED)
        if needs_old_path != (self.old_path is not None):
            raise ValueError(
                f"{self.path}: old_path must be set exactly for renamed or copied entries"
            )

    @property
    def fully_selected(self) -> bool:
        if not self.hunks:
            return self.selected
        return all(h.selected for h in self.hunks)

    @property
    def partially_selected(self) -> bool:
        return any(h.selected for h in self.hunks) and not self.fully_selected

    def selected_hunks(self) -> List[Hunk]:
        return [h for h in self.hunks if h.selected]

    def set_selected(self, value: bool) -> None:
        """Select or clear the whole entry."""
        for hunk in self.hunks:
            hunk.selected = value
        self.selected = value

    def sync_selected(self) -> None:
        """Recompute ``selected`` from the hunks."""
        if self.hunks:
            self.selected = any(h.selected for h in self.hunks)

    def touched_paths(self) -> Set[str]:
        """Paths whose index entries change when this entry is staged.

        The source of a copy stays untouched, the source of a rename is
        removed.
        """
        paths = {self.path}
        if self.kind is ChangeKind.RENAMED and self.old_path is not None:
            paths.add(self.old_path)
        return paths

    @property
    def display_path(self) -> str:
        if self.old_path is not None:
            return f"{self.old_path} -> {self.path}"
        return self.path


@dataclass
class ChangeSet:
    """Ordered collection of changes relative to ``base``.

    ``created_at`` is ignored by equality so two scans of an unchanged
    repository compare equal.
    """

    entries: List[ChangeEntry]
    base: str
    created_at: float = field(default_factory=time.time, compare=False)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __getitem__(self, index: int) -> ChangeEntry:
        return self.entries[index]

    def selected_entries(self) -> List[ChangeEntry]:
        return [entry for entry in self.entries if entry.selected]

    def selected_unit_count(self) -> int:
        """Number of selected hunks, counting hunkless entries as one unit."""
        count = 0
        for entry in self.entries:
            if entry.hunks:
                count += len(entry.selected_hunks())
            elif entry.selected:
                count += 1
        return count
