"""
Commit plan and result models.

A :class:`CommitPlan` is the only object handed from the review steps to
the orchestrator. It owns deep copies of the selected entries, so toggling
flags in the selector after the plan has been built cannot change what gets
committed.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from typing import Iterable, Set, Tuple

from qit.changes.model import ChangeEntry
from qit.message.composer import CommitMessage


@dataclass(frozen=True)
class CommitPlan:
    """Immutable description of one commit.

    Attributes
    ----------
    selected_entries : Tuple[ChangeEntry, ...]
        Entries to commit with their hunk selection.
    message : CommitMessage
        The composed commit message.
    base : str
        Revision the entries' diffs are relative to.
    created_at : float
        Creation time of the plan.
    """

    selected_entries: Tuple[ChangeEntry, ...]
    message: CommitMessage
    base: str
    created_at: float = field(default_factory=time.time)

    @classmethod
    def build(cls, entries: Iterable[ChangeEntry], message: CommitMessage, base: str) -> "CommitPlan":
        selected = tuple(copy.deepcopy(entry) for entry in entries if entry.selected)
        if not selected:
            raise ValueError("a commit plan needs at least one selected entry")
        return cls(selected_entries=selected, message=message, base=base)

    def touched_paths(self) -> Set[str]:
        paths: Set[str] = set()
        for entry in self.selected_entries:
            paths |= entry.touched_paths()
        return paths


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a successful commit."""

    hash: str
    subject: str

    @property
    def short_hash(self) -> str:
        return self.hash[:7]
