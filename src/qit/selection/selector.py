"""
Selection state machine.

The :class:`Selector` models the interactive review as an explicit finite
state machine so that confirmation and cancellation are total, testable
transitions independent of how the screen is drawn::

    BROWSING --review_hunks(i)--> HUNK_REVIEW --back()--> BROWSING
    BROWSING --confirm()--------> CONFIRMED   (needs a selected hunk)
    BROWSING | HUNK_REVIEW --cancel()--> CANCELLED

``CONFIRMED`` and ``CANCELLED`` are terminal. The selector mutates only the
``selected`` flags of the change set it was given.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from qit.changes.model import ChangeEntry, ChangeSet
from qit.errors import InvalidTransitionError


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


class SelectorState(str, Enum):
    BROWSING = "browsing"
    HUNK_REVIEW = "hunk_review"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Selector:
    """Interactive selection over one :class:`ChangeSet`."""

    def __init__(self, change_set: ChangeSet) -> None:
        self.change_set = change_set
        self.state = SelectorState.BROWSING
        self._entry_index: Optional[int] = None

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------
    @property
    def current_entry(self) -> Optional[ChangeEntry]:
        """Entry under review while in ``HUNK_REVIEW``."""
        if self._entry_index is None:
            return None
        return self.change_set[self._entry_index]

    @property
    def finished(self) -> bool:
        return self.state in (SelectorState.CONFIRMED, SelectorState.CANCELLED)

    def _require(self, *states: SelectorState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidTransitionError(f"not allowed in state {self.state.value} (needs {allowed})")

    def _entry(self, index: int) -> ChangeEntry:
        if not 0 <= index < len(self.change_set):
            raise InvalidTransitionError(f"no entry number {index + 1}")
        return self.change_set[index]

    # ------------------------------------------------------------------
    # Browsing
    # ------------------------------------------------------------------
    def toggle_entry(self, index: int) -> None:
        """Select the whole entry, or clear it if it is already fully selected."""
        self._require(SelectorState.BROWSING)
        entry = self._entry(index)
        entry.set_selected(not entry.fully_selected)

    def select_all(self) -> None:
        """Select everything, or every hunk of the entry under review."""
        self._require(SelectorState.BROWSING, SelectorState.HUNK_REVIEW)
        for entry in self._scope():
            entry.set_selected(True)

    def select_none(self) -> None:
        self._require(SelectorState.BROWSING, SelectorState.HUNK_REVIEW)
        for entry in self._scope():
            entry.set_selected(False)

    def review_hunks(self, index: int) -> None:
        self._require(SelectorState.BROWSING)
        entry = self._entry(index)
        if not entry.hunks:
            raise InvalidTransitionError(f"{entry.path} has no hunks to review")
        self._entry_index = index
        self.state = SelectorState.HUNK_REVIEW

    def confirm(self) -> bool:
        """Finish the selection.

        Returns ``False`` and stays in ``BROWSING`` when nothing is selected.
        """
        self._require(SelectorState.BROWSING)
        if self.change_set.selected_unit_count() == 0:
            logger.debug("Confirmation rejected: nothing selected")
            return False
        self.state = SelectorState.CONFIRMED
        return True

    def cancel(self) -> None:
        """Abandon the selection; always allowed before a terminal state."""
        self._require(SelectorState.BROWSING, SelectorState.HUNK_REVIEW)
        self._entry_index = None
        self.state = SelectorState.CANCELLED

    # ------------------------------------------------------------------
    # Hunk review
    # ------------------------------------------------------------------
    def toggle_hunk(self, index: int) -> None:
        self._require(SelectorState.HUNK_REVIEW)
        entry = self.current_entry
        assert entry is not None
        if not 0 <= index < len(entry.hunks):
            raise InvalidTransitionError(f"no hunk number {index + 1}")
        hunk = entry.hunks[index]
        hunk.selected = not hunk.selected
        entry.sync_selected()

    def back(self) -> None:
        self._require(SelectorState.HUNK_REVIEW)
        self._entry_index = None
        self.state = SelectorState.BROWSING

    # ------------------------------------------------------------------
    # Result
    # ------------------------------------------------------------------
    def selected_entries(self) -> List[ChangeEntry]:
        """Return the confirmed selection (never empty)."""
        self._require(SelectorState.CONFIRMED)
        return self.change_set.selected_entries()

    def _scope(self) -> List[ChangeEntry]:
        if self.state is SelectorState.HUNK_REVIEW:
            entry = self.current_entry
            return [entry] if entry is not None else []
        return list(self.change_set)
