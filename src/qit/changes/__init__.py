"""
Change set model and scanning.

:mod:`qit.changes.model` holds the data structures passed through the
review pipeline; :mod:`qit.changes.scanner` builds them from the output of
``git diff``.
"""

from .model import ChangeEntry, ChangeKind, ChangeSet, Hunk  # noqa: F401
