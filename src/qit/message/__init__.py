"""
Commit message composition.

See :mod:`qit.message.composer` for the message format, the emoji table and
the rules that pick the commit type and scope.
"""

from .composer import EMOJIS, CommitMessage, aggregate_type, compose, derive_scope, normalize_type  # noqa: F401
