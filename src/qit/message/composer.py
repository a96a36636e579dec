"""
Commit message composition.

The composer turns the confirmed selection, its classifications and the
text typed by the user into a :class:`CommitMessage`. The summary is always
the user's own words: an empty summary is an error, never something to be
made up. Messages follow the format::

    <emoji> <type>[(<scope>)]: <summary>

    <body>

Emojis follow https://gitmoji.dev/ and are left out entirely when disabled
in the configuration.
"""

from __future__ import annotations

import logging
import posixpath
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from qit.changes.model import ChangeEntry
from qit.config.loader import QitConfig
from qit.errors import EmptyMessageError, MessageError
from qit.grouping.change_classifier import Classification, CommitType


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


EMOJIS: Dict[CommitType, str] = {
    CommitType.FEAT: "✨",
    CommitType.FIX: "🐛",
    CommitType.DOCS: "📝",
    CommitType.REFACTOR: "♻️",
    CommitType.TEST: "✅",
    CommitType.CHORE: "🚧",
    CommitType.STYLE: "🎨",
    CommitType.PERF: "⚡️",
    CommitType.BUILD: "📦",
}

# Highest priority first; breaks ties of the plurality vote.
PRIORITY: List[CommitType] = [
    CommitType.FEAT,
    CommitType.FIX,
    CommitType.REFACTOR,
    CommitType.PERF,
    CommitType.DOCS,
    CommitType.TEST,
    CommitType.BUILD,
    CommitType.STYLE,
    CommitType.CHORE,
]

# Type names of earlier qit releases.
TYPE_ALIASES: Dict[str, CommitType] = {
    "feature": CommitType.FEAT,
    "doc": CommitType.DOCS,
    "deps": CommitType.BUILD,
    "deploy": CommitType.BUILD,
}

# Aliases that keep the emoji they had before being folded into a type.
ALIAS_EMOJIS: Dict[str, str] = {
    "deploy": "🚀",
}


@dataclass(frozen=True)
class CommitMessage:
    """A structured commit message."""

    type: CommitType
    summary: str
    emoji: Optional[str] = None
    scope: Optional[str] = None
    body: Optional[str] = None

    @property
    def subject(self) -> str:
        head = f"{self.type.value}({self.scope})" if self.scope else self.type.value
        subject = f"{head}: {self.summary}"
        return f"{self.emoji} {subject}" if self.emoji else subject

    def render(self) -> str:
        """Return the full message text handed to ``git commit``."""
        if self.body:
            return f"{self.subject}\n\n{self.body}\n"
        return f"{self.subject}\n"


def normalize_type(name: str) -> CommitType:
    """Map a user supplied type name (aliases included) to a :class:`CommitType`."""
    key = name.strip().lower()
    if key in TYPE_ALIASES:
        return TYPE_ALIASES[key]
    try:
        return CommitType(key)
    except ValueError:
        raise MessageError(f"unknown commit type {name!r}") from None


def alias_emoji(name: str) -> Optional[str]:
    """Return the emoji an alias keeps, or ``None`` to use its type's emoji."""
    return ALIAS_EMOJIS.get(name.strip().lower())


def aggregate_type(classifications: Iterable[Classification]) -> CommitType:
    """Plurality vote over ``classifications``, ties broken by :data:`PRIORITY`."""
    votes = Counter(c.commit_type for c in classifications)
    if not votes:
        return CommitType.CHORE
    best = max(votes.values())
    return next(t for t in PRIORITY if votes.get(t) == best)


def derive_scope(entries: Sequence[ChangeEntry]) -> Optional[str]:
    """Return the last component of the deepest directory shared by ``entries``.

    Files at the repository root or without a common directory yield no
    scope.
    """
    dirs = [posixpath.dirname(entry.path) for entry in entries]
    if not dirs or any(not d for d in dirs):
        return None
    common = posixpath.commonpath(dirs)
    return posixpath.basename(common) or None


def validate_summary(text: Optional[str], max_length: int) -> str:
    """Return the stripped summary or raise :class:`MessageError`."""
    summary = (text or "").strip()
    if not summary:
        raise EmptyMessageError("a commit summary is required")
    if "\n" in summary or "\r" in summary:
        raise MessageError("the commit summary must be a single line")
    if len(summary) > max_length:
        raise MessageError(
            f"the commit summary is {len(summary)} characters long; the limit is {max_length}"
        )
    return summary


def compose(
    selected_entries: Sequence[ChangeEntry],
    classifications: Iterable[Classification],
    user_summary: Optional[str],
    config: QitConfig,
    body: Optional[str] = None,
    type_override: Optional[CommitType] = None,
    scope_override: Optional[str] = None,
    emoji_override: Optional[str] = None,
) -> CommitMessage:
    """Build the commit message for a confirmed selection.

    Parameters
    ----------
    selected_entries : Sequence[ChangeEntry]
        Entries chosen in the selector.
    classifications : Iterable[Classification]
        Classifications of the whole change set; only those of selected
        entries take part in the vote.
    user_summary : str
        Summary line typed by the user.
    config : QitConfig
        Supplies the emoji switch and the summary length limit.
    body : str, optional
        Free text body.
    type_override, scope_override : optional
        Values chosen explicitly on the command line.
    emoji_override : str, optional
        Emoji to use instead of the type's own, see :func:`alias_emoji`.
        Ignored when emojis are disabled.

    Raises
    ------
    EmptyMessageError
        If ``user_summary`` is empty.
    MessageError
        If the summary spans several lines or is too long.
    """
    summary = validate_summary(user_summary, config.summary_max_length)

    chosen = {entry.path for entry in selected_entries}
    relevant = [c for c in classifications if c.entry.path in chosen]
    commit_type = type_override or aggregate_type(relevant)

    if scope_override is not None:
        scope = scope_override.strip() or None
    else:
        voters = [c.entry for c in relevant if c.commit_type is commit_type]
        scope = derive_scope(voters or list(selected_entries))

    emoji = None if config.emojis_disabled else emoji_override or EMOJIS[commit_type]
    message = CommitMessage(
        type=commit_type,
        summary=summary,
        emoji=emoji,
        scope=scope,
        body=(body or "").strip() or None,
    )
    logger.debug("Composed commit subject: %s", message.subject)
    return message
