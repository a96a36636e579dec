"""
Change discovery for qit.

:class:`ChangeScanner` asks Git for a machine readable listing of every
path that differs from ``HEAD`` together with the corresponding patch, and
combines both into a :class:`~qit.changes.model.ChangeSet`. Untracked files
are included as additions. The scanner only reads; it never touches the
index or the work tree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from qit.changes.model import ChangeEntry, ChangeKind, ChangeSet
from qit.diff.diff_parser import DiffParseError, FileDiff, parse_unified_diff
from qit.errors import ProcessError, ScanError
from qit.vcs.gateway import CancellationToken
from qit.vcs.git_client import EMPTY_TREE, GitClient


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


STATUS_KINDS = {
    "A": ChangeKind.ADDED,
    "M": ChangeKind.MODIFIED,
    "T": ChangeKind.MODIFIED,
    "D": ChangeKind.DELETED,
    "R": ChangeKind.RENAMED,
    "C": ChangeKind.COPIED,
}


@dataclass(frozen=True)
class StatusRecord:
    """One record of ``git diff --name-status -z`` output."""

    kind: ChangeKind
    path: str
    old_path: Optional[str] = None
    type_changed: bool = False


def parse_name_status(text: str) -> List[StatusRecord]:
    """Parse NUL separated ``--name-status`` output.

    Raises
    ------
    ScanError
        On unmerged paths or any record shape that is not understood.
    """
    fields = text.split("\0")
    if fields and fields[-1] == "":
        fields.pop()

    records: List[StatusRecord] = []
    i = 0
    while i < len(fields):
        status = fields[i]
        letter = status[:1]
        try:
            if letter in ("R", "C"):
                records.append(
                    StatusRecord(STATUS_KINDS[letter], path=fields[i + 2], old_path=fields[i + 1])
                )
                i += 3
            elif letter in STATUS_KINDS:
                records.append(
                    StatusRecord(
                        STATUS_KINDS[letter], path=fields[i + 1], type_changed=letter == "T"
                    )
                )
                i += 2
            elif letter == "U":
                raise ScanError(f"unmerged path {fields[i + 1]!r}; resolve conflicts first")
            else:
                raise ScanError(f"unrecognized status record {status!r}")
        except IndexError:
            raise ScanError(f"truncated status record {status!r}") from None
    return records


class ChangeScanner:
    """Build change sets from the state of a Git work tree."""

    def __init__(self, client: GitClient) -> None:
        self.client = client

    def scan(self, cancel: Optional[CancellationToken] = None) -> ChangeSet:
        """Return every pending change relative to ``HEAD``.

        Raises
        ------
        ScanError
            If the repository cannot be read or Git prints something the
            parsers do not recognize.
        """
        try:
            head = self.client.head_commit(cancel=cancel)
            base = head or EMPTY_TREE
            records = parse_name_status(self.client.diff_name_status(base, cancel=cancel))
            diffs = parse_unified_diff(self.client.diff_patch(base, cancel=cancel))
            entries = self._combine(records, diffs)
            for path in self.client.untracked_files(cancel=cancel):
                if path.endswith("/"):
                    # Nested repositories are listed as directories.
                    logger.warning("Skipping untracked nested repository: %s", path)
                    continue
                entries.append(self._untracked_entry(path, cancel))
        except DiffParseError as exc:
            raise ScanError(f"unrecognized diff output: {exc}") from exc
        except ProcessError as exc:
            raise ScanError(f"cannot read repository state: {exc}") from exc

        entries.sort(key=lambda entry: entry.path)
        logger.debug("Scanned %d change(s) against %s", len(entries), base)
        return ChangeSet(entries=entries, base=base)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _combine(records: List[StatusRecord], diffs: List[FileDiff]) -> List[ChangeEntry]:
        by_path: Dict[str, List[FileDiff]] = {}
        for fd in diffs:
            by_path.setdefault(fd.path, []).append(fd)

        entries: List[ChangeEntry] = []
        for record in records:
            sections = by_path.pop(record.path, None)
            if sections is None:
                raise ScanError(f"no diff found for listed path {record.path!r}")
            if record.type_changed:
                entries.append(_type_change_entry(record.path, sections))
                continue
            if len(sections) > 1:
                raise ScanError(f"duplicate diff section for {record.path!r}")
            fd = sections[0]
            kind = record.kind
            if fd.binary and kind in (ChangeKind.ADDED, ChangeKind.MODIFIED):
                kind = ChangeKind.BINARY
            entries.append(
                ChangeEntry(
                    path=record.path,
                    kind=kind,
                    old_path=record.old_path,
                    hunks=fd.hunks,
                    header=tuple(fd.header),
                )
            )
        if by_path:
            raise ScanError(f"diff sections without status records: {sorted(by_path)}")
        return entries

    def _untracked_entry(self, path: str, cancel: Optional[CancellationToken]) -> ChangeEntry:
        diffs = parse_unified_diff(self.client.untracked_patch(path, cancel=cancel))
        if len(diffs) != 1:
            raise ScanError(f"expected one diff section for untracked {path!r}, got {len(diffs)}")
        fd = diffs[0]
        return ChangeEntry(
            path=path,
            kind=ChangeKind.BINARY if fd.binary else ChangeKind.ADDED,
            hunks=fd.hunks,
            header=tuple(fd.header),
            untracked=True,
        )


def _type_change_entry(path: str, sections: List[FileDiff]) -> ChangeEntry:
    """Fold the sections of a file that became a symlink (or back) into one entry.

    Git prints such a change as a deletion followed by an addition. The
    entry has no hunks, so it can only be selected and staged as a whole.
    """
    if len(sections) > 2:
        raise ScanError(f"expected at most two diff sections for type change of {path!r}")
    header: List[str] = []
    for fd in sections:
        header.extend(fd.header)
    return ChangeEntry(path=path, kind=ChangeKind.MODIFIED, header=tuple(header))
