"""
Stage and commit as one recoverable transaction.

:class:`CommitOrchestrator` is the only part of the review workflow that
changes repository state. The steps run strictly in order:

1. copy the index file aside and remember ``HEAD``
2. reset the index to the plan's base and stage exactly the selection
3. re-read the index and compare it with the plan
4. ``git commit`` with the composed message
5. read the new ``HEAD``

A failure in steps 2-4 copies the saved index file back before the error is
raised, so the index ends up byte for byte as it was found, intent-to-add
entries and skip-worktree bits included. The work tree is never written.
When the outcome cannot be determined, :class:`AmbiguousOutcomeError` is
raised and nothing else is attempted.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from qit.changes.model import ChangeEntry, ChangeKind
from qit.changes.scanner import parse_name_status
from qit.commit.plan import CommitPlan, CommitResult
from qit.diff.diff_parser import DiffParseError, FileDiff, build_patch, parse_unified_diff
from qit.errors import (
    AmbiguousOutcomeError,
    CommitFailedError,
    ProcessError,
    ProcessTimeoutError,
    QitError,
    StagingDivergedError,
)
from qit.vcs.git_client import GitClient, IndexSnapshot


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# Kinds whose staged hunks can be compared line by line with the plan.
COMPARABLE_KINDS = (ChangeKind.ADDED, ChangeKind.MODIFIED, ChangeKind.DELETED)


class CommitOrchestrator:
    """Apply a :class:`CommitPlan` to the repository."""

    def __init__(self, client: GitClient) -> None:
        self.client = client

    def commit(self, plan: CommitPlan) -> CommitResult:
        """Stage and commit ``plan``.

        Returns
        -------
        CommitResult
            Id and subject of the new commit.

        Raises
        ------
        ProcessError, ProcessTimeoutError, IndexSnapshotError
            If the snapshot cannot be taken; nothing has been changed yet.
        StagingDivergedError
            If the selection could not be staged as planned. The index was
            restored.
        CommitFailedError
            If ``git commit`` failed. The index was restored.
        AmbiguousOutcomeError
            If the result is unknown or the index could not be restored.
        """
        snapshot = self.client.snapshot_index()
        keep_backup = False
        try:
            return self._transaction(plan, snapshot)
        except AmbiguousOutcomeError as exc:
            # After a failed restore the backup is the only copy of the old index.
            keep_backup = exc.snapshot is not None
            raise
        finally:
            if not keep_backup:
                self.client.discard_snapshot(snapshot)

    def _transaction(self, plan: CommitPlan, snapshot: IndexSnapshot) -> CommitResult:
        head_before = self.client.head_commit()
        logger.debug("Index snapshot %s (tree %s), HEAD %s", snapshot.backup, snapshot.tree, head_before)

        try:
            self._stage(plan)
        except QitError as exc:
            self._rollback(snapshot)
            raise StagingDivergedError(f"could not stage the selection: {exc}", cause=exc) from exc

        try:
            problems = self._verify(plan)
        except (QitError, DiffParseError) as exc:
            self._rollback(snapshot)
            raise StagingDivergedError(f"could not verify the staged changes: {exc}", cause=exc) from exc
        if problems:
            self._rollback(snapshot)
            raise StagingDivergedError(
                "the work tree changed since it was scanned: " + "; ".join(problems)
            )

        try:
            self.client.commit(plan.message.render())
        except ProcessTimeoutError as exc:
            if self._head_moved(head_before):
                raise AmbiguousOutcomeError(
                    "git commit timed out after HEAD moved; the commit may exist",
                    cause=exc,
                ) from exc
            self._rollback(snapshot)
            raise CommitFailedError(f"git commit timed out: {exc}", cause=exc) from exc
        except ProcessError as exc:
            self._rollback(snapshot)
            detail = exc.stderr.strip() or str(exc)
            raise CommitFailedError(f"git commit failed: {detail}", cause=exc) from exc

        try:
            head_after = self.client.head_commit()
        except QitError as exc:
            raise AmbiguousOutcomeError(
                "git commit finished but the new HEAD could not be read", cause=exc
            ) from exc
        if head_after is None or head_after == head_before:
            raise AmbiguousOutcomeError("git commit reported success but HEAD did not move")

        logger.info("Created commit %s", head_after)
        return CommitResult(hash=head_after, subject=plan.message.subject)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def _stage(self, plan: CommitPlan) -> None:
        self.client.read_tree(plan.base)
        whole: List[str] = []
        partial: List[ChangeEntry] = []
        for entry in plan.selected_entries:
            if entry.fully_selected:
                whole.extend(sorted(entry.touched_paths()))
            elif entry.partially_selected:
                partial.append(entry)
        self.client.stage_paths(whole)
        for entry in partial:
            logger.debug(
                "Staging %d of %d hunk(s) of %s",
                len(entry.selected_hunks()),
                len(entry.hunks),
                entry.path,
            )
            self.client.apply_cached(build_patch(list(entry.header), entry.selected_hunks()))

    def _verify(self, plan: CommitPlan) -> List[str]:
        """Return a description of every difference between index and plan."""
        records = parse_name_status(
            self.client.diff_name_status(plan.base, cached=True, detect_renames=False)
        )
        staged_paths = {record.path for record in records}
        # Type changes are staged whole and print two diff sections.
        type_changed = {record.path for record in records if record.type_changed}
        expected = plan.touched_paths()

        problems: List[str] = []
        for path in sorted(expected - staged_paths):
            problems.append(f"{path} was not staged")
        for path in sorted(staged_paths - expected):
            problems.append(f"{path} was staged unexpectedly")

        staged: Dict[str, FileDiff] = {
            fd.path: fd
            for fd in parse_unified_diff(
                self.client.diff_patch(plan.base, cached=True, detect_renames=False)
            )
        }
        for entry in plan.selected_entries:
            fd = staged.get(entry.path)
            if entry.kind not in COMPARABLE_KINDS or fd is None or entry.path in type_changed:
                continue
            wanted = [line for hunk in entry.selected_hunks() for line in hunk.changed_lines()]
            actual = [line for hunk in fd.hunks for line in hunk.changed_lines()]
            if wanted != actual:
                problems.append(f"{entry.path} has different content than reviewed")
        return problems

    def _rollback(self, snapshot: IndexSnapshot) -> None:
        """Put the saved index file back in place."""
        logger.debug("Restoring index from %s", snapshot.backup)
        try:
            self.client.restore_index(snapshot)
        except QitError as exc:
            logger.error("Failed to restore the index: %s", exc)
            if snapshot.backup is not None:
                hint = f"copy {snapshot.backup} to {snapshot.index} to recover it"
            else:
                hint = f"run 'git read-tree {snapshot.tree}' to recover it"
            raise AmbiguousOutcomeError(
                f"the index could not be restored; {hint}",
                cause=exc,
                snapshot=snapshot,
            ) from exc

    def _head_moved(self, head_before: Optional[str]) -> bool:
        try:
            return self.client.head_commit() != head_before
        except QitError:
            return True
