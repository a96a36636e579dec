"""
Git client implementation for qit.

This module wraps the Git plumbing commands the review workflow needs.
Every command runs through a :class:`~qit.vcs.gateway.ProcessGateway` so
unit tests can substitute a fake gateway. Diff commands pin the output
format (prefixes, colour, external drivers) so that user configuration
cannot change what the parser sees.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from qit.errors import IndexSnapshotError, ProcessError
from qit.vcs.gateway import CancellationToken, ProcessGateway, ProcessResult


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs will propagate to the root when configured by the CLI.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# Id of the tree with no entries; diffs against it list every file as added.
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

GLOBAL_OPTIONS = ["-c", "core.quotePath=false", "--literal-pathspecs"]
DIFF_FORMAT = [
    "--no-color",
    "--no-ext-diff",
    "--no-textconv",
    "--src-prefix=a/",
    "--dst-prefix=b/",
    "-U3",
]

# Written next to the index file.
BACKUP_SUFFIX = ".qit-backup"
RESTORE_SUFFIX = ".qit-restore"


@dataclass(frozen=True)
class IndexSnapshot:
    """Saved state of the index.

    ``backup`` is ``None`` when no index file existed, as in a fresh
    repository where nothing was ever staged.
    """

    tree: str
    index: Path
    backup: Optional[Path]


class GitClient:
    """Client for interacting with a Git repository."""

    def __init__(
        self,
        repo_root: Path,
        gateway: Optional[ProcessGateway] = None,
        executable: str = "git",
    ) -> None:
        self.repo_root = repo_root
        self.gateway = gateway or ProcessGateway()
        self.executable = executable

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def find_repo_root(
        start: Path,
        gateway: Optional[ProcessGateway] = None,
        executable: str = "git",
    ) -> Optional[Path]:
        """Return the top-level directory of the repository containing ``start``.

        Returns ``None`` when ``start`` is not inside a work tree.
        """
        gateway = gateway or ProcessGateway()
        try:
            result = gateway.run(executable, ["rev-parse", "--show-toplevel"], cwd=start)
        except ProcessError as exc:
            logger.debug("Not a git work tree: %s (%s)", start, exc.stderr.strip())
            return None
        top = result.stdout.strip()
        return Path(top) if top else None

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(
        self,
        args: Sequence[str],
        input: Optional[str] = None,
        ok_codes: Tuple[int, ...] = (0,),
        cancel: Optional[CancellationToken] = None,
    ) -> ProcessResult:
        """Run a Git command in the repository root.

        Raises
        ------
        ProcessError
            If the command exits with a code not in ``ok_codes``.
        """
        return self.gateway.run(
            self.executable,
            [*GLOBAL_OPTIONS, *args],
            cwd=self.repo_root,
            input=input,
            ok_codes=ok_codes,
            cancel=cancel,
        )

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------
    def head_commit(self, cancel: Optional[CancellationToken] = None) -> Optional[str]:
        """Return the id of ``HEAD`` or ``None`` on an unborn branch."""
        result = self._run(
            ["rev-parse", "--verify", "--quiet", "HEAD^{commit}"],
            ok_codes=(0, 1),
            cancel=cancel,
        )
        if result.exit_code != 0:
            return None
        return result.stdout.strip() or None

    def diff_name_status(
        self,
        base: str,
        cached: bool = False,
        detect_renames: bool = True,
        cancel: Optional[CancellationToken] = None,
    ) -> str:
        """Return ``git diff --name-status -z`` output against ``base``."""
        args = ["diff", *self._diff_scope(base, cached, detect_renames), "--name-status", "-z", "--"]
        return self._run(args, cancel=cancel).stdout

    def diff_patch(
        self,
        base: str,
        cached: bool = False,
        detect_renames: bool = True,
        cancel: Optional[CancellationToken] = None,
    ) -> str:
        """Return the unified diff of the work tree (or index) against ``base``."""
        args = ["diff", *self._diff_scope(base, cached, detect_renames), *DIFF_FORMAT, "--"]
        return self._run(args, cancel=cancel).stdout

    def untracked_files(self, cancel: Optional[CancellationToken] = None) -> List[str]:
        """Return untracked, non-ignored paths relative to the repository root."""
        result = self._run(["ls-files", "--others", "--exclude-standard", "-z"], cancel=cancel)
        return [path for path in result.stdout.split("\0") if path]

    def untracked_patch(self, path: str, cancel: Optional[CancellationToken] = None) -> str:
        """Return a new-file diff for an untracked ``path``.

        ``git diff --no-index`` exits with 1 when the inputs differ, which
        is always the case here.
        """
        args = ["diff", "--no-index", *DIFF_FORMAT, "--", "/dev/null", path]
        return self._run(args, ok_codes=(0, 1), cancel=cancel).stdout

    def has_pending_changes(self) -> bool:
        """Return True if the work tree or index has any change, untracked included."""
        result = self._run(["status", "--porcelain", "--untracked-files=normal"])
        return bool(result.stdout.strip())

    # ------------------------------------------------------------------
    # Index snapshot and staging
    # ------------------------------------------------------------------
    def index_file(self) -> Path:
        """Return the path of the index file, honouring ``GIT_INDEX_FILE``."""
        path = Path(self._run(["rev-parse", "--git-path", "index"]).stdout.strip())
        return path if path.is_absolute() else self.repo_root / path

    def snapshot_index(self) -> IndexSnapshot:
        """Copy the index file aside and record it as a tree.

        The copy keeps what a tree cannot hold: intent-to-add entries and
        the skip-worktree and assume-unchanged bits. The tree id is only
        used in recovery hints. The copy must precede ``write-tree``, which
        rewrites the cache-tree extension.

        Raises
        ------
        IndexSnapshotError
            If the index file cannot be copied.
        """
        index = self.index_file()
        backup: Optional[Path] = None
        if index.exists():
            backup = index.with_name(index.name + BACKUP_SUFFIX)
            try:
                shutil.copy2(index, backup)
            except OSError as exc:
                raise IndexSnapshotError(f"cannot copy {index} to {backup}: {exc}") from exc
        tree = self._run(["write-tree"]).stdout.strip()
        return IndexSnapshot(tree=tree, index=index, backup=backup)

    def restore_index(self, snapshot: IndexSnapshot) -> None:
        """Put the index file back exactly as :meth:`snapshot_index` found it.

        Raises
        ------
        IndexSnapshotError
            If the index file cannot be written.
        """
        try:
            if snapshot.backup is None:
                snapshot.index.unlink(missing_ok=True)
                return
            staging = snapshot.index.with_name(snapshot.index.name + RESTORE_SUFFIX)
            shutil.copy2(snapshot.backup, staging)
            os.replace(staging, snapshot.index)
        except OSError as exc:
            raise IndexSnapshotError(f"cannot restore {snapshot.index}: {exc}") from exc

    def discard_snapshot(self, snapshot: IndexSnapshot) -> None:
        """Delete the copy made by :meth:`snapshot_index`."""
        if snapshot.backup is None:
            return
        try:
            snapshot.backup.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove index backup %s: %s", snapshot.backup, exc)

    def read_tree(self, tree: Optional[str]) -> None:
        """Replace the index with ``tree``; ``None`` empties it."""
        if tree is None or tree == EMPTY_TREE:
            self._run(["read-tree", "--empty"])
        else:
            self._run(["read-tree", tree])

    def stage_paths(self, paths: Sequence[str]) -> None:
        """Stage additions, modifications and deletions of ``paths``."""
        if paths:
            self._run(["add", "-A", "--", *paths])

    def apply_cached(self, patch: str) -> None:
        """Apply ``patch`` to the index only."""
        self._run(["apply", "--cached", "--recount", "--whitespace=nowarn", "-"], input=patch)

    # ------------------------------------------------------------------
    # Committing and history
    # ------------------------------------------------------------------
    def commit(self, message: str) -> None:
        """Commit the index with ``message`` supplied on stdin."""
        self._run(["commit", "--quiet", "--file=-"], input=message)

    def push(self, force: bool = False) -> None:
        """Push the current branch; output goes to the terminal."""
        args = ["push", "--force"] if force else ["push"]
        self.gateway.run_interactive(self.executable, args, cwd=self.repo_root)

    def undo_last_commit(self) -> None:
        """Move ``HEAD`` back one commit, keeping its changes staged."""
        self._run(["reset", "--soft", "HEAD~1"])

    def log(self, short: bool = False) -> None:
        """Show the history in the user's pager."""
        args = ["log", "--oneline"] if short else ["log"]
        self.gateway.run_interactive(self.executable, args, cwd=self.repo_root)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _diff_scope(base: str, cached: bool, detect_renames: bool) -> List[str]:
        args = ["--cached", base] if cached else [base]
        args += ["-M", "-C"] if detect_renames else ["--no-renames"]
        return args
