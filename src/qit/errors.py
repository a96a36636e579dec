"""
Exception hierarchy for qit.

Every error raised on purpose by qit derives from :class:`QitError` so the
CLI can map it onto an exit code. Errors that originate from a ``git``
invocation carry the captured stderr so it can be shown to the user.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from qit.vcs.git_client import IndexSnapshot


class QitError(Exception):
    """Base class for all qit errors."""

    pass


# ---------------------------------------------------------------------------
# Process gateway
# ---------------------------------------------------------------------------
class ProcessError(QitError):
    """Raised when an external command exits with an unexpected status."""

    def __init__(self, argv: Sequence[str], exit_code: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.exit_code = exit_code
        self.stderr = stderr
        detail = stderr.strip() or f"exit code {exit_code}"
        super().__init__(f"{' '.join(self.argv)}: {detail}")


class ProcessTimeoutError(QitError):
    """Raised when an external command exceeds its timeout.

    The child process has already been killed and reaped when this is raised.
    """

    def __init__(self, argv: Sequence[str], timeout: float, stderr: str = "") -> None:
        self.argv = list(argv)
        self.timeout = timeout
        self.stderr = stderr
        super().__init__(f"{' '.join(self.argv)}: timed out after {timeout:g}s")


class OperationCancelledError(QitError):
    """Raised when a cancellation token fires during an external command."""

    pass


# ---------------------------------------------------------------------------
# Scanning, selection and message composition
# ---------------------------------------------------------------------------
class ScanError(QitError):
    """Raised when the repository state cannot be read or understood."""

    pass


class InvalidTransitionError(QitError):
    """Raised when the selector is asked for a transition its state forbids."""

    pass


class MessageError(QitError):
    """Raised when user supplied commit message text is unusable."""

    pass


class EmptyMessageError(MessageError):
    """Raised when no commit summary was supplied."""

    pass


# ---------------------------------------------------------------------------
# Commit orchestration
# ---------------------------------------------------------------------------
class OrchestrationError(QitError):
    """Base class for failures of the stage/commit transaction."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause

    @property
    def stderr(self) -> str:
        return getattr(self.cause, "stderr", "") or ""


class IndexSnapshotError(QitError):
    """Raised when the index file cannot be saved or put back."""

    pass


class StagingDivergedError(OrchestrationError):
    """The staged state did not match the plan; the index was restored."""

    pass


class CommitFailedError(OrchestrationError):
    """``git commit`` rejected the commit; the index was restored."""

    pass


class AmbiguousOutcomeError(OrchestrationError):
    """The outcome of the transaction is unknown and must be verified by hand.

    ``snapshot`` is set when the saved index could not be put back; its
    backup file is left in place.
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        snapshot: Optional[IndexSnapshot] = None,
    ) -> None:
        super().__init__(message, cause)
        self.snapshot = snapshot
