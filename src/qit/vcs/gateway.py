"""
Process gateway for qit.

All external commands go through :class:`ProcessGateway`. It offers a
blocking interface with a bounded timeout per invocation and guarantees that
a child which times out or is cancelled is killed and reaped before the
error reaches the caller. Output is decoded with ``surrogateescape`` so that
diffs can be fed back to ``git apply`` byte for byte.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple, Union

from qit.errors import OperationCancelledError, ProcessError, ProcessTimeoutError


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs will propagate to the root when configured by the CLI.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


ENCODING = "utf-8"
ERRORS = "surrogateescape"
# How often a running child is checked for cancellation.
POLL_INTERVAL = 0.1


class CancellationToken:
    """Caller owned flag that aborts a pending :meth:`ProcessGateway.run`."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class ProcessResult:
    """Captured outcome of a finished command."""

    argv: Tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str


class ProcessGateway:
    """Run external commands synchronously with timeouts.

    Parameters
    ----------
    default_timeout : float
        Timeout in seconds used when a call does not pass its own.
    """

    def __init__(self, default_timeout: float = 30.0) -> None:
        self.default_timeout = default_timeout

    # ------------------------------------------------------------------
    # Captured execution
    # ------------------------------------------------------------------
    def run(
        self,
        command: str,
        args: Sequence[str],
        timeout: Optional[float] = None,
        cwd: Optional[Union[str, Path]] = None,
        input: Optional[str] = None,
        ok_codes: Iterable[int] = (0,),
        cancel: Optional[CancellationToken] = None,
    ) -> ProcessResult:
        """Run ``command`` with ``args`` and capture its output.

        Parameters
        ----------
        command : str
            Executable to run.
        args : Sequence[str]
            Arguments passed to the executable.
        timeout : float, optional
            Seconds before the child is killed. Defaults to
            :attr:`default_timeout`.
        cwd : str or Path, optional
            Working directory of the child.
        input : str, optional
            Text written to the child's stdin.
        ok_codes : Iterable[int]
            Exit codes that count as success.
        cancel : CancellationToken, optional
            Token polled while the child runs.

        Returns
        -------
        ProcessResult
            The exit code and decoded output.

        Raises
        ------
        ProcessError
            If the command cannot be started or exits with a code not in
            ``ok_codes``.
        ProcessTimeoutError
            If the command exceeds its timeout.
        OperationCancelledError
            If ``cancel`` fires before or while the command runs.
        """
        argv = [command, *args]
        limit = self.default_timeout if timeout is None else timeout
        if cancel is not None and cancel.cancelled:
            raise OperationCancelledError(f"cancelled before running {' '.join(argv)}")

        logger.debug("Executing command: %s", " ".join(argv))
        proc = self._spawn(argv, cwd, capture=True, with_stdin=input is not None)
        data = input.encode(ENCODING, ERRORS) if input is not None else None
        deadline = time.monotonic() + limit
        started = False

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                _, err = self._terminate(proc)
                logger.error("Command timed out after %ss: %s", limit, " ".join(argv))
                raise ProcessTimeoutError(argv, limit, self._decode(err))
            if cancel is not None and cancel.cancelled:
                self._terminate(proc)
                logger.debug("Command cancelled: %s", " ".join(argv))
                raise OperationCancelledError(f"cancelled while running {' '.join(argv)}")
            wait = min(remaining, POLL_INTERVAL) if cancel is not None else remaining
            try:
                # Input may only be handed over on the first call.
                out, err = proc.communicate(input=None if started else data, timeout=wait)
                break
            except subprocess.TimeoutExpired:
                started = True

        result = ProcessResult(
            argv=tuple(argv),
            exit_code=proc.returncode,
            stdout=self._decode(out),
            stderr=self._decode(err),
        )
        if result.exit_code not in tuple(ok_codes):
            logger.error(
                "Command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(argv),
                result.stdout,
                result.stderr,
            )
            raise ProcessError(argv, result.exit_code, result.stderr)
        return result

    # ------------------------------------------------------------------
    # Terminal attached execution
    # ------------------------------------------------------------------
    def run_interactive(
        self,
        command: str,
        args: Sequence[str],
        cwd: Optional[Union[str, Path]] = None,
        timeout: Optional[float] = None,
        ok_codes: Iterable[int] = (0,),
    ) -> int:
        """Run a command attached to the user's terminal.

        Used for editors and for commands whose output is meant for the
        user (``git log``, ``git push``). No timeout applies unless one is
        given explicitly.
        """
        argv = [command, *args]
        logger.debug("Executing interactive command: %s", " ".join(argv))
        proc = self._spawn(argv, cwd, capture=False, with_stdin=False)
        try:
            code = proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            self._terminate(proc)
            raise ProcessTimeoutError(argv, timeout or 0.0)
        except KeyboardInterrupt:
            self._terminate(proc)
            raise
        if code not in tuple(ok_codes):
            raise ProcessError(argv, code)
        return code

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _spawn(
        argv: Sequence[str],
        cwd: Optional[Union[str, Path]],
        capture: bool,
        with_stdin: bool,
    ) -> subprocess.Popen:
        pipe = subprocess.PIPE if capture else None
        stdin = subprocess.PIPE if with_stdin else (subprocess.DEVNULL if capture else None)
        try:
            return subprocess.Popen(
                list(argv),
                cwd=cwd,
                stdin=stdin,
                stdout=pipe,
                stderr=pipe,
                # A separate process group lets a timeout kill grandchildren too.
                start_new_session=capture and os.name == "posix",
            )
        except FileNotFoundError as exc:
            raise ProcessError(argv, 127, str(exc)) from exc
        except PermissionError as exc:
            raise ProcessError(argv, 126, str(exc)) from exc

    @staticmethod
    def _terminate(proc: subprocess.Popen) -> Tuple[bytes, bytes]:
        """Kill ``proc`` (and its process group) and reap it."""
        try:
            if os.name == "posix" and proc.stdout is not None:
                os.killpg(proc.pid, signal.SIGKILL)
            else:
                proc.kill()
        except ProcessLookupError:
            pass
        if proc.stdout is None:
            proc.wait()
            return b"", b""
        out, err = proc.communicate()
        return out or b"", err or b""

    @staticmethod
    def _decode(data: Optional[bytes]) -> str:
        if not data:
            return ""
        return data.decode(ENCODING, ERRORS)
