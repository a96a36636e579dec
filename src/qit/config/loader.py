"""
Configuration loader for qit.

qit is configured exclusively through ``QIT_*`` environment variables. Every
recognized option has a documented default; a value that cannot be parsed
or is out of range is logged and replaced by that default instead of
aborting the run. Unknown ``QIT_*`` variables are reported and ignored.

Recognized variables:

- ``QIT_DISABLE_EMOJIS`` (bool, default ``false``): omit the gitmoji prefix
- ``QIT_GIT_TIMEOUT`` (seconds, default ``30``): bound for each git call
- ``QIT_GIT_EXECUTABLE`` (default ``git``): git binary to invoke
- ``QIT_SUMMARY_MAX_LENGTH`` (20-200, default ``72``): summary length limit
- ``QIT_FIX_MAX_LINES`` (default ``20``): largest change still called a fix
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings or logging errors in
# environments where the root logger may be closed.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


ENV_PREFIX = "QIT_"
TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class QitConfig:
    """Effective configuration of one qit run."""

    emojis_disabled: bool = False
    git_timeout: float = 30.0
    git_executable: str = "git"
    summary_max_length: int = 72
    fix_max_lines: int = 20

    def describe(self) -> List[Tuple[str, str]]:
        """Return ``(variable, value)`` pairs for the startup banner."""
        return [
            ("QIT_DISABLE_EMOJIS", "true" if self.emojis_disabled else "false"),
            ("QIT_GIT_TIMEOUT", f"{self.git_timeout:g}s"),
            ("QIT_GIT_EXECUTABLE", self.git_executable),
            ("QIT_SUMMARY_MAX_LENGTH", str(self.summary_max_length)),
            ("QIT_FIX_MAX_LINES", str(self.fix_max_lines)),
        ]


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValueError(f"expected one of {sorted(TRUE_VALUES | FALSE_VALUES - {''})}")


def _parse_timeout(raw: str) -> float:
    value = float(raw)
    if not value > 0 or value == float("inf"):
        raise ValueError("must be a positive number of seconds")
    return value


def _parse_executable(raw: str) -> str:
    value = raw.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


def _int_in_range(low: int, high: Optional[int] = None) -> Callable[[str], int]:
    def parse(raw: str) -> int:
        value = int(raw.strip())
        if value < low or (high is not None and value > high):
            bound = f"{low}..{high}" if high is not None else f">= {low}"
            raise ValueError(f"must be within {bound}")
        return value

    return parse


# Environment variable -> (dataclass field, parser)
OPTIONS: Dict[str, Tuple[str, Callable[[str], object]]] = {
    "QIT_DISABLE_EMOJIS": ("emojis_disabled", _parse_bool),
    "QIT_GIT_TIMEOUT": ("git_timeout", _parse_timeout),
    "QIT_GIT_EXECUTABLE": ("git_executable", _parse_executable),
    "QIT_SUMMARY_MAX_LENGTH": ("summary_max_length", _int_in_range(20, 200)),
    "QIT_FIX_MAX_LINES": ("fix_max_lines", _int_in_range(1)),
}


def load_config(environ: Optional[Mapping[str, str]] = None) -> QitConfig:
    """Build the configuration from environment variables.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``.

    Returns:
        A :class:`QitConfig`. Invalid values are replaced by their defaults,
        so this function never fails.
    """
    env = os.environ if environ is None else environ
    defaults = QitConfig()
    values: Dict[str, object] = {}

    for name, (attr, parse) in OPTIONS.items():
        raw = env.get(name)
        if raw is None:
            continue
        try:
            values[attr] = parse(raw)
        except ValueError as exc:
            logger.warning(
                "Ignoring %s=%r (%s); using default %r",
                name,
                raw,
                exc,
                getattr(defaults, attr),
            )

    for name in sorted(env):
        if name.startswith(ENV_PREFIX) and name not in OPTIONS:
            logger.warning("Ignoring unrecognized setting %s", name)

    config = QitConfig(**values)  # type: ignore[arg-type]
    logger.debug("Loaded configuration: %s", config)
    return config
