"""
Version control integration.

This package contains the :class:`ProcessGateway` that runs external
commands with timeouts and the :class:`GitClient` that wraps the Git
plumbing commands used by qit.
"""

from .gateway import CancellationToken, ProcessGateway, ProcessResult  # noqa: F401
from .git_client import GitClient  # noqa: F401
