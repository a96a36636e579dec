"""
Utilities for parsing diffs produced by ``git diff``.

See :mod:`qit.diff.diff_parser` for details.
"""

from .diff_parser import DiffParseError, FileDiff, build_patch, parse_unified_diff  # noqa: F401
