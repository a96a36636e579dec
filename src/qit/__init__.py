"""
Top-level package for qit.

qit is an interactive front-end over git that reviews pending changes,
composes conventional, emoji annotated commit messages and commits the
selection as one recoverable transaction. The CLI entry point lives in
:mod:`qit.cli`.
"""

__all__ = ["__version__"]

__version__ = "0.2.0"
