"""
Classification of changes into commit types.

This package provides the heuristics that propose a Conventional Commit type
for every changed path. See :mod:`qit.grouping.change_classifier` for the
rules.
"""

from .change_classifier import Classification, CommitType, classify, classify_entry  # noqa: F401
