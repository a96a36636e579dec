"""
Commit orchestration.

:mod:`qit.commit.plan` defines the immutable plan handed over by the review
steps; :mod:`qit.commit.orchestrator` stages and commits it as a single
recoverable transaction.
"""

from .orchestrator import CommitOrchestrator  # noqa: F401
from .plan import CommitPlan, CommitResult  # noqa: F401
