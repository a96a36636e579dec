"""
Interactive selection of changes.

:mod:`qit.selection.selector` holds the state machine;
:mod:`qit.selection.review` is its terminal front-end.
"""

from .selector import Selector, SelectorState  # noqa: F401
