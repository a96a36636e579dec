"""
Configuration loading for qit.

Provides the environment based loader. See :mod:`qit.config.loader` for
the recognized variables.
"""

from .loader import QitConfig, load_config  # noqa: F401
