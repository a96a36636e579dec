import os

import pytest


@pytest.fixture(autouse=True)
def isolate_qit_environment(monkeypatch):
    """Remove any QIT_* settings of the developer's shell.

    Several tests expect the documented defaults; a stray
    ``QIT_DISABLE_EMOJIS`` in the environment would change their outcome.
    """
    for name in list(os.environ):
        if name.startswith("QIT_"):
            monkeypatch.delenv(name, raising=False)
    yield
