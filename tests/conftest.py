from __future__ import annotations

import logging

import pytest


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """
    Test hygiene: `init_structured_logging` replaces the root handlers.

    Those handlers write to the (per-test) captured stdout and must not leak
    into later tests.
    """
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
