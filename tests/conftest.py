import logging

import pytest

from tests.commons import FakeDirectoryClient, NOW


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fake_client():
    return FakeDirectoryClient()


@pytest.fixture
def restore_root_logging():
    """Drop handlers installed by setup_logging() during the test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
