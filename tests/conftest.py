import logging
from unittest.mock import MagicMock

import pytest

from redis_logger import registry


@pytest.fixture()
def connection():
    """Stand-in for redis.Redis recording publish/xadd calls"""
    return MagicMock(spec=["publish", "xadd", "close"])


@pytest.fixture()
def make_record():
    def _make(
        msg="disk low",
        level=logging.WARNING,
        name="app.disk",
        args=None,
        exc_info=None,
    ):
        return logging.LogRecord(
            name, level, "/srv/app/disk.py", 42, msg, args, exc_info
        )

    return _make


@pytest.fixture(autouse=True)
def _reset_global_logger():
    """Undo global registration and root level changes between tests"""
    root = logging.getLogger()
    level = root.level
    yield
    registry.uninstall()
    root.setLevel(level)
