"""
Shared fixtures for corpus and store tests.
"""
import os
import tempfile

import pytest

from database.connection import DatabaseConnection
from database.store import MessageStore


@pytest.fixture
def corpus_root(tmp_path):
    """Empty corpus root directory."""
    root = tmp_path / "messages"
    root.mkdir()
    return root


@pytest.fixture
async def temp_store():
    """Message store on a temporary SQLite database."""
    fd, path = tempfile.mkstemp(suffix='.db')
    os.close(fd)

    store = MessageStore(DatabaseConnection(path))
    await store.initialize()

    yield store

    await store.close()
    for suffix in ("", "-wal", "-shm"):
        if os.path.exists(path + suffix):
            os.unlink(path + suffix)
