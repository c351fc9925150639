"""Shared pytest fixtures for all tests."""

from pathlib import Path
from typing import List

import pytest

from driver.database import init_database
from driver.storage_driver import StorageDriver
from objectstore.local_store import LocalObjectStore

TEST_CHUNK_SIZE = 8
TEST_PREFIX = "registry"
TEST_PUBLIC_URL = "https://objects.example.com/v1/AUTH_test/registry"
TEST_TEMP_URL_KEY = "secret-key"


class RecordingObjectStore(LocalObjectStore):
    """Local store that remembers every object write."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.write_calls: List[str] = []

    def write(self, object_path: str, data: bytes) -> str:
        self.write_calls.append(object_path)
        return super().write(object_path, data)

    def stored_files(self) -> List[Path]:
        return [p for p in self.root.rglob('*') if p.is_file()]


@pytest.fixture
def database_path(tmp_path) -> str:
    """
    Create a migrated temporary metadata database.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to the SQLite database file
    """
    db_path = tmp_path / "metadata.db"
    init_database(str(db_path))
    return str(db_path)


@pytest.fixture
def object_store(tmp_path) -> RecordingObjectStore:
    """
    Create a local object store with a tiny chunk size so that buffered
    writes produce several segments.
    """
    return RecordingObjectStore(
        str(tmp_path / "objects"),
        chunk_size=TEST_CHUNK_SIZE,
        object_prefix=TEST_PREFIX,
        public_url=TEST_PUBLIC_URL,
        temp_url_key=TEST_TEMP_URL_KEY,
    )


@pytest.fixture
def driver(object_store, database_path) -> StorageDriver:
    return StorageDriver(object_store, database_path)


@pytest.fixture
def large_content() -> bytes:
    """Content above the inline threshold."""
    return bytes(range(256)) * 2 + b"tail"
