"""Tests for storage database error handling."""

import sqlite3
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from xref.errors import StorageError
from xref.storage import SqliteStorage


@pytest.fixture
def temp_data_dir():
    """Create a temporary directory for storage testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def storage(temp_data_dir):
    """Create a sqlite storage instance for testing."""
    db = SqliteStorage(temp_data_dir)
    yield db
    db.close()


def test_database_open_failure(temp_data_dir):
    """Test that database open failures become StorageError."""
    with patch("sqlite3.connect", side_effect=sqlite3.Error("Permission denied")):
        with pytest.raises(StorageError, match="Permission denied"):
            SqliteStorage(temp_data_dir)


def test_data_dir_is_a_file(temp_data_dir):
    blocker = temp_data_dir / "blocker"
    blocker.write_text("not a directory")

    with pytest.raises(StorageError):
        SqliteStorage(blocker / "data")


def test_save_data_database_error(storage):
    """Test that save_data reports database errors."""
    with patch.object(storage, "conn") as mock_conn:
        mock_conn.execute.side_effect = sqlite3.Error("DB locked")
        with pytest.raises(StorageError, match="DB locked"):
            storage.save_data("lint", "key", "value")
        mock_conn.rollback.assert_called_once()


def test_restore_data_database_error(storage):
    """Test that restore_data reports database errors."""
    with patch.object(storage, "conn") as mock_conn:
        mock_conn.execute.side_effect = sqlite3.Error("DB corrupted")
        with pytest.raises(StorageError, match="DB corrupted"):
            storage.restore_data("lint", "key")


def test_get_lock_database_error(storage):
    with patch.object(storage, "conn") as mock_conn:
        mock_conn.execute.side_effect = sqlite3.Error("Disk full")
        with pytest.raises(StorageError, match="Disk full"):
            storage.get_lock("lint:key")


def test_release_lock_database_error(storage):
    storage.get_lock("lint:key")

    with patch.object(storage, "conn") as mock_conn:
        mock_conn.execute.side_effect = sqlite3.Error("Delete failed")
        with pytest.raises(StorageError, match="Delete failed"):
            storage.release_lock("lint:key")


def test_operations_after_close(temp_data_dir):
    db = SqliteStorage(temp_data_dir)
    db.close()

    with pytest.raises(StorageError, match="not initialized"):
        db.save_data("lint", "key", "value")
    with pytest.raises(StorageError, match="not initialized"):
        db.restore_data("lint", "key")
    with pytest.raises(StorageError, match="not initialized"):
        db.get_lock("key")
    with pytest.raises(StorageError, match="not initialized"):
        db.release_lock("key")


def test_errors_are_logged(storage, caplog):
    with patch.object(storage, "conn") as mock_conn:
        mock_conn.execute.side_effect = sqlite3.Error("DB locked")
        with pytest.raises(StorageError):
            storage.restore_data("lint", "key")

    assert "Failed to restore lint/key" in caplog.text
