"""File repository for the files table (one row per tree node)."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from common.constants import DIRECTORY_SIZE_SENTINEL
from common.logging_config import get_logger
from driver.database import get_db_connection
from driver.paths import join_path, split_path

logger = get_logger(__name__)

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass
class FileRecord:
    """
    Entry of the files table. A negative size marks a directory; content is
    set for small files stored inline, location for files stored in the
    object store.
    """
    dirname: str
    basename: str
    size: int
    modified_at: Optional[datetime] = None
    content: Optional[bytes] = None
    location: Optional[str] = None

    @property
    def path(self) -> str:
        return join_path(self.dirname, self.basename)

    @property
    def is_dir(self) -> bool:
        return self.size < 0

    @property
    def is_external(self) -> bool:
        return bool(self.location)


def root_record() -> FileRecord:
    """
    Synthetic record for '/', which never exists in the table.
    """
    return FileRecord(dirname="/", basename="/", size=DIRECTORY_SIZE_SENTINEL, modified_at=EPOCH)


def _row_to_record(row) -> FileRecord:
    return FileRecord(
        dirname=row["dirname"],
        basename=row["basename"],
        size=row["size_bytes"],
        modified_at=datetime.fromisoformat(row["mtime"]),
        content=bytes(row["content"]) if row["content"] is not None else None,
        location=row["location"] or None,
    )


class FileRepository:
    def __init__(self, database_path: Optional[str] = None):
        self.database_path = database_path

    def get(self, full_path: str) -> Optional[FileRecord]:
        dirname, basename = split_path(full_path)
        with get_db_connection(self.database_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT dirname, basename, size_bytes, mtime, content, location
                FROM files WHERE dirname = ? AND basename = ?
                """,
                (dirname, basename)
            )
            row = cursor.fetchone()

            if row is None:
                return None
            return _row_to_record(row)

    def upsert(self, record: FileRecord) -> FileRecord:
        """
        Insert the record or overwrite the existing row with the same key.
        """
        if record.modified_at is None:
            record.modified_at = datetime.now(timezone.utc)

        with get_db_connection(self.database_path) as conn:
            try:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO files (dirname, basename, size_bytes, mtime, content, location)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT (dirname, basename) DO UPDATE SET
                        size_bytes = excluded.size_bytes,
                        mtime = excluded.mtime,
                        content = excluded.content,
                        location = excluded.location
                    """,
                    (
                        record.dirname,
                        record.basename,
                        record.size,
                        record.modified_at.isoformat(),
                        record.content,
                        record.location,
                    )
                )
                conn.commit()
            except Exception as e:
                logger.error(f"Failed to write file record [path={record.path}]: {e}", exc_info=True)
                raise
        return record

    def insert_directory(self, dirname: str, basename: str) -> bool:
        """
        Insert a directory marker unless a row with this key exists.

        Returns:
            True if a row was inserted
        """
        with get_db_connection(self.database_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO files (dirname, basename, size_bytes, mtime, content, location)
                VALUES (?, ?, ?, ?, NULL, NULL)
                ON CONFLICT (dirname, basename) DO NOTHING
                """,
                (dirname, basename, DIRECTORY_SIZE_SENTINEL, datetime.now(timezone.utc).isoformat())
            )
            conn.commit()
            return cursor.rowcount > 0

    def list_children(self, dirname: str) -> List[FileRecord]:
        with get_db_connection(self.database_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT dirname, basename, size_bytes, mtime, content, location
                FROM files WHERE dirname = ?
                ORDER BY basename
                """,
                (dirname,)
            )
            return [_row_to_record(row) for row in cursor.fetchall()]

    def list_basenames(self, dirname: str) -> List[str]:
        with get_db_connection(self.database_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT basename FROM files WHERE dirname = ? ORDER BY basename",
                (dirname,)
            )
            return [row["basename"] for row in cursor.fetchall()]

    def delete(self, dirname: str, basename: str) -> None:
        with get_db_connection(self.database_path) as conn:
            try:
                cursor = conn.cursor()
                cursor.execute(
                    "DELETE FROM files WHERE dirname = ? AND basename = ?",
                    (dirname, basename)
                )
                conn.commit()
            except Exception as e:
                logger.error(f"Failed to delete file record [path={join_path(dirname, basename)}]: {e}", exc_info=True)
                raise

    def rename(self, record: FileRecord, new_path: str) -> None:
        """
        Change the key of a single row. Rows below a renamed directory keep
        their old dirname.
        """
        new_dirname, new_basename = split_path(new_path)
        with get_db_connection(self.database_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE files SET dirname = ?, basename = ?
                WHERE dirname = ? AND basename = ?
                """,
                (new_dirname, new_basename, record.dirname, record.basename)
            )
            conn.commit()

    def referenced_locations(self) -> List[str]:
        with get_db_connection(self.database_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT DISTINCT location FROM files WHERE location IS NOT NULL AND location != ''"
            )
            return [row["location"] for row in cursor.fetchall()]
