"""Segment repository for database operations."""

from dataclasses import dataclass
from typing import List, Optional

from common.logging_config import get_logger
from driver.database import get_db_connection

logger = get_logger(__name__)


@dataclass
class SegmentRecord:
    location: str
    number: int
    size: int
    hash: str


class SegmentRepository:
    def __init__(self, database_path: Optional[str] = None):
        self.database_path = database_path

    def create_segment(self, segment: SegmentRecord) -> None:
        logger.debug(f"Recording segment {segment.number} [location={segment.location}]")
        with get_db_connection(self.database_path) as conn:
            try:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO segments (location, number, size_bytes, hash)
                    VALUES (?, ?, ?, ?)
                    """,
                    (segment.location, segment.number, segment.size, segment.hash)
                )
                conn.commit()
            except Exception as e:
                logger.error(f"Failed to record segment {segment.number} [location={segment.location}]: {e}", exc_info=True)
                raise

    def get_segments_by_location(self, location: Optional[str]) -> List[SegmentRecord]:
        if not location:
            return []

        with get_db_connection(self.database_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT location, number, size_bytes, hash
                FROM segments
                WHERE location = ?
                ORDER BY number
                """,
                (location,)
            )
            rows = cursor.fetchall()

            return [
                SegmentRecord(
                    location=row["location"],
                    number=row["number"],
                    size=row["size_bytes"],
                    hash=row["hash"],
                )
                for row in rows
            ]

    def list_locations(self) -> List[str]:
        with get_db_connection(self.database_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT DISTINCT location FROM segments ORDER BY location")
            return [row["location"] for row in cursor.fetchall()]

    def delete_segments(self, location: str) -> int:
        logger.debug(f"Deleting segments [location={location}]")
        with get_db_connection(self.database_path) as conn:
            try:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM segments WHERE location = ?", (location,))
                conn.commit()
                logger.info(f"Deleted {cursor.rowcount} segments [location={location}]")
                return cursor.rowcount
            except Exception as e:
                logger.error(f"Failed to delete segments [location={location}]: {e}", exc_info=True)
                raise
