"""Repository layer for data access."""

from driver.repositories.file_repository import FileRecord, FileRepository
from driver.repositories.segment_repository import SegmentRecord, SegmentRepository

__all__ = [
    "FileRecord",
    "FileRepository",
    "SegmentRecord",
    "SegmentRepository",
]
