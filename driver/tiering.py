"""Decides whether file content is stored inline in the database or in the object store."""

from enum import Enum

from common.constants import INLINE_THRESHOLD_BYTES
from driver.paths import generate_location
from driver.repositories.file_repository import FileRecord


class Tier(Enum):
    EMPTY = "empty"
    INLINE = "inline"
    EXTERNAL = "external"


def choose_tier(byte_length: int) -> Tier:
    if byte_length == 0:
        return Tier.EMPTY
    if byte_length <= INLINE_THRESHOLD_BYTES:
        return Tier.INLINE
    return Tier.EXTERNAL


def tier_of(record: FileRecord) -> Tier:
    """Where the bytes of an existing file record are materialized."""
    if record.size == 0:
        return Tier.EMPTY
    if record.is_external:
        return Tier.EXTERNAL
    return Tier.INLINE


def build_file_record(dirname: str, basename: str, content: bytes) -> FileRecord:
    """
    Build the record for a whole-content write. External content gets a
    freshly generated location and no inline bytes.
    """
    tier = choose_tier(len(content))
    record = FileRecord(dirname=dirname, basename=basename, size=len(content))
    if tier is Tier.INLINE:
        record.content = bytes(content)
    elif tier is Tier.EXTERNAL:
        record.location = generate_location()
    return record
