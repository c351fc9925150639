"""Streaming writer: uploads numbered segments and assembles them into a manifest on commit."""

from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from common.logging_config import get_logger
from common.types import SegmentDescriptor
from driver.context import RequestContext, check_context
from driver.exceptions import PathNotFoundError, WriterMisuseError
from driver.paths import content_object_path, generate_location, segment_object_path, split_path
from driver.repositories.file_repository import FileRecord
from driver.repositories.segment_repository import SegmentRecord
from objectstore.exceptions import ObjectNotFoundError

if TYPE_CHECKING:
    from driver.storage_driver import StorageDriver

logger = get_logger(__name__)


class WriterState(Enum):
    OPEN = "open"
    COMMITTED = "committed"
    CANCELLED = "cancelled"
    CLOSED = "closed"


class SegmentedWriter:
    """
    Writer state machine: Open -> Committed | Cancelled, then Closed.

    Each write() uploads one segment object and records it in the segments
    table before returning. Nothing is visible at the logical path until
    commit() writes the manifest and the file record.
    """

    def __init__(self, driver: "StorageDriver", full_path: str, location: str,
                 segments: List[SegmentRecord], ctx: Optional[RequestContext] = None):
        self.driver = driver
        self.full_path = full_path
        self.location = location
        self.segments = segments
        self.ctx = ctx
        self.state = WriterState.OPEN

    @classmethod
    def open(cls, driver: "StorageDriver", full_path: str, append: bool,
             ctx: Optional[RequestContext] = None) -> "SegmentedWriter":
        """
        Prepare a writer for full_path.

        Without append, an existing file or directory at the path is deleted
        first. With append, an externally stored file keeps its location and
        its recorded segments seed the numbering; any other existing record
        gets a new location.
        """
        check_context(ctx)
        record = driver.file_repo.get(full_path)
        exists = record is not None

        if exists and not append:
            driver.tree.delete_subtree(record, ctx)
            exists = False

        if exists and record.is_external:
            location = record.location
        else:
            location = generate_location()

        segments: List[SegmentRecord] = []
        if exists and append:
            check_context(ctx)
            segments = driver.segment_repo.get_segments_by_location(location)

        logger.debug(f"Opened writer for {full_path} [location={location}, segments={len(segments)}]")
        return cls(driver, full_path, location, segments, ctx)

    def ensure_open(self) -> None:
        """
        Raises:
            WriterMisuseError: If the writer reached a terminal state
        """
        if self.state is not WriterState.OPEN:
            raise WriterMisuseError(self.state.value)

    def _next_number(self) -> int:
        if not self.segments:
            return 1
        return self.segments[-1].number + 1

    def write(self, data: bytes) -> int:
        self.ensure_open()
        check_context(self.ctx)

        store = self.driver.object_store
        number = self._next_number()
        try:
            segment_hash = store.write(segment_object_path(store.object_prefix, self.location, number), bytes(data))
        except ObjectNotFoundError:
            raise PathNotFoundError(self.full_path)

        segment = SegmentRecord(location=self.location, number=number, size=len(data), hash=segment_hash)
        self.segments.append(segment)
        check_context(self.ctx)
        self.driver.segment_repo.create_segment(segment)
        return len(data)

    def size(self) -> int:
        return sum(segment.size for segment in self.segments)

    def commit(self) -> None:
        """
        Assemble the manifest and publish the file record.
        """
        self.ensure_open()
        check_context(self.ctx)

        store = self.driver.object_store
        descriptors = [
            SegmentDescriptor(
                object_path=segment_object_path(store.object_prefix, segment.location, segment.number),
                number=segment.number,
                size=segment.size,
                hash=segment.hash,
            )
            for segment in self.segments
        ]
        try:
            store.write_manifest(content_object_path(store.object_prefix, self.location), descriptors)
        except ObjectNotFoundError:
            raise PathNotFoundError(self.full_path)

        check_context(self.ctx)
        dirname, basename = split_path(self.full_path)
        self.driver.file_repo.upsert(FileRecord(
            dirname=dirname,
            basename=basename,
            size=self.size(),
            location=self.location,
        ))
        self.driver.tree.ensure_ancestors(self.full_path, self.ctx)

        self.state = WriterState.COMMITTED
        logger.info(f"Committed {self.full_path} ({self.size()} bytes in {len(self.segments)} segments)")

    def cancel(self) -> None:
        """
        Abandon the upload and delete whatever is stored at the path.
        Uploaded segments without a committed record are not purged.
        """
        self.ensure_open()
        self.state = WriterState.CANCELLED
        try:
            self.driver.delete(self.full_path, self.ctx)
        finally:
            self.segments = []
        logger.info(f"Cancelled writer for {self.full_path}")

    def close(self) -> None:
        if self.state is WriterState.CLOSED:
            raise WriterMisuseError(self.state.value)
        if self.state is WriterState.OPEN:
            self.commit()
        self.state = WriterState.CLOSED


class BufferedWriter:
    """
    Batches small writes into chunk_size segments before they reach the
    segmented writer. close(), commit() and cancel() flush first.
    """

    def __init__(self, writer: SegmentedWriter, chunk_size: int):
        self.writer = writer
        self.chunk_size = chunk_size
        self._buffer = bytearray()

    @property
    def state(self) -> WriterState:
        return self.writer.state

    def write(self, data: bytes) -> int:
        self.writer.ensure_open()
        self._buffer.extend(data)
        while len(self._buffer) >= self.chunk_size:
            self.writer.write(bytes(self._buffer[:self.chunk_size]))
            del self._buffer[:self.chunk_size]
        return len(data)

    def flush(self) -> None:
        if not self._buffer:
            return
        self.writer.write(bytes(self._buffer))
        self._buffer.clear()

    def size(self) -> int:
        return self.writer.size() + len(self._buffer)

    def buffered(self) -> int:
        return len(self._buffer)

    def commit(self) -> None:
        self.flush()
        self.writer.commit()

    def cancel(self) -> None:
        self.flush()
        self.writer.cancel()

    def close(self) -> None:
        self.flush()
        self.writer.close()

    def __enter__(self) -> "BufferedWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None and self.writer.state is WriterState.OPEN:
            self._buffer.clear()
            self.writer.cancel()
        if self.writer.state is not WriterState.CLOSED:
            self.close()
