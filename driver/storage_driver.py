"""Filesystem-like storage driver over the metadata database and the object store."""

import io
from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO, Dict, List, Optional

from common.constants import DEFAULT_TEMP_URL_TTL_SECONDS, DRIVER_NAME
from common.logging_config import get_logger
from driver.context import RequestContext, check_context
from driver.exceptions import PathNotFoundError, UnsupportedMethodError
from driver.paths import clean_path, content_object_path, join_path, split_path
from driver.repositories.file_repository import FileRecord, FileRepository, root_record
from driver.repositories.segment_repository import SegmentRepository
from driver.tiering import Tier, build_file_record, tier_of
from driver.tree import DirectoryTree
from driver.writer import BufferedWriter, SegmentedWriter
from objectstore.base import ObjectStore
from objectstore.exceptions import ObjectNotFoundError, TempURLUnsupportedError

logger = get_logger(__name__)


class _LogicalPathReader(io.RawIOBase):
    """Object store stream that reports missing objects under the logical path."""

    def __init__(self, stream: BinaryIO, full_path: str):
        self._stream = stream
        self._full_path = full_path

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        try:
            return self._stream.readinto(buffer)
        except ObjectNotFoundError:
            raise PathNotFoundError(self._full_path)

    def close(self) -> None:
        self._stream.close()
        super().close()


class StorageDriver:
    """
    Path-addressed storage: get/put content, ranged readers, streaming
    writers, stat, list, move, delete and temporary URLs.

    Small files live inline in the files table, larger ones in the object
    store under a random location. There is no transaction spanning the
    database and the object store, nor across the statements of a single
    operation, and no per-path locking between concurrent writers.
    """

    def __init__(self, object_store: ObjectStore, database_path: Optional[str] = None):
        self.object_store = object_store
        self.file_repo = FileRepository(database_path)
        self.segment_repo = SegmentRepository(database_path)
        self.tree = DirectoryTree(self.file_repo, object_store)

    @property
    def name(self) -> str:
        return DRIVER_NAME

    def _object_path(self, record: FileRecord) -> str:
        return content_object_path(self.object_store.object_prefix, record.location)

    def _read_file_record(self, full_path: str, ctx: Optional[RequestContext]) -> FileRecord:
        """Record of a regular file, or PathNotFoundError for missing paths and directories."""
        check_context(ctx)
        record = self.file_repo.get(full_path)
        if record is None or record.is_dir:
            raise PathNotFoundError(full_path)
        return record

    def get_content(self, full_path: str, ctx: Optional[RequestContext] = None) -> bytes:
        record = self._read_file_record(full_path, ctx)

        tier = tier_of(record)
        if tier is Tier.EMPTY:
            return b""
        if tier is Tier.INLINE:
            return record.content

        check_context(ctx)
        try:
            with self.object_store.read(self._object_path(record), 0) as stream:
                return stream.read()
        except ObjectNotFoundError:
            raise PathNotFoundError(record.path)

    def put_content(self, full_path: str, content: bytes, ctx: Optional[RequestContext] = None) -> None:
        """
        Replace the content at full_path. Blobs of a previous file are
        removed; rows below a previous directory are not.
        """
        check_context(ctx)
        existing = self.file_repo.get(full_path)
        if existing is not None:
            self.tree.delete_blobs(existing, ctx)

        dirname, basename = split_path(full_path)
        record = build_file_record(dirname, basename, content)

        check_context(ctx)
        self.file_repo.upsert(record)
        self.tree.ensure_ancestors(record.path, ctx)

        if not record.is_external:
            logger.info(f"Stored {record.path} inline ({record.size} bytes)")
            return

        check_context(ctx)
        try:
            self.object_store.write(self._object_path(record), bytes(content))
        except ObjectNotFoundError:
            raise PathNotFoundError(full_path)
        logger.info(f"Stored {record.path} in object store ({record.size} bytes)")

    def reader(self, full_path: str, offset: int = 0, ctx: Optional[RequestContext] = None) -> BinaryIO:
        record = self._read_file_record(full_path, ctx)

        if offset > record.size or record.size == 0:
            return io.BytesIO(b"")

        if not record.is_external:
            return io.BytesIO((record.content or b"")[offset:])

        check_context(ctx)
        try:
            stream = self.object_store.read(self._object_path(record), offset)
        except ObjectNotFoundError:
            raise PathNotFoundError(record.path)
        return io.BufferedReader(_LogicalPathReader(stream, record.path))

    def writer(self, full_path: str, append: bool = False, ctx: Optional[RequestContext] = None) -> BufferedWriter:
        segmented = SegmentedWriter.open(self, clean_path(full_path), append, ctx)
        return BufferedWriter(segmented, self.object_store.chunk_size)

    def stat(self, full_path: str, ctx: Optional[RequestContext] = None) -> FileRecord:
        # liveness probes stat the root, which has no row of its own
        if clean_path(full_path) == "/":
            return root_record()

        check_context(ctx)
        record = self.file_repo.get(full_path)
        if record is None:
            raise PathNotFoundError(full_path)
        return record

    def list(self, full_path: str, ctx: Optional[RequestContext] = None) -> List[str]:
        directory = clean_path(full_path)
        return [join_path(directory, basename) for basename in self.tree.list_children(directory, ctx)]

    def move(self, source_path: str, dest_path: str, ctx: Optional[RequestContext] = None) -> None:
        """
        Re-key the source row to dest_path, replacing whatever is at the
        destination. Directories move without their descendants, and empty
        parents of the source stay behind.
        """
        check_context(ctx)
        source = self.file_repo.get(source_path)
        if source is None:
            raise PathNotFoundError(source_path)

        if clean_path(source_path) == clean_path(dest_path):
            return

        check_context(ctx)
        dest = self.file_repo.get(dest_path)
        if dest is not None:
            self.tree.delete_subtree(dest, ctx)

        self.tree.rename(source, dest_path, ctx)
        self.tree.ensure_ancestors(dest_path, ctx)
        logger.info(f"Moved {source.path} to {clean_path(dest_path)}")

    def delete(self, full_path: str, ctx: Optional[RequestContext] = None) -> None:
        check_context(ctx)
        record = self.file_repo.get(full_path)
        if record is None:
            return
        self.tree.delete_subtree(record, ctx)

    def url_for(self, full_path: str, options: Optional[Dict[str, Any]] = None,
                ctx: Optional[RequestContext] = None) -> str:
        """
        Temporary URL for an externally stored file. Missing paths, directories
        and inline files raise UnsupportedMethodError.

        Options:
            method: HTTP method to grant (default GET)
            expiry: datetime after which the URL stops working (default 20 minutes from now)
        """
        options = options or {}
        check_context(ctx)
        record = self.file_repo.get(full_path)
        if record is None or not record.is_external:
            raise UnsupportedMethodError("temporary URLs are only available for content in the object store")

        method = str(options.get("method") or "GET").upper()
        expires_at = options.get("expiry")
        if not isinstance(expires_at, datetime):
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=DEFAULT_TEMP_URL_TTL_SECONDS)

        check_context(ctx)
        try:
            return self.object_store.make_temp_url(self._object_path(record), method, expires_at)
        except TempURLUnsupportedError as e:
            raise UnsupportedMethodError(str(e))
