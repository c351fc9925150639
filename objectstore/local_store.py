"""Object store backed by a local directory: plain objects, manifests and temp URLs."""

import hashlib
import io
import json
import os
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional
from urllib.parse import urlsplit

from common.constants import STREAM_PIECE_SIZE_BYTES
from common.logging_config import get_logger
from common.types import SegmentDescriptor
from objectstore.base import ObjectStore
from objectstore.exceptions import ObjectNotFoundError, ObjectStoreError, TempURLUnsupportedError
from objectstore.tempurl import build_temp_url

logger = get_logger(__name__)

OBJECTS_DIR = "objects"
MANIFESTS_DIR = "manifests"


def compute_hash(data: bytes) -> str:
    """
    Compute the content hash the store reports for an object (MD5, like a Swift ETag).

    Args:
        data: Object content

    Returns:
        Hexadecimal digest
    """
    return hashlib.md5(data).hexdigest()


def hash_file(filepath: Path) -> str:
    digest = hashlib.md5()
    with open(filepath, 'rb') as f:
        while True:
            piece = f.read(STREAM_PIECE_SIZE_BYTES)
            if not piece:
                break
            digest.update(piece)
    return digest.hexdigest()


class _ManifestReader(io.RawIOBase):
    """Reads the concatenation of segment files, starting at an offset."""

    def __init__(self, store: "LocalObjectStore", segments: List[dict], offset: int):
        self._store = store
        self._segments = []
        self._current = None

        skip = offset
        for segment in segments:
            size = segment["size_bytes"]
            if skip >= size:
                skip -= size
                continue
            self._segments.append((segment["path"], skip))
            skip = 0

    def readable(self) -> bool:
        return True

    def _open_next(self) -> bool:
        if not self._segments:
            return False
        object_path, start = self._segments.pop(0)
        filepath = self._store.get_object_path(object_path)
        if not filepath.is_file():
            raise ObjectNotFoundError(object_path)
        self._current = open(filepath, 'rb')
        self._current.seek(start)
        return True

    def readinto(self, buffer) -> int:
        while True:
            if self._current is None and not self._open_next():
                return 0
            n = self._current.readinto(buffer)
            if n:
                return n
            self._current.close()
            self._current = None

    def close(self) -> None:
        if self._current is not None:
            self._current.close()
            self._current = None
        super().close()


class LocalObjectStore(ObjectStore):
    """Filesystem implementation of the object store contract."""

    def __init__(self, root: str, chunk_size: int, object_prefix: str = "",
                 public_url: Optional[str] = None, temp_url_key: Optional[str] = None):
        super().__init__(chunk_size, object_prefix)
        self.root = Path(root)
        self.public_url = public_url
        self.temp_url_key = temp_url_key
        (self.root / OBJECTS_DIR).mkdir(parents=True, exist_ok=True)
        (self.root / MANIFESTS_DIR).mkdir(parents=True, exist_ok=True)

    def _resolve(self, tree: str, object_path: str) -> Path:
        base_dir = (self.root / tree).resolve()
        resolved = (base_dir / object_path.strip('/')).resolve()
        try:
            resolved.relative_to(base_dir)
        except ValueError:
            raise ObjectStoreError(f"invalid object path: {object_path}")
        return resolved

    def get_object_path(self, object_path: str) -> Path:
        """
        Get file path holding a plain object.

        Args:
            object_path: Object name inside the store

        Returns:
            Path object for the object file
        """
        return self._resolve(OBJECTS_DIR, object_path)

    def get_manifest_path(self, object_path: str) -> Path:
        return self._resolve(MANIFESTS_DIR, object_path)

    def _write_file(self, filepath: Path, data: bytes) -> None:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = filepath.with_name(f".{filepath.name}.tmp")
        tmp_path.write_bytes(data)
        os.replace(tmp_path, filepath)

    def write(self, object_path: str, data: bytes) -> str:
        """
        Write object data to disk, replacing any manifest at the same path.

        Args:
            object_path: Object name inside the store
            data: Raw object content

        Returns:
            Content hash of the stored object

        Raises:
            ObjectStoreError: If the write operation fails
        """
        try:
            self._write_file(self.get_object_path(object_path), data)
            self.get_manifest_path(object_path).unlink(missing_ok=True)
        except OSError as e:
            raise ObjectStoreError(f"failed to write {object_path}: {e}") from e
        logger.debug(f"Wrote object {object_path} ({len(data)} bytes)")
        return compute_hash(data)

    def read(self, object_path: str, offset: int = 0) -> BinaryIO:
        """
        Open an object for streaming from offset.

        Args:
            object_path: Object name inside the store
            offset: Byte offset to start at; offsets past the end yield an empty stream

        Returns:
            Binary stream; the caller closes it

        Raises:
            ObjectNotFoundError: If neither an object nor a manifest exists
        """
        manifest_path = self.get_manifest_path(object_path)
        if manifest_path.is_file():
            segments = json.loads(manifest_path.read_text())
            return io.BufferedReader(_ManifestReader(self, segments, offset))

        filepath = self.get_object_path(object_path)
        if not filepath.is_file():
            raise ObjectNotFoundError(object_path)
        f = open(filepath, 'rb')
        f.seek(offset)
        return f

    def _iter_files(self, tree: str, prefix: str) -> Iterator[Path]:
        tree_root = (self.root / tree).resolve()
        directory = prefix.rsplit('/', 1)[0] if '/' in prefix else ''
        base_dir = self._resolve(tree, directory) if directory else tree_root
        if not base_dir.is_dir():
            return
        for filepath in sorted(base_dir.rglob('*')):
            if filepath.is_file() and filepath.relative_to(tree_root).as_posix().startswith(prefix):
                yield filepath

    def _prune_empty_dirs(self, tree: str, directory: Path) -> None:
        tree_root = (self.root / tree).resolve()
        while directory != tree_root and directory.is_dir() and not any(directory.iterdir()):
            directory.rmdir()
            directory = directory.parent

    def delete_all(self, prefix: str) -> int:
        """
        Delete all objects and manifests whose path starts with prefix.

        Args:
            prefix: Object path prefix (e.g. 'registry/0a1b2c3d4e5f6789/')

        Returns:
            Number of files removed
        """
        deleted = 0
        for tree in (OBJECTS_DIR, MANIFESTS_DIR):
            for filepath in list(self._iter_files(tree, prefix)):
                filepath.unlink(missing_ok=True)
                self._prune_empty_dirs(tree, filepath.parent)
                deleted += 1
        logger.debug(f"Deleted {deleted} objects under prefix {prefix}")
        return deleted

    def write_manifest(self, object_path: str, segments: List[SegmentDescriptor]) -> None:
        """
        Store a manifest referencing segments in order. Each segment must
        exist with the recorded size and hash.

        Args:
            object_path: Object name of the composed object
            segments: Ordered segment descriptors

        Raises:
            ObjectStoreError: If a segment is missing or does not match its descriptor
        """
        if not segments:
            self.write(object_path, b"")
            return

        entries = []
        for segment in segments:
            filepath = self.get_object_path(segment.object_path)
            if not filepath.is_file():
                raise ObjectStoreError(f"manifest segment missing: {segment.object_path}")
            if filepath.stat().st_size != segment.size or hash_file(filepath) != segment.hash:
                raise ObjectStoreError(f"manifest segment does not match its descriptor: {segment.object_path}")
            entries.append({"path": segment.object_path, "etag": segment.hash, "size_bytes": segment.size})

        try:
            self._write_file(self.get_manifest_path(object_path), json.dumps(entries).encode('utf-8'))
            self.get_object_path(object_path).unlink(missing_ok=True)
        except OSError as e:
            raise ObjectStoreError(f"failed to write manifest {object_path}: {e}") from e
        logger.debug(f"Wrote manifest {object_path} with {len(entries)} segments")

    def make_temp_url(self, object_path: str, method: str, expires_at: datetime) -> str:
        if not self.public_url or not self.temp_url_key:
            raise TempURLUnsupportedError("local object store has no public URL or temp URL key configured")
        parts = urlsplit(self.public_url)
        return build_temp_url(
            f"{parts.scheme}://{parts.netloc}", parts.path, object_path,
            self.temp_url_key, method, expires_at,
        )
