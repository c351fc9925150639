"""Contract shared by all object store adapters."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import BinaryIO, List

from common.types import SegmentDescriptor


class ObjectStore(ABC):
    """
    Streaming byte storage addressed by object path.

    Object paths passed to these methods already include the configured
    object prefix. Adapters know nothing about logical driver paths.
    """

    def __init__(self, chunk_size: int, object_prefix: str = ""):
        if chunk_size < 1:
            raise ValueError(f"chunk size must be at least 1 byte, got {chunk_size}")
        self.chunk_size = chunk_size
        self.object_prefix = object_prefix.strip("/")

    @abstractmethod
    def write(self, object_path: str, data: bytes) -> str:
        """Store an object and return its content hash."""

    @abstractmethod
    def read(self, object_path: str, offset: int = 0) -> BinaryIO:
        """Open a stream over an object starting at offset. Manifests read as their concatenated segments."""

    @abstractmethod
    def delete_all(self, prefix: str) -> int:
        """Delete every object whose path starts with prefix. Returns the number of objects removed."""

    @abstractmethod
    def write_manifest(self, object_path: str, segments: List[SegmentDescriptor]) -> None:
        """Store a manifest object composing the given segments in order."""

    @abstractmethod
    def make_temp_url(self, object_path: str, method: str, expires_at: datetime) -> str:
        """Issue a capability URL for direct, time-limited access to an object."""

    def close(self) -> None:
        """Release pooled resources."""
