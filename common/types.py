"""Shared data type definitions exchanged between the driver and the object store."""

from dataclasses import dataclass


@dataclass(frozen=True)
class SegmentDescriptor:
    """
    One uploaded segment of a large object, as referenced by a manifest.
    """
    object_path: str
    number: int
    size: int
    hash: str
