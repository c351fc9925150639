"""Factory for configuring object store adapters."""

from dataclasses import dataclass
from typing import Optional

from common.constants import DEFAULT_CHUNK_SIZE_BYTES
from objectstore.base import ObjectStore
from objectstore.local_store import LocalObjectStore
from objectstore.swift_client import SwiftObjectStore


@dataclass
class ObjectStoreSettings:
    backend: str = "local"
    local_root: str = "/app/data/objects"
    object_prefix: str = ""
    chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES
    public_url: Optional[str] = None
    temp_url_key: Optional[str] = None
    swift_container: Optional[str] = None
    swift_storage_url: Optional[str] = None
    swift_auth_token: Optional[str] = None
    swift_auth_url: Optional[str] = None
    swift_user: Optional[str] = None
    swift_key: Optional[str] = None
    swift_timeout_seconds: float = 30.0


def build_local_store(settings: ObjectStoreSettings) -> LocalObjectStore:
    return LocalObjectStore(
        settings.local_root,
        chunk_size=settings.chunk_size,
        object_prefix=settings.object_prefix,
        public_url=settings.public_url,
        temp_url_key=settings.temp_url_key,
    )


def build_swift_store(settings: ObjectStoreSettings) -> SwiftObjectStore:
    if not settings.swift_container:
        raise ValueError("Swift backend requires a container name")
    return SwiftObjectStore(
        container=settings.swift_container,
        chunk_size=settings.chunk_size,
        object_prefix=settings.object_prefix,
        storage_url=settings.swift_storage_url,
        auth_token=settings.swift_auth_token,
        auth_url=settings.swift_auth_url,
        user=settings.swift_user,
        key=settings.swift_key,
        temp_url_key=settings.temp_url_key,
        timeout=settings.swift_timeout_seconds,
    )


def build_object_store(settings: ObjectStoreSettings) -> ObjectStore:
    backend = (settings.backend or "local").strip().lower()
    if backend == "swift":
        return build_swift_store(settings)
    if backend == "local":
        return build_local_store(settings)
    raise ValueError(f"Unknown object store backend: {settings.backend}")
