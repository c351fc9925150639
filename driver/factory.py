"""Builds storage drivers by name from a parameters mapping or the environment."""

import threading
from typing import Any, Callable, Dict, Mapping, Optional

from common.constants import DRIVER_NAME
from common.logging_config import get_logger
from driver import config
from driver.database import init_database
from driver.storage_driver import StorageDriver
from objectstore.factory import ObjectStoreSettings, build_object_store

logger = get_logger(__name__)

DriverBuilder = Callable[[Mapping[str, Any]], StorageDriver]

_registry: Dict[str, DriverBuilder] = {}


def register_driver(name: str, builder: DriverBuilder) -> None:
    if name in _registry:
        raise ValueError(f"storage driver already registered: {name}")
    _registry[name] = builder


def load_object_store_settings(parameters: Optional[Mapping[str, Any]] = None) -> ObjectStoreSettings:
    """
    Object store settings from parameters, falling back to environment configuration.
    """
    parameters = parameters or {}
    return ObjectStoreSettings(
        backend=parameters.get("backend", config.OBJECT_BACKEND),
        local_root=parameters.get("local_root", config.OBJECT_ROOT),
        object_prefix=parameters.get("object_prefix", config.OBJECT_PREFIX),
        chunk_size=int(parameters.get("chunk_size", config.CHUNK_SIZE_BYTES)),
        public_url=parameters.get("public_url", config.PUBLIC_URL),
        temp_url_key=parameters.get("temp_url_key", config.TEMP_URL_KEY),
        swift_container=parameters.get("container", config.SWIFT_CONTAINER),
        swift_storage_url=parameters.get("storage_url", config.SWIFT_STORAGE_URL),
        swift_auth_token=parameters.get("auth_token", config.SWIFT_AUTH_TOKEN),
        swift_auth_url=parameters.get("auth_url", config.SWIFT_AUTH_URL),
        swift_user=parameters.get("user", config.SWIFT_USER),
        swift_key=parameters.get("key", config.SWIFT_KEY),
        swift_timeout_seconds=float(parameters.get("timeout", config.SWIFT_TIMEOUT_SECONDS)),
    )


def _build_swift_plus(parameters: Mapping[str, Any]) -> StorageDriver:
    database_path = parameters.get("database_path", config.DATABASE_PATH)
    init_database(database_path)
    object_store = build_object_store(load_object_store_settings(parameters))
    logger.info(f"Built {DRIVER_NAME} driver [database={database_path}, object_store={type(object_store).__name__}]")
    return StorageDriver(object_store, database_path)


register_driver(DRIVER_NAME, _build_swift_plus)


def create_driver(name: str = DRIVER_NAME, parameters: Optional[Mapping[str, Any]] = None) -> StorageDriver:
    builder = _registry.get(name)
    if builder is None:
        raise ValueError(f"Unknown storage driver: {name}")
    return builder(parameters or {})


_driver_singleton: Optional[StorageDriver] = None
_driver_singleton_lock = threading.Lock()


def get_storage_driver() -> StorageDriver:
    global _driver_singleton
    if _driver_singleton is None:
        with _driver_singleton_lock:
            if _driver_singleton is None:
                _driver_singleton = create_driver()
    return _driver_singleton


def reset_storage_driver_singleton() -> None:
    global _driver_singleton
    with _driver_singleton_lock:
        if _driver_singleton is not None:
            _driver_singleton.object_store.close()
        _driver_singleton = None
