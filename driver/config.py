"""Configuration settings for the storage driver."""

import os

from common.constants import DEFAULT_CHUNK_SIZE_BYTES


DATABASE_PATH = os.environ.get("STORAGE_DATABASE_PATH", "/app/data/metadata.db")

DRIVER_HOST = os.environ.get("STORAGE_DRIVER_HOST", "0.0.0.0")

DRIVER_PORT = int(os.environ.get("STORAGE_DRIVER_PORT", "8000"))

OBJECT_BACKEND = os.environ.get("STORAGE_OBJECT_BACKEND", "local")

OBJECT_ROOT = os.environ.get("STORAGE_OBJECT_ROOT", "/app/data/objects")

OBJECT_PREFIX = os.environ.get("STORAGE_OBJECT_PREFIX", "")

CHUNK_SIZE_BYTES = int(os.environ.get("STORAGE_CHUNK_SIZE_BYTES", str(DEFAULT_CHUNK_SIZE_BYTES)))

SWIFT_AUTH_URL = os.environ.get("STORAGE_SWIFT_AUTH_URL")
SWIFT_USER = os.environ.get("STORAGE_SWIFT_USER")
SWIFT_KEY = os.environ.get("STORAGE_SWIFT_KEY")
SWIFT_STORAGE_URL = os.environ.get("STORAGE_SWIFT_STORAGE_URL")
SWIFT_AUTH_TOKEN = os.environ.get("STORAGE_SWIFT_AUTH_TOKEN")
SWIFT_CONTAINER = os.environ.get("STORAGE_SWIFT_CONTAINER")
SWIFT_TIMEOUT_SECONDS = float(os.environ.get("STORAGE_SWIFT_TIMEOUT_SECONDS", "30"))

TEMP_URL_KEY = os.environ.get("STORAGE_TEMP_URL_KEY")
PUBLIC_URL = os.environ.get("STORAGE_PUBLIC_URL")

ORPHAN_SWEEP_INTERVAL_SECONDS = int(os.environ.get("STORAGE_ORPHAN_SWEEP_INTERVAL_SECONDS", "0"))
