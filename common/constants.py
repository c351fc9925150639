"""Project-wide constants (tiering threshold, chunk size, object naming)."""

DRIVER_NAME: str = "swift-plus"

INLINE_THRESHOLD_BYTES: int = 256  # content up to this size lives in the files table
DIRECTORY_SIZE_SENTINEL: int = -1

DEFAULT_CHUNK_SIZE_BYTES: int = 20 * 1024 * 1024  # 20 MiB writer buffer
STREAM_PIECE_SIZE_BYTES: int = 64 * 1024

LOCATION_RANDOM_BYTES: int = 8
CONTENT_OBJECT_NAME: str = "content"
SEGMENT_NUMBER_WIDTH: int = 16

DEFAULT_TEMP_URL_TTL_SECONDS: int = 20 * 60
