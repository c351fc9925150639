"""Pydantic schemas for API requests and responses."""

from driver.schemas.storage import (
    ErrorResponse,
    ListResponse,
    MoveRequest,
    StatResponse,
    UploadResponse,
    URLResponse
)

__all__ = [
    "ErrorResponse",
    "ListResponse",
    "MoveRequest",
    "StatResponse",
    "UploadResponse",
    "URLResponse"
]
