"""Pydantic schemas for storage driver endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body returned by the exception handlers."""
    detail: str
    code: str


class StatResponse(BaseModel):
    """Response model for stat."""
    path: str
    size: int
    modified_at: datetime
    is_dir: bool


class ListResponse(BaseModel):
    """Response model for a single-level listing."""
    path: str
    children: List[str]


class MoveRequest(BaseModel):
    """Request model for moving a path."""
    source: str
    destination: str


class UploadResponse(BaseModel):
    """Response model for streamed uploads."""
    path: str
    size: int


class URLResponse(BaseModel):
    """Response model for temporary URLs."""
    path: str
    url: str
    method: str
    expires_at: Optional[datetime] = None
