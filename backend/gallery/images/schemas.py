"""Pydantic schemas and limits for image uploads.

This module defines the data models for the gallery:
- ImageRecord: A persisted image row as returned by ``GET /all``
- UploadResponse: Body of a successful ``POST /new``
- ImageListResponse: Body of ``GET /all``

Files are stored flat in the content directory as ``<uuid>.<ext>``; all
metadata lives in the ``images`` table.
"""
from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


ALLOWED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")

# Upper bound for name, description and author
MAX_FIELD_LENGTH = 500

TEXT_FIELDS = ("name", "description", "author")


class ImageRecord(BaseModel):
    """A stored image and its metadata.

    ``path`` is the generated storage filename, never the client's filename.
    """
    id: int = Field(..., description="Server-assigned image ID")
    name: str = Field("", description="Sanitized image name")
    description: str = Field("", description="Sanitized description")
    author: str = Field("", description="Sanitized author")
    path: str = Field(..., description="Storage filename (<uuid>.<ext>)")
    created_at: datetime = Field(..., description="Insert timestamp (UTC)")


class UploadResponse(BaseModel):
    """Response after a successful upload."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    file_name: str = Field(..., alias="fileName", description="Stored filename")
    id: int = Field(..., description="New image ID")
    message: str = "Image uploaded successfully"


class ImageListResponse(BaseModel):
    """Response for the image listing, newest first."""
    success: bool = True
    count: int
    data: List[ImageRecord]
