"""Pydantic schemas for the analytics endpoints."""
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


UsagePeriod = Literal["hourly", "daily", "weekly", "monthly"]


class DatabaseStats(BaseModel):
    total_images: int = 0
    avg_name_length: Optional[float] = None
    avg_description_length: Optional[float] = None
    unique_authors: int = 0
    oldest_image: Optional[datetime] = None
    newest_image: Optional[datetime] = None


class StorageStats(BaseModel):
    total_files: int = 0
    total_size_bytes: int = 0
    total_size_mb: float = 0.0
    average_file_size_bytes: int = 0


class UsageBucket(BaseModel):
    time_period: str
    uploads_count: int
    unique_authors: int


class AuthorStats(BaseModel):
    author: str
    images_count: int
    avg_description_length: Optional[float] = None
    first_upload: Optional[datetime] = None
    last_upload: Optional[datetime] = None


class TimelineDay(BaseModel):
    date: date
    uploads: int
    authors: Optional[str] = None
    image_names: Optional[str] = None


class DateRange(BaseModel):
    oldest: Optional[datetime] = None
    newest: Optional[datetime] = None


class SummaryTotals(BaseModel):
    total_images: int = 0
    unique_authors: int = 0
    total_storage_mb: float = 0.0
    average_daily_uploads: float = 0.0
    date_range: DateRange = Field(default_factory=DateRange)


class DatabaseInfo(BaseModel):
    avg_name_length: float = 0.0
    avg_description_length: float = 0.0


class AnalyticsSummary(BaseModel):
    """Everything the dashboard shows on its first screen."""
    summary: SummaryTotals
    storage: StorageStats
    top_authors: List[AuthorStats]
    database_info: DatabaseInfo


class UsageResponse(BaseModel):
    period: UsagePeriod
    data: List[UsageBucket]


class AuthorsResponse(BaseModel):
    count: int
    data: List[AuthorStats]


class TimelineResponse(BaseModel):
    count: int
    data: List[TimelineDay]
