"""Aggregate statistics over the images table and the content directory.

All queries are read-only and go through :meth:`RecordStore.execute`. The
only user-influenced input, the usage period, selects one of a fixed set
of bucket formats; the requested value itself never reaches SQL.
"""
import asyncio
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..db import RecordStore

logger = logging.getLogger(__name__)

# strftime formats for each usage bucket; unknown periods fall back to daily
PERIOD_FORMATS = {
    "hourly": "%Y-%m-%d %H:00:00",
    "daily": "%Y-%m-%d",
    "weekly": "%Y-W%W",
    "monthly": "%Y-%m",
}

TOP_AUTHORS = 5
TIMELINE_DAYS = 30


class AnalyticsService:
    """Computes gallery statistics.

    Args:
        store: Open record store.
        content_dir: Directory holding the stored image files.
    """

    def __init__(self, store: RecordStore, content_dir: str) -> None:
        self._store = store
        self._content_dir = Path(content_dir)

    async def database_stats(self) -> Dict[str, Any]:
        rows = await self._store.execute(
            """
            SELECT
                COUNT(*) AS total_images,
                AVG(LENGTH(name)) AS avg_name_length,
                AVG(LENGTH(description)) AS avg_description_length,
                COUNT(DISTINCT author) AS unique_authors,
                MIN(created_at) AS oldest_image,
                MAX(created_at) AS newest_image
            FROM images
            """
        )
        return rows[0] if rows else {}

    async def storage_stats(self) -> Dict[str, Any]:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._scan_content_dir)

    def _scan_content_dir(self) -> Dict[str, Any]:
        total_size = 0
        file_count = 0
        try:
            entries = list(self._content_dir.iterdir())
        except OSError as exc:
            logger.warning("Failed to read content directory %s: %s", self._content_dir, exc)
            entries = []

        for entry in entries:
            # in-progress writes are hidden ".<name>.part" files
            if entry.name.startswith("."):
                continue
            try:
                if entry.is_file():
                    total_size += entry.stat().st_size
                    file_count += 1
            except OSError as exc:
                logger.warning("Failed to stat file %s: %s", entry.name, exc)

        return {
            "total_files": file_count,
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "average_file_size_bytes": round(total_size / file_count) if file_count else 0,
        }

    async def usage_stats(self, period: str = "daily") -> List[Dict[str, Any]]:
        """Upload counts per time bucket, oldest bucket first."""
        fmt = PERIOD_FORMATS.get(period, PERIOD_FORMATS["daily"])
        # strftime needs a constant format; fmt only ever comes from PERIOD_FORMATS
        return await self._store.execute(
            f"""
            SELECT
                strftime(created_at, '{fmt}') AS time_period,
                COUNT(*) AS uploads_count,
                COUNT(DISTINCT author) AS unique_authors
            FROM images
            GROUP BY time_period
            ORDER BY time_period ASC
            """
        )

    async def author_stats(self) -> List[Dict[str, Any]]:
        return await self._store.execute(
            """
            SELECT
                author,
                COUNT(*) AS images_count,
                AVG(LENGTH(description)) AS avg_description_length,
                MIN(created_at) AS first_upload,
                MAX(created_at) AS last_upload
            FROM images
            WHERE author IS NOT NULL AND author != ''
            GROUP BY author
            ORDER BY images_count DESC, author ASC
            """
        )

    async def timeline_stats(self) -> List[Dict[str, Any]]:
        return await self._store.execute(
            f"""
            SELECT
                CAST(created_at AS DATE) AS "date",
                COUNT(*) AS uploads,
                string_agg(DISTINCT author, ', ') AS authors,
                string_agg(name, ', ') AS image_names
            FROM images
            GROUP BY CAST(created_at AS DATE)
            ORDER BY "date" DESC
            LIMIT {TIMELINE_DAYS}
            """
        )

    async def summary(self) -> Dict[str, Any]:
        """Combine the database, storage and author statistics."""
        db_stats, storage, authors = await asyncio.gather(
            self.database_stats(),
            self.storage_stats(),
            self.author_stats(),
        )

        total_images = db_stats.get("total_images") or 0
        oldest = db_stats.get("oldest_image")
        newest = db_stats.get("newest_image")
        if total_images:
            average_daily = round(total_images / max(1, days_between(oldest, newest)), 2)
        else:
            average_daily = 0.0

        return {
            "summary": {
                "total_images": total_images,
                "unique_authors": db_stats.get("unique_authors") or 0,
                "total_storage_mb": storage["total_size_mb"],
                "average_daily_uploads": average_daily,
                "date_range": {"oldest": oldest, "newest": newest},
            },
            "storage": storage,
            "top_authors": authors[:TOP_AUTHORS],
            "database_info": {
                "avg_name_length": round(float(db_stats.get("avg_name_length") or 0), 2),
                "avg_description_length": round(
                    float(db_stats.get("avg_description_length") or 0), 2
                ),
            },
        }


def days_between(start: Optional[datetime], end: Optional[datetime]) -> int:
    """Number of calendar days spanned by two timestamps, at least 1.

    A span of zero counts as one day; any partial day rounds up.
    """
    if start is None or end is None:
        return 1
    seconds = abs((end - start).total_seconds())
    return math.ceil(seconds / 86400) + 1
