"""Upload ingestion for the photo gallery.

An upload moves through these states:

    received -> validated -> stored -> persisted
        |            |          |
        v            v          v
     rejected      failed     failed (file removed)

Validation happens before any side effect. The file is written before the
record is inserted, so a record never points at a missing file; if the
insert fails the written file is removed again. Files are stored in the
content directory as ``{uuid}.{ext}``.
"""
import asyncio
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import AsyncGenerator, Awaitable, Callable, Dict, Optional

from ..config import MAX_FILE_SIZE_BYTES
from ..db import RecordStore
from ..errors import CleanupError, PayloadTooLarge, UploadValidationError
from .stream import collect
from .validation import (
    generate_file_name,
    sanitize,
    validate_extension,
    validate_file_path,
    validate_form_fields,
)

logger = logging.getLogger(__name__)


class UploadState(str, Enum):
    """Where an upload ended up."""
    RECEIVED = "received"
    VALIDATED = "validated"
    STORED = "stored"
    PERSISTED = "persisted"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class UploadRequest:
    """One inbound upload: an optional file part plus the text fields.

    ``close`` releases the underlying upload. It is awaited once the upload
    has been handled, whatever the outcome; closing ``chunks`` alone does
    not reach the upload when the generator was never started.
    """
    filename: Optional[str]
    chunks: Optional[AsyncGenerator[bytes, None]]
    fields: Dict[str, Optional[str]] = field(default_factory=dict)
    close: Optional[Callable[[], Awaitable[None]]] = None


@dataclass
class UploadOutcome:
    """Result of :meth:`IngestionService.ingest`.

    ``file_name`` and ``file_written`` describe what reached the content
    directory, which is what the compensating cleanup works from.
    """
    state: UploadState = UploadState.RECEIVED
    file_name: Optional[str] = None
    file_written: bool = False
    record_id: Optional[int] = None
    rejection: Optional[UploadValidationError] = None
    error: Optional[BaseException] = None
    cleanup_error: Optional[CleanupError] = None

    @property
    def ok(self) -> bool:
        return self.state == UploadState.PERSISTED


class IngestionService:
    """Validates an upload, writes it to disk and records it.

    Args:
        store: Open record store used for the insert.
        content_dir: Directory the image files are written to.
        max_file_size: Byte ceiling for a single upload.
    """

    def __init__(
        self,
        store: RecordStore,
        content_dir: str,
        max_file_size: int = MAX_FILE_SIZE_BYTES,
    ) -> None:
        self._store = store
        self._content_dir = Path(content_dir)
        self._max_file_size = max_file_size
        self._ensure_content_dir()

    @property
    def content_dir(self) -> Path:
        return self._content_dir

    def _ensure_content_dir(self) -> None:
        self._content_dir.mkdir(parents=True, exist_ok=True)

    # -----------------------------------------------------------------------
    # Pipeline
    # -----------------------------------------------------------------------

    def validate(self, request: UploadRequest) -> str:
        """Check the request and return the generated storage name.

        Raises:
            UploadValidationError: With the code the client should see.
        """
        if request.chunks is None or not request.filename:
            raise UploadValidationError("image required", ["Please provide an image file"])

        if not validate_extension(request.filename):
            raise UploadValidationError(
                "invalid_extension",
                ["Invalid file extension. Allowed: jpg, jpeg, png, gif, webp"],
            )

        errors = validate_form_fields(request.fields)
        if errors:
            raise UploadValidationError("validation_error", errors)

        file_name = generate_file_name(request.filename)
        if not validate_file_path(file_name):
            raise UploadValidationError("invalid_filename", ["Invalid filename"])
        return file_name

    async def ingest(self, request: UploadRequest) -> UploadOutcome:
        """Run one upload through validation, storage and persistence.

        Never raises for validation, size, I/O or store failures; those are
        reported through the returned outcome. Cancellation is re-raised
        after the content directory has been put back in order.
        """
        try:
            return await self._process(request)
        finally:
            await _release(request)

    async def _process(self, request: UploadRequest) -> UploadOutcome:
        outcome = UploadOutcome()

        try:
            outcome.file_name = self.validate(request)
        except UploadValidationError as exc:
            logger.warning("Upload rejected (%s): %s", exc.code, exc)
            outcome.state = UploadState.REJECTED
            outcome.rejection = exc
            return outcome
        outcome.state = UploadState.VALIDATED

        file_path = self._content_dir / outcome.file_name
        try:
            data = await collect(request.chunks, self._max_file_size)
            size = await self._write(file_path, data)
        except (PayloadTooLarge, OSError) as exc:
            logger.error("Storing upload %s failed: %s", outcome.file_name, exc)
            outcome.state = UploadState.FAILED
            outcome.error = exc
            return outcome
        outcome.file_written = True
        outcome.state = UploadState.STORED
        logger.info("Image saved: file_name=%s size=%d", outcome.file_name, size)

        insert = asyncio.ensure_future(
            self._store.insert_image(
                name=sanitize(request.fields.get("name")),
                description=sanitize(request.fields.get("description")),
                author=sanitize(request.fields.get("author")),
                path=outcome.file_name,
            )
        )
        try:
            outcome.record_id = await asyncio.shield(insert)
        except asyncio.CancelledError:
            await asyncio.wait([insert])
            if insert.cancelled() or insert.exception() is not None:
                self._discard(outcome)
            raise
        except Exception as exc:
            logger.error("Inserting record for %s failed: %s", outcome.file_name, exc)
            outcome.state = UploadState.FAILED
            outcome.error = exc
            self._discard(outcome)
            return outcome

        outcome.state = UploadState.PERSISTED
        logger.info(
            "Image record inserted: id=%s file_name=%s", outcome.record_id, outcome.file_name
        )
        return outcome

    # -----------------------------------------------------------------------
    # Content directory
    # -----------------------------------------------------------------------

    async def _write(self, file_path: Path, data: bytes) -> int:
        """Write *data* to *file_path* in an executor thread.

        If the caller is cancelled mid-write, the write is allowed to finish
        and whatever it produced is removed before the cancellation goes on.
        """
        loop = asyncio.get_event_loop()
        write = loop.run_in_executor(None, _write_file, file_path, data)
        try:
            return await asyncio.shield(write)
        except asyncio.CancelledError:
            await asyncio.wait([write])
            try:
                file_path.unlink(missing_ok=True)
            except OSError as exc:
                logger.error("Failed to remove %s after cancellation: %s", file_path.name, exc)
            raise

    def _discard(self, outcome: UploadOutcome) -> None:
        """Remove a written file whose record could not be inserted."""
        file_path = self._content_dir / outcome.file_name
        try:
            file_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            outcome.cleanup_error = CleanupError(outcome.file_name, exc)
            logger.error("%s", outcome.cleanup_error)
            return
        outcome.file_written = False
        logger.info("Removed orphaned file %s", outcome.file_name)


async def _release(request: UploadRequest) -> None:
    """Close the chunk stream and the upload behind it."""
    if request.chunks is not None:
        await request.chunks.aclose()
    if request.close is not None:
        try:
            await request.close()
        except OSError as exc:
            logger.warning("Failed to close upload %s: %s", request.filename, exc)


def _write_file(file_path: Path, data: bytes) -> int:
    """Write atomically: a hidden temp file in the same directory, then rename.

    Returns the size on disk, which must match ``len(data)``.
    """
    tmp_path = file_path.with_name(f".{file_path.name}.part")
    try:
        with open(tmp_path, "xb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, file_path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise

    size = file_path.stat().st_size
    if size != len(data):
        file_path.unlink(missing_ok=True)
        raise OSError(f"Short write for {file_path.name}: {size} of {len(data)} bytes")
    return size
