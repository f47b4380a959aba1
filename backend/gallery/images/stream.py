"""Bounded collection of an uploaded file into memory."""
import logging
from contextlib import aclosing
from typing import AsyncGenerator

from fastapi import UploadFile

from ..config import MAX_FILE_SIZE_BYTES
from ..errors import PayloadTooLarge

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


async def iter_upload(upload: UploadFile, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncGenerator[bytes, None]:
    """Yield an ``UploadFile`` in chunks, closing it when done or abandoned."""
    try:
        while True:
            chunk = await upload.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        await upload.close()


async def collect(chunks: AsyncGenerator[bytes, None], max_bytes: int = MAX_FILE_SIZE_BYTES) -> bytes:
    """Read a chunk stream to the end, refusing to hold more than *max_bytes*.

    Args:
        chunks: Async generator of byte chunks. It is closed on every exit path.
        max_bytes: Byte ceiling for the whole stream.

    Returns:
        The concatenated bytes.

    Raises:
        PayloadTooLarge: As soon as the running total exceeds *max_bytes*;
            the chunk that crossed the limit is not kept.
        OSError: If the stream fails while being read.
    """
    received = 0
    parts = []
    async with aclosing(chunks) as stream:
        try:
            async for chunk in stream:
                received += len(chunk)
                if received > max_bytes:
                    logger.warning(
                        "Upload stream exceeded limit: %d > %d bytes", received, max_bytes
                    )
                    raise PayloadTooLarge(max_bytes, received)
                parts.append(chunk)
        except (PayloadTooLarge, OSError):
            raise
        except Exception as exc:
            raise OSError(f"Upload stream failed: {exc}") from exc
    return b"".join(parts)
