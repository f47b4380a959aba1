"""FastAPI router for the gallery endpoints.

Endpoints:
    POST /new                 Upload an image with name/description/author
    GET  /all                 List every image, newest first
    GET  /images/{file_name}  Serve a stored image file
"""
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse

from ..config import AppConfig
from ..db import RecordStore
from ..errors import PayloadTooLarge, UploadValidationError
from .schemas import ImageListResponse, ImageRecord, UploadResponse
from .service import IngestionService, UploadRequest, UploadState
from .stream import iter_upload
from .validation import validate_extension, validate_file_path

logger = logging.getLogger(__name__)

router = APIRouter(tags=["images"])

UPLOAD_PATH = "/new"

# Room for boundaries, part headers and the three text fields
MULTIPART_OVERHEAD_BYTES = 64 * 1024

# The store and services are created in the application lifespan and kept on
# app.state; tests can swap them through app.dependency_overrides.


def get_config_dep(request: Request) -> AppConfig:
    return request.app.state.config


def get_store(request: Request) -> RecordStore:
    return request.app.state.store


def get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion


def rejection_body(rejection: UploadValidationError) -> Dict[str, object]:
    """JSON body for a rejected upload.

    Field validation reports every problem under ``messages``; the other
    codes carry a single ``message``.
    """
    if rejection.code == "validation_error":
        return {"error": rejection.code, "messages": rejection.messages}
    return {"error": rejection.code, "message": rejection.messages[0]}


def _server_error(config: AppConfig, code: str, exc: BaseException, fallback: str) -> JSONResponse:
    message = str(exc) if config.server.is_development else fallback
    return JSONResponse({"error": code, "message": message}, status_code=500)


async def limit_upload_size(request: Request, call_next):
    """HTTP middleware refusing an upload whose declared size is already too big.

    Form parsing spools the whole multipart body to disk before the route
    runs, so the byte ceiling is checked against ``Content-Length`` first.
    Requests without the header are still bounded by the stream collector.
    """
    if request.method == "POST" and request.url.path == UPLOAD_PATH:
        config: AppConfig = request.app.state.config
        limit = config.storage.max_file_size_bytes + MULTIPART_OVERHEAD_BYTES
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > limit:
            logger.warning("Upload refused: Content-Length %s > %d bytes", declared, limit)
            error = PayloadTooLarge(config.storage.max_file_size_bytes, int(declared))
            return JSONResponse(
                {"error": "file_too_large", "message": str(error)},
                status_code=413,
            )
    return await call_next(request)


@router.post(UPLOAD_PATH, response_model=UploadResponse)
async def upload_image(
    image: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    service: IngestionService = Depends(get_ingestion_service),
    config: AppConfig = Depends(get_config_dep),
):
    """Upload a new image.

    Accepted extensions: jpg, jpeg, png, gif, webp. The file is stored under
    a generated name; the client filename is only used for its extension.

    Returns:
        200 with ``{success, fileName, id, message}``.
        400 with ``{error, message}`` or ``{error: "validation_error", messages}``.
        413 when the file is larger than ``storage.max_file_size_bytes``.
        500 with ``{error: "upload_failed", message}``.
    """
    request = UploadRequest(
        filename=image.filename if image is not None else None,
        chunks=iter_upload(image, config.storage.chunk_size) if image is not None else None,
        fields={"name": name, "description": description, "author": author},
        close=image.close if image is not None else None,
    )
    outcome = await service.ingest(request)

    if outcome.state == UploadState.REJECTED:
        return JSONResponse(rejection_body(outcome.rejection), status_code=400)

    if outcome.state == UploadState.FAILED:
        if isinstance(outcome.error, PayloadTooLarge):
            return JSONResponse(
                {"error": "file_too_large", "message": str(outcome.error)},
                status_code=413,
            )
        return _server_error(config, "upload_failed", outcome.error, "Failed to upload image")

    return UploadResponse(file_name=outcome.file_name, id=outcome.record_id)


@router.get("/all", response_model=ImageListResponse)
async def list_images(
    store: RecordStore = Depends(get_store),
    config: AppConfig = Depends(get_config_dep),
):
    """List every stored image, newest first."""
    try:
        rows = await store.list_images()
    except Exception as exc:
        logger.error("Error fetching images: %s", exc)
        return _server_error(config, "fetch_failed", exc, "Failed to fetch images")

    images = [ImageRecord(**row) for row in rows]
    return ImageListResponse(count=len(images), data=images)


@router.get("/images/{file_name}")
async def get_image(
    file_name: str,
    service: IngestionService = Depends(get_ingestion_service),
):
    """Serve a stored image by its generated filename."""
    if not validate_file_path(file_name) or not validate_extension(file_name):
        return JSONResponse(
            {"error": "invalid_filename", "message": "Invalid filename"},
            status_code=400,
        )

    file_path = service.content_dir / file_name
    if not file_path.is_file():
        return JSONResponse(
            {"error": "not_found", "message": "Image not found"},
            status_code=404,
        )
    return FileResponse(path=file_path)
