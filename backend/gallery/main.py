"""Photo Gallery Backend Application.

This is the main entry point for the photo gallery service. Clients upload
images with a name, description and author; the service stores the file on
disk and records its metadata in DuckDB.

Modules:
    - images: upload ingestion, listing and file serving
    - analytics: aggregate statistics over uploaded images
    - db: parameterized record store with a bounded connection pool
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from gallery import __version__
from gallery.analytics import AnalyticsService
from gallery.analytics.router import router as analytics_router
from gallery.config import AppConfig, get_config
from gallery.db import RecordStore
from gallery.images import IngestionService
from gallery.images.router import limit_upload_size
from gallery.images.router import router as images_router

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Configure logging
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

# Silence verbose third-party loggers.
for _noisy in (
    "httpx",
    "httpcore",
    "multipart",
    "python_multipart",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def configure_logging(config: AppConfig) -> Optional[logging.Handler]:
    """Apply the configured level and attach the log file handler.

    Returns:
        The file handler that was added, or None when file logging is off.
    """
    level = getattr(logging, config.logging.level.upper())
    logging.getLogger().setLevel(level)
    logger.info("Root logger level set to %s", config.logging.level.upper())

    if not config.logging.file:
        return None
    log_path = Path(config.logging.file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    return handler


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Settings to run with. Loaded from gallery.settings.yaml when
            omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the record store on startup and close it on shutdown."""
        app_config = config or get_config()
        app.state.config = app_config
        file_handler = configure_logging(app_config)

        store = RecordStore(
            db_path=app_config.database.path,
            pool_size=app_config.database.pool_size,
        )
        store.open()
        app.state.store = store
        app.state.ingestion = IngestionService(
            store=store,
            content_dir=app_config.storage.content_dir,
            max_file_size=app_config.storage.max_file_size_bytes,
        )
        app.state.analytics = AnalyticsService(
            store=store,
            content_dir=app_config.storage.content_dir,
        )
        logger.info(
            "Gallery ready: environment=%s content_dir=%s",
            app_config.server.environment,
            app_config.storage.content_dir,
        )

        yield  # Application runs here

        # Shutdown
        store.close()
        if file_handler is not None:
            logging.getLogger().removeHandler(file_handler)
            file_handler.close()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="PhotoGallery API",
        description="Photo gallery backend - image uploads, listing and analytics",
        version=__version__,
        lifespan=lifespan,
    )

    app.middleware("http")(limit_upload_size)
    app.include_router(images_router)
    app.include_router(analytics_router)

    @app.get("/")
    async def home() -> dict:
        """Service banner."""
        return {"title": "PhotoGallery", "version": __version__}

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object indicating the server is running.
        """
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    """Start the server with uvicorn using the configured host and port."""
    import uvicorn

    config = get_config()
    uvicorn.run(
        "gallery.main:app",
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level,
    )


if __name__ == "__main__":
    run()
