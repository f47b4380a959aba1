"""Shared test fixtures and configuration for backend tests."""
from typing import Generator

import pytest
from fastapi.testclient import TestClient

from gallery.config import AppConfig
from gallery.db import RecordStore
from gallery.main import create_app

# Smallest valid PNG: 1x1 transparent pixel
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000154a24f5d0000000049454e44ae426082"
)


@pytest.fixture
def config(tmp_path) -> AppConfig:
    """Settings pointing every path into the test's temp directory."""
    return AppConfig(
        server={"environment": "production"},
        storage={"content_dir": str(tmp_path / "content")},
        database={"path": str(tmp_path / "gallery.duckdb"), "pool_size": 4},
        logging={"level": "info", "file": ""},
    )


@pytest.fixture
def content_dir(config) -> str:
    return config.storage.content_dir


@pytest.fixture
def store(config) -> Generator[RecordStore, None, None]:
    """An open record store on a temp database."""
    record_store = RecordStore(db_path=config.database.path, pool_size=config.database.pool_size)
    record_store.open()
    yield record_store
    record_store.close()


@pytest.fixture
def api_client(config) -> Generator[TestClient, None, None]:
    """TestClient running the full lifespan against temp storage."""
    app = create_app(config)
    with TestClient(app) as client:
        yield client


async def chunked(*parts: bytes):
    """Async generator yielding the given chunks."""
    for part in parts:
        yield part
