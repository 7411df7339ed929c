"""Shared pytest fixtures for GeoMemories.

Fixtures included:
- Storage: database (in-memory SQLite), storage, sample entries
- Media: documents_dir, settings, media_worker, generated images and videos
- Tasks: inline runner, qapp for thread-pool delivery
- HTTP: mock_session returning canned JSON
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import cv2
import numpy as np
from PIL import Image
from PySide6.QtCore import QCoreApplication
import pytest

from app.tasks import TaskRunner
from core.models import Coordinate
from infrastructure.db import Database
from infrastructure.media_service import MediaFileWorker
from infrastructure.settings import JsonSettings
from infrastructure.storage_service import StorageService

# =============================================================================
# Helper Functions
# =============================================================================


def create_test_image(
    path: Path, width: int = 64, height: int = 48, color: str = "red", fmt: str | None = None
) -> Path:
    """Write a solid-colour image and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (width, height), color=color).save(path, fmt)
    return path


def create_test_video(path: Path, seconds: float = 2.0, fps: int = 10, size=(64, 48)) -> Path:
    """Write a short MJPG .avi whose frames shift in colour over time."""
    path.parent.mkdir(parents=True, exist_ok=True)
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), fps, size)
    try:
        for i in range(int(seconds * fps)):
            frame = np.full((size[1], size[0], 3), (i * 10) % 256, dtype=np.uint8)
            writer.write(frame)
    finally:
        writer.release()
    return path


def make_response(payload: Any, status: int = 200) -> MagicMock:
    """A `requests.Response` stand-in returning `payload` from `.json()`."""
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


# =============================================================================
# Storage
# =============================================================================


@pytest.fixture
def database() -> Database:
    db = Database.in_memory()
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def storage(database: Database) -> StorageService:
    return StorageService(database)


@pytest.fixture
def paris() -> Coordinate:
    return Coordinate(48.8584, 2.2945)


@pytest.fixture
def tokyo() -> Coordinate:
    return Coordinate(35.6586, 139.7454)


# =============================================================================
# Media
# =============================================================================


@pytest.fixture
def documents_dir(tmp_path: Path) -> Path:
    return tmp_path / "documents"


@pytest.fixture
def settings(tmp_path: Path) -> JsonSettings:
    return JsonSettings.from_dict(
        {
            "media": {"jpeg_quality": 95, "thumbnail_mem_cache": 8, "thumbnail_side": 32},
            "wikipedia": {"timeout_sec": 5},
            "geocoding": {"timeout_sec": 5, "search_limit": 3},
        },
        base_dir=tmp_path,
    )


@pytest.fixture
def media_worker(storage: StorageService, documents_dir: Path, settings) -> MediaFileWorker:
    return MediaFileWorker(storage, documents_dir, settings)


@pytest.fixture
def picked_image(tmp_path: Path) -> Path:
    return create_test_image(tmp_path / "picked" / "sunset.png", 80, 60, "orange")


@pytest.fixture
def picked_video(tmp_path: Path) -> Path:
    return create_test_video(tmp_path / "picked" / "clip.avi", seconds=2.0)


# =============================================================================
# Tasks
# =============================================================================


@pytest.fixture
def runner() -> TaskRunner:
    return TaskRunner(inline=True)


@pytest.fixture(scope="session")
def qapp() -> QCoreApplication:
    return QCoreApplication.instance() or QCoreApplication([])


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture
def mock_session() -> MagicMock:
    session = MagicMock()
    session.get.return_value = make_response({})
    return session
