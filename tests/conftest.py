"""
Shared pytest fixtures for the plaques API test suite.

No database is needed: repository tests mock ``psycopg.connect`` and
trigger tests inject a mocked repository behind the real service.
"""

import os
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

# Set before any application import so the root config validates
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_DATABASE", "plaques_test")
os.environ.setdefault("POSTGRES_USER", "tester")
os.environ.setdefault("POSTGRES_PASSWORD", "not-a-real-password")
os.environ.setdefault("POSTGRES_SSLMODE", "disable")

from config import get_app_config
from plaques_api.config import PlaquesConfig, reset_plaques_config
from plaques_api.repository import PlaquesRepository
from plaques_api.service import PlaquesService


@pytest.fixture(autouse=True)
def _fresh_config():
    """Config singletons re-read the environment for every test."""
    get_app_config.cache_clear()
    reset_plaques_config()
    yield
    get_app_config.cache_clear()
    reset_plaques_config()


@pytest.fixture
def plaques_config() -> PlaquesConfig:
    return PlaquesConfig(
        table_name="public.plaques",
        cors_allowed_origins=["https://csp-plaques.web.app", "http://localhost:3000"],
        default_limit=100,
        search_default_limit=50,
        max_limit=500
    )


@pytest.fixture
def mock_repository(plaques_config):
    """Repository double; tests set return values per method."""
    repo = MagicMock(spec=PlaquesRepository)
    repo.config = plaques_config
    return repo


@pytest.fixture
def service(plaques_config, mock_repository) -> PlaquesService:
    return PlaquesService(plaques_config, repository=mock_repository)


@pytest.fixture
def minimal_row():
    """A row with nothing but an id."""
    return {"id": "plq-001"}


@pytest.fixture
def full_row():
    """A row with every enrichment column populated."""
    return {
        "id": "plq-042",
        "text": "Charles Dickens lived here 1837-1839",
        "confidence": Decimal("0.93"),
        "latitude": 51.5235,
        "longitude": -0.1161,
        "projected_latitude": 51.52361,
        "projected_longitude": -0.11598,
        "image_url": "https://img.example/raw/42.jpg",
        "original_image_url": "https://img.example/original/42.jpg",
        "cropped_image_url": "https://img.example/cropped/42.jpg",
        "plaque_image_url": "https://img.example/plaque/42.jpg",
        "camera_latitude": 51.5234,
        "camera_longitude": -0.1162,
        "camera_bearing": 87.5,
        "camera_altitude": 21.0,
        "exif_gps_latitude": 51.5234,
        "exif_gps_longitude": -0.1162,
        "exif_camera_make": "Apple",
        "exif_camera_model": "iPhone 13",
        "exif_image_width": 4032,
        "exif_image_height": 3024,
        "exif_datetime_original": datetime(2023, 5, 1, 12, 30, tzinfo=timezone.utc),
        "yolo_confidence": 0.88,
        "yolo_bbox_x": 1200,
        "yolo_bbox_y": 800,
        "yolo_bbox_width": 640,
        "yolo_bbox_height": 640,
        "yolo_image_width": 4032,
        "yolo_image_height": 3024,
        "google_vision_text": "CHARLES DICKENS lived here",
        "google_vision_confidence": 0.91,
        "azure_vision_text": None,
        "azure_vision_confidence": None,
        "openai_text": "Charles Dickens lived here 1837-1839",
        "openai_confidence": 0.95,
        "gemini_text": "Charles Dickens lived here",
        "gemini_confidence": 0.9,
        "tesseract_text": None,
        "tesseract_confidence": None,
        "ocr_consensus_score": 0.87,
        "ocr_consensus_text": "Charles Dickens lived here 1837-1839",
        "ocr_agreement_matrix": '{"google_vision": {"openai": 0.8, "gemini": 0.9}}',
        "estimated_distance_m": Decimal("7.4"),
        "offset_bearing": 92.0,
        "crop_x": 1100,
        "crop_y": 700,
        "crop_width": 840,
        "crop_height": 840,
        "created_at": datetime(2023, 5, 2, 8, 0, tzinfo=timezone.utc),
    }
