"""
Tests for row shaping and the service layer.
"""

import json
from decimal import Decimal
from unittest.mock import call

import pytest

from plaques_api.models import BoundingBox, ListQueryParameters, SearchQueryParameters
from plaques_api.repository import PlaqueFilters
from plaques_api.service import OCR_SERVICES, PlaqueNotFoundError, build_plaque


# ============================================================================
# build_plaque
# ============================================================================

class TestBuildPlaqueMinimalRow:

    def test_defaults_only_text_and_confidence(self, minimal_row):
        plaque = build_plaque(minimal_row, text_placeholder="Unknown text")

        assert plaque.id == "plq-001"
        assert plaque.text == "Unknown text"
        assert plaque.confidence == 0

    def test_every_enrichment_block_is_null(self, minimal_row):
        plaque = build_plaque(minimal_row)

        assert plaque.latitude is None
        assert plaque.longitude is None
        assert plaque.location_source is None
        assert plaque.original_location is None
        assert plaque.projected_location is None
        assert plaque.camera is None
        assert plaque.exif is None
        assert plaque.detection is None
        assert plaque.ocr is None
        assert plaque.geometry is None
        assert plaque.images is None

    def test_null_blocks_are_serialized_not_omitted(self, minimal_row):
        doc = build_plaque(minimal_row).model_dump(mode="json")

        for key in ("images", "exif", "detection", "ocr", "geometry", "camera", "projected_location"):
            assert key in doc
            assert doc[key] is None

    def test_empty_text_uses_placeholder(self):
        plaque = build_plaque({"id": 1, "text": ""}, text_placeholder="?")
        assert plaque.text == "?"

    def test_integer_id_kept(self):
        assert build_plaque({"id": 17}).id == 17


class TestBuildPlaqueFullRow:

    def test_projected_position_supersedes_camera_fix(self, full_row):
        plaque = build_plaque(full_row)

        assert plaque.latitude == pytest.approx(51.52361)
        assert plaque.longitude == pytest.approx(-0.11598)
        assert plaque.location_source == "projected"
        assert plaque.original_location.latitude == pytest.approx(51.5235)

    def test_camera_fix_used_without_projection(self, full_row):
        full_row["projected_latitude"] = None
        plaque = build_plaque(full_row)

        assert plaque.latitude == pytest.approx(51.5235)
        assert plaque.location_source == "camera"
        assert plaque.projected_location is None

    def test_half_a_projection_is_ignored(self, full_row):
        full_row["projected_longitude"] = None
        plaque = build_plaque(full_row)

        assert plaque.projected_location is None
        assert plaque.longitude == pytest.approx(-0.1161)

    def test_decimal_values_become_floats(self, full_row):
        doc = build_plaque(full_row).model_dump(mode="json")

        assert doc["confidence"] == pytest.approx(0.93)
        assert isinstance(doc["confidence"], float)
        assert doc["geometry"]["estimated_distance_m"] == pytest.approx(7.4)
        # Whole document must be JSON serializable
        json.dumps(doc)

    def test_images_prefer_plaque_crop_for_display(self, full_row):
        images = build_plaque(full_row).images

        assert images.display == "https://img.example/plaque/42.jpg"
        assert images.original == "https://img.example/original/42.jpg"

    def test_images_fall_back_to_raw_url(self):
        images = build_plaque({"id": 1, "image_url": "https://img.example/raw.jpg"}).images

        assert images.original == "https://img.example/raw.jpg"
        assert images.display == "https://img.example/raw.jpg"

    def test_exif_block(self, full_row):
        exif = build_plaque(full_row).exif

        assert exif.make == "Apple"
        assert exif.gps.latitude == pytest.approx(51.5234)
        assert exif.width == 4032
        assert exif.captured_at == "2023-05-01T12:30:00+00:00"

    def test_exif_string_timestamp_passes_through(self):
        exif = build_plaque({"id": 1, "exif_datetime_original": "2023:05:01 12:30:00"}).exif

        assert exif.captured_at == "2023:05:01 12:30:00"
        assert exif.gps is None

    def test_detection_block(self, full_row):
        detection = build_plaque(full_row).detection

        assert detection.confidence == pytest.approx(0.88)
        assert detection.bbox.width == 640
        assert detection.image_size.height == 3024

    def test_partial_bbox_is_null_but_detection_present(self):
        detection = build_plaque({"id": 1, "yolo_confidence": 0.5, "yolo_bbox_x": 10}).detection

        assert detection is not None
        assert detection.bbox is None
        assert detection.image_size is None

    def test_nan_image_size_is_treated_as_missing(self, full_row):
        full_row["yolo_image_width"] = float("nan")
        full_row["exif_image_height"] = float("inf")

        plaque = build_plaque(full_row)

        assert plaque.detection.image_size is None
        assert plaque.exif.height is None
        assert plaque.exif.width == 4032

    def test_nan_confidence_defaults_to_zero(self, full_row):
        full_row["confidence"] = Decimal("NaN")
        full_row["latitude"] = float("nan")
        full_row["projected_latitude"] = None

        plaque = build_plaque(full_row)

        assert plaque.confidence == 0
        assert plaque.original_location is None
        assert plaque.location_source is None
        # Strict parsing rejects NaN tokens
        json.loads(plaque.model_dump_json(), parse_constant=pytest.fail)

    def test_images_null_without_image_columns(self):
        assert build_plaque({"id": 1, "text": "x"}).model_dump(mode="json")["images"] is None

    def test_ocr_services_and_consensus(self, full_row):
        ocr = build_plaque(full_row).ocr

        assert set(ocr.services) == set(OCR_SERVICES)
        assert ocr.services["openai"].confidence == pytest.approx(0.95)
        assert ocr.services["azure_vision"] is None
        assert ocr.services["tesseract"] is None
        assert ocr.consensus.score == pytest.approx(0.87)
        assert ocr.consensus.agreement == {"google_vision": {"openai": 0.8, "gemini": 0.9}}

    def test_agreement_matrix_as_json_column(self, full_row):
        full_row["ocr_agreement_matrix"] = [[1.0, 0.8], [0.8, 1.0]]
        assert build_plaque(full_row).ocr.consensus.agreement == [[1.0, 0.8], [0.8, 1.0]]

    def test_malformed_agreement_matrix_is_null(self, full_row):
        full_row["ocr_agreement_matrix"] = "{not json"
        consensus = build_plaque(full_row).ocr.consensus

        assert consensus.agreement is None
        assert consensus.score == pytest.approx(0.87)

    def test_single_service_reading_creates_ocr_block(self):
        ocr = build_plaque({"id": 1, "tesseract_text": "BLUE PLAQUE"}).ocr

        assert ocr.services["tesseract"].text == "BLUE PLAQUE"
        assert ocr.services["tesseract"].confidence is None
        assert ocr.consensus is None

    def test_geometry_block(self, full_row):
        geometry = build_plaque(full_row).geometry

        assert geometry.offset_bearing == pytest.approx(92.0)
        assert geometry.crop.x == 1100

    def test_geometry_without_crop(self):
        geometry = build_plaque({"id": 1, "estimated_distance_m": 3.2}).geometry

        assert geometry.estimated_distance_m == pytest.approx(3.2)
        assert geometry.crop is None

    def test_created_at_is_iso(self, full_row):
        assert build_plaque(full_row).created_at == "2023-05-02T08:00:00+00:00"


# ============================================================================
# PlaquesService
# ============================================================================

class TestPlaquesService:

    def test_get_plaque(self, service, mock_repository, full_row):
        mock_repository.get_plaque_by_id.return_value = full_row

        detail = service.get_plaque("plq-042")

        assert detail.plaque.id == "plq-042"
        mock_repository.get_plaque_by_id.assert_called_once_with("plq-042")

    def test_get_plaque_not_found(self, service, mock_repository):
        mock_repository.get_plaque_by_id.return_value = None

        with pytest.raises(PlaqueNotFoundError):
            service.get_plaque("missing")

    def test_list_uses_default_limit_and_filters(self, service, mock_repository, full_row):
        mock_repository.list_plaques.return_value = ([full_row], 3)
        params = ListQueryParameters(confidence_threshold=0.5, bounds=BoundingBox(north=52, south=51))

        result = service.list_plaques(params)

        mock_repository.list_plaques.assert_called_once_with(
            limit=100,
            offset=0,
            filters=PlaqueFilters(confidence_threshold=0.5, bounds=params.bounds)
        )
        assert result.pagination.total == 3
        assert result.pagination.count == 1
        assert result.pagination.has_more is True
        assert result.filters["bounds"]["north"] == 52
        assert result.filters["bounds"]["east"] is None

    def test_list_clamps_limit(self, service, mock_repository):
        mock_repository.list_plaques.return_value = ([], 0)

        result = service.list_plaques(ListQueryParameters(limit=10_000))

        assert mock_repository.list_plaques.call_args.kwargs["limit"] == 500
        assert result.pagination.limit == 500
        assert result.pagination.has_more is False
        assert result.filters["bounds"] is None

    def test_search(self, service, mock_repository, full_row, minimal_row):
        mock_repository.search_plaques.return_value = [full_row, minimal_row]

        result = service.search_plaques(SearchQueryParameters(text="  Dickens ", offset=5))

        assert mock_repository.search_plaques.call_args == call(
            text="Dickens", limit=50, offset=5, confidence_threshold=None
        )
        assert result.query == "Dickens"
        assert result.count == 2
        assert result.plaques[1].text == "Unknown text"
