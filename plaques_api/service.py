# ============================================================================
# PLAQUES SERVICE
# ============================================================================
# STATUS: Standalone Service - Plaques API business logic
# PURPOSE: Row-to-document shaping and response assembly for the endpoints
# EXPORTS: PlaquesService, PlaqueNotFoundError, build_plaque, OCR_SERVICES
# PYDANTIC_MODELS: Plaque, PlaqueDetail, PlaqueList, PlaqueSearchResult
# DEPENDENCIES: typing, datetime, math, json, util_logger
# SOURCE: Repository layer (PlaquesRepository)
# PATTERNS: Service Layer, Facade Pattern
# ============================================================================

"""
Plaques Service - Business Logic Layer

Sits between the HTTP triggers and the repository:
- Turns flat table rows into nested Plaque documents
- Applies paging defaults and limits
- Builds list/search/detail response models

Shaping rules:
- A nested block is null unless at least one of its source columns is set.
- Pairs and rectangles (lat/lng, bbox, crop, image size) are null unless
  every coordinate is set.
- NaN and infinite numbers are treated as missing.
- Missing confidence becomes 0 and missing text becomes the configured
  placeholder. Nothing else is defaulted.
"""

import json
import math
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from util_logger import LoggerFactory, ComponentType
from .config import PlaquesConfig, get_plaques_config
from .repository import PlaquesRepository, PlaqueFilters
from .models import (
    CameraInfo,
    Detection,
    ExifData,
    LatLng,
    ListQueryParameters,
    OcrConsensus,
    OcrReading,
    OcrResults,
    Pagination,
    Plaque,
    PlaqueDetail,
    PlaqueGeometry,
    PlaqueImages,
    PlaqueList,
    PlaqueSearchResult,
    Rectangle,
    SearchQueryParameters,
    Size,
)

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "PlaquesService")

# Text-extraction services with <name>_text / <name>_confidence columns
OCR_SERVICES = ("google_vision", "azure_vision", "openai", "gemini", "tesseract")

_IMAGE_COLUMNS = ("image_url", "original_image_url", "cropped_image_url", "plaque_image_url")
_CAMERA_COLUMNS = ("camera_latitude", "camera_longitude", "camera_bearing", "camera_altitude")
_EXIF_COLUMNS = (
    "exif_gps_latitude", "exif_gps_longitude", "exif_camera_make", "exif_camera_model",
    "exif_image_width", "exif_image_height", "exif_datetime_original",
)
_DETECTION_COLUMNS = (
    "yolo_confidence", "yolo_bbox_x", "yolo_bbox_y", "yolo_bbox_width", "yolo_bbox_height",
    "yolo_image_width", "yolo_image_height",
)
_CONSENSUS_COLUMNS = ("ocr_consensus_score", "ocr_consensus_text", "ocr_agreement_matrix")
_GEOMETRY_COLUMNS = (
    "estimated_distance_m", "offset_bearing", "crop_x", "crop_y", "crop_width", "crop_height",
)


class PlaqueNotFoundError(LookupError):
    """No plaque row matches the requested id."""


# ============================================================================
# VALUE HELPERS
# ============================================================================

def _number(value: Any) -> Optional[float]:
    """Float (or int) for JSON output; NaN and infinities become None."""
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric value {value!r}")
        return None
    if not math.isfinite(number):
        logger.warning(f"Ignoring non-finite value {value!r}")
        return None
    return number


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _timestamp(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _any_set(row: Dict[str, Any], columns: Iterable[str]) -> bool:
    return any(row.get(c) is not None for c in columns)


def _lat_lng(row: Dict[str, Any], lat_column: str, lng_column: str) -> Optional[LatLng]:
    lat, lng = _number(row.get(lat_column)), _number(row.get(lng_column))
    if lat is None or lng is None:
        return None
    return LatLng(latitude=lat, longitude=lng)


def _rectangle(row: Dict[str, Any], x: str, y: str, width: str, height: str) -> Optional[Rectangle]:
    values = [_number(row.get(c)) for c in (x, y, width, height)]
    if any(v is None for v in values):
        return None
    return Rectangle(x=values[0], y=values[1], width=values[2], height=values[3])


def _size(row: Dict[str, Any], width: str, height: str) -> Optional[Size]:
    w, h = _number(row.get(width)), _number(row.get(height))
    if w is None or h is None:
        return None
    return Size(width=int(w), height=int(h))


def _agreement(value: Any, plaque_id: Any) -> Optional[Any]:
    """Agreement matrix arrives as a JSON column or as a JSON string."""
    if value is None or isinstance(value, (dict, list)):
        return value
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError) as e:
        logger.warning(f"Malformed OCR agreement matrix on plaque '{plaque_id}': {e}")
        return None
    if not isinstance(parsed, (dict, list)):
        logger.warning(f"OCR agreement matrix on plaque '{plaque_id}' is not an object or array")
        return None
    return parsed


# ============================================================================
# ROW SHAPING
# ============================================================================

def _build_images(row: Dict[str, Any]) -> Optional[PlaqueImages]:
    if not _any_set(row, _IMAGE_COLUMNS):
        return None
    original = _text(row.get("original_image_url")) or _text(row.get("image_url"))
    cropped = _text(row.get("cropped_image_url"))
    plaque = _text(row.get("plaque_image_url"))
    return PlaqueImages(
        original=original,
        cropped=cropped,
        plaque=plaque,
        display=plaque or cropped or original
    )


def _build_camera(row: Dict[str, Any]) -> Optional[CameraInfo]:
    if not _any_set(row, _CAMERA_COLUMNS):
        return None
    return CameraInfo(
        latitude=_number(row.get("camera_latitude")),
        longitude=_number(row.get("camera_longitude")),
        bearing=_number(row.get("camera_bearing")),
        altitude=_number(row.get("camera_altitude"))
    )


def _build_exif(row: Dict[str, Any]) -> Optional[ExifData]:
    if not _any_set(row, _EXIF_COLUMNS):
        return None
    width = _number(row.get("exif_image_width"))
    height = _number(row.get("exif_image_height"))
    return ExifData(
        gps=_lat_lng(row, "exif_gps_latitude", "exif_gps_longitude"),
        make=_text(row.get("exif_camera_make")),
        model=_text(row.get("exif_camera_model")),
        width=int(width) if width is not None else None,
        height=int(height) if height is not None else None,
        captured_at=_timestamp(row.get("exif_datetime_original"))
    )


def _build_detection(row: Dict[str, Any]) -> Optional[Detection]:
    if not _any_set(row, _DETECTION_COLUMNS):
        return None
    return Detection(
        confidence=_number(row.get("yolo_confidence")),
        bbox=_rectangle(row, "yolo_bbox_x", "yolo_bbox_y", "yolo_bbox_width", "yolo_bbox_height"),
        image_size=_size(row, "yolo_image_width", "yolo_image_height")
    )


def _build_ocr(row: Dict[str, Any]) -> Optional[OcrResults]:
    services: Dict[str, Optional[OcrReading]] = {}
    for name in OCR_SERVICES:
        text_col, conf_col = f"{name}_text", f"{name}_confidence"
        if _any_set(row, (text_col, conf_col)):
            services[name] = OcrReading(
                text=_text(row.get(text_col)),
                confidence=_number(row.get(conf_col))
            )
        else:
            services[name] = None

    consensus = None
    if _any_set(row, _CONSENSUS_COLUMNS):
        consensus = OcrConsensus(
            score=_number(row.get("ocr_consensus_score")),
            text=_text(row.get("ocr_consensus_text")),
            agreement=_agreement(row.get("ocr_agreement_matrix"), row.get("id"))
        )

    if consensus is None and all(v is None for v in services.values()):
        return None
    return OcrResults(services=services, consensus=consensus)


def _build_geometry(row: Dict[str, Any]) -> Optional[PlaqueGeometry]:
    if not _any_set(row, _GEOMETRY_COLUMNS):
        return None
    return PlaqueGeometry(
        estimated_distance_m=_number(row.get("estimated_distance_m")),
        offset_bearing=_number(row.get("offset_bearing")),
        crop=_rectangle(row, "crop_x", "crop_y", "crop_width", "crop_height")
    )


def build_plaque(row: Dict[str, Any], text_placeholder: str = "Unknown text") -> Plaque:
    """
    Shape one flat table row into a nested Plaque document.

    Args:
        row: Column name to value mapping, as returned by the repository
        text_placeholder: Text used when the row has no recognized text

    Returns:
        Plaque model
    """
    plaque_id = row["id"]
    original = _lat_lng(row, "latitude", "longitude")
    projected = _lat_lng(row, "projected_latitude", "projected_longitude")
    display = projected or original

    if projected is not None:
        location_source = "projected"
    elif original is not None:
        location_source = "camera"
    else:
        location_source = None

    confidence = _number(row.get("confidence"))
    text = _text(row.get("text"))

    return Plaque(
        id=plaque_id if isinstance(plaque_id, (int, str)) else str(plaque_id),
        text=text if text else text_placeholder,
        confidence=confidence if confidence is not None else 0,
        latitude=display.latitude if display else None,
        longitude=display.longitude if display else None,
        location_source=location_source,
        original_location=original,
        projected_location=projected,
        images=_build_images(row),
        camera=_build_camera(row),
        exif=_build_exif(row),
        detection=_build_detection(row),
        ocr=_build_ocr(row),
        geometry=_build_geometry(row),
        created_at=_timestamp(row.get("created_at"))
    )


# ============================================================================
# SERVICE
# ============================================================================

class PlaquesService:
    """
    Business logic service for the plaques endpoints.

    Responsibilities:
    - Apply paging defaults and the configured maximum page size
    - Call the repository
    - Shape rows and wrap them in response models
    """

    def __init__(
        self,
        config: Optional[PlaquesConfig] = None,
        repository: Optional[PlaquesRepository] = None
    ):
        self.config = config or get_plaques_config()
        self.repository = repository or PlaquesRepository(self.config)
        logger.info("PlaquesService initialized")

    def _shape(self, rows: List[Dict[str, Any]]) -> List[Plaque]:
        return [build_plaque(row, self.config.text_placeholder) for row in rows]

    def get_plaque(self, plaque_id: str) -> PlaqueDetail:
        """
        Fetch one plaque.

        Raises:
            PlaqueNotFoundError: If no row has this id
        """
        row = self.repository.get_plaque_by_id(plaque_id)
        if row is None:
            raise PlaqueNotFoundError(f"Plaque '{plaque_id}' not found")
        return PlaqueDetail(plaque=build_plaque(row, self.config.text_placeholder))

    def list_plaques(self, params: ListQueryParameters) -> PlaqueList:
        """List plaques ordered by confidence, with optional filters."""
        limit = self.config.clamp_limit(params.limit, self.config.default_limit)
        filters = PlaqueFilters(
            confidence_threshold=params.confidence_threshold,
            bounds=params.bounds
        )

        rows, total = self.repository.list_plaques(limit=limit, offset=params.offset, filters=filters)
        plaques = self._shape(rows)

        return PlaqueList(
            plaques=plaques,
            pagination=Pagination(
                total=total,
                limit=limit,
                offset=params.offset,
                count=len(plaques),
                has_more=params.offset + len(plaques) < total
            ),
            filters={
                "confidence_threshold": params.confidence_threshold,
                "bounds": None if params.bounds.is_empty else params.bounds.model_dump()
            }
        )

    def search_plaques(self, params: SearchQueryParameters) -> PlaqueSearchResult:
        """Case-insensitive text search ordered by confidence."""
        limit = self.config.clamp_limit(params.limit, self.config.search_default_limit)

        rows = self.repository.search_plaques(
            text=params.text,
            limit=limit,
            offset=params.offset,
            confidence_threshold=params.confidence_threshold
        )
        plaques = self._shape(rows)

        return PlaqueSearchResult(
            query=params.text,
            plaques=plaques,
            count=len(plaques),
            limit=limit,
            offset=params.offset
        )
