# ============================================================================
# PLAQUES API MODELS
# ============================================================================
# STATUS: Standalone Models - Plaques API Pydantic models
# PURPOSE: Query parameter validation and nested plaque response documents
# EXPORTS: Plaque (+ nested parts), PlaqueDetail, PlaqueList, PlaqueSearchResult,
#          ListQueryParameters, SearchQueryParameters, BoundingBox
# INTERFACES: Pydantic BaseModel
# DEPENDENCIES: pydantic, typing
# PATTERNS: Data Transfer Objects (DTOs)
# ============================================================================

"""
Plaques API Pydantic Models

Response documents are dumped WITHOUT exclude_none: an absent enrichment
block is serialized as ``null`` so clients can tell "no data" apart from
"field not supported".
"""

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field, field_validator, model_validator


# ============================================================================
# QUERY PARAMETERS
# ============================================================================

class BoundingBox(BaseModel):
    """
    Bounding box filter on the display position.

    Each edge is optional. ``west > east`` means the box crosses the
    antimeridian.
    """
    north: Optional[float] = Field(default=None, ge=-90, le=90)
    south: Optional[float] = Field(default=None, ge=-90, le=90)
    east: Optional[float] = Field(default=None, ge=-180, le=180)
    west: Optional[float] = Field(default=None, ge=-180, le=180)

    @model_validator(mode="after")
    def check_latitude_order(self) -> "BoundingBox":
        if self.north is not None and self.south is not None and self.south > self.north:
            raise ValueError(f"south ({self.south}) must not be greater than north ({self.north})")
        return self

    @property
    def is_empty(self) -> bool:
        return all(v is None for v in (self.north, self.south, self.east, self.west))

    @property
    def crosses_antimeridian(self) -> bool:
        return self.east is not None and self.west is not None and self.west > self.east


class ListQueryParameters(BaseModel):
    """Validated parameters for the list endpoint."""
    limit: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum number of plaques to return (clamped to the configured maximum)"
    )
    offset: int = Field(
        default=0,
        ge=0,
        description="Number of plaques to skip"
    )
    confidence_threshold: Optional[float] = Field(
        default=None,
        ge=0,
        le=1,
        description="Minimum recognition confidence"
    )
    bounds: BoundingBox = Field(default_factory=BoundingBox)


class SearchQueryParameters(BaseModel):
    """Validated parameters for the search endpoint."""
    text: str = Field(
        min_length=1,
        description="Case-insensitive substring to look for in the plaque text"
    )
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)
    confidence_threshold: Optional[float] = Field(default=None, ge=0, le=1)

    @field_validator("text")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("search text must not be blank")
        return v


# ============================================================================
# PLAQUE DOCUMENT PARTS
# ============================================================================

class LatLng(BaseModel):
    latitude: float
    longitude: float


class Rectangle(BaseModel):
    """Pixel-space rectangle (detector box or crop)."""
    x: float
    y: float
    width: float
    height: float


class Size(BaseModel):
    width: int
    height: int


class PlaqueImages(BaseModel):
    """Candidate image URLs. ``display`` is the best one available."""
    original: Optional[str] = None
    cropped: Optional[str] = None
    plaque: Optional[str] = None
    display: Optional[str] = None


class CameraInfo(BaseModel):
    """Where the street photo was taken from."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    bearing: Optional[float] = None
    altitude: Optional[float] = None


class ExifData(BaseModel):
    gps: Optional[LatLng] = None
    make: Optional[str] = None
    model: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    captured_at: Optional[str] = None


class Detection(BaseModel):
    """Object detector output for the plaque."""
    confidence: Optional[float] = None
    bbox: Optional[Rectangle] = None
    image_size: Optional[Size] = None


class OcrReading(BaseModel):
    text: Optional[str] = None
    confidence: Optional[float] = None


class OcrConsensus(BaseModel):
    score: Optional[float] = None
    text: Optional[str] = None
    agreement: Optional[Union[Dict[str, Any], List[Any]]] = None


class OcrResults(BaseModel):
    """Per-service readings plus the cross-service consensus."""
    services: Dict[str, Optional[OcrReading]]
    consensus: Optional[OcrConsensus] = None


class PlaqueGeometry(BaseModel):
    """Camera-to-plaque estimate and the crop used for the plaque image."""
    estimated_distance_m: Optional[float] = None
    offset_bearing: Optional[float] = None
    crop: Optional[Rectangle] = None


class Plaque(BaseModel):
    """A shaped plaque observation."""
    id: Union[int, str]
    text: str
    confidence: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_source: Optional[str] = Field(
        default=None,
        description="'projected' when the projected position supersedes the camera fix"
    )
    original_location: Optional[LatLng] = None
    projected_location: Optional[LatLng] = None
    images: Optional[PlaqueImages] = None
    camera: Optional[CameraInfo] = None
    exif: Optional[ExifData] = None
    detection: Optional[Detection] = None
    ocr: Optional[OcrResults] = None
    geometry: Optional[PlaqueGeometry] = None
    created_at: Optional[str] = None


# ============================================================================
# RESPONSES
# ============================================================================

class PlaqueDetail(BaseModel):
    plaque: Plaque


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    count: int
    has_more: bool


class PlaqueList(BaseModel):
    plaques: List[Plaque]
    pagination: Pagination
    filters: Dict[str, Any]


class PlaqueSearchResult(BaseModel):
    query: str
    plaques: List[Plaque]
    count: int
    limit: int
    offset: int
