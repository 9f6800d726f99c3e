# ============================================================================
# PLAQUES API TRIGGERS
# ============================================================================
# STATUS: Standalone HTTP Triggers - plaque detail, list and search
# PURPOSE: Azure Functions HTTP handlers for the plaques endpoints
# EXPORTS: get_plaques_triggers, PlaqueDetailTrigger, PlaqueListTrigger, PlaqueSearchTrigger
# INTERFACES: Azure Functions HttpRequest/HttpResponse
# PYDANTIC_MODELS: ListQueryParameters, SearchQueryParameters (for validation)
# DEPENDENCIES: azure.functions, pydantic, json, uuid, urllib.parse
# PATTERNS: Trigger Pattern, Factory Pattern (get_plaques_triggers)
# ENTRY_POINTS: Function App route registration via get_plaques_triggers()
# ============================================================================

"""
Plaques API HTTP Triggers

Endpoints:
- GET /api/detail?id=<id>  or  GET /api/detail/<id> - Single plaque
- GET /api/list - Plaques ordered by confidence, with paging and filters
- GET /api/search?text=<text> - Case-insensitive text search

Each trigger:
1. Answers OPTIONS preflight (204) or sets CORS headers
2. Parses and validates query parameters (Pydantic)
3. Calls the service layer
4. Returns JSON (200), or {"error", "message"} with 400/404/500

Integration:
    In function_app.py:

    from plaques_api import get_plaques_triggers

    _triggers = {t['name']: t for t in get_plaques_triggers()}

    @app.route(route=_triggers['plaque_list']['route'], methods=["GET", "OPTIONS"],
               auth_level=func.AuthLevel.ANONYMOUS)
    def plaque_list(req: func.HttpRequest) -> func.HttpResponse:
        return _triggers['plaque_list']['handler'](req)
"""

import json
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlparse

import azure.functions as func
from pydantic import ValidationError

from util_logger import LoggerFactory, LogContext, ComponentType
from .config import PlaquesConfig, get_plaques_config
from .cors import cors_headers, preflight_response
from .models import ListQueryParameters, SearchQueryParameters
from .service import PlaquesService, PlaqueNotFoundError

SEARCH_TEXT_PARAMS = ("text", "q", "plaque_text")
BOUNDS_PARAMS = ("north", "south", "east", "west")


# ============================================================================
# TRIGGER REGISTRY FUNCTION
# ============================================================================

def get_plaques_triggers(service: Optional[PlaquesService] = None) -> List[Dict[str, Any]]:
    """
    Get list of plaques trigger configurations for function_app.py.

    Args:
        service: Shared service instance (one is created if not provided)

    Returns:
        List of dicts with keys 'name', 'route', 'methods' and 'handler'
    """
    service = service or PlaquesService()

    return [
        {
            'name': 'plaque_detail',
            'route': 'detail/{id?}',
            'methods': ['GET', 'OPTIONS'],
            'handler': PlaqueDetailTrigger(service).handle
        },
        {
            'name': 'plaque_list',
            'route': 'list',
            'methods': ['GET', 'OPTIONS'],
            'handler': PlaqueListTrigger(service).handle
        },
        {
            'name': 'plaque_search',
            'route': 'search',
            'methods': ['GET', 'OPTIONS'],
            'handler': PlaqueSearchTrigger(service).handle
        }
    ]


# ============================================================================
# HELPERS
# ============================================================================

def _present_params(req: func.HttpRequest, names) -> Dict[str, str]:
    """Query parameters from ``names`` that are present and non-blank."""
    return {
        name: req.params[name].strip()
        for name in names
        if req.params.get(name) is not None and req.params[name].strip()
    }


def _validation_message(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"] if part != "bounds")
        parts.append(f"{location}: {err['msg']}" if location else err["msg"])
    return "; ".join(parts)


# ============================================================================
# BASE TRIGGER CLASS
# ============================================================================

class BasePlaquesTrigger:
    """
    Base class for plaques triggers.

    Provides common functionality:
    - OPTIONS preflight and CORS headers on every response
    - Per-request logger with correlation context
    - JSON and error response formatting
    - Catch-all 500 handling
    """

    endpoint = "plaques"

    def __init__(
        self,
        service: Optional[PlaquesService] = None,
        config: Optional[PlaquesConfig] = None
    ):
        self.config = config or (service.config if service else get_plaques_config())
        self.service = service or PlaquesService(self.config)

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        """
        Entry point registered with the Function App.

        Args:
            req: Azure Functions HTTP request

        Returns:
            HttpResponse with CORS headers applied
        """
        if req.method.upper() == "OPTIONS":
            return preflight_response(req, self.config)

        log = LoggerFactory.create_logger(
            ComponentType.TRIGGER,
            type(self).__name__,
            context=LogContext(
                request_id=req.headers.get("x-request-id") or uuid.uuid4().hex[:8],
                endpoint=self.endpoint,
                origin=req.headers.get("Origin")
            )
        )

        try:
            response = self.process(req, log)
        except Exception as e:
            log.error(f"Error handling {self.endpoint} request: {e}", exc_info=True)
            response = self._error_response(
                message=f"Failed to query plaques: {e}",
                status_code=500,
                error="Internal Server Error"
            )

        for key, value in cors_headers(req, self.config).items():
            response.headers[key] = value
        return response

    def process(self, req: func.HttpRequest, log) -> func.HttpResponse:
        raise NotImplementedError

    def _json_response(self, data: Any, status_code: int = 200) -> func.HttpResponse:
        """
        Create JSON HTTP response.

        Pydantic models are dumped without exclude_none so absent
        enrichment blocks come out as null.
        """
        if hasattr(data, 'model_dump'):
            data = data.model_dump(mode='json')

        return func.HttpResponse(
            body=json.dumps(data, indent=2),
            status_code=status_code,
            mimetype="application/json"
        )

    def _error_response(
        self,
        message: str,
        status_code: int = 400,
        error: str = "Bad Request"
    ) -> func.HttpResponse:
        return func.HttpResponse(
            body=json.dumps({"error": error, "message": message}, indent=2),
            status_code=status_code,
            mimetype="application/json"
        )


# ============================================================================
# ENDPOINT TRIGGERS
# ============================================================================

class PlaqueDetailTrigger(BasePlaquesTrigger):
    """
    Single plaque trigger.

    Endpoint: GET /api/detail?id=<id> or GET /api/detail/<id>
    """

    endpoint = "detail"

    def process(self, req: func.HttpRequest, log) -> func.HttpResponse:
        plaque_id = self._extract_id(req)
        if not plaque_id:
            return self._error_response(
                message="Missing required parameter 'id'",
                status_code=400
            )

        try:
            detail = self.service.get_plaque(plaque_id)
        except PlaqueNotFoundError as e:
            log.warning(str(e))
            return self._error_response(message=str(e), status_code=404, error="Not Found")

        log.info(f"Plaque detail requested for '{plaque_id}'")
        return self._json_response(detail)

    @staticmethod
    def _extract_id(req: func.HttpRequest) -> Optional[str]:
        """
        Id from the query string, then the route, then the last path segment.
        """
        candidates = [req.params.get("id"), req.route_params.get("id")]

        path = urlparse(req.url).path.rstrip("/")
        last_segment = unquote(path.rsplit("/", 1)[-1]) if path else ""
        if last_segment and last_segment != PlaqueDetailTrigger.endpoint:
            candidates.append(last_segment)

        for candidate in candidates:
            if candidate and candidate.strip():
                return candidate.strip()
        return None


class PlaqueListTrigger(BasePlaquesTrigger):
    """
    Plaque listing trigger.

    Endpoint: GET /api/list

    Query Parameters:
    - limit: Max plaques to return (clamped to PLAQUES_MAX_LIMIT)
    - offset: Pagination offset (default 0)
    - confidence_threshold: Minimum confidence (0-1)
    - north, south, east, west: Bounding box edges, each optional
    """

    endpoint = "list"

    def process(self, req: func.HttpRequest, log) -> func.HttpResponse:
        raw = _present_params(req, ("limit", "offset", "confidence_threshold"))
        raw["bounds"] = _present_params(req, BOUNDS_PARAMS)

        try:
            params = ListQueryParameters.model_validate(raw)
        except ValidationError as e:
            return self._error_response(message=f"Invalid query parameters: {_validation_message(e)}")

        result = self.service.list_plaques(params)

        log.info(
            f"Plaque list: returned={result.pagination.count}, "
            f"total={result.pagination.total}, offset={result.pagination.offset}"
        )
        return self._json_response(result)


class PlaqueSearchTrigger(BasePlaquesTrigger):
    """
    Text search trigger.

    Endpoint: GET /api/search

    Query Parameters:
    - text | q | plaque_text: Search text (first non-blank wins, required)
    - limit, offset, confidence_threshold: As for /api/list
    """

    endpoint = "search"

    def process(self, req: func.HttpRequest, log) -> func.HttpResponse:
        text_params = _present_params(req, SEARCH_TEXT_PARAMS)
        text = next((text_params[name] for name in SEARCH_TEXT_PARAMS if name in text_params), None)
        if text is None:
            return self._error_response(
                message="Missing required parameter: provide one of 'text', 'q' or 'plaque_text'"
            )

        raw = _present_params(req, ("limit", "offset", "confidence_threshold"))
        raw["text"] = text

        try:
            params = SearchQueryParameters.model_validate(raw)
        except ValidationError as e:
            return self._error_response(message=f"Invalid query parameters: {_validation_message(e)}")

        result = self.service.search_plaques(params)

        log.info(f"Plaque search for '{params.text}' returned {result.count} plaques")
        return self._json_response(result)
