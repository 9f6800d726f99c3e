# ============================================================================
# PLAQUES API MODULE
# ============================================================================
# STATUS: Standalone Module - historical plaque observations API
# PURPOSE: Read-only JSON endpoints over the plaque observations table
# EXPORTS: PlaquesService, PlaquesConfig, get_plaques_triggers, get_plaques_config
# DEPENDENCIES: psycopg, pydantic, azure-functions
# ENTRY_POINTS: from plaques_api import get_plaques_triggers
# ============================================================================

"""
Plaques API - Standalone Module

Serves plaques recognized from street photos: a single plaque by id, a
confidence-ordered listing with paging and bounding-box filters, and a
case-insensitive text search.

Architecture:
    plaques_api/
    ├── config.py      # Environment-based configuration
    ├── models.py      # Pydantic models (query parameters, responses)
    ├── repository.py  # PostgreSQL access (psycopg)
    ├── service.py     # Row shaping and response assembly
    ├── cors.py        # CORS headers and preflight
    └── triggers.py    # Azure Functions HTTP handlers
"""

from .config import PlaquesConfig, get_plaques_config
from .service import PlaquesService, build_plaque
from .triggers import get_plaques_triggers

__version__ = "1.0.0"
__all__ = [
    "PlaquesConfig",
    "PlaquesService",
    "build_plaque",
    "get_plaques_triggers",
    "get_plaques_config"
]
