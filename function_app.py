# ============================================================================
# AZURE FUNCTIONS ENTRY POINT
# ============================================================================
# STATUS: Core Infrastructure - Function App Entry Point
# PURPOSE: Main entry point for Azure Functions runtime with the plaques API
# EXPORTS: app (FunctionApp instance)
# DEPENDENCIES: azure-functions, plaques_api, health
# ============================================================================

"""
Azure Functions Entry Point for the plaques API

Registers the HTTP triggers for the plaques API and the health checks.

Architecture:
    - Plaques API: 3 endpoints (detail, list, search), each also answering
      OPTIONS preflight
    - Health checks: 2 endpoints
        - /api/health - Public (minimal response for external callers)
        - /api/health/detailed - Internal (full metrics for probes)

Deployment:
    - Local: func start
    - Azure: func azure functionapp publish <app-name> --python --build remote
"""

import json
import logging

import azure.functions as func

from health import get_public_health, get_detailed_health, HealthStatus, APP_NAME, APP_DESCRIPTION

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = func.FunctionApp()

# ============================================================================
# Plaques API - 3 Endpoints
# ============================================================================

from plaques_api import get_plaques_triggers

logger.info("Registering plaques API endpoints...")

_triggers = {trigger['name']: trigger for trigger in get_plaques_triggers()}


@app.route(route=_triggers['plaque_detail']['route'], methods=["GET", "OPTIONS"],
           auth_level=func.AuthLevel.ANONYMOUS)
def plaque_detail(req: func.HttpRequest) -> func.HttpResponse:
    return _triggers['plaque_detail']['handler'](req)


@app.route(route=_triggers['plaque_list']['route'], methods=["GET", "OPTIONS"],
           auth_level=func.AuthLevel.ANONYMOUS)
def plaque_list(req: func.HttpRequest) -> func.HttpResponse:
    return _triggers['plaque_list']['handler'](req)


@app.route(route=_triggers['plaque_search']['route'], methods=["GET", "OPTIONS"],
           auth_level=func.AuthLevel.ANONYMOUS)
def plaque_search(req: func.HttpRequest) -> func.HttpResponse:
    return _triggers['plaque_search']['handler'](req)


logger.info("✅ Plaques API registered successfully (3 endpoints)")

# ============================================================================
# Health Check Endpoints - 2 Endpoints (Public + Detailed)
# ============================================================================

_NO_CACHE = {"Cache-Control": "no-cache, no-store, must-revalidate"}


@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """
    Public health check endpoint. Always returns 200; the body carries status.

    Returns:
        JSON: {"status": "healthy|unhealthy", "timestamp": "..."}
    """
    return func.HttpResponse(
        json.dumps(get_public_health(), default=str),
        mimetype="application/json",
        status_code=200,
        headers=_NO_CACHE
    )


@app.route(route="health/detailed", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_detailed(req: func.HttpRequest) -> func.HttpResponse:
    """
    Detailed health check endpoint. Returns 503 if unhealthy, 200 otherwise.

    SECURITY: Block this endpoint from external access at the gateway.
    """
    result = get_detailed_health()
    status_code = 503 if result["status"] == HealthStatus.UNHEALTHY.value else 200

    return func.HttpResponse(
        json.dumps(result, default=str, indent=2),
        mimetype="application/json",
        status_code=status_code,
        headers=_NO_CACHE
    )

# ============================================================================
# Application Startup
# ============================================================================

logger.info("=" * 60)
logger.info(f"{APP_NAME} - {APP_DESCRIPTION}")
logger.info("=" * 60)
logger.info("Available endpoints:")
logger.info("  - GET /api/health - Public health check (minimal)")
logger.info("  - GET /api/health/detailed - Detailed health (internal only)")
logger.info("  - GET /api/detail?id={id} | /api/detail/{id} - Single plaque")
logger.info("  - GET /api/list - Plaques by confidence (limit, offset, confidence_threshold, north/south/east/west)")
logger.info("  - GET /api/search?text={text} - Text search (text | q | plaque_text)")
logger.info("=" * 60)
