# ============================================================================
# PLAQUES API CORS
# ============================================================================
# STATUS: Standalone Utility - shared by every plaques trigger
# PURPOSE: Access-Control-* headers and OPTIONS preflight responses
# EXPORTS: cors_headers, preflight_response
# DEPENDENCIES: azure.functions
# ============================================================================

"""
CORS handling for the plaques endpoints.

Allow-listed origins are echoed back; any other caller gets the wildcard.
Preflight requests are answered here without touching the database.
"""

from typing import Dict, Optional

import azure.functions as func

from .config import PlaquesConfig, get_plaques_config


def cors_headers(req: func.HttpRequest, config: Optional[PlaquesConfig] = None) -> Dict[str, str]:
    """
    Build the Access-Control-Allow-Origin header for a request.

    Returns:
        Dict of headers to merge into the response
    """
    config = config or get_plaques_config()
    origin = req.headers.get("Origin")

    if origin and origin in config.cors_allowed_origins:
        return {
            "Access-Control-Allow-Origin": origin,
            "Vary": "Origin"
        }

    return {"Access-Control-Allow-Origin": "*"}


def preflight_response(req: func.HttpRequest, config: Optional[PlaquesConfig] = None) -> func.HttpResponse:
    """Answer an OPTIONS preflight with 204 and the allowed methods/headers."""
    config = config or get_plaques_config()

    headers = cors_headers(req, config)
    headers.update({
        "Access-Control-Allow-Methods": config.cors_allowed_methods,
        "Access-Control-Allow-Headers": config.cors_allowed_headers,
        "Access-Control-Max-Age": str(config.cors_max_age)
    })

    return func.HttpResponse(body=b"", status_code=204, headers=headers)
