# ============================================================================
# HEALTH CHECK MODULE
# ============================================================================
# STATUS: Core Infrastructure - Health Monitoring
# PURPOSE: Public and detailed health checks for probes and monitoring
# EXPORTS: get_public_health, get_detailed_health, HealthStatus
# DEPENDENCIES: psycopg, config, plaques_api, util_logger
# PATTERNS: Two-tier health checks (public/detailed)
# ============================================================================

"""
Health Check Module

1. Public Health (/api/health):
   - Status and timestamp only
   - Always returns 200 (status in body indicates health)

2. Detailed Health (/api/health/detailed):
   - Database connectivity with latency
   - Plaques table existence and row count
   - API module status
   - Returns 503 if unhealthy

Block /health/detailed at the gateway; it reports host and table names.
"""

import time
import uuid
from enum import Enum
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Optional, Dict, Any

import psycopg

from config import get_postgres_connection_string, get_app_config
from util_logger import LoggerFactory, ComponentType

APP_NAME = "plaques-api"
APP_DESCRIPTION = "Historical plaques JSON API"

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "HealthService")


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"      # Non-critical components failing
    UNHEALTHY = "unhealthy"    # Critical components failing


@dataclass
class CheckResult:
    """Result of a single health check."""
    status: str              # "pass" or "fail"
    latency_ms: float
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "status": self.status,
            "latency_ms": round(self.latency_ms, 2),
            "message": self.message
        }
        if self.details:
            result["details"] = self.details
        return result


def _elapsed_ms(start_time: float) -> float:
    return (time.perf_counter() - start_time) * 1000


# ============================================================================
# Health Check Functions
# ============================================================================

def check_database_connectivity(timeout_seconds: float = 5.0) -> CheckResult:
    """
    Check PostgreSQL connectivity with SELECT 1.

    Critical check - failure means UNHEALTHY.
    """
    start_time = time.perf_counter()

    try:
        config = get_app_config()

        with psycopg.connect(
            get_postgres_connection_string(),
            connect_timeout=int(timeout_seconds)
        ) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()

        return CheckResult(
            status="pass",
            latency_ms=_elapsed_ms(start_time),
            message="PostgreSQL connection successful",
            details={
                "host": config.postgres_host,
                "database": config.postgres_database,
                "auth_mode": config.auth_mode
            }
        )

    except Exception as e:
        logger.error(f"Database connectivity check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=_elapsed_ms(start_time),
            message=f"Database connection failed: {type(e).__name__}",
            details={"error": str(e)}
        )


def check_plaques_table() -> CheckResult:
    """
    Check the plaques table exists and count its rows.

    Critical check - failure means UNHEALTHY.
    """
    start_time = time.perf_counter()

    try:
        from plaques_api.config import get_plaques_config
        from plaques_api.repository import PlaquesRepository

        config = get_plaques_config()
        table = PlaquesRepository(config).check_table()

        if not table["exists"]:
            return CheckResult(
                status="fail",
                latency_ms=_elapsed_ms(start_time),
                message=f"Table '{config.table_name}' does not exist",
                details={"table": config.table_name, "exists": False}
            )

        return CheckResult(
            status="pass",
            latency_ms=_elapsed_ms(start_time),
            message=f"{table['row_count']} plaques available",
            details={"table": config.table_name, "row_count": table["row_count"]}
        )

    except Exception as e:
        logger.error(f"Plaques table check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=_elapsed_ms(start_time),
            message=f"Plaques table check failed: {type(e).__name__}",
            details={"error": str(e)}
        )


def check_api_modules() -> CheckResult:
    """
    Check the plaques API module imports and registers its triggers.

    Non-critical check - failure means DEGRADED.
    """
    start_time = time.perf_counter()

    try:
        from plaques_api import get_plaques_triggers
        triggers = get_plaques_triggers()
        return CheckResult(
            status="pass",
            latency_ms=_elapsed_ms(start_time),
            message="All modules loaded",
            details={"plaques_api": {"available": True, "endpoints": len(triggers)}}
        )
    except Exception as e:
        return CheckResult(
            status="fail",
            latency_ms=_elapsed_ms(start_time),
            message="Plaques API module unavailable",
            details={"plaques_api": {"available": False, "error": str(e)}}
        )


# ============================================================================
# Main Entry Points
# ============================================================================

def get_public_health() -> Dict[str, Any]:
    """Minimal health status: status and timestamp, no internal details."""
    start_time = time.perf_counter()

    db_result = check_database_connectivity(timeout_seconds=3.0)
    status = HealthStatus.HEALTHY if db_result.status == "pass" else HealthStatus.UNHEALTHY

    logger.info("Public health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(_elapsed_ms(start_time), 2),
            'check_type': 'public'
        }
    })

    return {
        "status": status.value,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


def get_detailed_health() -> Dict[str, Any]:
    """Full health metrics: database latency, table status, module status."""
    start_time = time.perf_counter()
    request_id = str(uuid.uuid4())[:8]

    checks = {}
    critical_failures = []
    non_critical_failures = []

    db_result = check_database_connectivity()
    checks["database"] = db_result.to_dict()
    if db_result.status == "fail":
        critical_failures.append("database")

    table_result = check_plaques_table()
    checks["plaques_table"] = table_result.to_dict()
    if table_result.status == "fail":
        critical_failures.append("plaques_table")

    modules_result = check_api_modules()
    checks["api_modules"] = modules_result.to_dict()
    if modules_result.status == "fail":
        non_critical_failures.append("api_modules")

    if critical_failures:
        status = HealthStatus.UNHEALTHY
    elif non_critical_failures:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.HEALTHY

    total_duration = _elapsed_ms(start_time)

    logger.info("Detailed health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(total_duration, 2),
            'check_type': 'detailed',
            'request_id': request_id,
            'critical_failures': critical_failures,
            'non_critical_failures': non_critical_failures
        }
    })

    return {
        "status": status.value,
        "app": APP_NAME,
        "description": APP_DESCRIPTION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
        "checks": checks,
        "total_duration_ms": round(total_duration, 2)
    }
