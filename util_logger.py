# ============================================================================
# LOGGING
# ============================================================================
# STATUS: Shared by every layer
# PURPOSE: JSON-only structured logging for Azure Functions with Application Insights
# EXPORTS: ComponentType, LogLevel, LogContext, JSONFormatter, LoggerFactory
# DEPENDENCIES: enum, dataclasses, typing, datetime, logging, json (stdlib only!)
# PATTERNS: JSON-only output, component-specific loggers
# ENTRY_POINTS: LoggerFactory.create_logger()
# ============================================================================

"""
Structured Logger

One JSON object per log line, shaped so Application Insights picks up
``customDimensions`` without extra parsing. Loggers are created per
component through ``LoggerFactory`` so every record carries the layer
(trigger, service, repository, ...) and the component name.

Example:
    logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "PlaqueSearchTrigger")
    logger.info("Search requested", extra={'custom_dimensions': {'query': 'blue'}})
"""

from enum import Enum
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from dataclasses import dataclass
import logging
import json
import os
import sys


# ============================================================================
# COMPONENT TYPES
# ============================================================================

class ComponentType(Enum):
    """Architectural layer a logger belongs to."""
    TRIGGER = "trigger"        # HTTP entry points
    SERVICE = "service"        # Shaping and orchestration
    REPOSITORY = "repository"  # Database access


class LogLevel(Enum):
    """Standard Python log levels as enum for type safety."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_python_level(self) -> int:
        return getattr(logging, self.value)


# ============================================================================
# LOG CONTEXT - Request correlation
# ============================================================================

@dataclass
class LogContext:
    """
    Correlation fields attached to every record from a logger.

    Triggers create one per request so the database and shaping logs for the
    same call can be joined in Application Insights.
    """
    request_id: Optional[str] = None
    endpoint: Optional[str] = None
    origin: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            k: v for k, v in {
                'request_id': self.request_id,
                'endpoint': self.endpoint,
                'origin': self.origin
            }.items() if v is not None
        }


# ============================================================================
# JSON FORMATTER
# ============================================================================

class JSONFormatter(logging.Formatter):
    """Formats a LogRecord as a single JSON line for Application Insights."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name,
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if hasattr(record, 'custom_dimensions'):
            log_obj['customDimensions'] = record.custom_dimensions

        if record.exc_info:
            log_obj['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': self.formatException(record.exc_info)
            }

        return json.dumps(log_obj, default=str)


# ============================================================================
# LOGGER FACTORY
# ============================================================================

class _ComponentAdapter(logging.LoggerAdapter):
    """Merges component identity and context into ``custom_dimensions``."""

    def process(self, msg, kwargs):
        extra = kwargs.get('extra') or {}
        custom_dims = dict(self.extra)
        custom_dims.update(extra.get('custom_dimensions', {}))
        kwargs['extra'] = {**extra, 'custom_dimensions': custom_dims}
        return msg, kwargs


class LoggerFactory:
    """
    Factory for creating component-specific loggers.

    Repositories always log at DEBUG so executed SQL can be traced;
    everything else follows ``DEBUG_LOGGING``.
    """

    @staticmethod
    def default_level(component_type: ComponentType) -> LogLevel:
        if component_type == ComponentType.REPOSITORY:
            return LogLevel.DEBUG
        if os.getenv('DEBUG_LOGGING', '').lower() == 'true':
            return LogLevel.DEBUG
        return LogLevel.INFO

    @classmethod
    def create_logger(
        cls,
        component_type: ComponentType,
        name: str,
        context: Optional[LogContext] = None,
        level: Optional[LogLevel] = None
    ) -> logging.LoggerAdapter:
        """
        Create a logger for a specific component.

        Args:
            component_type: Architectural layer
            name: Component name (e.g., "PlaquesRepository")
            context: Optional correlation context
            level: Override for the component's default level

        Returns:
            Logger adapter that tags records with component and context
        """
        logger = logging.getLogger(f"{component_type.value}.{name}")
        log_level = (level or cls.default_level(component_type)).to_python_level()
        logger.setLevel(log_level)

        if not any(isinstance(h.formatter, JSONFormatter) for h in logger.handlers):
            handler = logging.StreamHandler(sys.stdout)
            handler.setLevel(log_level)
            handler.setFormatter(JSONFormatter())
            logger.addHandler(handler)

        # Propagate to the Functions host logger for Application Insights
        logger.propagate = True

        dims = context.to_dict() if context else {}
        dims['component_type'] = component_type.value
        dims['component_name'] = name
        return _ComponentAdapter(logger, dims)


