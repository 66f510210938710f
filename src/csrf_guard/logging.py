"""Structured logging configuration for CSRF security events.

Rejected requests are potential forgery attempts. The specific rejection
reason is logged server-side for incident investigation while the HTTP
response stays opaque.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

APP_NAME = "csrf-guard"

_environment = "development"


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application context to all log entries."""
    event_dict["app"] = APP_NAME
    event_dict["environment"] = _environment
    return event_dict


def mask_sensitive_data(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask sensitive fields in log entries.

    Tokens, secrets and session identifiers must never reach the log sink.
    """
    sensitive_fields = {"password", "token", "secret", "session", "cookie", "api_key"}

    for key in event_dict:
        if any(sensitive in key.lower() for sensitive in sensitive_fields):
            event_dict[key] = "***MASKED***"

    return event_dict


def configure_logging(env: str = "development") -> None:
    """Configure structured logging.

    - Development: Human-readable console output
    - Production: JSON-formatted logs for log aggregation
    """
    global _environment
    _environment = env

    log_level = logging.DEBUG if env == "development" else logging.INFO

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context,
        mask_sensitive_data,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if env == "development":
        processors = [*shared_processors, structlog.dev.ConsoleRenderer(colors=True)]
    else:
        processors = [*shared_processors, structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured structured logger.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("csrf_middleware_ready", check_origin=True)
    """
    return structlog.get_logger(name)


class SecurityLogger:
    """Helper class for logging CSRF-related security events."""

    def __init__(self) -> None:
        self.logger = get_logger("security")

    def log_csrf_rejected(
        self,
        reason: str,
        method: str,
        path: str,
        ip_address: str | None,
    ) -> None:
        """Log a rejected state-changing request.

        Args:
            reason: RejectReason value (missing_token, origin_mismatch, ...)
            method: HTTP method
            path: Request path
            ip_address: Client IP address
        """
        self.logger.warning(
            "csrf_rejected",
            event_type="security",
            reason=reason,
            method=method,
            path=path,
            ip_address=ip_address,
        )

    def log_origin_missing_allowed(
        self,
        method: str,
        path: str,
        ip_address: str | None,
    ) -> None:
        """Log a request accepted without Origin/Referer (opt-in policy)."""
        self.logger.info(
            "csrf_origin_missing_allowed",
            event_type="security",
            method=method,
            path=path,
            ip_address=ip_address,
        )

    def log_key_rotated(self, key_count: int) -> None:
        """Log CSRF secret rotation. Never logs key material."""
        self.logger.info(
            "csrf_key_rotated",
            event_type="security",
            key_count=key_count,
        )


# Global security logger instance
security_logger = SecurityLogger()
