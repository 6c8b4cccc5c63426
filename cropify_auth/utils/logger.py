"""Structured logging for Cloud Logging integration with OpenTelemetry trace correlation"""
import logging
import json
import sys
from datetime import datetime, timezone
from typing import Optional
from contextvars import ContextVar

from opentelemetry import trace

trace_id_var: ContextVar[Optional[str]] = ContextVar('trace_id', default=None)


class CloudLogger:
    """
    Structured logger for GCP Cloud Logging with JSON formatting.

    - Automatic trace ID injection for request correlation
    - Keyword arguments become top-level JSON fields
    - Never pass OTP secrets, tokens or backup codes as context fields
    """

    def __init__(self, name: str, level: str = "INFO"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)

    def _log_structured(self, level: str, message: str, **kwargs):
        """Log structured data with optional context fields and trace ID from OpenTelemetry"""
        log_entry = {
            "severity": level,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "logger": self.logger.name,
            "message": message,
        }

        trace_id = self._get_trace_id_from_otel()
        if not trace_id:
            trace_id = trace_id_var.get()

        if trace_id:
            log_entry["trace_id"] = trace_id
            if not trace_id.startswith("projects/"):
                from cropify_auth.config import get_settings
                settings = get_settings()
                log_entry["logging.googleapis.com/trace"] = f"projects/{settings.gcp_project_id}/traces/{trace_id}"

        if kwargs:
            log_entry.update(kwargs)

        getattr(self.logger, level.lower())(json.dumps(log_entry, default=str))

    def _get_trace_id_from_otel(self) -> Optional[str]:
        """Get trace ID from OpenTelemetry current span context"""
        span = trace.get_current_span()
        span_context = span.get_span_context() if span else None
        if span_context is not None and span_context.is_valid:
            return format(span_context.trace_id, '032x')
        return None

    def info(self, message: str, **kwargs):
        self._log_structured("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log_structured("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log_structured("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs):
        self._log_structured("DEBUG", message, **kwargs)

    def critical(self, message: str, **kwargs):
        self._log_structured("CRITICAL", message, **kwargs)

    def log_persistence_operation(
        self,
        operation: str,
        path: str,
        success: bool = True,
        attempt: Optional[int] = None,
        **kwargs
    ):
        """
        Convenience method for logging document store operations.

        Args:
            operation: Operation type (e.g., "get", "set", "update", "delete")
            path: Document path the operation targeted
            success: Whether the operation succeeded
            attempt: Attempt number when retries are involved
            **kwargs: Additional context
        """
        log_data = {
            "operation": operation,
            "path": path,
            "success": success,
            **kwargs
        }

        if attempt is not None:
            log_data["attempt"] = attempt

        if success:
            self.debug(f"Document {operation} completed", **log_data)
        else:
            self.warning(f"Document {operation} failed", **log_data)


def get_logger(name: str, level: Optional[str] = None) -> CloudLogger:
    """Get or create logger instance"""
    if level is None:
        from cropify_auth.config import get_settings
        level = get_settings().log_level
    return CloudLogger(name, level)


def set_trace_id(trace_id: Optional[str]):
    """Set trace ID in context for current request"""
    trace_id_var.set(trace_id)


def get_trace_id() -> Optional[str]:
    """Get current trace ID from context"""
    return trace_id_var.get()
