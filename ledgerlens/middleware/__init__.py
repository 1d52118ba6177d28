"""
Middleware module initialization.
"""
from ledgerlens.middleware.logging import (
    CorrelationIdMiddleware,
    RequestLoggingMiddleware,
    get_correlation_id,
    redact_sensitive_data,
    log_performance,
    add_correlation_id_processor,
    redact_sensitive_processor,
)

__all__ = [
    "CorrelationIdMiddleware",
    "RequestLoggingMiddleware",
    "get_correlation_id",
    "redact_sensitive_data",
    "log_performance",
    "add_correlation_id_processor",
    "redact_sensitive_processor",
]
