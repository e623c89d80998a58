"""
flatc-provisioner — observability

File: src/flatc_provisioner/observability/__init__.py
Last updated: 2026-10-19

Purpose
- Public logging surface: setup, shutdown, correlation scopes and redaction.
"""

from flatc_provisioner.observability.logging import (
    LoggingConfig,
    StructuredLoggingHandle,
    correlation_scope,
    get_correlation_context,
    redact_text,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "get_correlation_context",
    "redact_text",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
