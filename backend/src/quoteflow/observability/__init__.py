"""Observability module for QuoteFlow.

Provides structured logging, metrics and health checks.
"""

from .logging_config import configure_logging, get_logger
from .metrics import (
    deliveries_total,
    documents_created_total,
    numbering_conflicts_total,
    numbering_retries_total,
    revision_retries_total,
    snapshots_total,
    status_transitions_total,
    totals_mismatch_total,
)
from .request_id import (
    generate_request_id,
    get_owner_id,
    get_request_id,
    request_id_var,
    set_owner_id,
    set_request_id,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    # Metrics
    "deliveries_total",
    "documents_created_total",
    "numbering_conflicts_total",
    "numbering_retries_total",
    "revision_retries_total",
    "snapshots_total",
    "status_transitions_total",
    "totals_mismatch_total",
    # Request ID
    "request_id_var",
    "get_request_id",
    "set_request_id",
    "generate_request_id",
    "get_owner_id",
    "set_owner_id",
]
