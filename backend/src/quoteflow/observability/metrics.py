"""Prometheus metrics for QuoteFlow.

Defines the counters exported on /metrics for the document lifecycle engine.
"""

from prometheus_client import Counter

# Document lifecycle metrics
documents_created_total = Counter(
    "quoteflow_documents_created_total",
    "Total number of documents created",
    ["kind"]  # kind: quotation|invoice|proposal|contract
)

numbering_retries_total = Counter(
    "quoteflow_numbering_retries_total",
    "Document number allocations retried after a uniqueness conflict",
    ["kind"]
)

numbering_conflicts_total = Counter(
    "quoteflow_numbering_conflicts_total",
    "Document number allocations that exhausted the retry budget",
    ["kind"]
)

status_transitions_total = Counter(
    "quoteflow_status_transitions_total",
    "Total document status transitions",
    ["trigger", "result"]  # result: applied|rejected
)

revision_retries_total = Counter(
    "quoteflow_revision_retries_total",
    "Revisions and transitions retried after a concurrent modification",
    ["operation"]  # operation: revise|transition
)

snapshots_total = Counter(
    "quoteflow_version_snapshots_total",
    "Total version snapshots persisted"
)

# Rendering metrics
totals_mismatch_total = Counter(
    "quoteflow_totals_mismatch_total",
    "Rendered documents whose persisted totals disagree with their line items",
    ["field"]
)

# Delivery metrics
deliveries_total = Counter(
    "quoteflow_deliveries_total",
    "Total document deliveries attempted",
    ["channel", "status"]  # channel: email|export, status: success|error
)
