"""
Statement Ledger - Prometheus Metrics
=====================================
Centralized metrics definitions for observability.
"""

from prometheus_client import Counter, Histogram, Gauge, Info

# =============================================================================
# Application Info
# =============================================================================

app_info = Info("statement_ledger_app", "Application information")
app_info.info({
    "version": "0.1.0",
    "service": "backend",
})

# =============================================================================
# Request Metrics
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    labelnames=["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0)
)

# =============================================================================
# Upload Metrics
# =============================================================================

documents_uploaded_total = Counter(
    "documents_uploaded_total",
    "Total documents accepted for upload"
)

document_uploads_rejected_total = Counter(
    "document_uploads_rejected_total",
    "Total uploads rejected by validation or storage",
    labelnames=["reason"]
)

# =============================================================================
# Processing Metrics
# =============================================================================

document_processing_total = Counter(
    "document_processing_total",
    "Total document processing runs",
    labelnames=["backend", "outcome"]
)

document_processing_duration_seconds = Histogram(
    "document_processing_duration_seconds",
    "Document processing duration in seconds",
    labelnames=["backend"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)
)

transactions_extracted_total = Counter(
    "transactions_extracted_total",
    "Total transactions extracted from documents",
    labelnames=["backend"]
)

# =============================================================================
# Database Metrics
# =============================================================================

database_is_healthy = Gauge(
    "database_is_healthy",
    "Database health status (1=healthy, 0=unhealthy)"
)
