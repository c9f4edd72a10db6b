"""Prometheus Metrics Configuration"""

from prometheus_client import Counter, Histogram, CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST

# Create a custom registry for our metrics
registry = CollectorRegistry()

# ============================================================================
# HTTP Request Metrics
# ============================================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status'],
    registry=registry
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=registry,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.075, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0)
)

# ============================================================================
# API Key Metrics
# ============================================================================

api_keys_issued_total = Counter(
    'api_keys_issued_total',
    'Total API keys issued',
    ['strategy', 'plan'],
    registry=registry
)

api_keys_revoked_total = Counter(
    'api_keys_revoked_total',
    'Total API key revocations that changed state',
    registry=registry
)

key_validations_total = Counter(
    'key_validations_total',
    'API key validation outcomes',
    ['outcome'],
    registry=registry
)

# ============================================================================
# Usage Accounting Metrics
# ============================================================================

rate_limit_decisions_total = Counter(
    'rate_limit_decisions_total',
    'Rate limit admission decisions',
    ['decision'],
    registry=registry
)

usage_events_total = Counter(
    'usage_events_total',
    'Usage events recorded',
    ['result'],
    registry=registry
)

inference_tokens_total = Counter(
    'inference_tokens_total',
    'Tokens consumed through the chat proxy',
    ['direction'],
    registry=registry
)


def get_metrics() -> bytes:
    """Render all metrics in Prometheus text exposition format"""
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    """Content type for the Prometheus text format"""
    return CONTENT_TYPE_LATEST
