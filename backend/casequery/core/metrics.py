"""
Prometheus metrics configuration
"""
from prometheus_client import Counter, Histogram

# ============================================================================
# Query Metrics
# ============================================================================

queries_total = Counter(
    'casequery_queries_total',
    'Total number of answered queries',
    ['intent', 'outcome']
)

escalations_total = Counter(
    'casequery_escalations_total',
    'Queries routed to the LLM collaborator',
    ['path']  # meaning: 'reentry', 'generated_query', 'unavailable'
)

# ============================================================================
# LLM Request Metrics
# ============================================================================

llm_requests_total = Counter(
    'casequery_llm_requests_total',
    'Total number of LLM requests',
    ['operation', 'status']
)

llm_request_duration_seconds = Histogram(
    'casequery_llm_request_duration_seconds',
    'LLM request duration in seconds',
    ['operation'],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0)
)

# ============================================================================
# Case Store Metrics
# ============================================================================

store_queries_total = Counter(
    'casequery_store_queries_total',
    'Total number of case store reads',
    ['operation']
)

store_query_duration_seconds = Histogram(
    'casequery_store_query_duration_seconds',
    'Case store read duration in seconds',
    ['operation'],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)
