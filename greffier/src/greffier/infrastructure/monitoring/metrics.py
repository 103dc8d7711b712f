"""
Prometheus metrics collection.
"""

from prometheus_client import Counter, Gauge, Histogram

# ============================================================
# Cache Metrics
# ============================================================

cache_hits_total = Counter(
    "greffier_cache_hits_total",
    "Total escrow cache hits",
)

cache_misses_total = Counter(
    "greffier_cache_misses_total",
    "Total escrow cache misses (absent or expired)",
)

cache_evictions_total = Counter(
    "greffier_cache_evictions_total",
    "Total escrow cache entries removed",
    ["reason"],
)

cache_size = Gauge(
    "greffier_cache_size",
    "Current number of escrow cache entries",
)

# ============================================================
# Ledger Metrics
# ============================================================

ledger_requests_total = Counter(
    "greffier_ledger_requests_total",
    "Total ledger queries",
    ["operation", "outcome"],
)

ledger_request_duration_seconds = Histogram(
    "greffier_ledger_request_duration_seconds",
    "Ledger query duration in seconds",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ============================================================
# Rate Gate Metrics
# ============================================================

rate_gate_waits_total = Counter(
    "greffier_rate_gate_waits_total",
    "Total times a caller had to wait for a rate gate slot",
)

rate_limited_total = Counter(
    "greffier_rate_limited_total",
    "Total rate limit rejections reported by the ledger endpoint",
)

# ============================================================
# Sync Metrics
# ============================================================

sync_runs_total = Counter(
    "greffier_sync_runs_total",
    "Total batch runs by final status",
    ["status"],
)

sync_records_total = Counter(
    "greffier_sync_records_total",
    "Total records resolved by batch runs",
    ["result"],
)
