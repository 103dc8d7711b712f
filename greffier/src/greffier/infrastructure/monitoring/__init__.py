"""
Monitoring and observability infrastructure.
"""

from greffier.infrastructure.monitoring import metrics
from greffier.infrastructure.monitoring.logger import (
    log_performance,
    set_run_id,
    setup_logging,
)

__all__ = [
    "metrics",
    "set_run_id",
    "setup_logging",
    "log_performance",
]
