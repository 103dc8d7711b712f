"""Rate limiting infrastructure."""

from greffier.infrastructure.rate_limiting.rate_gate import RateGate, RateGateInfo

__all__ = [
    "RateGate",
    "RateGateInfo",
]
