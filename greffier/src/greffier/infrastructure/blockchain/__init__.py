"""
Ledger infrastructure.
"""

from greffier.infrastructure.blockchain.ledger_bridge_client import (
    LedgerBridgeClient,
)

__all__ = ["LedgerBridgeClient"]
