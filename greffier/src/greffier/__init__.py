"""Greffier: escrow ledger synchronization and caching."""
