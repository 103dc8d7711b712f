"""
Record reconciliation.

Merges placeholder and fetched records keyed by id so the published
collection never shows the same escrow twice.
"""

from typing import Dict, Iterable, List

from greffier.domain.entities.escrow_record import EscrowRecord


def _prefer(current: EscrowRecord, incoming: EscrowRecord) -> EscrowRecord:
    """Pick the surviving entry for two records sharing an id."""
    if incoming.placeholder and not current.placeholder:
        return current
    if current.placeholder and incoming.placeholder:
        return current
    return incoming


def merge(records: Iterable[EscrowRecord]) -> List[EscrowRecord]:
    """
    Deduplicate records by id.

    Rules:
    - A non-placeholder entry always beats a placeholder
    - Between two non-placeholder entries the later one wins
    - Between two placeholders the first one is kept

    Output keeps the position of each id's first appearance, so
    merge(merge(x)) == merge(x).

    Args:
        records: Records in insertion order (may contain duplicate ids)

    Returns:
        Deduplicated records
    """
    merged: Dict[str, EscrowRecord] = {}
    for record in records:
        current = merged.get(record.id)
        merged[record.id] = record if current is None else _prefer(current, record)
    return list(merged.values())


def upsert(records: Iterable[EscrowRecord], record: EscrowRecord) -> List[EscrowRecord]:
    """Insert or replace a single record, applying merge rules."""
    return merge([*records, record])


def sort_newest_first(records: Iterable[EscrowRecord]) -> List[EscrowRecord]:
    """Sort records by numeric id, most recent first."""
    return sorted(records, key=lambda r: r.sort_key, reverse=True)
