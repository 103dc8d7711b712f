"""
Record normalization.

Converts raw ledger responses into EscrowRecord entities. Ledger values may
be integers wider than a machine word; these never cross this boundary as
numbers, only as decimal strings.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from greffier.domain.entities.escrow_record import EscrowRecord
from greffier.domain.services.i_ledger_query_service import RawEscrow

ETHER_DECIMALS = 18

_MAPPING_KEYS = {
    "buyer": ("buyer",),
    "seller": ("seller",),
    "arbiter": ("arbiter",),
    "amount": ("amount",),
    "funds_disbursed": ("fundsDisbursed", "funds_disbursed"),
    "dispute_raised": ("disputeRaised", "dispute_raised"),
}


def format_units(value: int, decimals: int = ETHER_DECIMALS) -> str:
    """
    Format an integer amount of base units as a decimal string.

    Always keeps at least one fractional digit, so 10**18 wei formats
    as "1.0" and 15 * 10**17 as "1.5".

    Args:
        value: Amount in smallest units
        decimals: Number of decimals of the unit

    Returns:
        Decimal string
    """
    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(value), 10**decimals)
    fraction_str = str(fraction).rjust(decimals, "0").rstrip("0") or "0"
    return f"{sign}{whole}.{fraction_str}"


def normalize_amount(raw: Any, decimals: int = ETHER_DECIMALS) -> str:
    """
    Normalize a ledger amount to a decimal string.

    Integers (and digit-only strings, the JSON form of big integers) are
    base units and get scaled by decimals. Strings or Decimals that already
    carry a decimal point are kept as-is.

    Raises:
        ValueError: If amount cannot be interpreted
    """
    if isinstance(raw, bool):
        raise ValueError(f"Invalid amount: {raw!r}")

    if isinstance(raw, int):
        return format_units(raw, decimals)

    if isinstance(raw, Decimal):
        return str(raw)

    if isinstance(raw, str):
        text = raw.strip()
        if text.lstrip("-").isdigit():
            return format_units(int(text), decimals)
        try:
            Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {raw!r}") from None
        return text

    if isinstance(raw, float):
        return str(Decimal(str(raw)))

    raise ValueError(f"Invalid amount: {raw!r}")


def normalize_flag(raw: Any) -> bool:
    """Interpret a ledger boolean (bool, int or "true"/"false")."""
    if isinstance(raw, str):
        return raw.strip().lower() in ("true", "1")
    return bool(raw)


def _field(raw: Mapping[str, Any], name: str) -> Any:
    for key in _MAPPING_KEYS[name]:
        if key in raw:
            return raw[key]
    raise ValueError(f"Ledger response missing '{name}'")


def normalize_record(
    record_id: Any, raw: RawEscrow, decimals: int = ETHER_DECIMALS
) -> EscrowRecord:
    """
    Convert a raw ledger response into an EscrowRecord.

    Args:
        record_id: Escrow identifier (any integer width)
        raw: Positional tuple or keyed mapping from the ledger
        decimals: Decimals of the ledger's base currency unit

    Returns:
        Fully populated EscrowRecord

    Raises:
        ValueError: If the response is malformed
    """
    if isinstance(raw, Mapping):
        buyer = _field(raw, "buyer")
        seller = _field(raw, "seller")
        arbiter = _field(raw, "arbiter")
        amount = _field(raw, "amount")
        funds_disbursed = _field(raw, "funds_disbursed")
        dispute_raised = _field(raw, "dispute_raised")
    else:
        if raw is None or isinstance(raw, (str, bytes)) or len(raw) < 6:
            raise ValueError(f"Malformed ledger response for escrow {record_id}")
        buyer, seller, arbiter, amount, funds_disbursed, dispute_raised = raw[:6]

    return EscrowRecord(
        id=str(record_id),
        buyer=str(buyer),
        seller=str(seller),
        arbiter=str(arbiter),
        amount=normalize_amount(amount, decimals),
        funds_disbursed=normalize_flag(funds_disbursed),
        dispute_raised=normalize_flag(dispute_raised),
    )
