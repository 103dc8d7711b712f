"""Domain services."""

from greffier.domain.services.error_classifier import (
    classify_ledger_error,
    is_not_found_error,
    is_rate_limit_error,
    is_timeout_error,
)
from greffier.domain.services.i_ledger_query_service import (
    ILedgerQueryService,
    RawEscrow,
)
from greffier.domain.services.reconciler import merge, sort_newest_first, upsert
from greffier.domain.services.record_normalizer import (
    format_units,
    normalize_amount,
    normalize_record,
)
from greffier.domain.services.staleness import (
    DEFAULT_MAX_AGE,
    TAB_SWITCH_MAX_AGE,
    WALLET_CONNECT_MAX_AGE,
    is_stale,
)

__all__ = [
    "classify_ledger_error",
    "is_not_found_error",
    "is_rate_limit_error",
    "is_timeout_error",
    "ILedgerQueryService",
    "RawEscrow",
    "merge",
    "upsert",
    "sort_newest_first",
    "format_units",
    "normalize_amount",
    "normalize_record",
    "is_stale",
    "DEFAULT_MAX_AGE",
    "WALLET_CONNECT_MAX_AGE",
    "TAB_SWITCH_MAX_AGE",
]
