"""
Ledger Bridge Client implementation.

Reads escrow state through the ledger HTTP bridge with lazy client
lifecycle management.
"""

import asyncio
import logging
from typing import Any, List, Optional

import httpx

from greffier.domain.exceptions import FetchTimeoutError, LedgerCallError
from greffier.domain.services.i_ledger_query_service import (
    ILedgerQueryService,
    RawEscrow,
)

logger = logging.getLogger(__name__)


class LedgerBridgeClient(ILedgerQueryService):
    """
    Query escrow records via the ledger bridge.

    Bridge failures are surfaced as LedgerCallError carrying the bridge's
    error signature; the fetcher classifies them.

    Design:
    - Client is lazily initialized on first use
    - Lock ensures single client per instance
    - Proper cleanup via close() method
    """

    def __init__(
        self,
        bridge_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize ledger bridge client.

        Args:
            bridge_url: Ledger bridge base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.bridge_url = bridge_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        """
        Ensure HTTP client is initialized.

        Returns:
            Initialized AsyncClient instance
        """
        if self._client is None:
            async with self._lock:
                if self._client is None:
                    self._client = httpx.AsyncClient(
                        timeout=self.timeout,
                        transport=self._transport,
                        limits=httpx.Limits(
                            max_connections=10,
                            max_keepalive_connections=5,
                        ),
                    )
        return self._client

    async def _get(self, path: str, operation: str) -> dict:
        """
        GET a bridge endpoint and unwrap its success envelope.

        Raises:
            FetchTimeoutError: If the bridge does not answer in time
            LedgerCallError: For any other bridge or transport failure
        """
        client = await self._ensure_client()
        details = {"operation": operation, "path": path}

        try:
            response = await client.get(f"{self.bridge_url}{path}")
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(operation, self.timeout) from e
        except httpx.RequestError as e:
            raise LedgerCallError(
                f"Network error in {operation}: {e}", details=details
            ) from e

        if response.status_code == 404:
            raise LedgerCallError(
                "execution reverted: missing revert data",
                code="CALL_EXCEPTION",
                status_code=404,
                details=details,
            )
        if response.status_code == 429:
            raise LedgerCallError(
                "Non-200 status code: 429",
                status_code=429,
                details=details,
            )
        if response.status_code >= 400:
            raise LedgerCallError(
                f"Bridge returned {response.status_code}: {response.text}",
                status_code=response.status_code,
                details=details,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise LedgerCallError(
                f"Invalid response format: {e}", details=details
            ) from e

        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            code = None
            message = f"{operation} failed"
            if isinstance(error, dict):
                code = error.get("code")
                message = error.get("message") or message
            elif error:
                message = str(error)
            raise LedgerCallError(
                message,
                code=code,
                status_code=response.status_code,
                details=details,
            )

        return data

    async def get_record(self, record_id: str) -> RawEscrow:
        """
        Get raw escrow details.

        Args:
            record_id: Escrow identifier

        Returns:
            Escrow payload as returned by the bridge
        """
        data = await self._get(f"/escrow/{record_id}", "get_record")
        try:
            return data["escrow"]
        except KeyError as e:
            raise LedgerCallError(
                f"Invalid response format: missing {e}",
                details={"operation": "get_record", "record_id": record_id},
            ) from e

    async def get_record_count(self) -> int:
        """
        Get total number of escrows.

        Returns:
            Escrow count
        """
        data = await self._get("/escrow/count", "get_record_count")
        try:
            return int(data["count"])
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerCallError(
                f"Invalid response format: {e}",
                details={"operation": "get_record_count"},
            ) from e

    async def get_user_record_ids(self, address: str) -> List[Any]:
        """
        Get ids of escrows involving an address.

        Args:
            address: Account identifier

        Returns:
            Record ids
        """
        data = await self._get(f"/escrow/user/{address}", "get_user_record_ids")
        ids = data.get("escrowIds")
        if not isinstance(ids, list):
            raise LedgerCallError(
                "Invalid response format: escrowIds must be a list",
                details={"operation": "get_user_record_ids", "address": address},
            )
        return ids

    async def close(self) -> None:
        """
        Close HTTP client and cleanup resources.

        Safe to call multiple times.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("Ledger bridge client closed")
