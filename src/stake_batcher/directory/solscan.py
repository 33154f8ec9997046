"""
Solscan Pro adapter for stake account listing.
"""

from typing import Any, List, Optional

import httpx
import structlog

from stake_batcher.config import BatcherConfig, get_config
from stake_batcher.core.models import StakeAccount
from stake_batcher.directory.interface import AccountDirectory
from stake_batcher.directory.rate_limiter import RequestQueue
from stake_batcher.errors import DirectoryError

logger = structlog.get_logger(__name__)

REQUEST_INTERVAL_SECONDS = 0.2
PAGE_SIZE = 40


class SolscanDirectory(AccountDirectory):
    """
    Solscan Pro API adapter.

    Solscan does not report a page count, so pages are fetched until one
    comes back empty.
    """

    def __init__(
        self,
        config: Optional[BatcherConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        interval: float = REQUEST_INTERVAL_SECONDS,
    ):
        self.config = config or get_config()
        self.base_url = self.config.solscan_base_url.rstrip("/")
        self.api_key = self.config.solscan_api_key or ""
        self._transport = transport
        self._queue = RequestQueue(interval)
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: BatcherConfig) -> "SolscanDirectory":
        config.validate_account_source()
        return cls(config)

    async def connect(self) -> None:
        """Establish connection (create HTTP client)."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json", "token": self.api_key},
            timeout=30.0,
            transport=self._transport,
        )
        logger.info("solscan_connected", base_url=self.base_url)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("solscan_disconnected")

    async def _get_page(self, address: str, page: int) -> Any:
        if not self._client:
            await self.connect()

        params = {"address": address, "page_size": PAGE_SIZE, "page": page}
        try:
            response = await self._queue.run(
                lambda: self._client.get("/account/stake", params=params)
            )
        except httpx.RequestError as e:
            logger.error("solscan_request_error", page=page, error=str(e))
            raise DirectoryError(f"Solscan request failed: {e}")

        if response.status_code != 200:
            logger.error(
                "solscan_request_failed",
                page=page,
                status=response.status_code,
                error=response.text,
            )
            raise DirectoryError(f"Solscan API error {response.status_code}: {response.text}")

        data = response.json()
        if not data.get("success"):
            raise DirectoryError(f"Solscan API error: {data}")
        return data

    @staticmethod
    def _parse(entry: dict) -> StakeAccount:
        status = entry.get("status")
        return StakeAccount(
            address=entry.get("stake_account"),
            lamports=entry.get("sol_balance"),
            status=status.lower() if status else None,
        )

    async def list_stake_accounts(self, address: str) -> List[StakeAccount]:
        """List stake accounts, paging until an empty page."""
        accounts: List[StakeAccount] = []
        page = 1

        while True:
            data = await self._get_page(address, page)
            entries = data.get("data") or []
            if not entries:
                break

            logger.debug("stake_account_page_fetched", page=page, count=len(entries))
            accounts.extend(self._parse(entry) for entry in entries)
            page += 1

        logger.info("stake_accounts_listed", source="solscan", count=len(accounts))
        return accounts
