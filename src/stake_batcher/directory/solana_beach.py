"""
Solana Beach adapter for stake account listing.
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

REQUEST_INTERVAL_SECONDS = 0.1


class SolanaBeachDirectory(AccountDirectory):
    """
    Solana Beach API adapter.

    Pages through `/account/{address}/stakes` using the `totalPages` the
    first page reports.
    """

    def __init__(
        self,
        config: Optional[BatcherConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        interval: float = REQUEST_INTERVAL_SECONDS,
    ):
        """
        Initialize the Solana Beach adapter.

        Args:
            config: Batcher configuration. Uses global config if not provided.
            transport: Custom httpx transport (used by tests)
            interval: Minimum seconds between request starts
        """
        self.config = config or get_config()
        self.base_url = self.config.solana_beach_base_url.rstrip("/")
        self.api_key = self.config.solana_beach_api_key or ""
        self._transport = transport
        self._queue = RequestQueue(interval)
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: BatcherConfig) -> "SolanaBeachDirectory":
        config.validate_account_source()
        return cls(config)

    @property
    def headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def connect(self) -> None:
        """Establish connection (create HTTP client)."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=30.0,
            transport=self._transport,
        )
        logger.info("solana_beach_connected", base_url=self.base_url)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("solana_beach_disconnected")

    async def _get_page(self, address: str, page: int) -> Any:
        if not self._client:
            await self.connect()

        path = f"/account/{address}/stakes"
        try:
            response = await self._queue.run(
                lambda: self._client.get(path, params={"page": page})
            )
        except httpx.RequestError as e:
            logger.error("solana_beach_request_error", page=page, error=str(e))
            raise DirectoryError(f"Solana Beach request failed: {e}")

        if response.status_code != 200:
            logger.error(
                "solana_beach_request_failed",
                page=page,
                status=response.status_code,
                error=response.text,
            )
            raise DirectoryError(
                f"Error fetching stake accounts: {response.status_code} {response.text}"
            )

        return response.json()

    @staticmethod
    def _parse(entry: dict) -> StakeAccount:
        pubkey = entry.get("pubkey") or {}
        return StakeAccount(
            address=pubkey.get("address"),
            lamports=entry.get("lamports"),
            status=entry.get("status"),
        )

    async def list_stake_accounts(self, address: str) -> List[StakeAccount]:
        """List stake accounts across all pages."""
        first = await self._get_page(address, 1)
        total_pages = int(first.get("totalPages") or 1)
        entries = list(first.get("data") or [])

        logger.info("stake_account_pages_found", address=address, pages=total_pages)

        for page in range(2, total_pages + 1):
            logger.debug("stake_account_page_fetching", page=page, total_pages=total_pages)
            data = await self._get_page(address, page)
            entries.extend(data.get("data") or [])

        accounts = [self._parse(entry) for entry in entries]
        logger.info("stake_accounts_listed", source="solana_beach", count=len(accounts))
        return accounts
