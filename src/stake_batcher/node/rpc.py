"""
Solana JSON-RPC adapter for network integration.

Provides blockchain access via a Solana RPC endpoint over HTTP.
"""

import base64
import itertools
from typing import Any, List, Optional

import httpx
import structlog

from stake_batcher.config import BatcherConfig, get_config
from stake_batcher.node.interface import (
    NetworkInterface,
    NodeConnectionError,
    BroadcastError,
)

logger = structlog.get_logger(__name__)


class RpcError(Exception):
    """Error object returned inside a JSON-RPC response."""

    def __init__(self, method: str, error: dict):
        self.method = method
        self.code = error.get("code")
        self.data = error.get("data") or {}
        super().__init__(error.get("message", "Unknown RPC error"))

    @property
    def logs(self) -> List[str]:
        if isinstance(self.data, dict):
            return list(self.data.get("logs") or [])
        return []


class SolanaRpcNetwork(NetworkInterface):
    """
    Solana JSON-RPC adapter.

    Implements the NetworkInterface using the standard Solana RPC methods.
    """

    def __init__(
        self,
        config: Optional[BatcherConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the RPC adapter.

        Args:
            config: Batcher configuration. Uses global config if not provided.
            transport: Custom httpx transport (used by tests)
        """
        self.config = config or get_config()
        self.rpc_url = self.config.solana_rpc_url
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        """Establish connection (create HTTP client)."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=30.0,
            transport=self._transport,
        )
        logger.info("rpc_connected", url=self.rpc_url)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("rpc_disconnected")

    async def _request(self, method: str, params: Optional[list] = None) -> Any:
        """Make a JSON-RPC call and return its result."""
        if not self._client:
            await self.connect()

        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }

        try:
            response = await self._client.post(self.rpc_url, json=payload)
        except httpx.RequestError as e:
            logger.error("rpc_request_error", method=method, error=str(e))
            raise NodeConnectionError(f"RPC request failed: {e}")

        if response.status_code != 200:
            logger.error(
                "rpc_request_failed",
                method=method,
                status=response.status_code,
                error=response.text,
            )
            raise NodeConnectionError(f"RPC HTTP error {response.status_code}: {response.text}")

        data = response.json()
        if "error" in data:
            raise RpcError(method, data["error"])

        return data.get("result")

    async def get_latest_blockhash(self) -> str:
        """Get the latest blockhash at finalized commitment."""
        try:
            result = await self._request(
                "getLatestBlockhash", [{"commitment": "finalized"}]
            )
        except RpcError as e:
            raise NodeConnectionError(f"getLatestBlockhash failed: {e}")

        blockhash = result["value"]["blockhash"]
        logger.debug("blockhash_fetched", blockhash=blockhash)
        return blockhash

    async def send_raw_transaction(
        self,
        raw_transaction: bytes,
        skip_preflight: bool = False,
        preflight_commitment: str = "confirmed",
    ) -> str:
        """Submit a signed transaction."""
        encoded = base64.b64encode(raw_transaction).decode("ascii")
        options = {
            "encoding": "base64",
            "skipPreflight": skip_preflight,
            "preflightCommitment": preflight_commitment,
        }

        try:
            signature = await self._request("sendTransaction", [encoded, options])
        except RpcError as e:
            logger.error("tx_submit_failed", error=str(e), logs=e.logs)
            raise BroadcastError(
                f"Transaction submission failed: {e}",
                logs=e.logs,
                error_code=e.code,
            )
        except NodeConnectionError as e:
            raise BroadcastError(f"Transaction submission request failed: {e}")

        logger.info("tx_submitted", signature=signature)
        return signature
