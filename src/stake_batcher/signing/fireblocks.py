"""
Fireblocks adapter for custodial signing.

Talks to the Fireblocks REST API directly. Every request is authenticated
with the API key header and a short-lived RS256 JWT bound to the request
path and body.
"""

import hashlib
import json
import time
import uuid
from pathlib import Path
from typing import Any, Optional, Sequence

import httpx
import jwt
import structlog

from stake_batcher.config import BatcherConfig, get_config
from stake_batcher.core.models import SignedContent
from stake_batcher.signing.interface import AuthorityResolver, SigningStatus

logger = structlog.get_logger(__name__)

# Fireblocks rejects tokens valid for longer than 60 seconds
TOKEN_LIFETIME_SECONDS = 55


class FireblocksApiError(Exception):
    """Raised when the Fireblocks API returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class FireblocksResolver(AuthorityResolver):
    """
    Fireblocks vault and raw-signing adapter.

    Implements the AuthorityResolver interface using the Fireblocks REST API.
    """

    def __init__(
        self,
        config: Optional[BatcherConfig] = None,
        private_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Fireblocks adapter.

        Args:
            config: Batcher configuration. Uses global config if not provided.
            private_key: PEM private key. Read from the configured secret
                path if not provided.
            transport: Custom httpx transport (used by tests)
        """
        self.config = config or get_config()
        self.base_url = self.config.fireblocks_base_url.rstrip("/")
        self.api_key = self.config.fireblocks_api_key or ""
        self.asset_id = self.config.fireblocks_asset_id
        self._private_key = private_key
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: BatcherConfig) -> "FireblocksResolver":
        """
        Create a resolver after validating the Fireblocks credentials.

        Raises:
            ConfigValidationError: If the key or secret path is missing
        """
        config.validate_fireblocks()
        return cls(config)

    @property
    def private_key(self) -> str:
        if self._private_key is None:
            self._private_key = Path(self.config.fireblocks_api_secret_path).read_text(
                encoding="utf-8"
            )
        return self._private_key

    def _sign_jwt(self, path: str, body: bytes) -> str:
        """Create the bearer token for a single request."""
        now = int(time.time())
        claims = {
            "uri": path,
            "nonce": str(uuid.uuid4()),
            "iat": now,
            "exp": now + TOKEN_LIFETIME_SECONDS,
            "sub": self.api_key,
            "bodyHash": hashlib.sha256(body).hexdigest(),
        }
        return jwt.encode(claims, self.private_key, algorithm="RS256")

    async def connect(self) -> None:
        """Establish connection (create HTTP client)."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=30.0,
            transport=self._transport,
        )
        logger.info("fireblocks_connected", base_url=self.base_url)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("fireblocks_disconnected")

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[dict] = None,
    ) -> Any:
        """Make an authenticated API request."""
        if not self._client:
            await self.connect()

        # The body hash must cover the exact bytes sent
        content = json.dumps(body).encode("utf-8") if body is not None else b""
        headers = {
            "X-API-Key": self.api_key,
            "Authorization": f"Bearer {self._sign_jwt(path, content)}",
        }
        if body is not None:
            headers["Content-Type"] = "application/json"

        try:
            response = await self._client.request(
                method,
                path,
                content=content or None,
                headers=headers,
            )
        except httpx.RequestError as e:
            logger.error("fireblocks_request_error", path=path, error=str(e))
            raise FireblocksApiError(f"Fireblocks request failed: {e}")

        if response.status_code >= 300:
            logger.error(
                "fireblocks_request_failed",
                path=path,
                status=response.status_code,
                error=response.text,
            )
            raise FireblocksApiError(
                f"Fireblocks API error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        return response.json()

    async def resolve_address(self, vault_id: str) -> str:
        """Resolve the first deposit address of a vault."""
        path = f"/v1/vault/accounts/{vault_id}/{self.asset_id}/addresses_paginated"
        data = await self._request("GET", path) or {}

        addresses = data.get("addresses") or []
        if not addresses or not addresses[0].get("address"):
            raise FireblocksApiError(f"No addresses found for vault account {vault_id}")

        address = addresses[0]["address"]
        logger.info("vault_address_resolved", vault_id=vault_id, address=address)
        return address

    async def submit_signing(
        self,
        contents: Sequence[str],
        source_vault_id: str,
        note: str,
    ) -> str:
        """Create a RAW signing transaction for the given message contents."""
        body = {
            "assetId": self.asset_id,
            "operation": "RAW",
            "source": {"type": "VAULT_ACCOUNT", "id": str(source_vault_id)},
            "extraParameters": {
                "rawMessageData": {
                    "messages": [{"content": content} for content in contents],
                },
            },
            "note": note,
        }

        data = await self._request("POST", "/v1/transactions", body) or {}
        request_id = data.get("id")
        if not request_id:
            raise FireblocksApiError(f"Signing request was not created: {data}")

        logger.info(
            "signing_request_created",
            request_id=request_id,
            vault_id=source_vault_id,
            messages=len(contents),
            status=data.get("status"),
        )
        return request_id

    async def poll(self, request_id: str) -> SigningStatus:
        """Fetch the status and any signed messages of a signing request."""
        data = await self._request("GET", f"/v1/transactions/{request_id}") or {}

        signed = []
        for message in data.get("signedMessages") or []:
            signature = message.get("signature") or {}
            signed.append(
                SignedContent(
                    content=message.get("content"),
                    signature=signature.get("fullSig"),
                )
            )

        return SigningStatus(
            request_id=data.get("id", request_id),
            state=data.get("status", ""),
            sub_status=data.get("subStatus"),
            signed_messages=signed,
        )

    async def cancel(self, request_id: str) -> None:
        """Cancel a pending signing request."""
        await self._request("POST", f"/v1/transactions/{request_id}/cancel", {})
        logger.info("signing_request_cancel_requested", request_id=request_id)
