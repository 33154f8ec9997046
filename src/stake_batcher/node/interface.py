"""
Abstract interface for Solana network access.

Defines the contract for blockchain access that all network adapters must implement.
"""

from abc import ABC, abstractmethod
from typing import List, Optional


class NetworkInterface(ABC):
    """
    Abstract interface for Solana network access.

    The batcher needs only two things from the network:
    - a fresh recent blockhash to build each transaction against
    - raw transaction submission
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the node/API.

        Raises:
            NodeConnectionError: If connection cannot be established
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the node/API."""
        pass

    @abstractmethod
    async def get_latest_blockhash(self) -> str:
        """
        Get the latest blockhash.

        Blockhashes expire after roughly a minute, so callers should fetch one
        immediately before building each transaction.

        Returns:
            Base58 encoded blockhash
        """
        pass

    @abstractmethod
    async def send_raw_transaction(
        self,
        raw_transaction: bytes,
        skip_preflight: bool = False,
        preflight_commitment: str = "confirmed",
    ) -> str:
        """
        Submit a signed, serialized transaction to the network.

        Args:
            raw_transaction: Wire-format transaction bytes
            skip_preflight: Skip the preflight simulation
            preflight_commitment: Commitment level for the simulation

        Returns:
            Transaction signature (id) assigned by the network

        Raises:
            BroadcastError: If the network rejects the transaction
        """
        pass


class NodeConnectionError(Exception):
    """Raised when connection to the RPC node fails."""
    pass


class BroadcastError(Exception):
    """Raised when transaction submission fails."""

    def __init__(
        self,
        message: str,
        logs: Optional[List[str]] = None,
        error_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.logs = list(logs or [])
        self.error_code = error_code
