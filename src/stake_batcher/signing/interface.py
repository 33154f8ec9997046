"""
Abstract interface for custodial signing services.

The batcher never holds private keys. Authority addresses are resolved from
vault ids, and transactions are signed by submitting raw message bytes to the
custodian and polling until the request resolves.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from stake_batcher.core.models import SignedContent


class SigningState(str, Enum):
    """Lifecycle states reported for a signing request."""
    SUBMITTED = "SUBMITTED"
    QUEUED = "QUEUED"
    PENDING_AUTHORIZATION = "PENDING_AUTHORIZATION"
    PENDING_SIGNATURE = "PENDING_SIGNATURE"
    PENDING_3RD_PARTY = "PENDING_3RD_PARTY"
    COMPLETED = "COMPLETED"
    BROADCASTING = "BROADCASTING"
    BLOCKED = "BLOCKED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"
    REJECTED = "REJECTED"


SUCCESS_STATES = frozenset({SigningState.COMPLETED.value, SigningState.BROADCASTING.value})
FAILURE_STATES = frozenset({
    SigningState.BLOCKED.value,
    SigningState.CANCELLED.value,
    SigningState.FAILED.value,
    SigningState.REJECTED.value,
})


@dataclass
class SigningStatus:
    """
    A signing request as seen by a single poll.

    `state` is kept as the raw string so that states the service adds later
    are treated as intermediate instead of failing to parse.
    """

    request_id: str
    state: str
    sub_status: Optional[str] = None
    signed_messages: List[SignedContent] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.state in SUCCESS_STATES

    @property
    def is_failure(self) -> bool:
        return self.state in FAILURE_STATES

    @property
    def is_terminal(self) -> bool:
        return self.is_success or self.is_failure


class SigningError(Exception):
    """Base class for signing request failures."""
    pass


class SigningTerminalFailure(SigningError):
    """Raised when a signing request ends in a failure state."""

    def __init__(self, request_id: str, state: str, sub_status: Optional[str] = None):
        self.request_id = request_id
        self.state = state
        self.sub_status = sub_status
        detail = f" ({sub_status})" if sub_status else ""
        super().__init__(f"Signing request {request_id} ended in {state}{detail}")


class SigningTimeoutError(SigningError):
    """Raised when a signing request does not resolve in time."""
    pass


class SigningCancelledError(SigningError):
    """Raised when polling is cancelled before the request resolves."""
    pass


class CorrelationError(Exception):
    """Raised when a group has no usable signature in the signing response."""
    pass


class CorrelationWarning(UserWarning):
    """Submitted and returned message counts differ."""
    pass


class AuthorityResolver(ABC):
    """
    Abstract interface for a custodial signing service.

    Implementations resolve vault ids to addresses and run raw signing
    requests on behalf of those vaults.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to the service."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the service."""
        pass

    @abstractmethod
    async def resolve_address(self, vault_id: str) -> str:
        """
        Resolve the address controlled by a vault.

        Args:
            vault_id: Vault identifier

        Returns:
            Base58 address of the vault's first deposit address
        """
        pass

    @abstractmethod
    async def submit_signing(
        self,
        contents: Sequence[str],
        source_vault_id: str,
        note: str,
    ) -> str:
        """
        Submit raw message contents for signing.

        Args:
            contents: Hex-encoded messages, in submission order
            source_vault_id: Vault whose key signs the messages
            note: Human readable note shown to approvers

        Returns:
            Signing request id
        """
        pass

    @abstractmethod
    async def poll(self, request_id: str) -> SigningStatus:
        """
        Fetch the current status of a signing request.

        Args:
            request_id: Id returned by submit_signing

        Returns:
            Current SigningStatus
        """
        pass

    @abstractmethod
    async def cancel(self, request_id: str) -> None:
        """Ask the service to cancel a pending signing request."""
        pass
