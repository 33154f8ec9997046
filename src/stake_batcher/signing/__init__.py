"""
Custodial signing layer.

Resolves vault ids to authority addresses and runs raw signing requests.
"""

from stake_batcher.signing.interface import (
    AuthorityResolver,
    SigningState,
    SigningStatus,
    SigningError,
    SigningTerminalFailure,
    SigningTimeoutError,
    SigningCancelledError,
    CorrelationError,
    CorrelationWarning,
)
from stake_batcher.signing.coordinator import SigningCoordinator, SigningOutcome, GroupSignature
from stake_batcher.signing.fireblocks import FireblocksResolver, FireblocksApiError

__all__ = [
    "AuthorityResolver",
    "SigningState",
    "SigningStatus",
    "SigningError",
    "SigningTerminalFailure",
    "SigningTimeoutError",
    "SigningCancelledError",
    "CorrelationError",
    "CorrelationWarning",
    "SigningCoordinator",
    "SigningOutcome",
    "GroupSignature",
    "FireblocksResolver",
    "FireblocksApiError",
]
