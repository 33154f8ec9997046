"""
Transaction module.

Handles stake instruction encoding, transaction construction, and
signature attachment and submission.
"""

from stake_batcher.tx.builder import TransactionBuilder, BuildError
from stake_batcher.tx.broadcaster import Broadcaster, SignatureVerificationError
from stake_batcher.tx.operations import (
    Operation,
    ChangeAuthorityOperation,
    WithdrawOperation,
    create_operation,
)

__all__ = [
    "TransactionBuilder",
    "BuildError",
    "Broadcaster",
    "SignatureVerificationError",
    "Operation",
    "ChangeAuthorityOperation",
    "WithdrawOperation",
    "create_operation",
]
