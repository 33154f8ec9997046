"""
Stake Authority Batcher

Bulk management of Solana stake accounts held by a custodial vault.
Stake accounts are grouped into size-bounded transactions, signed by the
custodian, and broadcast one group at a time so that a failing group never
stops the rest of the run.
"""

__version__ = "0.1.0"

from stake_batcher.core.orchestrator import BatchOrchestrator
from stake_batcher.core.models import StakeAccount, GroupResult, GroupStatus, RunSummary
from stake_batcher.config import BatcherConfig, OperationKind

__all__ = [
    "BatchOrchestrator",
    "StakeAccount",
    "GroupResult",
    "GroupStatus",
    "RunSummary",
    "BatcherConfig",
    "OperationKind",
]
