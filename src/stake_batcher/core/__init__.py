"""
Core batch components.

This module contains the data model and grouping rules shared by every
operation. The orchestrator lives in `stake_batcher.core.orchestrator`.
"""

from stake_batcher.core.models import (
    StakeAccount,
    Authority,
    AuthorityPair,
    UnsignedGroup,
    SignedContent,
    GroupStatus,
    GroupResult,
    RunSummary,
)
from stake_batcher.core.grouping import partition, split_malformed

__all__ = [
    "StakeAccount",
    "Authority",
    "AuthorityPair",
    "UnsignedGroup",
    "SignedContent",
    "GroupStatus",
    "GroupResult",
    "RunSummary",
    "partition",
    "split_malformed",
]
