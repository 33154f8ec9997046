"""
Account partitioning.
"""

from typing import List, Sequence, Tuple, TypeVar

from stake_batcher.core.models import StakeAccount

T = TypeVar("T")


def partition(items: Sequence[T], size: int) -> List[List[T]]:
    """
    Split items into consecutive chunks of at most `size`.

    Every chunk but the last has exactly `size` items, and concatenating the
    chunks gives back the input in order.
    """
    if size < 1:
        raise ValueError(f"Group size must be positive, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def split_malformed(
    accounts: Sequence[StakeAccount],
) -> Tuple[List[StakeAccount], List[StakeAccount]]:
    """Split accounts into (well-formed, malformed), preserving order."""
    valid = []
    malformed = []
    for account in accounts:
        (valid if account.is_valid else malformed).append(account)
    return valid, malformed
