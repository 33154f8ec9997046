"""
Stake account directories.

Lists the stake accounts controlled by an authority address.
"""

from stake_batcher.config import AccountSource, BatcherConfig
from stake_batcher.directory.interface import AccountDirectory
from stake_batcher.directory.rate_limiter import RequestQueue
from stake_batcher.directory.solana_beach import SolanaBeachDirectory
from stake_batcher.directory.solscan import SolscanDirectory


def create_directory(config: BatcherConfig) -> AccountDirectory:
    """Create the account directory selected by the configuration."""
    if config.account_source == AccountSource.SOLSCAN:
        return SolscanDirectory.from_config(config)
    return SolanaBeachDirectory.from_config(config)


__all__ = [
    "AccountDirectory",
    "RequestQueue",
    "SolanaBeachDirectory",
    "SolscanDirectory",
    "create_directory",
]
