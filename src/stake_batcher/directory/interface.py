"""
Abstract interface for stake account directories.

A directory lists the stake accounts whose authority is a given address.
"""

from abc import ABC, abstractmethod
from typing import List

from stake_batcher.core.models import StakeAccount


class AccountDirectory(ABC):
    """
    Abstract interface for stake account listing services.

    Implementations page through the service and rate-limit their own calls.
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
    async def list_stake_accounts(self, address: str) -> List[StakeAccount]:
        """
        List every stake account controlled by an authority.

        Args:
            address: Authority address

        Returns:
            Stake accounts across all pages, in service order

        Raises:
            DirectoryError: If the service cannot be queried
        """
        pass
