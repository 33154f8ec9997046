"""
Transaction Builder - constructs unsigned group transactions.

Turns a group of stake accounts into one unsigned, size-bounded message whose
serialized bytes are what the signing service signs.
"""

from typing import Sequence

import structlog

from solders.hash import Hash
from solders.message import Message

from stake_batcher.core.models import AuthorityPair, StakeAccount, UnsignedGroup
from stake_batcher.node.interface import NetworkInterface
from stake_batcher.tx.operations import Operation

logger = structlog.get_logger(__name__)

# Maximum serialized transaction size accepted by the network
PACKET_DATA_SIZE = 1232
SIGNATURE_SIZE = 64


class BuildError(Exception):
    """Raised when a group transaction cannot be constructed."""
    pass


def transaction_size(message: Message) -> int:
    """Size of the wire transaction once all required signatures are attached."""
    num_signatures = message.header.num_required_signatures
    # Signature count is a compact-u16; below 128 it fits in one byte
    prefix = 1 if num_signatures < 0x80 else 2
    return prefix + SIGNATURE_SIZE * num_signatures + len(bytes(message))


class TransactionBuilder:
    """
    Builds unsigned group transactions.

    Coordinates between the operation variant, which supplies instructions,
    and the network, which supplies a fresh blockhash for every group.
    """

    def __init__(
        self,
        network: NetworkInterface,
        operation: Operation,
    ):
        """
        Initialize the transaction builder.

        Args:
            network: Network interface for blockhash queries
            operation: Operation variant that supplies the instructions
        """
        self.network = network
        self.operation = operation

    def _validate_group(self, index: int, accounts: Sequence[StakeAccount]) -> None:
        if not accounts:
            raise BuildError(f"Cannot build transaction for empty group {index}")

        if len(accounts) > self.operation.group_size:
            raise BuildError(
                f"Group {index} has {len(accounts)} accounts, "
                f"cap for {self.operation.kind.value} is {self.operation.group_size}"
            )

        malformed = [account.address for account in accounts if not account.is_valid]
        if malformed:
            raise BuildError(f"Group {index} contains malformed stake accounts: {malformed}")

    async def build(
        self,
        index: int,
        accounts: Sequence[StakeAccount],
        authorities: AuthorityPair,
    ) -> UnsignedGroup:
        """
        Build the unsigned transaction for a group.

        Args:
            index: 1-based group position within the run
            accounts: Group members
            authorities: Resolved authorities; `current` pays the fee and signs

        Returns:
            UnsignedGroup holding the serialized message

        Raises:
            BuildError: If the group is empty, malformed, or too large
        """
        self._validate_group(index, accounts)

        try:
            instructions = self.operation.build_instructions(accounts, authorities)
        except ValueError as e:
            raise BuildError(f"Failed to build instructions for group {index}: {e}")

        fee_payer = authorities.current.pubkey

        # Blockhashes expire quickly, so always fetch one per group
        blockhash = await self.network.get_latest_blockhash()

        try:
            message = Message.new_with_blockhash(
                instructions,
                fee_payer,
                Hash.from_string(blockhash),
            )
        except ValueError as e:
            raise BuildError(f"Failed to compile message for group {index}: {e}")

        size = transaction_size(message)
        if size > PACKET_DATA_SIZE:
            raise BuildError(
                f"Group {index} transaction is {size} bytes, limit is {PACKET_DATA_SIZE}"
            )

        group = UnsignedGroup(
            index=index,
            accounts=tuple(accounts),
            fee_payer=str(fee_payer),
            blockhash=blockhash,
            content=bytes(message).hex(),
        )

        logger.info(
            "group_transaction_built",
            group=index,
            accounts=group.size,
            instructions=len(instructions),
            size=size,
            blockhash=blockhash,
        )

        return group
