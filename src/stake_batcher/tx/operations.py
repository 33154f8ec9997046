"""
Bulk operation variants.

Each operation supplies its own group-size cap, account eligibility rule,
instruction builder and signing note. The orchestrator picks one at
construction time and never branches on the operation kind afterwards.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

import structlog

from solders.instruction import Instruction

from stake_batcher.config import OperationKind
from stake_batcher.core.models import AuthorityPair, StakeAccount
from stake_batcher.tx.stake import (
    RENT_EXEMPT_RESERVE_LAMPORTS,
    StakeAuthorize,
    authorize,
    withdraw,
)

logger = structlog.get_logger(__name__)


class Operation(ABC):
    """
    Abstract base class for bulk stake operations.

    Subclasses define how a group of stake accounts turns into instructions.
    """

    kind: OperationKind
    group_size: int
    requires_new_authority: bool = False

    def select_accounts(
        self,
        accounts: Sequence[StakeAccount],
    ) -> Tuple[List[StakeAccount], List[StakeAccount]]:
        """
        Split well-formed accounts into eligible and skipped.

        Args:
            accounts: Well-formed stake accounts

        Returns:
            (eligible, skipped) accounts, each in input order
        """
        return list(accounts), []

    @abstractmethod
    def build_instructions(
        self,
        accounts: Sequence[StakeAccount],
        authorities: AuthorityPair,
    ) -> List[Instruction]:
        """
        Build the instructions for one group.

        Args:
            accounts: Group members
            authorities: Resolved authorities for the run

        Returns:
            Instructions in execution order
        """
        pass

    @abstractmethod
    def signing_note(self, authorities: AuthorityPair, account_count: int) -> str:
        """Human readable note attached to the signing request."""
        pass


class ChangeAuthorityOperation(Operation):
    """Move both staker and withdrawer roles to the new authority."""

    kind = OperationKind.CHANGE_AUTHORITY
    group_size = 6  # 12 instructions stays under the packet size limit
    requires_new_authority = True

    def build_instructions(
        self,
        accounts: Sequence[StakeAccount],
        authorities: AuthorityPair,
    ) -> List[Instruction]:
        if authorities.new is None:
            raise ValueError("New authority is required to change authorities")

        current = authorities.current.pubkey
        new = authorities.new.pubkey

        instructions = []
        for account in accounts:
            stake = account.pubkey
            instructions.append(authorize(stake, current, new, StakeAuthorize.STAKER))
            instructions.append(authorize(stake, current, new, StakeAuthorize.WITHDRAWER))
        return instructions

    def signing_note(self, authorities: AuthorityPair, account_count: int) -> str:
        return (
            f"Changing authority for {account_count} Solana stake account(s). "
            f"New authority VA is {authorities.new.vault_id} and new authority "
            f"address is {authorities.new.address}"
        )


class WithdrawOperation(Operation):
    """
    Withdraw everything above the rent-exempt reserve back to the authority.

    Accounts with nothing to withdraw are skipped before grouping so that a
    zero or negative withdrawal is never built.
    """

    kind = OperationKind.WITHDRAW
    group_size = 4

    def __init__(
        self,
        reserve_lamports: int = RENT_EXEMPT_RESERVE_LAMPORTS,
        require_inactive: bool = True,
    ):
        self.reserve_lamports = reserve_lamports
        self.require_inactive = require_inactive

    def withdrawable_amount(self, account: StakeAccount) -> Optional[int]:
        """Lamports that can be withdrawn, or None if the balance is unknown."""
        if account.lamports is None:
            return None
        return account.lamports - self.reserve_lamports

    def select_accounts(
        self,
        accounts: Sequence[StakeAccount],
    ) -> Tuple[List[StakeAccount], List[StakeAccount]]:
        eligible = []
        skipped = []

        for account in accounts:
            amount = self.withdrawable_amount(account)
            if amount is None or amount <= 0:
                logger.info(
                    "withdraw_account_skipped",
                    stake_account=account.address,
                    lamports=account.lamports,
                    reason="nothing to withdraw",
                )
                skipped.append(account)
                continue

            status = (account.status or "").lower()
            if self.require_inactive and status and status != "inactive":
                logger.info(
                    "withdraw_account_skipped",
                    stake_account=account.address,
                    status=status,
                    reason="stake is not inactive",
                )
                skipped.append(account)
                continue

            eligible.append(account)

        return eligible, skipped

    def build_instructions(
        self,
        accounts: Sequence[StakeAccount],
        authorities: AuthorityPair,
    ) -> List[Instruction]:
        authority = authorities.current.pubkey

        instructions = []
        for account in accounts:
            amount = self.withdrawable_amount(account)
            if amount is None or amount <= 0:
                raise ValueError(
                    f"Nothing to withdraw from {account.address} "
                    f"(balance {account.lamports}, reserve {self.reserve_lamports})"
                )
            instructions.append(withdraw(account.pubkey, authority, authority, amount))
        return instructions

    def signing_note(self, authorities: AuthorityPair, account_count: int) -> str:
        return (
            f"Withdrawing idle balance from {account_count} Solana stake account(s) "
            f"to authority address {authorities.current.address}"
        )


def create_operation(
    kind: OperationKind,
    reserve_lamports: int = RENT_EXEMPT_RESERVE_LAMPORTS,
    withdraw_require_inactive: bool = True,
) -> Operation:
    """Create the operation variant for `kind`."""
    if kind == OperationKind.CHANGE_AUTHORITY:
        return ChangeAuthorityOperation()
    if kind == OperationKind.WITHDRAW:
        return WithdrawOperation(
            reserve_lamports=reserve_lamports,
            require_inactive=withdraw_require_inactive,
        )
    raise ValueError(f"Unsupported operation: {kind}")
