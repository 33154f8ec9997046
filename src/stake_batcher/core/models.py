"""
Data model for a batch run.

Stake accounts come in from the directory, are grouped into unsigned
transactions, and every group ends as exactly one GroupResult.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from solders.pubkey import Pubkey


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_pubkey(address: Optional[str]) -> Optional[Pubkey]:
    """Parse a base58 address, returning None when it is not a valid key."""
    if not address or not address.strip():
        return None
    try:
        return Pubkey.from_string(address.strip())
    except ValueError:
        return None


@dataclass(frozen=True)
class StakeAccount:
    """
    A single target stake account as reported by the account directory.

    Attributes:
        address: Base58 address of the stake account (may be missing on
            malformed directory entries)
        lamports: Current balance in lamports, if reported
        status: Activation status ("active", "inactive", ...), if reported
    """

    address: Optional[str]
    lamports: Optional[int] = None
    status: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        """Check that the account carries a well-formed address."""
        return parse_pubkey(self.address) is not None

    @property
    def pubkey(self) -> Pubkey:
        pubkey = parse_pubkey(self.address)
        if pubkey is None:
            raise ValueError(f"Malformed stake account address: {self.address!r}")
        return pubkey


@dataclass(frozen=True)
class Authority:
    """A signing-service vault and the address it controls."""

    vault_id: str
    address: str

    @property
    def pubkey(self) -> Pubkey:
        return Pubkey.from_string(self.address)


@dataclass(frozen=True)
class AuthorityPair:
    """
    The authorities involved in a run.

    `new` is only set for authority changes; withdrawals pay out to `current`.
    """

    current: Authority
    new: Optional[Authority] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "current_authority": self.current.address,
            "new_authority": self.new.address if self.new else None,
        }


@dataclass(frozen=True)
class UnsignedGroup:
    """
    One unsigned transaction covering a group of stake accounts.

    Attributes:
        index: 1-based position of the group within the run
        accounts: Member stake accounts, in instruction order
        fee_payer: Address paying the fee (and signing)
        blockhash: Recent blockhash the message was built against
        content: Hex-encoded serialized message, the payload sent for signing
    """

    index: int
    accounts: Tuple[StakeAccount, ...]
    fee_payer: str
    blockhash: str
    content: str

    @property
    def size(self) -> int:
        return len(self.accounts)

    @property
    def account_addresses(self) -> List[str]:
        return [account.address for account in self.accounts]


@dataclass(frozen=True)
class SignedContent:
    """A signed payload as returned by the signing service."""

    content: Optional[str]
    signature: Optional[str]


class GroupStatus(str, Enum):
    """Final outcome of a group."""
    SUCCESS = "Success"
    FAILED = "Failed"


@dataclass(frozen=True)
class GroupResult:
    """
    Final, immutable record of one processed group.

    Attributes:
        group_index: 1-based position of the group within the run
        accounts: Addresses of the member stake accounts
        status: Success or Failed
        transaction_id: Network transaction signature, if broadcast
        error_message: Failure detail, if any
        authorities: Current/new authority addresses used by the run
        timestamp: When the outcome was recorded
    """

    group_index: int
    accounts: Tuple[str, ...]
    status: GroupStatus
    transaction_id: Optional[str] = None
    error_message: Optional[str] = None
    authorities: Dict[str, Optional[str]] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def success(cls, group_index: int, accounts, transaction_id: str, authorities: AuthorityPair) -> "GroupResult":
        return cls(
            group_index=group_index,
            accounts=tuple(accounts),
            status=GroupStatus.SUCCESS,
            transaction_id=transaction_id,
            authorities=authorities.to_dict(),
        )

    @classmethod
    def failure(cls, group_index: int, accounts, error_message: str, authorities: AuthorityPair) -> "GroupResult":
        return cls(
            group_index=group_index,
            accounts=tuple(accounts),
            status=GroupStatus.FAILED,
            error_message=error_message,
            authorities=authorities.to_dict(),
        )

    @property
    def succeeded(self) -> bool:
        return self.status == GroupStatus.SUCCESS

    def to_row(self) -> dict:
        """Flatten into a report row."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "transaction_id": self.transaction_id,
            "status": self.status.value,
            "error_message": self.error_message,
            "accounts": list(self.accounts),
            **self.authorities,
        }


@dataclass
class RunSummary:
    """Aggregate outcome of a batch run."""

    operation: str
    results: List[GroupResult] = field(default_factory=list)
    total_accounts: int = 0
    skipped_accounts: int = 0
    malformed_accounts: int = 0
    planned_groups: int = 0
    report_location: Optional[str] = None

    @property
    def groups_succeeded(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def groups_failed(self) -> int:
        return sum(1 for r in self.results if not r.succeeded)

    @property
    def accounts_succeeded(self) -> int:
        return sum(len(r.accounts) for r in self.results if r.succeeded)

    @property
    def accounts_failed(self) -> int:
        return sum(len(r.accounts) for r in self.results if not r.succeeded)

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "total_accounts": self.total_accounts,
            "skipped_accounts": self.skipped_accounts,
            "malformed_accounts": self.malformed_accounts,
            "planned_groups": self.planned_groups,
            "attempted_groups": len(self.results),
            "groups_succeeded": self.groups_succeeded,
            "groups_failed": self.groups_failed,
            "accounts_succeeded": self.accounts_succeeded,
            "accounts_failed": self.accounts_failed,
            "report_location": self.report_location,
        }
