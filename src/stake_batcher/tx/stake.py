"""
Stake program instructions.

Encodes the two stake program instructions the batcher needs, using the
program's bincode layout (little-endian u32 variant tag followed by fields).
"""

import struct
from enum import IntEnum

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

STAKE_PROGRAM_ID = Pubkey.from_string("Stake11111111111111111111111111111111111111")
SYSVAR_CLOCK_ID = Pubkey.from_string("SysvarC1ock11111111111111111111111111111111")
SYSVAR_STAKE_HISTORY_ID = Pubkey.from_string("SysvarStakeHistory1111111111111111111111111")

# Minimum balance a 200-byte stake account must keep to stay rent exempt
RENT_EXEMPT_RESERVE_LAMPORTS = 2_282_880

_AUTHORIZE = 1
_WITHDRAW = 4


class StakeAuthorize(IntEnum):
    """Authority roles on a stake account."""
    STAKER = 0
    WITHDRAWER = 1


def authorize(
    stake_account: Pubkey,
    authority: Pubkey,
    new_authority: Pubkey,
    role: StakeAuthorize,
) -> Instruction:
    """
    Build an Authorize instruction.

    Args:
        stake_account: Stake account to update
        authority: Current holder of `role`, must sign
        new_authority: Address receiving `role`
        role: Which authority to transfer

    Returns:
        Stake program instruction
    """
    data = struct.pack("<I", _AUTHORIZE) + bytes(new_authority) + struct.pack("<I", int(role))
    accounts = [
        AccountMeta(stake_account, is_signer=False, is_writable=True),
        AccountMeta(SYSVAR_CLOCK_ID, is_signer=False, is_writable=False),
        AccountMeta(authority, is_signer=True, is_writable=False),
    ]
    return Instruction(STAKE_PROGRAM_ID, data, accounts)


def withdraw(
    stake_account: Pubkey,
    withdrawer: Pubkey,
    recipient: Pubkey,
    lamports: int,
) -> Instruction:
    """
    Build a Withdraw instruction.

    Args:
        stake_account: Stake account to withdraw from
        withdrawer: Withdraw authority, must sign
        recipient: Account receiving the lamports
        lamports: Amount to withdraw, must be positive

    Returns:
        Stake program instruction
    """
    if lamports <= 0:
        raise ValueError(f"Withdrawal amount must be positive, got {lamports}")

    data = struct.pack("<IQ", _WITHDRAW, lamports)
    accounts = [
        AccountMeta(stake_account, is_signer=False, is_writable=True),
        AccountMeta(recipient, is_signer=False, is_writable=True),
        AccountMeta(SYSVAR_CLOCK_ID, is_signer=False, is_writable=False),
        AccountMeta(SYSVAR_STAKE_HISTORY_ID, is_signer=False, is_writable=False),
        AccountMeta(withdrawer, is_signer=True, is_writable=False),
    ]
    return Instruction(STAKE_PROGRAM_ID, data, accounts)
