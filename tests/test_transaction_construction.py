"""
Test suite for transaction construction functionality.

Tests stake instruction encoding and the construction of unsigned
group transactions.
"""

import struct

import pytest
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature

from stake_batcher.core.models import Authority, AuthorityPair, StakeAccount
from stake_batcher.tx.builder import PACKET_DATA_SIZE, BuildError, TransactionBuilder, transaction_size
from stake_batcher.tx.operations import ChangeAuthorityOperation, WithdrawOperation
from stake_batcher.tx.stake import (
    RENT_EXEMPT_RESERVE_LAMPORTS,
    STAKE_PROGRAM_ID,
    SYSVAR_CLOCK_ID,
    SYSVAR_STAKE_HISTORY_ID,
    StakeAuthorize,
    authorize,
    withdraw,
)


# ============================================================================
# Test Stake Instructions
# ============================================================================

class TestStakeInstructions:
    """Tests for stake program instruction encoding."""

    def test_authorize_layout(self):
        """Test the Authorize instruction data and accounts."""
        stake = Pubkey.new_unique()
        current = Pubkey.new_unique()
        new = Pubkey.new_unique()

        ix = authorize(stake, current, new, StakeAuthorize.WITHDRAWER)

        assert ix.program_id == STAKE_PROGRAM_ID
        assert bytes(ix.data) == struct.pack("<I", 1) + bytes(new) + struct.pack("<I", 1)
        assert [m.pubkey for m in ix.accounts] == [stake, SYSVAR_CLOCK_ID, current]
        assert ix.accounts[0].is_writable
        assert ix.accounts[2].is_signer

    def test_withdraw_layout(self):
        """Test the Withdraw instruction data and accounts."""
        stake = Pubkey.new_unique()
        authority = Pubkey.new_unique()

        ix = withdraw(stake, authority, authority, 1_234_567)

        assert bytes(ix.data) == struct.pack("<IQ", 4, 1_234_567)
        assert [m.pubkey for m in ix.accounts] == [
            stake, authority, SYSVAR_CLOCK_ID, SYSVAR_STAKE_HISTORY_ID, authority,
        ]
        assert ix.accounts[4].is_signer

    @pytest.mark.parametrize("lamports", [0, -1])
    def test_withdraw_rejects_non_positive(self, lamports):
        """Test zero and negative withdrawals are never encoded."""
        with pytest.raises(ValueError):
            withdraw(Pubkey.new_unique(), Pubkey.new_unique(), Pubkey.new_unique(), lamports)


# ============================================================================
# Test Transaction Builder
# ============================================================================

class TestTransactionBuilder:
    """Tests for building unsigned group transactions."""

    @pytest.mark.asyncio
    async def test_change_authority_group(self, mock_network, authorities, account_factory):
        """Test a change-authority group has two instructions per account."""
        builder = TransactionBuilder(mock_network, ChangeAuthorityOperation())
        accounts = account_factory(6)

        group = await builder.build(1, accounts, authorities)

        message = Message.from_bytes(bytes.fromhex(group.content))
        assert len(message.instructions) == 12
        assert message.header.num_required_signatures == 1
        assert message.account_keys[0] == authorities.current.pubkey
        assert group.fee_payer == authorities.current.address
        assert group.account_addresses == [a.address for a in accounts]
        assert str(message.recent_blockhash) == group.blockhash
        assert transaction_size(message) <= PACKET_DATA_SIZE

    @pytest.mark.asyncio
    async def test_authorize_targets_new_authority(self, mock_network, authorities, account_factory):
        """Test both roles are moved to the new authority."""
        builder = TransactionBuilder(mock_network, ChangeAuthorityOperation())

        group = await builder.build(1, account_factory(1), authorities)

        message = Message.from_bytes(bytes.fromhex(group.content))
        roles = []
        for ix in message.instructions:
            data = bytes(ix.data)
            assert data[4:36] == bytes(authorities.new.pubkey)
            roles.append(struct.unpack("<I", data[36:40])[0])
        assert roles == [StakeAuthorize.STAKER, StakeAuthorize.WITHDRAWER]

    @pytest.mark.asyncio
    async def test_withdraw_group(self, mock_network, authorities, account_factory):
        """Test withdraw amounts keep the rent-exempt reserve."""
        builder = TransactionBuilder(mock_network, WithdrawOperation())
        accounts = account_factory(4, lamports=RENT_EXEMPT_RESERVE_LAMPORTS + 1_000)

        group = await builder.build(1, accounts, AuthorityPair(current=authorities.current))

        message = Message.from_bytes(bytes.fromhex(group.content))
        assert len(message.instructions) == 4
        for ix in message.instructions:
            assert struct.unpack("<IQ", bytes(ix.data)) == (4, 1_000)

    @pytest.mark.asyncio
    async def test_fresh_blockhash_per_group(self, mock_network, authorities, account_factory):
        """Test every group is built against a newly fetched blockhash."""
        builder = TransactionBuilder(mock_network, ChangeAuthorityOperation())

        first = await builder.build(1, account_factory(1), authorities)
        second = await builder.build(2, account_factory(1), authorities)

        assert mock_network.blockhash_calls == 2
        assert first.blockhash != second.blockhash

    @pytest.mark.asyncio
    async def test_empty_group(self, mock_network, authorities):
        """Test an empty group is rejected."""
        builder = TransactionBuilder(mock_network, ChangeAuthorityOperation())

        with pytest.raises(BuildError, match="empty"):
            await builder.build(1, [], authorities)

    @pytest.mark.asyncio
    async def test_group_over_cap(self, mock_network, authorities, account_factory):
        """Test a group larger than the operation cap is rejected."""
        builder = TransactionBuilder(mock_network, WithdrawOperation())

        with pytest.raises(BuildError, match="cap"):
            await builder.build(1, account_factory(5), authorities)

    @pytest.mark.asyncio
    async def test_malformed_account(self, mock_network, authorities, account_factory):
        """Test a group containing a malformed account is rejected."""
        builder = TransactionBuilder(mock_network, ChangeAuthorityOperation())
        accounts = account_factory(2) + [StakeAccount(address=None)]

        with pytest.raises(BuildError, match="malformed"):
            await builder.build(1, accounts, authorities)

        assert mock_network.blockhash_calls == 0

    @pytest.mark.asyncio
    async def test_withdraw_nothing_to_withdraw(self, mock_network, authorities, account_factory):
        """Test the builder refuses a non-positive withdrawal."""
        builder = TransactionBuilder(mock_network, WithdrawOperation())
        accounts = account_factory(1, lamports=RENT_EXEMPT_RESERVE_LAMPORTS)

        with pytest.raises(BuildError, match="Nothing to withdraw"):
            await builder.build(1, accounts, authorities)

    @pytest.mark.asyncio
    async def test_missing_new_authority(self, mock_network, authorities, account_factory):
        """Test an authority change needs the new authority."""
        builder = TransactionBuilder(mock_network, ChangeAuthorityOperation())

        with pytest.raises(BuildError, match="New authority"):
            await builder.build(1, account_factory(1), AuthorityPair(current=authorities.current))

    @pytest.mark.asyncio
    async def test_message_signable_by_fee_payer(self, mock_network, account_factory):
        """Test the fee payer's signature over the content verifies."""
        payer = Keypair()
        pair = AuthorityPair(
            current=Authority("1", str(payer.pubkey())),
            new=Authority("2", str(Keypair().pubkey())),
        )
        builder = TransactionBuilder(mock_network, ChangeAuthorityOperation())

        group = await builder.build(1, account_factory(2), pair)

        content = bytes.fromhex(group.content)
        signature = payer.sign_message(content)
        assert isinstance(signature, Signature)
        assert signature.verify(payer.pubkey(), content)
