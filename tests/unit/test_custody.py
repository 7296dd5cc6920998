"""
Unit tests for the in-memory custody ledger
Tests atomic batches, signer checks and curve authorities
"""

import pytest
from solders.pubkey import Pubkey

from curve_launchpad.core.custody import (
    CurveAuthority,
    InMemoryCustody,
    SolTransfer,
    TokenMint,
    TokenTransfer,
)
from curve_launchpad.core.errors import TransferError


@pytest.fixture
def alice(custody):
    account = Pubkey.new_unique()
    custody.airdrop(account, 1_000)
    return account


@pytest.fixture
def bob():
    return Pubkey.new_unique()


@pytest.fixture
def curve_with_tokens(custody):
    """Bound curve address holding 1,000 tokens of a fresh mint"""
    curve = Pubkey.new_unique()
    mint = Pubkey.new_unique()
    authority = custody.bind_curve(curve)
    custody.submit([TokenMint(mint, curve, 1_000)], authority=authority)
    return curve, mint, authority


class TestSolTransfers:
    """Test lamport movements"""

    def test_signed_transfer(self, custody, alice, bob):
        custody.submit([SolTransfer(alice, bob, 400)], signer=alice)

        assert custody.read_balance(alice) == 600
        assert custody.read_balance(bob) == 400

    def test_unsigned_debit_rejected(self, custody, alice, bob):
        with pytest.raises(TransferError):
            custody.submit([SolTransfer(alice, bob, 400)], signer=bob)

        assert custody.read_balance(alice) == 1_000

    def test_overdraft_rejected(self, custody, alice, bob):
        with pytest.raises(TransferError):
            custody.submit([SolTransfer(alice, bob, 1_001)], signer=alice)

    def test_negative_amount_rejected(self, custody, alice, bob):
        with pytest.raises(TransferError):
            custody.submit([SolTransfer(alice, bob, -1)], signer=alice)

    def test_negative_airdrop_rejected(self, custody, bob):
        with pytest.raises(ValueError):
            custody.airdrop(bob, -5)


class TestAtomicity:
    """Test all-or-nothing batches"""

    def test_failing_instruction_rolls_back_batch(self, custody, alice, bob):
        with pytest.raises(TransferError):
            custody.submit(
                [
                    SolTransfer(alice, bob, 400),
                    SolTransfer(alice, bob, 700),  # only 600 left
                ],
                signer=alice,
            )

        assert custody.read_balance(alice) == 1_000
        assert custody.read_balance(bob) == 0

    def test_injected_failure_applies_nothing(self, custody, alice, bob):
        custody.fail_next_submit("rpc timeout")

        with pytest.raises(TransferError, match="rpc timeout"):
            custody.submit([SolTransfer(alice, bob, 400)], signer=alice)

        assert custody.read_balance(alice) == 1_000

        # Failure is one-shot
        custody.submit([SolTransfer(alice, bob, 400)], signer=alice)
        assert custody.read_balance(bob) == 400


class TestCurveAuthority:
    """Test capability checks on curve-owned accounts"""

    def test_mint_credits_curve(self, custody, curve_with_tokens):
        curve, mint, _ = curve_with_tokens

        assert custody.read_balance(curve, mint=mint) == 1_000

    def test_authority_moves_curve_tokens(self, custody, curve_with_tokens, bob):
        curve, mint, authority = curve_with_tokens

        custody.submit([TokenTransfer(mint, curve, bob, 250)], authority=authority)

        assert custody.read_balance(curve, mint=mint) == 750
        assert custody.read_balance(bob, mint=mint) == 250

    def test_signer_cannot_drain_curve(self, custody, curve_with_tokens, bob):
        curve, mint, _ = curve_with_tokens

        with pytest.raises(TransferError):
            custody.submit([TokenTransfer(mint, curve, bob, 250)], signer=curve)

    def test_forged_authority_rejected(self, custody, curve_with_tokens, bob):
        curve, mint, _ = curve_with_tokens

        with pytest.raises(TransferError):
            custody.submit([TokenTransfer(mint, curve, bob, 250)], authority=CurveAuthority(curve))

    def test_curve_bound_once(self, custody, curve_with_tokens):
        curve, _, _ = curve_with_tokens

        with pytest.raises(TransferError):
            custody.bind_curve(curve)

    def test_supply_minted_once(self, custody, curve_with_tokens):
        curve, mint, authority = curve_with_tokens

        with pytest.raises(TransferError):
            custody.submit([TokenMint(mint, curve, 1)], authority=authority)

        assert custody.read_balance(curve, mint=mint) == 1_000

    def test_mint_without_authority_rejected(self):
        custody = InMemoryCustody()

        with pytest.raises(TransferError):
            custody.submit([TokenMint(Pubkey.new_unique(), Pubkey.new_unique(), 1)])
