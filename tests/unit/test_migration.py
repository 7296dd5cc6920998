"""
Unit tests for the migration trigger and reference venue
"""

import dataclasses

from solders.pubkey import Pubkey

from curve_launchpad.core.migration import InMemoryVenue, MigrationTrigger


class TestMigrationTrigger:
    """Test the completion rule"""

    def test_fresh_curve_not_triggered(self, fresh_curve):
        state, triggered = MigrationTrigger().apply(fresh_curve)

        assert triggered is False
        assert state is fresh_curve

    def test_sold_out_curve_completes(self, fresh_curve):
        sold_out = dataclasses.replace(fresh_curve, real_token_reserves=0)

        state, triggered = MigrationTrigger().apply(sold_out)

        assert triggered is True
        assert state.complete is True
        assert state.real_token_reserves == 0

    def test_one_token_left_is_not_complete(self, fresh_curve):
        almost = dataclasses.replace(fresh_curve, real_token_reserves=1)

        assert MigrationTrigger().should_complete(almost) is False

    def test_fires_only_on_the_flip(self, fresh_curve):
        already = dataclasses.replace(fresh_curve, real_token_reserves=0, complete=True)

        state, triggered = MigrationTrigger().apply(already)

        assert triggered is False
        assert state.complete is True

    def test_custom_threshold(self, fresh_curve):
        trigger = MigrationTrigger(threshold=1_000)

        assert trigger.should_complete(dataclasses.replace(fresh_curve, real_token_reserves=1_000))
        assert not trigger.should_complete(dataclasses.replace(fresh_curve, real_token_reserves=1_001))


class TestInMemoryVenue:
    """Test the reference liquidity venue"""

    def test_pool_ids_are_sequential(self):
        venue = InMemoryVenue()

        first = venue.create_pool(Pubkey.new_unique(), 100, 400)
        second = venue.create_pool(Pubkey.new_unique(), 9, 16)

        assert first.pool_id == "pool-1"
        assert second.pool_id == "pool-2"

    def test_lp_amount_is_geometric_mean(self):
        handle = InMemoryVenue().create_pool(Pubkey.new_unique(), 100, 400)

        assert handle.lp_amount == 200

    def test_receipt_locked_once(self):
        venue = InMemoryVenue()
        handle = venue.create_pool(Pubkey.new_unique(), 1, 1)
        owner = Pubkey.new_unique()

        venue.lock_receipt(handle, owner)

        assert venue.locked[handle.pool_id] == owner

    def test_fee_claim_resets(self):
        venue = InMemoryVenue()
        handle = venue.create_pool(Pubkey.new_unique(), 1, 1)
        venue.accrue_fee(handle.pool_id, 50)
        venue.accrue_fee(handle.pool_id, 25)

        assert venue.claim_fee(handle, Pubkey.new_unique()) == 75
        assert venue.claim_fee(handle, Pubkey.new_unique()) == 0

    def test_explicit_venue_account(self):
        account = Pubkey.new_unique()

        assert InMemoryVenue(venue_account=account).venue_account == account
