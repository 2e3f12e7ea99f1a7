"""
Test participant ledger construction, atomic updates and snapshots.
"""
import math
import unittest

from ddp_sim.allocation import compute_allocation
from ddp_sim.config import AllocationConfig, MarketConfig
from ddp_sim.errors import ConfigError, InsufficientBalance, InvalidAmount, UnknownParticipant
from ddp_sim.ledger import (
    BalanceDelta,
    Participant,
    ParticipantLedger,
    Role,
    Token,
    build_ledger,
    build_market_ledger,
)


class TestBuildLedger(unittest.TestCase):
    def setUp(self):
        """Build the ledger for a small allocation."""
        self.config = AllocationConfig(
            total_supply=1_000_000,
            num_board_members=3,
            amm_percent=30,
            player_percent=40,
            platform_percent=10,
            chairman_contribution=100,
            board_member_contribution=50,
            platform_fee_percent=10,
            treasury_usdc_percent=20,
        )
        self.breakdown = compute_allocation(self.config)
        self.ledger = build_ledger(self.config, self.breakdown)

    def test_ordering(self):
        """Chairman, board members, pool, platform, treasury."""
        roles = [p.role for p in self.ledger]
        self.assertEqual(roles, [
            Role.CHAIRMAN,
            Role.BOARD_MEMBER, Role.BOARD_MEMBER, Role.BOARD_MEMBER,
            Role.AMM_POOL,
            Role.PLATFORM,
            Role.TREASURY,
        ])
        self.assertEqual([p.id for p in self.ledger], list(range(1, 8)))
        self.assertEqual(self.ledger.get(4).name, 'Board Member 3')

    def test_contributors_paid_in(self):
        self.assertEqual(self.ledger.get(1).usdc_balance, -100)
        for member_id in (2, 3, 4):
            self.assertEqual(self.ledger.get(member_id).usdc_balance, -50)

    def test_contributor_ddp(self):
        # 400,000 player pool over 250 USDC: chairman 40%, each member 20%
        self.assertAlmostEqual(self.ledger.get(1).ddp_balance, 160_000)
        self.assertAlmostEqual(self.ledger.get(2).ddp_balance, 80_000)

    def test_pool_seed(self):
        pool = self.ledger.pool
        self.assertEqual(pool.role, Role.AMM_POOL)
        self.assertAlmostEqual(pool.ddp_balance, 300_000)
        # 250 contributed, 10% platform fee, 20% treasury
        self.assertAlmostEqual(pool.usdc_balance, 175)
        self.assertAlmostEqual(pool.lp_tokens, math.sqrt(300_000 * 175))
        self.assertAlmostEqual(self.ledger.total_lp_supply, pool.lp_tokens)

    def test_platform_and_treasury(self):
        platform = self.ledger.get(6)
        treasury = self.ledger.get(7)
        self.assertAlmostEqual(platform.ddp_balance, 100_000)
        self.assertAlmostEqual(platform.usdc_balance, 25)
        self.assertAlmostEqual(treasury.ddp_balance, 200_000)
        self.assertAlmostEqual(treasury.usdc_balance, 50)

    def test_supply_fully_distributed(self):
        total = sum(p.ddp_balance for p in self.ledger)
        self.assertAlmostEqual(total, 1_000_000, places=6)

    def test_no_board_members(self):
        config = AllocationConfig(num_board_members=0)
        ledger = build_ledger(config, compute_allocation(config))
        self.assertEqual([p.role for p in ledger],
                         [Role.CHAIRMAN, Role.AMM_POOL, Role.PLATFORM, Role.TREASURY])


class TestMarketLedger(unittest.TestCase):
    def test_default_market(self):
        ledger = build_market_ledger(MarketConfig())
        self.assertEqual(len(ledger), 12)
        self.assertEqual(ledger.get(1).role, Role.WHALE)
        self.assertEqual(ledger.get(11).name, 'Player 10')
        self.assertEqual(ledger.get(11).role, Role.REGULAR_PLAYER)
        self.assertEqual(ledger.reserves, (45_000_000, 135_000))
        self.assertEqual(ledger.get(1).usdc_balance, -27_000)

    def test_empty_pool_has_no_lp(self):
        ledger = build_market_ledger(MarketConfig(pool_ddp=0, pool_usdc=0))
        self.assertEqual(ledger.total_lp_supply, 0)

    def test_negative_player_count(self):
        with self.assertRaises(ConfigError):
            build_market_ledger(MarketConfig(num_players=-1))

    def test_negative_reserves(self):
        with self.assertRaises(ConfigError):
            build_market_ledger(MarketConfig(pool_usdc=-1))


class TestLedgerInvariants(unittest.TestCase):
    def setUp(self):
        self.ledger = ParticipantLedger([
            Participant(1, Role.WHALE, 'Whale', ddp_balance=1_000, usdc_balance=-50),
            Participant(2, Role.AMM_POOL, 'AMM Pool', ddp_balance=10_000, usdc_balance=500,
                        lp_tokens=math.sqrt(10_000 * 500)),
        ])

    def test_requires_exactly_one_pool(self):
        with self.assertRaises(ValueError):
            ParticipantLedger([Participant(1, Role.WHALE, 'Whale')])
        with self.assertRaises(ValueError):
            ParticipantLedger([
                Participant(1, Role.AMM_POOL, 'A'),
                Participant(2, Role.AMM_POOL, 'B'),
            ])

    def test_requires_unique_ids(self):
        with self.assertRaises(ValueError):
            ParticipantLedger([
                Participant(1, Role.AMM_POOL, 'A'),
                Participant(1, Role.WHALE, 'B'),
            ])

    def test_unknown_participant(self):
        with self.assertRaises(UnknownParticipant):
            self.ledger.get(42)

    def test_apply_moves_both_sides(self):
        self.ledger.apply_deltas(1, BalanceDelta(ddp=-100, usdc=4), BalanceDelta(ddp=100, usdc=-4))
        self.assertEqual(self.ledger.get(1).ddp_balance, 900)
        self.assertEqual(self.ledger.get(1).usdc_balance, -46)
        self.assertEqual(self.ledger.reserves, (10_100, 496))

    def test_rejected_apply_leaves_ledger_unchanged(self):
        before = self.ledger.to_dict()

        with self.assertRaises(InsufficientBalance):
            self.ledger.apply_deltas(1, BalanceDelta(ddp=-1_001), BalanceDelta(ddp=1_001))
        with self.assertRaises(InvalidAmount):
            self.ledger.apply_deltas(1, BalanceDelta(usdc=501), BalanceDelta(usdc=-501))
        with self.assertRaises(InvalidAmount):
            self.ledger.apply_deltas(1, BalanceDelta(lp_tokens=-1), BalanceDelta())

        self.assertEqual(self.ledger.to_dict(), before)

    def test_pool_cannot_be_actor(self):
        with self.assertRaises(UnknownParticipant):
            self.ledger.apply_deltas(2, BalanceDelta(), BalanceDelta())

    def test_negative_usdc_allowed(self):
        self.ledger.apply_deltas(1, BalanceDelta(ddp=10, usdc=-1_000), BalanceDelta(ddp=-10, usdc=1_000))
        self.assertEqual(self.ledger.get(1).usdc_balance, -1_050)

    def test_market_summary(self):
        summary = self.ledger.market_summary()
        self.assertAlmostEqual(summary['price'], 0.05)
        self.assertEqual(summary['total_ddp'], 11_000)
        self.assertAlmostEqual(summary['market_cap'], 550)
        self.assertEqual(summary['k'], 5_000_000)

    def test_market_summary_empty_pool(self):
        ledger = build_market_ledger(MarketConfig(pool_ddp=0, pool_usdc=0))
        self.assertEqual(ledger.market_summary()['price'], 0.0)

    def test_portfolio_value(self):
        whale = self.ledger.get(1)
        self.assertAlmostEqual(whale.portfolio_value(0.05), 0)
        self.assertEqual(whale.balance_of(Token.DDP), 1_000)
        self.assertEqual(whale.balance_of(Token.USDC), -50)


class TestSnapshots(unittest.TestCase):
    def test_pack_round_trip(self):
        ledger = build_market_ledger(MarketConfig(num_players=3))
        restored = ParticipantLedger.unpack(ledger.pack())

        self.assertEqual(restored.to_dict(), ledger.to_dict())
        self.assertEqual(restored.pool.role, Role.AMM_POOL)

    def test_copy_is_independent(self):
        ledger = build_market_ledger(MarketConfig(num_players=1))
        clone = ledger.copy()
        clone.apply_deltas(1, BalanceDelta(ddp=-1), BalanceDelta(ddp=1))

        self.assertNotEqual(clone.get(1).ddp_balance, ledger.get(1).ddp_balance)


class TestToken(unittest.TestCase):
    def test_parse(self):
        self.assertIs(Token.parse('ddp'), Token.DDP)
        self.assertIs(Token.parse(Token.USDC), Token.USDC)
        self.assertIs(Token.DDP.other, Token.USDC)
        with self.assertRaises(ValueError):
            Token.parse('eth')


if __name__ == '__main__':
    unittest.main()
