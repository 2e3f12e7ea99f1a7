"""
In-memory participant ledger.

The ledger is built once, either from an allocation breakdown or from a
direct market setup, and afterwards only changes through
``ParticipantLedger.apply_deltas``. The AMM pool is an ordinary row whose
balances are the pool reserves.
"""
import math
import threading
import logging
from enum import Enum
from dataclasses import dataclass, asdict

import msgpack

from ddp_sim.errors import ConfigError, InsufficientBalance, InvalidAmount, UnknownParticipant

logger = logging.getLogger(__name__)


class Role(str, Enum):
    CHAIRMAN = 'Chairman'
    BOARD_MEMBER = 'BoardMember'
    AMM_POOL = 'AmmPool'
    PLATFORM = 'Platform'
    TREASURY = 'Treasury'
    WHALE = 'Whale'
    REGULAR_PLAYER = 'RegularPlayer'


class Token(str, Enum):
    DDP = 'DDP'
    USDC = 'USDC'

    @classmethod
    def parse(cls, value) -> 'Token':
        """Accept a Token or a case-insensitive token name."""
        if isinstance(value, Token):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ValueError(f"Unknown token {value!r}, expected DDP or USDC")

    @property
    def other(self) -> 'Token':
        return Token.USDC if self is Token.DDP else Token.DDP


@dataclass
class Participant:
    """One row of the ledger. USDC is signed: negative means a net payer."""
    id: int
    role: Role
    name: str
    ddp_balance: float = 0.0
    usdc_balance: float = 0.0
    lp_tokens: float = 0.0

    def balance_of(self, token: Token) -> float:
        return self.ddp_balance if token is Token.DDP else self.usdc_balance

    def portfolio_value(self, ddp_price: float) -> float:
        """USDC balance plus DDP holdings marked at the given price."""
        return self.usdc_balance + self.ddp_balance * ddp_price

    def to_dict(self) -> dict:
        data = asdict(self)
        data['role'] = self.role.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Participant':
        return cls(
            id=int(data['id']),
            role=Role(data['role']),
            name=data['name'],
            ddp_balance=float(data['ddp_balance']),
            usdc_balance=float(data['usdc_balance']),
            lp_tokens=float(data['lp_tokens']),
        )


@dataclass(frozen=True)
class BalanceDelta:
    """Signed change to one participant's balances."""
    ddp: float = 0.0
    usdc: float = 0.0
    lp_tokens: float = 0.0

    def __neg__(self) -> 'BalanceDelta':
        return BalanceDelta(-self.ddp, -self.usdc, -self.lp_tokens)


class ParticipantLedger:
    """
    Ordered collection of participants with exactly one AMM pool row.

    All mutation goes through ``apply_deltas`` which checks the post-state
    before writing anything. Callers that read, compute and then apply should
    hold ``lock`` across all three steps.
    """

    def __init__(self, participants: list):
        ids = [p.id for p in participants]
        if len(set(ids)) != len(ids):
            raise ValueError("Participant ids must be unique")

        pools = [p for p in participants if p.role is Role.AMM_POOL]
        if len(pools) != 1:
            raise ValueError(f"Ledger needs exactly one AMM pool, found {len(pools)}")

        self._participants = list(participants)
        self._by_id = {p.id: p for p in self._participants}
        self._pool = pools[0]
        self.lock = threading.RLock()

    def __iter__(self):
        return iter(self._participants)

    def __len__(self) -> int:
        return len(self._participants)

    @property
    def participants(self) -> tuple:
        return tuple(self._participants)

    @property
    def pool(self) -> Participant:
        return self._pool

    def get(self, participant_id: int) -> Participant:
        try:
            return self._by_id[participant_id]
        except KeyError:
            raise UnknownParticipant(f"No participant with id {participant_id}") from None

    def get_actor(self, participant_id: int) -> Participant:
        """Look up a participant allowed to trade against the pool."""
        participant = self.get(participant_id)
        if participant is self._pool:
            raise UnknownParticipant("The AMM pool cannot trade against itself")
        return participant

    @property
    def reserves(self) -> tuple:
        """(ddp_reserve, usdc_reserve)"""
        return self._pool.ddp_balance, self._pool.usdc_balance

    @property
    def total_lp_supply(self) -> float:
        return sum(p.lp_tokens for p in self._participants)

    @property
    def k(self) -> float:
        return self._pool.ddp_balance * self._pool.usdc_balance

    def apply_deltas(self, participant_id: int, participant_delta: BalanceDelta,
                     pool_delta: BalanceDelta):
        """
        Atomically apply one operation's deltas.

        Raises:
            InsufficientBalance: if a DDP balance would be driven negative
            InvalidAmount: if a reserve or LP balance would go negative
        """
        with self.lock:
            participant = self.get_actor(participant_id)
            pool = self._pool

            new_ddp = participant.ddp_balance + participant_delta.ddp
            new_usdc = participant.usdc_balance + participant_delta.usdc
            new_lp = participant.lp_tokens + participant_delta.lp_tokens
            new_pool_ddp = pool.ddp_balance + pool_delta.ddp
            new_pool_usdc = pool.usdc_balance + pool_delta.usdc
            new_pool_lp = pool.lp_tokens + pool_delta.lp_tokens

            if participant_delta.ddp < 0 and new_ddp < 0:
                raise InsufficientBalance(participant.id, Token.DDP.value,
                                          -participant_delta.ddp, participant.ddp_balance)
            if new_lp < 0 or new_pool_lp < 0:
                raise InvalidAmount("LP token balance cannot go negative")
            if new_pool_ddp < 0 or new_pool_usdc < 0:
                raise InvalidAmount(
                    f"Pool reserves cannot go negative (ddp={new_pool_ddp}, usdc={new_pool_usdc})"
                )

            participant.ddp_balance = new_ddp
            participant.usdc_balance = new_usdc
            participant.lp_tokens = new_lp
            pool.ddp_balance = new_pool_ddp
            pool.usdc_balance = new_pool_usdc
            pool.lp_tokens = new_pool_lp

    def market_summary(self) -> dict:
        """
        Pool and market figures for display.

        Unlike ``spot_price`` in the exchange engine, an uninitialized pool
        reports a price of 0 here.
        """
        ddp_reserve, usdc_reserve = self.reserves
        price = usdc_reserve / ddp_reserve if ddp_reserve > 0 else 0.0
        total_ddp = sum(p.ddp_balance for p in self._participants)
        return {
            'price': price,
            'ddp_reserve': ddp_reserve,
            'usdc_reserve': usdc_reserve,
            'k': ddp_reserve * usdc_reserve,
            'total_lp_supply': self.total_lp_supply,
            'total_ddp': total_ddp,
            'market_cap': price * total_ddp,
        }

    def to_dict(self) -> dict:
        return {'participants': [p.to_dict() for p in self._participants]}

    @classmethod
    def from_dict(cls, data: dict) -> 'ParticipantLedger':
        return cls([Participant.from_dict(p) for p in data['participants']])

    def pack(self) -> bytes:
        """Serialize a snapshot of the current balances."""
        with self.lock:
            return msgpack.packb(self.to_dict(), use_bin_type=True)

    @classmethod
    def unpack(cls, encoded: bytes) -> 'ParticipantLedger':
        return cls.from_dict(msgpack.unpackb(encoded, raw=False))

    def copy(self) -> 'ParticipantLedger':
        with self.lock:
            return ParticipantLedger.from_dict(self.to_dict())

    def __repr__(self) -> str:
        ddp_reserve, usdc_reserve = self.reserves
        return (
            f"ParticipantLedger("
            f"participants={len(self._participants)}, "
            f"ddp_reserve={ddp_reserve}, "
            f"usdc_reserve={usdc_reserve}, "
            f"lp_supply={self.total_lp_supply})"
        )


def initial_lp_seed(ddp_reserve: float, usdc_reserve: float) -> float:
    """Geometric mean of the seeded reserves."""
    if ddp_reserve <= 0 or usdc_reserve <= 0:
        return 0.0
    return math.sqrt(ddp_reserve * usdc_reserve)


def build_ledger(config, breakdown) -> ParticipantLedger:
    """
    Create the initial ledger from an allocation run.

    Order: Chairman, board members, AMM pool, Platform, Treasury. Contributors
    start with a negative USDC balance equal to what they paid in.

    Args:
        config: AllocationConfig used for the run
        breakdown: AllocationBreakdown computed from ``config``
    """
    participants = [
        Participant(
            id=1,
            role=Role.CHAIRMAN,
            name='Chairman',
            ddp_balance=breakdown.chairman_ddp,
            usdc_balance=-config.chairman_contribution,
        )
    ]
    for i in range(config.num_board_members):
        participants.append(Participant(
            id=i + 2,
            role=Role.BOARD_MEMBER,
            name=f'Board Member {i + 1}',
            ddp_balance=breakdown.board_member_ddp,
            usdc_balance=-config.board_member_contribution,
        ))

    next_id = config.num_board_members + 2
    participants.append(Participant(
        id=next_id,
        role=Role.AMM_POOL,
        name='AMM Pool',
        ddp_balance=breakdown.amm_ddp,
        usdc_balance=breakdown.pool_usdc,
        lp_tokens=initial_lp_seed(breakdown.amm_ddp, breakdown.pool_usdc),
    ))
    participants.append(Participant(
        id=next_id + 1,
        role=Role.PLATFORM,
        name='Platform',
        ddp_balance=breakdown.platform_ddp,
        usdc_balance=breakdown.platform_fee_usdc,
    ))
    participants.append(Participant(
        id=next_id + 2,
        role=Role.TREASURY,
        name='Treasury',
        ddp_balance=breakdown.treasury_ddp,
        usdc_balance=breakdown.treasury_usdc,
    ))

    ledger = ParticipantLedger(participants)
    logger.info(f"Built ledger with {len(ledger)} participants: {ledger}")
    return ledger


def build_market_ledger(market) -> ParticipantLedger:
    """
    Create a trading ledger directly from pool reserves and player balances.

    Args:
        market: MarketConfig with pool reserves, whale and player settings
    """
    if market.num_players < 0:
        raise ConfigError(f"num_players cannot be negative: {market.num_players}")
    if market.pool_ddp < 0 or market.pool_usdc < 0:
        raise ConfigError("Pool reserves cannot be negative")

    participants = [
        Participant(
            id=1,
            role=Role.WHALE,
            name='Whale',
            ddp_balance=market.whale_ddp,
            usdc_balance=market.whale_usdc,
        )
    ]
    for i in range(market.num_players):
        participants.append(Participant(
            id=i + 2,
            role=Role.REGULAR_PLAYER,
            name=f'Player {i + 1}',
            ddp_balance=market.player_ddp,
            usdc_balance=market.player_usdc,
        ))
    participants.append(Participant(
        id=market.num_players + 2,
        role=Role.AMM_POOL,
        name='AMM Pool',
        ddp_balance=market.pool_ddp,
        usdc_balance=market.pool_usdc,
        lp_tokens=initial_lp_seed(market.pool_ddp, market.pool_usdc),
    ))

    ledger = ParticipantLedger(participants)
    logger.info(f"Built market ledger: {ledger}")
    return ledger
