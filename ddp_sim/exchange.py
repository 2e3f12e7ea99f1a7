"""
Exchange operations against the DDP/USDC pool.

Every operation reads the pool and the acting participant from a ledger,
validates, and returns an ``OperationResult`` describing the balance
changes. Nothing here writes to the ledger; ``Session.execute`` applies the
result, and ``simulate`` is the same computation used as a preview.
"""
import logging
from enum import Enum
from typing import Optional
from dataclasses import dataclass

from ddp_sim.amm_state import PoolState
from ddp_sim.errors import DivisionByZero, InvalidAmount, NoLiquidity
from ddp_sim.ledger import BalanceDelta, ParticipantLedger, Token
from ddp_sim.validation import (
    require_amount,
    require_ddp_balance,
    require_fee_rate,
    require_percent,
    require_reserves,
    require_token,
    require_usdc_balance,
)

logger = logging.getLogger(__name__)

DEFAULT_FEE_RATE = PoolState.DEFAULT_FEE_RATE


class OperationKind(str, Enum):
    SWAP = 'swap'
    ADD_LIQUIDITY = 'add_liquidity'
    REMOVE_LIQUIDITY = 'remove_liquidity'


@dataclass(frozen=True)
class Operation:
    """
    One user action.

    ``amount`` is the input amount for swaps and adds, and the percentage of
    holdings for removals. ``other_amount`` is only used for the first
    deposit into an empty pool.
    """
    kind: OperationKind
    participant_id: int
    amount: float
    token: Optional[Token] = None
    other_amount: Optional[float] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'Operation':
        if not isinstance(data, dict):
            raise InvalidAmount(f"Operation record must be a mapping, got {type(data).__name__}")
        try:
            kind = OperationKind(data['kind'])
        except (KeyError, ValueError, TypeError):
            raise InvalidAmount(f"Unknown operation kind: {data.get('kind')!r}") from None
        if 'participant_id' not in data or 'amount' not in data:
            raise InvalidAmount(f"Operation needs participant_id and amount: {data!r}")
        try:
            participant_id = int(data['participant_id'])
        except (TypeError, ValueError):
            raise InvalidAmount(f"Invalid participant_id: {data['participant_id']!r}") from None
        token = data.get('token')
        return cls(
            kind=kind,
            participant_id=participant_id,
            amount=data['amount'],
            token=require_token(token) if token is not None else None,
            other_amount=data.get('other_amount'),
        )

    def to_dict(self) -> dict:
        return {
            'kind': self.kind.value,
            'participant_id': self.participant_id,
            'amount': self.amount,
            'token': self.token.value if self.token else None,
            'other_amount': self.other_amount,
        }


@dataclass(frozen=True)
class OperationResult:
    """Deltas to apply plus the figures a preview would show."""
    kind: OperationKind
    participant_id: int
    participant_delta: BalanceDelta
    pool_delta: BalanceDelta
    input_token: Optional[Token] = None
    amount_in: float = 0.0
    amount_out: float = 0.0
    price_impact_pct: float = 0.0
    ddp_amount: float = 0.0
    usdc_amount: float = 0.0
    lp_tokens: float = 0.0
    pool_share_pct: float = 0.0


def spot_price(ledger: ParticipantLedger) -> float:
    """
    Current price of 1 DDP in USDC.

    Raises:
        DivisionByZero: if the pool holds no DDP
    """
    return PoolState.from_ledger(ledger).spot_price


def price_impact(ledger: ParticipantLedger, input_token, input_amount,
                 fee_rate: float = DEFAULT_FEE_RATE) -> float:
    """Price impact in percent of a hypothetical swap, ignoring balances."""
    token = require_token(input_token)
    amount = require_amount(input_amount, "input_amount")
    fee_rate = require_fee_rate(fee_rate)
    pool = PoolState.from_ledger(ledger)
    require_reserves(pool.ddp_reserve, pool.usdc_reserve)
    return pool.get_price_impact(amount, token, fee_rate)


def swap(ledger: ParticipantLedger, participant_id: int, input_token, input_amount,
         fee_rate: float = DEFAULT_FEE_RATE) -> OperationResult:
    """
    Swap ``input_amount`` of ``input_token`` for the other asset.

    Only DDP inputs are balance-checked; USDC balances may go negative.

    Raises:
        InvalidAmount: non-positive or non-finite amount, bad fee rate or token
        InsufficientBalance: DDP input larger than the DDP balance
        DivisionByZero: either reserve is empty
        UnknownParticipant: unknown id, or the pool itself
    """
    with ledger.lock:
        participant = ledger.get_actor(participant_id)
        token = require_token(input_token)
        amount = require_amount(input_amount, "input_amount")
        fee_rate = require_fee_rate(fee_rate)

        pool = PoolState.from_ledger(ledger)
        require_reserves(pool.ddp_reserve, pool.usdc_reserve)

        if token is Token.DDP:
            require_ddp_balance(participant, amount)

        amount_out = pool.get_swap_output(amount, token, fee_rate)
        impact = pool.get_price_impact(amount, token, fee_rate)

    if token is Token.DDP:
        participant_delta = BalanceDelta(ddp=-amount, usdc=amount_out)
    else:
        participant_delta = BalanceDelta(ddp=amount_out, usdc=-amount)

    logger.debug(
        f"Swap quote: {amount} {token.value} -> {amount_out} {token.other.value} "
        f"for participant {participant_id}, impact {impact:.4f}%, {pool}"
    )
    return OperationResult(
        kind=OperationKind.SWAP,
        participant_id=participant_id,
        participant_delta=participant_delta,
        pool_delta=-participant_delta,
        input_token=token,
        amount_in=amount,
        amount_out=amount_out,
        price_impact_pct=impact,
    )


def add_liquidity(ledger: ParticipantLedger, participant_id: int, amount, token,
                  other_amount=None) -> OperationResult:
    """
    Deposit ``amount`` of ``token`` plus the matching amount of the other asset.

    The matching amount is the pool ratio rounded up. For the first deposit
    into an empty pool there is no ratio, so ``other_amount`` must be given.

    Raises:
        InvalidAmount: bad amount or token, ``other_amount`` on a priced pool,
            or a deposit that would mint no LP tokens
        InsufficientBalance: participant lacks either asset
        DivisionByZero: empty pool without ``other_amount``, or a pool with
            only one asset
        UnknownParticipant: unknown id, or the pool itself
    """
    with ledger.lock:
        participant = ledger.get_actor(participant_id)
        token = require_token(token)
        amount = require_amount(amount)

        pool = PoolState.from_ledger(ledger)
        lp_supply = ledger.total_lp_supply

        if pool.is_empty:
            if other_amount is None:
                raise DivisionByZero("Empty pool: the first deposit needs other_amount to set the price")
            other = require_amount(other_amount, "other_amount")
        elif other_amount is not None:
            raise InvalidAmount("other_amount is only accepted for the first deposit into an empty pool")
        else:
            # one empty side leaves the ratio undefined
            require_reserves(pool.ddp_reserve, pool.usdc_reserve)
            other = pool.get_required_amount(amount, token)

        if token is Token.DDP:
            ddp_added, usdc_added = amount, other
        else:
            ddp_added, usdc_added = other, amount

        require_ddp_balance(participant, ddp_added)
        require_usdc_balance(participant, usdc_added)

        minted = pool.get_lp_to_mint(ddp_added, usdc_added, lp_supply)
        if minted <= 0:
            raise InvalidAmount(f"Deposit of {ddp_added} DDP + {usdc_added} USDC mints no LP tokens")
        share_pct = pool.get_pool_share(ddp_added) * 100

    logger.debug(
        f"Add liquidity quote: {ddp_added} DDP + {usdc_added} USDC -> {minted} LP "
        f"({share_pct:.4f}% of pool) for participant {participant_id}"
    )
    return OperationResult(
        kind=OperationKind.ADD_LIQUIDITY,
        participant_id=participant_id,
        participant_delta=BalanceDelta(ddp=-ddp_added, usdc=-usdc_added, lp_tokens=minted),
        pool_delta=BalanceDelta(ddp=ddp_added, usdc=usdc_added),
        input_token=token,
        amount_in=amount,
        ddp_amount=ddp_added,
        usdc_amount=usdc_added,
        lp_tokens=minted,
        pool_share_pct=share_pct,
    )


def remove_liquidity(ledger: ParticipantLedger, participant_id: int,
                     percent_of_holdings) -> OperationResult:
    """
    Burn a percentage of the participant's LP tokens for a pro rata share
    of both reserves.

    Raises:
        InvalidAmount: percentage outside (0, 100], or no LP tokens held
        NoLiquidity: no LP tokens outstanding at all
        UnknownParticipant: unknown id, or the pool itself
    """
    with ledger.lock:
        participant = ledger.get_actor(participant_id)
        percent = require_percent(percent_of_holdings)

        lp_supply = ledger.total_lp_supply
        if lp_supply == 0:
            raise NoLiquidity("No LP tokens outstanding")
        if participant.lp_tokens <= 0:
            raise InvalidAmount(f"Participant {participant_id} holds no LP tokens")

        # percent / 100 is exactly 1.0 at 100%, so a full exit burns every token
        lp_burned = participant.lp_tokens * (percent / 100)
        pool = PoolState.from_ledger(ledger)
        ddp_out, usdc_out = pool.get_removal_amounts(lp_burned, lp_supply)

    logger.debug(
        f"Remove liquidity quote: {lp_burned} LP -> {ddp_out} DDP + {usdc_out} USDC "
        f"for participant {participant_id}"
    )
    return OperationResult(
        kind=OperationKind.REMOVE_LIQUIDITY,
        participant_id=participant_id,
        participant_delta=BalanceDelta(ddp=ddp_out, usdc=usdc_out, lp_tokens=-lp_burned),
        pool_delta=BalanceDelta(ddp=-ddp_out, usdc=-usdc_out),
        amount_in=percent,
        ddp_amount=ddp_out,
        usdc_amount=usdc_out,
        lp_tokens=lp_burned,
        pool_share_pct=lp_burned / lp_supply * 100,
    )


def simulate(ledger: ParticipantLedger, operation: Operation,
             fee_rate: float = DEFAULT_FEE_RATE) -> OperationResult:
    """Dry run of ``operation``: the result it would produce, ledger untouched."""
    if operation.kind is OperationKind.SWAP:
        return swap(ledger, operation.participant_id, operation.token,
                    operation.amount, fee_rate)

    elif operation.kind is OperationKind.ADD_LIQUIDITY:
        return add_liquidity(ledger, operation.participant_id, operation.amount,
                             operation.token, operation.other_amount)

    elif operation.kind is OperationKind.REMOVE_LIQUIDITY:
        return remove_liquidity(ledger, operation.participant_id, operation.amount)

    else:
        raise InvalidAmount(f"Unknown operation kind: {operation.kind}")
