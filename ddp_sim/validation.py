"""
Guards run by the allocation and exchange engines before anything is mutated.

Each guard either returns a normalized value or raises one of the typed
errors from ``ddp_sim.errors``.
"""
import math

from ddp_sim.config import AllocationConfig
from ddp_sim.errors import ConfigError, InvalidAmount, InsufficientBalance, DivisionByZero
from ddp_sim.ledger import Participant, Token

# Relative slack for float round-off when percentages sum to exactly 100
REL_TOLERANCE = 1e-9


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_allocation_config(config: AllocationConfig):
    """
    Reject configurations that would break allocation invariants.

    Raises:
        ConfigError: on any out-of-range or inconsistent field
    """
    for name in ('total_supply', 'amm_percent', 'player_percent', 'platform_percent',
                 'chairman_contribution', 'board_member_contribution',
                 'platform_fee_percent', 'treasury_usdc_percent'):
        value = getattr(config, name)
        if not _is_number(value) or not math.isfinite(value):
            raise ConfigError(f"{name} must be a finite number, got {value!r}")
        if value < 0:
            raise ConfigError(f"{name} cannot be negative: {value}")

    if config.total_supply <= 0:
        raise ConfigError(f"total_supply must be positive, got {config.total_supply}")

    for name in ('num_board_members', 'num_traders'):
        value = getattr(config, name)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ConfigError(f"{name} must be a non-negative integer, got {value!r}")

    ddp_percent = config.amm_percent + config.player_percent + config.platform_percent
    if ddp_percent > 100 * (1 + REL_TOLERANCE):
        raise ConfigError(f"DDP allocation exceeds 100% ({ddp_percent}%)")

    usdc_percent = config.platform_fee_percent + config.treasury_usdc_percent
    if usdc_percent > 100 * (1 + REL_TOLERANCE):
        raise ConfigError(f"USDC split exceeds 100% ({usdc_percent}%)")

    total_contributions = (config.chairman_contribution +
                           config.board_member_contribution * config.num_board_members)
    if total_contributions == 0 and config.player_percent > 0:
        raise ConfigError(
            "Player pool cannot be split by contribution: total contributions are zero"
        )


def require_amount(amount, name: str = "amount") -> float:
    """Amounts must be positive and finite."""
    if not _is_number(amount) or not math.isfinite(amount):
        raise InvalidAmount(f"{name} must be a finite number, got {amount!r}")
    if amount <= 0:
        raise InvalidAmount(f"{name} must be positive, got {amount}")
    return float(amount)


def require_fee_rate(fee_rate) -> float:
    if not _is_number(fee_rate) or not math.isfinite(fee_rate) or not 0 <= fee_rate < 1:
        raise InvalidAmount(f"fee_rate must be in [0, 1), got {fee_rate!r}")
    return float(fee_rate)


def require_percent(percent) -> float:
    """Removal percentages live in (0, 100]."""
    if not _is_number(percent) or not math.isfinite(percent):
        raise InvalidAmount(f"Percentage must be a finite number, got {percent!r}")
    if percent <= 0 or percent > 100:
        raise InvalidAmount(f"Percentage must be in (0, 100], got {percent}")
    return float(percent)


def require_token(token) -> Token:
    try:
        return Token.parse(token)
    except ValueError as e:
        raise InvalidAmount(str(e)) from e


def require_ddp_balance(participant: Participant, amount: float):
    if participant.ddp_balance < amount:
        raise InsufficientBalance(participant.id, Token.DDP.value, amount, participant.ddp_balance)


def require_usdc_balance(participant: Participant, amount: float):
    if participant.usdc_balance < amount:
        raise InsufficientBalance(participant.id, Token.USDC.value, amount, participant.usdc_balance)


def require_reserves(ddp_reserve: float, usdc_reserve: float):
    """Pricing against an empty side of the pool is undefined."""
    if ddp_reserve <= 0 or usdc_reserve <= 0:
        raise DivisionByZero(
            f"Empty pool (ddp_reserve={ddp_reserve}, usdc_reserve={usdc_reserve})"
        )
