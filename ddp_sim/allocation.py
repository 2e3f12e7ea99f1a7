"""
Allocation engine: splits the DDP supply and the USDC contributions across
the fixed roles of the economy.
"""
import logging
from dataclasses import dataclass, asdict

from ddp_sim.config import AllocationConfig
from ddp_sim.errors import ConfigError
from ddp_sim.validation import validate_allocation_config, REL_TOLERANCE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllocationBreakdown:
    """Result of one allocation run. All DDP figures are absolute units."""
    # DDP allocations
    treasury_ddp: float
    amm_ddp: float
    chairman_ddp: float
    board_member_ddp: float  # per member
    platform_ddp: float
    player_pool_ddp: float
    # USDC allocations
    total_contributions_usdc: float
    platform_fee_usdc: float
    treasury_usdc: float
    pool_usdc: float
    # Shares and price
    chairman_share: float
    board_member_share: float  # per member
    initial_ddp_price: float
    total_supply: float
    num_board_members: int

    @property
    def total_board_ddp(self) -> float:
        return self.board_member_ddp * self.num_board_members

    @property
    def allocated_ddp(self) -> float:
        """Sum of every role's DDP; equals total_supply."""
        return (self.treasury_ddp + self.amm_ddp + self.platform_ddp +
                self.chairman_ddp + self.total_board_ddp)

    @property
    def pool_price(self) -> float:
        """Opening AMM price, distinct from ``initial_ddp_price``."""
        if self.amm_ddp == 0:
            return 0.0
        return self.pool_usdc / self.amm_ddp

    def percentages(self) -> dict:
        """Each role's share of total supply, in percent."""
        return {
            'treasury': self.treasury_ddp / self.total_supply * 100,
            'amm': self.amm_ddp / self.total_supply * 100,
            'chairman': self.chairman_ddp / self.total_supply * 100,
            'board_members': self.total_board_ddp / self.total_supply * 100,
            'platform': self.platform_ddp / self.total_supply * 100,
        }

    def to_dict(self) -> dict:
        return asdict(self)


def _clamp_residual(value: float, scale: float, message: str) -> float:
    # Round-off from percentages that sum to exactly 100 can leave -1e-7 or so
    if value < -REL_TOLERANCE * scale:
        raise ConfigError(message)
    return max(value, 0.0)


def compute_allocation(config: AllocationConfig) -> AllocationBreakdown:
    """
    Derive supply and contribution splits from a configuration.

    The player pool is shared between the chairman and board members in
    proportion to what each paid in; the treasury takes whatever DDP is left.

    Args:
        config: Allocation parameters

    Returns:
        The allocation breakdown

    Raises:
        ConfigError: if the configuration is invalid or inconsistent
    """
    validate_allocation_config(config)

    supply = float(config.total_supply)
    total_contributions = (config.chairman_contribution +
                           config.board_member_contribution * config.num_board_members)

    # USDC splits
    platform_fee_usdc = total_contributions * config.platform_fee_percent / 100
    treasury_usdc = total_contributions * config.treasury_usdc_percent / 100
    pool_usdc = _clamp_residual(
        total_contributions - platform_fee_usdc - treasury_usdc,
        total_contributions,
        "USDC split exceeds 100%",
    )

    # DDP splits
    amm_ddp = supply * config.amm_percent / 100
    platform_ddp = supply * config.platform_percent / 100
    player_pool_ddp = supply * config.player_percent / 100
    treasury_ddp = _clamp_residual(
        supply - amm_ddp - platform_ddp - player_pool_ddp,
        supply,
        "DDP allocation exceeds 100%",
    )

    if total_contributions > 0:
        chairman_share = config.chairman_contribution / total_contributions
        board_member_share = config.board_member_contribution / total_contributions
    else:
        # Only reachable with an empty player pool
        chairman_share = 0.0
        board_member_share = 0.0

    breakdown = AllocationBreakdown(
        treasury_ddp=treasury_ddp,
        amm_ddp=amm_ddp,
        chairman_ddp=player_pool_ddp * chairman_share,
        board_member_ddp=player_pool_ddp * board_member_share,
        platform_ddp=platform_ddp,
        player_pool_ddp=player_pool_ddp,
        total_contributions_usdc=total_contributions,
        platform_fee_usdc=platform_fee_usdc,
        treasury_usdc=treasury_usdc,
        pool_usdc=pool_usdc,
        chairman_share=chairman_share,
        board_member_share=board_member_share,
        initial_ddp_price=total_contributions / supply,
        total_supply=supply,
        num_board_members=config.num_board_members,
    )

    logger.debug(
        f"Allocation: treasury={treasury_ddp}, amm={amm_ddp}, players={player_pool_ddp}, "
        f"platform={platform_ddp}, contributions=${total_contributions}"
    )
    return breakdown
