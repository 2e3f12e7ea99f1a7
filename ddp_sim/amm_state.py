"""
AMM (Automated Market Maker) pool math.
Implements constant product formula: x * y = k
"""
import math

from ddp_sim.errors import DivisionByZero
from ddp_sim.ledger import Token


class PoolState:
    """
    Read-only view of the DDP/USDC pool reserves.

    Uses the constant product formula (Uniswap V2 style):
    ddp_reserve * usdc_reserve = k

    Nothing here mutates; every method answers "what would happen" for the
    reserves captured at construction.
    """

    # Fee configuration (30 basis points = 0.30%)
    DEFAULT_FEE_RATE = 0.003

    def __init__(self, ddp_reserve: float, usdc_reserve: float):
        self.ddp_reserve = float(ddp_reserve)
        self.usdc_reserve = float(usdc_reserve)

    @classmethod
    def from_ledger(cls, ledger) -> 'PoolState':
        return cls(*ledger.reserves)

    @property
    def k(self) -> float:
        return self.ddp_reserve * self.usdc_reserve

    @property
    def is_empty(self) -> bool:
        return self.ddp_reserve == 0 and self.usdc_reserve == 0

    def reserve_of(self, token: Token) -> float:
        return self.ddp_reserve if token is Token.DDP else self.usdc_reserve

    def reserves_for(self, input_token: Token) -> tuple:
        """(reserve_in, reserve_out) for a swap paying in ``input_token``."""
        return self.reserve_of(input_token), self.reserve_of(input_token.other)

    @property
    def spot_price(self) -> float:
        """
        Price of 1 DDP in USDC.

        Price = USDC Reserve / DDP Reserve

        Raises:
            DivisionByZero: if the pool holds no DDP
        """
        if self.ddp_reserve == 0:
            raise DivisionByZero("Spot price undefined: pool holds no DDP")
        return self.usdc_reserve / self.ddp_reserve

    def get_swap_output(self, input_amount: float, input_token: Token,
                        fee_rate: float = DEFAULT_FEE_RATE) -> float:
        """
        Calculate swap output using constant product formula with fees.

        Formula: (x + Δx * (1 - fee)) * (y - Δy) = x * y
        Solving for Δy: Δy = (y * Δx * (1 - fee)) / (x + Δx * (1 - fee))

        Args:
            input_amount: Amount of input asset
            input_token: Asset being paid in
            fee_rate: Fraction of the input kept by the pool

        Returns:
            Amount of the other asset paid out
        """
        reserve_in, reserve_out = self.reserves_for(input_token)
        input_after_fee = input_amount * (1 - fee_rate)
        return (input_after_fee * reserve_out) / (reserve_in + input_after_fee)

    def get_price_impact(self, input_amount: float, input_token: Token,
                         fee_rate: float = DEFAULT_FEE_RATE) -> float:
        """
        Percentage move of the output/input price caused by a swap.

        The post-trade price uses the fee-adjusted input on the input side.
        """
        reserve_in, reserve_out = self.reserves_for(input_token)
        input_after_fee = input_amount * (1 - fee_rate)
        output = self.get_swap_output(input_amount, input_token, fee_rate)

        initial_price = reserve_out / reserve_in
        final_price = (reserve_out - output) / (reserve_in + input_after_fee)
        return abs(final_price - initial_price) / initial_price * 100

    def get_required_amount(self, amount: float, token: Token) -> float:
        """
        Amount of the other asset needed to add ``amount`` of ``token``.

        Rounded up so the pool is never under-collateralized by rounding.

        Raises:
            DivisionByZero: if the pool holds none of ``token``
        """
        same_reserve = self.reserve_of(token)
        other_reserve = self.reserve_of(token.other)
        if same_reserve == 0:
            raise DivisionByZero(f"Pool holds no {token.value}; the pool ratio is undefined")
        return float(math.ceil(amount * other_reserve / same_reserve))

    def get_pool_share(self, ddp_added: float) -> float:
        """Fraction of the post-deposit DDP reserve contributed by ``ddp_added``."""
        return ddp_added / (self.ddp_reserve + ddp_added)

    def get_lp_to_mint(self, ddp_added: float, usdc_added: float, lp_supply: float) -> float:
        """
        LP tokens for a deposit.

        First deposit: geometric mean of the two amounts.
        Later deposits: pro rata to the DDP added against the DDP reserve.
        """
        if lp_supply == 0:
            return math.sqrt(ddp_added * usdc_added)
        if self.ddp_reserve == 0:
            raise DivisionByZero("LP supply outstanding against an empty DDP reserve")
        return lp_supply * ddp_added / self.ddp_reserve

    def get_removal_amounts(self, lp_burned: float, lp_supply: float) -> tuple:
        """
        (ddp_out, usdc_out) returned for burning ``lp_burned`` LP tokens.

        Raises:
            DivisionByZero: if no LP tokens are outstanding
        """
        if lp_supply == 0:
            raise DivisionByZero("No LP tokens outstanding")
        share = lp_burned / lp_supply
        return self.ddp_reserve * share, self.usdc_reserve * share

    def __repr__(self) -> str:
        """String representation for debugging."""
        price = self.usdc_reserve / self.ddp_reserve if self.ddp_reserve else 0.0
        return (
            f"PoolState("
            f"ddp_reserve={self.ddp_reserve}, "
            f"usdc_reserve={self.usdc_reserve}, "
            f"price=${price})"
        )
