"""
DDP token economy simulator: role allocation plus a constant-product
DDP/USDC pool.
"""
from ddp_sim.allocation import AllocationBreakdown, compute_allocation
from ddp_sim.config import AllocationConfig, Config, MarketConfig
from ddp_sim.errors import (
    ConfigError,
    DivisionByZero,
    InsufficientBalance,
    InvalidAmount,
    NoLiquidity,
    SimulationError,
    UnknownParticipant,
    ValidationError,
)
from ddp_sim.exchange import (
    Operation,
    OperationKind,
    OperationResult,
    add_liquidity,
    price_impact,
    remove_liquidity,
    simulate,
    spot_price,
    swap,
)
from ddp_sim.ledger import (
    BalanceDelta,
    Participant,
    ParticipantLedger,
    Role,
    Token,
    build_ledger,
    build_market_ledger,
)
from ddp_sim.session import Session
