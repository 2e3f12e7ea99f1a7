"""
Simulation session: the single owner and writer of a participant ledger.
"""
import time
import logging
import threading
from typing import Optional

from ddp_sim.allocation import AllocationBreakdown, compute_allocation
from ddp_sim.config import AllocationConfig, Config
from ddp_sim.errors import SimulationError
from ddp_sim.exchange import Operation, OperationResult, simulate, spot_price
from ddp_sim.ledger import ParticipantLedger, build_ledger, build_market_ledger
from ddp_sim.monitoring import Monitor

logger = logging.getLogger(__name__)


class Session:
    """
    Drives one simulation run.

    Each ``execute`` reads the ledger, computes the deltas and commits them
    as one step under both ``lock`` and the ledger's own lock; no other
    action, including direct ``apply_deltas`` callers, can observe the
    ledger in between. ``simulate`` shares the computation but never writes.
    """

    def __init__(self, config: Optional[Config] = None,
                 ledger: Optional[ParticipantLedger] = None,
                 monitor: Optional[Monitor] = None):
        self.config = config or Config.default()
        self.monitor = monitor
        self.lock = threading.RLock()
        self.breakdown: Optional[AllocationBreakdown] = None
        self.stats = {
            'executed': 0,
            'rejected': 0,
        }

        if ledger is None:
            self.reconfigure(self.config.allocation)
        else:
            self.ledger = ledger
            self._update_monitor()

    @classmethod
    def from_market(cls, config: Optional[Config] = None,
                    monitor: Optional[Monitor] = None) -> 'Session':
        """Session over a direct pool/whale/players setup instead of an allocation."""
        config = config or Config.default()
        return cls(config, ledger=build_market_ledger(config.market), monitor=monitor)

    @property
    def fee_rate(self) -> float:
        return self.config.amm.fee_rate

    def reconfigure(self, allocation: AllocationConfig):
        """
        Recompute the allocation and rebuild the ledger from scratch.

        Raises:
            ConfigError: the current ledger is kept if the new config is invalid
        """
        with self.lock:
            breakdown = compute_allocation(allocation)
            ledger = build_ledger(allocation, breakdown)

            self.breakdown = breakdown
            self.ledger = ledger
            self.config.allocation = allocation
            logger.info(
                f"Reconfigured: supply={breakdown.total_supply}, "
                f"contributions=${breakdown.total_contributions_usdc}, "
                f"pool={breakdown.amm_ddp} DDP / {breakdown.pool_usdc} USDC"
            )
            self._update_monitor()

    def simulate(self, operation: Operation) -> OperationResult:
        """Preview ``operation`` without touching the ledger."""
        with self.lock, self.ledger.lock:
            return simulate(self.ledger, operation, self.fee_rate)

    def execute(self, operation: Operation) -> OperationResult:
        """
        Validate and commit ``operation``.

        Raises:
            SimulationError: the ledger is left unchanged
        """
        start = time.perf_counter()
        with self.lock, self.ledger.lock:
            try:
                result = simulate(self.ledger, operation, self.fee_rate)
                self.ledger.apply_deltas(result.participant_id,
                                         result.participant_delta,
                                         result.pool_delta)
            except SimulationError as e:
                self.stats['rejected'] += 1
                logger.warning(f"Operation {operation.kind.value} rejected: {e}")
                if self.monitor:
                    self.monitor.record_operation(operation.kind.value, 'rejected',
                                                  time.perf_counter() - start)
                raise

            self.stats['executed'] += 1
            ddp_reserve, usdc_reserve = self.ledger.reserves
            logger.info(
                f"{operation.kind.value}: participant {operation.participant_id}, "
                f"pool now {ddp_reserve} DDP / {usdc_reserve} USDC"
            )
            if self.monitor:
                self.monitor.record_operation(operation.kind.value, 'ok',
                                              time.perf_counter() - start)
                self._update_monitor()
            return result

    def spot_price(self) -> float:
        with self.lock:
            return spot_price(self.ledger)

    def snapshot(self) -> bytes:
        """msgpack snapshot of the current ledger."""
        with self.lock:
            return self.ledger.pack()

    def _update_monitor(self):
        if self.monitor:
            self.monitor.update(self.ledger)
