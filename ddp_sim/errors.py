"""
Error types raised by the allocation and exchange engines.

Every error is raised before any ledger field is written, so a caller that
catches one can keep using the ledger as it was.
"""


class ValidationError(Exception):
    """Raised when validation fails."""
    pass


class SimulationError(ValidationError):
    """Base class for all simulator errors."""
    pass


class ConfigError(SimulationError):
    """Invalid or inconsistent allocation configuration."""
    pass


class InvalidAmount(SimulationError):
    """Non-positive, non-finite or out-of-range operation parameter."""
    pass


class InsufficientBalance(SimulationError):
    """Operation would drive a participant's DDP balance negative."""

    def __init__(self, participant_id: int, token: str, required: float, available: float):
        self.participant_id = participant_id
        self.token = token
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient {token} balance for participant {participant_id}: "
            f"required {required}, available {available}"
        )


class DivisionByZero(SimulationError):
    """Operation against an empty pool or zero LP supply."""
    pass


class UnknownParticipant(SimulationError):
    """No such participant, or the pool was named as the acting participant."""
    pass


class NoLiquidity(InvalidAmount, DivisionByZero):
    """Liquidity removal while no LP tokens are outstanding."""
    pass
