"""
Configuration management for the simulator.
"""
import json
import os
from dataclasses import dataclass, asdict


@dataclass(frozen=True)
class AllocationConfig:
    """Supply and contribution parameters for one allocation run."""
    total_supply: float = 1_000_000_000
    num_board_members: int = 100
    num_traders: int = 10  # informational only
    amm_percent: float = 30
    player_percent: float = 40
    platform_percent: float = 10
    chairman_contribution: float = 500
    board_member_contribution: float = 5
    platform_fee_percent: float = 0
    treasury_usdc_percent: float = 0

    @property
    def treasury_percent(self) -> float:
        """Residual share of total supply left to the treasury."""
        return 100 - (self.amm_percent + self.player_percent + self.platform_percent)


@dataclass(frozen=True)
class MarketConfig:
    """Direct pool and player setup, bypassing the allocation engine."""
    pool_ddp: float = 45_000_000
    pool_usdc: float = 135_000
    whale_ddp: float = 10_000_000
    whale_usdc: float = -27_000
    player_ddp: float = 4_000_000
    player_usdc: float = -10_800
    num_players: int = 10


@dataclass
class AMMConfig:
    """Exchange configuration."""
    fee_rate: float = 0.003  # 0.3%, kept in the pool


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s %(name)s %(levelname)s %(message)s"


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 9090


@dataclass
class Config:
    """Main configuration."""
    allocation: AllocationConfig
    market: MarketConfig
    amm: AMMConfig
    logging: LoggingConfig
    monitoring: MonitoringConfig

    @classmethod
    def default(cls) -> 'Config':
        """Create default configuration."""
        return cls(
            allocation=AllocationConfig(),
            market=MarketConfig(),
            amm=AMMConfig(),
            logging=LoggingConfig(),
            monitoring=MonitoringConfig()
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        return cls(
            allocation=AllocationConfig(**data.get('allocation', {})),
            market=MarketConfig(**data.get('market', {})),
            amm=AMMConfig(**data.get('amm', {})),
            logging=LoggingConfig(**data.get('logging', {})),
            monitoring=MonitoringConfig(**data.get('monitoring', {}))
        )

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """Load configuration from JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_file(self, path: str):
        """Save configuration to JSON file."""
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'allocation': asdict(self.allocation),
            'market': asdict(self.market),
            'amm': asdict(self.amm),
            'logging': asdict(self.logging),
            'monitoring': asdict(self.monitoring)
        }
