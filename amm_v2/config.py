"""
Configuration management for pairs.
"""
import json
import logging
import os
from dataclasses import dataclass, asdict

DONATE = "donate"
REFUND = "refund"
DEPOSIT_POLICIES = (DONATE, REFUND)


@dataclass
class PoolConfig:
    """Pair economics."""
    fee_numerator: int = 997        # 0.30% swap fee
    fee_denominator: int = 1000
    flash_fee_bps: int = 30
    # What happens to the surplus of a disproportionate deposit
    excess_deposit_policy: str = DONATE

    def __post_init__(self):
        if not 0 < self.fee_numerator <= self.fee_denominator:
            raise ValueError("fee_numerator must be in (0, fee_denominator]")
        if not 0 <= self.flash_fee_bps < 10_000:
            raise ValueError("flash_fee_bps must be in [0, 10000)")
        if self.excess_deposit_policy not in DEPOSIT_POLICIES:
            raise ValueError(
                f"excess_deposit_policy must be one of {DEPOSIT_POLICIES}"
            )


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s %(name)s %(levelname)s %(message)s"

    def __post_init__(self):
        if not isinstance(logging.getLevelName(self.level.upper()), int):
            raise ValueError(f"Unknown log level {self.level!r}")

    def apply(self):
        """Configure the root handler once and set the package level."""
        level = logging.getLevelName(self.level.upper())
        logging.basicConfig(level=level, format=self.format)
        logging.getLogger('amm_v2').setLevel(level)


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 9090


@dataclass
class Config:
    """Main configuration."""
    pool: PoolConfig
    logging: LoggingConfig
    monitoring: MonitoringConfig

    @classmethod
    def default(cls) -> 'Config':
        """Create default configuration."""
        return cls(
            pool=PoolConfig(),
            logging=LoggingConfig(),
            monitoring=MonitoringConfig()
        )

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """Load configuration from JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)

        return cls(
            pool=PoolConfig(**data.get('pool', {})),
            logging=LoggingConfig(**data.get('logging', {})),
            monitoring=MonitoringConfig(**data.get('monitoring', {}))
        )

    def to_file(self, path: str):
        """Save configuration to JSON file."""
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'pool': asdict(self.pool),
            'logging': asdict(self.logging),
            'monitoring': asdict(self.monitoring)
        }
