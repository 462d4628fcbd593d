"""
LedgerSettings schema.

Frozen dataclasses parsed from YAML by ``ledger_config.loader``.  Values
are validated on construction, so a LedgerSettings instance is always
usable as is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings handed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url is required")
        if self.pool_size < 1:
            raise ValueError(f"database.pool_size must be >= 1, got {self.pool_size}")
        if self.max_overflow < 0:
            raise ValueError(f"database.max_overflow must be >= 0, got {self.max_overflow}")


@dataclass(frozen=True)
class MatchingSettings:
    """Reconciliation matcher tolerances."""

    date_tolerance_days: int = 3
    amount_tolerance: Decimal = Decimal("0.01")

    def __post_init__(self) -> None:
        if self.date_tolerance_days < 0:
            raise ValueError(
                f"matching.date_tolerance_days must be >= 0, got {self.date_tolerance_days}"
            )
        if self.amount_tolerance <= 0:
            raise ValueError(
                f"matching.amount_tolerance must be > 0, got {self.amount_tolerance}"
            )


@dataclass(frozen=True)
class BalanceSettings:
    verification_tolerance: Decimal = Decimal("0.01")

    def __post_init__(self) -> None:
        if self.verification_tolerance < 0:
            raise ValueError(
                f"balances.verification_tolerance must be >= 0, got {self.verification_tolerance}"
            )


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level.upper() not in _LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {sorted(_LOG_LEVELS)}, got {self.level!r}")

    @property
    def level_number(self) -> int:
        return logging.getLevelName(self.level.upper())


@dataclass(frozen=True)
class LedgerSettings:
    """Complete runtime settings."""

    database: DatabaseSettings
    matching: MatchingSettings = field(default_factory=MatchingSettings)
    balances: BalanceSettings = field(default_factory=BalanceSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
