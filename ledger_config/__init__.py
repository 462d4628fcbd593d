"""
ledger_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_settings()`` is the only way components obtain settings: packaged
    defaults, an optional override file, then environment variables.
    ``apply_settings()`` hands them to the kernel (logging and engine).

Architecture position:
    Configuration -- sits above ``ledger_kernel``.  The kernel never
    imports from ``ledger_config``; settings reach it as plain arguments.

Invariants enforced:
    - Precedence: environment > override file > packaged defaults.
    - The returned LedgerSettings is frozen and validated.
    - Same inputs always produce the same checksum.

Failure modes:
    - ``FileNotFoundError`` for a missing override file.
    - ``yaml.YAMLError`` for malformed YAML.
    - ``ValueError`` for unknown keys or invalid values.

Audit relevance:
    Every ``get_settings()`` call emits a ``LEDGER_CONFIG_TRACE`` record
    with the settings checksum and which sources contributed.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from ledger_config.loader import compute_checksum, load_yaml_file, merge_settings, parse_settings
from ledger_config.schema import (
    BalanceSettings,
    DatabaseSettings,
    LedgerSettings,
    LoggingSettings,
    MatchingSettings,
)

_logger = logging.getLogger("ledger_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

__all__ = [
    "BalanceSettings",
    "DatabaseSettings",
    "LedgerSettings",
    "LoggingSettings",
    "MatchingSettings",
    "apply_settings",
    "compute_checksum",
    "get_settings",
]


def _environment_overrides(environ: Mapping[str, str]) -> dict[str, dict[str, object]]:
    overrides: dict[str, dict[str, object]] = {}
    url = environ.get("LEDGER_DATABASE_URL") or environ.get("DATABASE_URL")
    if url:
        overrides.setdefault("database", {})["url"] = url
    level = environ.get("LEDGER_LOG_LEVEL")
    if level:
        overrides.setdefault("logging", {})["level"] = level
    tolerance = environ.get("LEDGER_MATCH_DATE_TOLERANCE_DAYS")
    if tolerance:
        try:
            days = int(tolerance)
        except ValueError:
            raise ValueError(
                f"LEDGER_MATCH_DATE_TOLERANCE_DAYS must be an integer, got {tolerance!r}"
            ) from None
        overrides.setdefault("matching", {})["date_tolerance_days"] = days
    return overrides


def get_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Load settings.

    Args:
        path: Optional YAML file merged over the packaged defaults.
        environ: Environment to read overrides from.  Defaults to os.environ.
    """
    environ = os.environ if environ is None else environ
    data = load_yaml_file(DEFAULTS_PATH)
    sources = ["defaults"]

    if path is not None:
        data = merge_settings(data, load_yaml_file(Path(path)))
        sources.append(str(path))

    env = _environment_overrides(environ)
    if env:
        data = merge_settings(data, env)
        sources.append("environment")

    settings = parse_settings(data)
    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "checksum": settings.checksum,
            "sources": sources,
            "dialect": settings.database.url.split(":", 1)[0],
        },
    )
    return settings


def apply_settings(settings: LedgerSettings):
    """Configure kernel logging and initialize the engine; returns the engine."""
    from ledger_kernel.db.engine import init_engine_from_url
    from ledger_kernel.logging_config import configure_logging

    configure_logging(level=settings.logging.level_number)
    return init_engine_from_url(
        settings.database.url,
        echo=settings.database.echo,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
    )
