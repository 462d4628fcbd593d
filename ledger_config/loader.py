"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads YAML settings files and parses them into the frozen
``ledger_config.schema`` dataclasses.  Runtime callers go through
``ledger_config.get_settings()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown top-level sections and keys raise ``ValueError``; a typo is
  never silently ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` from the schema.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    BalanceSettings,
    DatabaseSettings,
    LedgerSettings,
    LoggingSettings,
    MatchingSettings,
)

_SECTIONS = ("database", "matching", "balances", "logging")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def merge_settings(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Section-wise merge; keys in ``override`` win."""
    merged = {key: dict(value) for key, value in base.items() if isinstance(value, dict)}
    for section, values in override.items():
        if not isinstance(values, dict):
            raise ValueError(f"Section {section!r} must be a mapping")
        merged.setdefault(section, {}).update(values)
    return merged


def _section(data: dict[str, Any], name: str, allowed: set[str]) -> dict[str, Any]:
    section = data.get(name) or {}
    unknown = set(section) - allowed
    if unknown:
        raise ValueError(f"Unknown {name} setting(s): {sorted(unknown)}")
    return section


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown settings section(s): {sorted(unknown)}")

    db = _section(data, "database", {"url", "echo", "pool_size", "max_overflow"})
    matching = _section(data, "matching", {"date_tolerance_days", "amount_tolerance"})
    balances = _section(data, "balances", {"verification_tolerance"})
    log = _section(data, "logging", {"level"})

    return LedgerSettings(
        database=DatabaseSettings(
            url=str(db.get("url") or ""),
            echo=bool(db.get("echo", False)),
            pool_size=int(db.get("pool_size", 20)),
            max_overflow=int(db.get("max_overflow", 10)),
        ),
        matching=MatchingSettings(
            date_tolerance_days=int(matching.get("date_tolerance_days", 3)),
            amount_tolerance=Decimal(str(matching.get("amount_tolerance", "0.01"))),
        ),
        balances=BalanceSettings(
            verification_tolerance=Decimal(str(balances.get("verification_tolerance", "0.01"))),
        ),
        logging=LoggingSettings(level=str(log.get("level", "INFO")).upper()),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
