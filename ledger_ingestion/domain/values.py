"""
ledger_ingestion.domain.values -- Date and amount parsing for bank exports.

ZERO I/O.  Every parser returns None for a value it cannot read; callers
turn that into a row warning.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

# US banks export month-first; day-first layouts are not guessed at.
_DATE_PATTERNS = (
    (re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$"), ("month", "day", "year")),
    (re.compile(r"^(\d{4})-(\d{2})-(\d{2})$"), ("year", "month", "day")),
    (re.compile(r"^(\d{4})/(\d{2})/(\d{2})$"), ("year", "month", "day")),
)

_AMOUNT_NOISE = re.compile(r"[\"$£€,\s]")
_PARENTHESIZED = re.compile(r"^\((.+)\)$")


def parse_date(value: Any) -> date | None:
    """Read a statement date: date objects, MM/DD/YYYY, YYYY-MM-DD, YYYY/MM/DD or ISO timestamps."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip().replace('"', "")
    if not text:
        return None
    for pattern, order in _DATE_PATTERNS:
        match = pattern.match(text)
        if match:
            parts = dict(zip(order, (int(g) for g in match.groups())))
            try:
                return date(parts["year"], parts["month"], parts["day"])
            except ValueError:
                return None
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def parse_amount(value: Any) -> Decimal | None:
    """
    Read a money amount.

    Currency symbols, thousands separators and quotes are ignored, and
    ``(123.45)`` reads as -123.45.  Floats go through ``str`` so the
    Decimal is the shortest representation, not the binary one.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    cleaned = _AMOUNT_NOISE.sub("", str(value).strip())
    if not cleaned:
        return None
    match = _PARENTHESIZED.match(cleaned)
    if match:
        cleaned = f"-{match.group(1)}"
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def parse_ofx_date(value: str | None) -> date | None:
    """OFX DTPOSTED: YYYYMMDD with an optional time and timezone suffix."""
    if not value or len(value) < 8 or not value[:8].isdigit():
        return None
    try:
        return date(int(value[0:4]), int(value[4:6]), int(value[6:8]))
    except ValueError:
        return None


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).replace('"', "").strip()
