# Overview: Shared column helpers for the relational schema.

from __future__ import annotations

import uuid
from decimal import Decimal, ROUND_HALF_UP

from ..extensions import db

CENT = Decimal("0.01")

# Exact fixed-point money: never stored or computed as float
Money = db.Numeric(10, 2, asdecimal=True)


def new_id() -> str:
    """Opaque primary key (UUID4 string)."""
    return str(uuid.uuid4())


def quantize_money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value) -> str | None:
    """Serialize a money value as an exact 2-place string (e.g. "12.50")."""
    if value is None:
        return None
    return str(quantize_money(value))
