from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from flask import request
from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationFailedError


# Maximum money value that fits Numeric(10, 2)
MAX_MONEY = Decimal("99999999.99")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def parse_int(value: Any, field: str) -> int:
    """Strict integer parsing: rejects bools, floats and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationFailedError(f"{field} must be an integer", details={"field": field})
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationFailedError(
                f"{field} must be a plain integer (scientific notation not allowed)",
                details={"field": field},
            )
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationFailedError(f"{field} must be an integer (no decimals)", details={"field": field})
        try:
            return int(stripped)
        except ValueError:
            raise ValidationFailedError(f"{field} must be an integer", details={"field": field})
    if isinstance(value, float):
        raise ValidationFailedError(f"{field} must be an integer, not a decimal", details={"field": field})
    raise ValidationFailedError(f"{field} must be an integer", details={"field": field})


def parse_positive_int(value: Any, field: str) -> int:
    n = parse_int(value, field)
    if n <= 0:
        raise ValidationFailedError(f"{field} must be > 0", details={"field": field})
    return n


def parse_money(value: Any, field: str, *, allow_negative: bool = False) -> Decimal:
    """
    Parse an exact money amount.

    Accepts Decimal, int, or a decimal string with at most two places
    ("12", "12.5", "12.50"). Floats are rejected: money never passes
    through binary floating point.
    """
    if value is None:
        raise ValidationFailedError(f"{field} is required", details={"field": field})
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationFailedError(
            f"{field} must be a decimal string (e.g. \"12.50\"), not a float",
            details={"field": field},
        )
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationFailedError(f"{field} must be a decimal amount", details={"field": field})
    else:
        raise ValidationFailedError(f"{field} must be a decimal amount", details={"field": field})

    if not amount.is_finite():
        raise ValidationFailedError(f"{field} must be a decimal amount", details={"field": field})
    if amount.as_tuple().exponent < -2:
        raise ValidationFailedError(f"{field} cannot have more than 2 decimal places", details={"field": field})
    if amount < 0 and not allow_negative:
        raise ValidationFailedError(f"{field} must be >= 0", details={"field": field})
    if abs(amount) > MAX_MONEY:
        raise ValidationFailedError(f"{field} cannot exceed {MAX_MONEY}", details={"field": field})
    return amount.quantize(Decimal("0.01"))


def json_body() -> dict:
    """Request body as a JSON object; an empty or non-JSON body reads as {}."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationFailedError("Invalid JSON payload", details={"expected": "object"})
    return data


def require_text(value: Any, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationFailedError(f"{field} is required", details={"field": field})
    return str(value).strip()


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_int(value, col.key)

    if isinstance(coltype, Numeric):
        return parse_money(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationFailedError(f"{col.key} must be a boolean", details={"field": col.key})

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationFailedError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationFailedError(
                f"Missing required fields: {', '.join(missing)}",
                details={"missing": missing},
            )

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationFailedError(f"Field not allowed: {k}", details={"field": k})
        if k not in cols:
            raise ValidationFailedError(f"Unknown field: {k}", details={"field": k})

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationFailedError(f"{k} cannot be null", details={"field": k})
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationFailedError(f"{k} cannot be blank", details={"field": k})

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationFailedError(f"{k} exceeds max length {col.type.length}", details={"field": k})

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("min_stock_level", "quantity"):
        if field in patch and patch[field] is not None and patch[field] < 0:
            raise ValidationFailedError(f"{field} must be >= 0", details={"field": field})

    if "currency" in patch and patch["currency"] is not None:
        code = patch["currency"]
        if len(code) != 3 or not code.isalpha():
            raise ValidationFailedError("currency must be a 3-letter ISO code", details={"field": "currency"})
        patch["currency"] = code.upper()


def enforce_rules_contact(patch: dict) -> None:
    """Shared by customers and suppliers."""
    email = patch.get("email")
    if email:
        local, _, domain = email.partition("@")
        if not local or "." not in domain or " " in email:
            raise ValidationFailedError("email is not a valid address", details={"field": "email"})
        patch["email"] = email.lower()
