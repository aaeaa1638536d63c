"""
Payload checks for the catalog records (customers, items).

Column metadata on the model decides what a value may be; a
``ModelValidationPolicy`` decides which keys a client may send at all.
Ledger arguments are checked in ``services.ledger_service`` instead.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import InvalidArgument


# 9,999,999.99
MAX_PRICE_CENTS = 999_999_999


class ValidationError(InvalidArgument):
    """Catalog payload rejected before it reaches storage."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = field(default_factory=frozenset)


def coerce_int(name: str, value: Any) -> int:
    """Accept ints and digit strings; refuse bools, floats and exponent forms."""
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be an integer")

    text = value.strip()
    if "e" in text.lower():
        raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
    if "." in text:
        raise ValidationError(f"{name} must be an integer (no decimals)")
    try:
        return int(text)
    except ValueError:
        raise ValidationError(f"{name} must be an integer") from None


def _clean(col, value: Any) -> Any:
    if isinstance(col.type, Integer):
        return coerce_int(col.key, value)

    if isinstance(col.type, (String, Text)):
        text = str(value).strip()
        if text == "" and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        limit = getattr(col.type, "length", None)
        if limit and len(text) > limit:
            raise ValidationError(f"{col.key} exceeds max length {limit}")
        return text

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Return a cleaned copy of ``payload`` holding only writable columns.

    With ``partial=False`` (create) every ``required_on_create`` key must be
    present; with ``partial=True`` (update) only the keys sent are checked.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}

    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        col = columns.get(key)
        if col is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _clean(col, raw)

    return patch


def enforce_rules_item(patch: dict) -> None:
    """Item pricing and stock rules on top of the column checks."""
    if "price_cents" in patch:
        price = patch["price_cents"]
        if price is None or price <= 0:
            raise ValidationError("price_cents must be > 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS} ({MAX_PRICE_CENTS / 100:,.2f})")

    for name in ("cost_price_cents", "quantity"):
        value = patch.get(name)
        if value is not None and value < 0:
            raise ValidationError(f"{name} must be >= 0")
