# Overview: Payload validation for routes and services; strict integer/cents coercion and column-driven checks.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text


# Largest amount accepted anywhere: 9,999,999.99 baht
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level conflict with existing data (e.g., duplicate member code)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns of a model a client may send.

    writable_fields is the allowlist; derived columns (member spend, product
    sold flag, version ids) are never on it. required_on_create only applies
    to full (non-partial) payloads.
    """
    writable_fields: frozenset
    required_on_create: frozenset = field(default_factory=frozenset)


def coerce_int(key: str, value: Any) -> int:
    """
    Strict integer coercion.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals and
    scientific notation instead of rounding them.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} must be an integer")

    text = value.strip()
    if "." in text or "e" in text.lower():
        raise ValidationError(f"{key} must be a plain integer")
    try:
        return int(text)
    except ValueError:
        raise ValidationError(f"{key} must be an integer")


def coerce_cents(key: str, value: Any) -> int:
    """Non-negative amount in cents, at most MAX_AMOUNT_CENTS. None -> 0."""
    if value is None:
        return 0
    cents = coerce_int(key, value)
    if not 0 <= cents <= MAX_AMOUNT_CENTS:
        raise ValidationError(f"{key} must be between 0 and {MAX_AMOUNT_CENTS}")
    return cents


def _clean(column, raw: Any):
    if raw is None:
        if not column.nullable:
            raise ValidationError(f"{column.key} cannot be null")
        return None

    coltype = column.type
    if isinstance(coltype, Boolean):
        if not isinstance(raw, bool):
            raise ValidationError(f"{column.key} must be true or false")
        return raw
    if isinstance(coltype, Integer):
        return coerce_int(column.key, raw)
    if isinstance(coltype, (String, Text)):
        text = str(raw).strip()
        if not text and not column.nullable:
            raise ValidationError(f"{column.key} cannot be blank")
        length = getattr(coltype, "length", None)
        if length and len(text) > length:
            raise ValidationError(f"{column.key} exceeds max length {length}")
        return text
    return raw


def validate_payload(*, model, payload, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Turn a JSON body into a patch of column values for ``model``.

    Keys outside policy.writable_fields are rejected, values are coerced by
    column type, and (unless ``partial``) every required_on_create key must be
    present.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    not_allowed = sorted(k for k in payload if k not in policy.writable_fields)
    if not_allowed:
        raise ValidationError(f"Fields not allowed: {', '.join(not_allowed)}")

    if not partial:
        missing = sorted(k for k in policy.required_on_create if k not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    return {key: _clean(columns[key], raw) for key, raw in payload.items()}


def enforce_rules_product(patch: dict) -> None:
    """Catalog rules the column types cannot express."""
    from .models.catalog import PRODUCT_CATEGORIES

    category = patch.get("category")
    if category is not None and category not in PRODUCT_CATEGORIES:
        raise ValidationError(
            f"Invalid category '{category}'. Must be one of: {', '.join(PRODUCT_CATEGORIES)}"
        )

    for key in ("price_cents", "customer_price_cents", "balance"):
        if patch.get(key) is not None:
            coerce_cents(key, patch[key])
