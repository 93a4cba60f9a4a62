from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .models.inventory import ALL_TX_TYPES, MAX_QUANTITY, QUANTITY_SCALE
from .models.tenancy import ALL_PLANS


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - min_lengths: per-field minimum length for string columns
    - quantity_fields: payload fields that are ledger quantities; they map
      to integer *_units columns and are coerced with coerce_quantity()
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    min_lengths: dict[str, int] | None = None
    quantity_fields: set[str] | None = None


def _field_error(field: str, message: str) -> dict:
    return {"field": field, "message": message}


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_quantity(value: Any, field: str = "quantity") -> Decimal:
    """
    Strict numeric coercion for ledger quantities.

    JSON numbers only: booleans and strings are rejected, as are NaN/inf and
    values with more fractional digits than the column stores.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValidationError(details=[_field_error(field, f"{field} must be a number")])
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(details=[_field_error(field, f"{field} must be a finite number")])

    try:
        # str() keeps 0.1 as Decimal("0.1") instead of its binary expansion
        qty = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(details=[_field_error(field, f"{field} must be a number")])

    if not qty.is_finite():
        raise ValidationError(details=[_field_error(field, f"{field} must be a finite number")])
    if qty.as_tuple().exponent < -QUANTITY_SCALE:
        raise ValidationError(
            details=[_field_error(field, f"{field} supports at most {QUANTITY_SCALE} decimal places")]
        )
    if qty > MAX_QUANTITY:
        raise ValidationError(details=[_field_error(field, f"{field} cannot exceed {MAX_QUANTITY}")])
    return qty


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise ValidationError(details=[_field_error(col.key, f"{col.key} must be an integer")])

    # Strings / Text: JSON strings only, no silent str() of objects
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, str):
            raise ValidationError(details=[_field_error(col.key, f"{col.key} must be a string")])
        return value.strip()

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

    All field problems are collected and raised together as one
    ValidationError whose details list every offending field.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: list[dict] = []

    required = policy.required_on_create or set()
    if not partial:
        for f in sorted(required):
            if f not in payload:
                errors.append(_field_error(f, f"{f} is required"))

    cols = _columns_by_key(model)
    min_lengths = policy.min_lengths or {}
    quantity_fields = policy.quantity_fields or set()

    patch: dict = {}

    for k, raw in payload.items():
        if k in quantity_fields and k in policy.writable_fields:
            try:
                patch[k] = coerce_quantity(raw, k)
            except ValidationError as e:
                errors.extend(e.details or [_field_error(k, e.message)])
            continue

        # Reject unknown / non-writable fields
        if k not in policy.writable_fields or k not in cols:
            errors.append(_field_error(k, f"Field not allowed: {k}"))
            continue

        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                errors.append(_field_error(k, f"{k} cannot be null"))
                continue
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValidationError as e:
            errors.extend(e.details or [_field_error(k, e.message)])
            continue

        if isinstance(col.type, (String, Text)) and isinstance(val, str):
            # Blank string check for non-nullable text fields
            if not col.nullable and val == "":
                errors.append(_field_error(k, f"{k} cannot be blank"))
                continue
            if k in min_lengths and len(val) < min_lengths[k]:
                errors.append(_field_error(k, f"{k} must be at least {min_lengths[k]} characters"))
                continue
            # Max length check for String(n)
            if isinstance(col.type, String) and col.type.length and len(val) > col.type.length:
                errors.append(_field_error(k, f"{k} exceeds max length {col.type.length}"))
                continue

        patch[k] = val

    if errors:
        raise ValidationError("Invalid request payload", details=errors)

    return patch


def enforce_rules_transaction(patch: dict) -> None:
    """
    Business rules for a stock movement that column metadata cannot express.
    """
    errors = []
    tx_type = patch.get("type")
    if tx_type not in ALL_TX_TYPES:
        errors.append(_field_error("type", f"type must be one of: {', '.join(ALL_TX_TYPES)}"))

    qty = patch.get("quantity")
    if qty is None or qty <= 0:
        errors.append(_field_error("quantity", "quantity must be > 0"))

    if errors:
        raise ValidationError("Invalid request payload", details=errors)


def enforce_rules_tenant(patch: dict) -> None:
    if "plan" in patch and patch["plan"] not in ALL_PLANS:
        raise ValidationError(
            "Invalid request payload",
            details=[_field_error("plan", f"plan must be one of: {', '.join(ALL_PLANS)}")],
        )


def enforce_rules_user(patch: dict, prefix: str = "") -> None:
    email = patch.get("email")
    if email is not None and not EMAIL_RE.match(email):
        raise ValidationError(
            "Invalid request payload",
            details=[_field_error(f"{prefix}email", "email must be a valid email address")],
        )
