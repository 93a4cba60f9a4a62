"""
Service error taxonomy.

Every error a service raises toward a caller derives from ServiceError and
carries a stable machine code, a human-readable kind and the HTTP status the
routes translate it to. Routes never invent their own error payloads; they
call json_error().
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any

from flask import jsonify


class ServiceError(Exception):
    code = "INTERNAL_ERROR"
    kind = "Internal Server Error"
    status_code = 500

    def __init__(self, message: str | None = None, *, details: Any = None):
        super().__init__(message or self.kind)
        self.message = message or self.kind
        self.details = details

    def to_dict(self) -> dict:
        body = {
            "error": self.kind,
            "code": self.code,
            "message": self.message,
        }
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(ServiceError, ValueError):
    """400-level input problem; details lists the offending fields."""
    code = "VALIDATION_ERROR"
    kind = "Validation Error"
    status_code = 400


class AuthenticationError(ServiceError):
    code = "AUTHENTICATION_REQUIRED"
    kind = "Authentication Required"
    status_code = 401


class AuthorizationError(ServiceError):
    code = "AUTHORIZATION_REQUIRED"
    kind = "Authorization Required"
    status_code = 403


class PlanRestrictedError(ServiceError):
    code = "PLAN_RESTRICTED"
    kind = "Plan Restricted"
    status_code = 403


class PlanLimitExceededError(ServiceError):
    code = "PLAN_LIMIT_EXCEEDED"
    kind = "Plan Limit Exceeded"
    status_code = 403


class NotFoundError(ServiceError):
    """
    Entity absent, owned by another tenant, or soft-deleted.

    The three causes share one message on purpose; callers must not be able
    to tell them apart.
    """
    code = "NOT_FOUND"
    kind = "Not Found"
    status_code = 404

    def __init__(self, message: str | None = None, *, entity: str | None = None, entity_id: str | None = None):
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(ServiceError, ValueError):
    """409-level business rule conflict (e.g., duplicate material name)."""
    code = "CONFLICT"
    kind = "Conflict"
    status_code = 409


def _plain(value) -> str:
    # Decimal("100.0000") -> "100", Decimal("2.5000") -> "2.5"
    return f"{Decimal(str(value)).normalize():f}"


class InsufficientStockError(ServiceError):
    code = "INSUFFICIENT_STOCK"
    kind = "Insufficient Stock"
    status_code = 400

    def __init__(self, *, available, requested, unit: str):
        self.available = available
        self.requested = requested
        self.unit = unit
        super().__init__(
            f"Cannot process OUT transaction. Current stock is {_plain(available)} {unit}, "
            f"but tried to consume {_plain(requested)}.",
            details={
                "available": float(available),
                "requested": float(requested),
                "unit": unit,
            },
        )


class InternalError(ServiceError):
    """Unexpected store failure; the unit of work was rolled back."""


def json_error(exc: ServiceError):
    return jsonify(exc.to_dict()), exc.status_code
