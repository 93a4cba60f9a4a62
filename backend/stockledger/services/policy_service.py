# Overview: Role and plan gate evaluated before any tenant-scoped operation.

"""
Policy Gate

authorize() is a pure predicate over the request context plus, for
material creation on FREE tenants, the current non-deleted material count.
enforce() performs that one read and raises the decision's error.

Rules:
- CREATE_MATERIAL, DELETE_MATERIAL: ADMIN only
- CREATE_MATERIAL on FREE: at most FREE_PLAN_MATERIAL_LIMIT non-deleted materials
- VIEW_ANALYTICS: PRO plan only (evaluated per request; plan may change)
- CREATE_TRANSACTION, VIEW_MATERIALS, VIEW_HISTORY: any authenticated role
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import AuthorizationError, PlanLimitExceededError, PlanRestrictedError, ServiceError
from ..extensions import db
from ..models import Material
from ..models.tenancy import PLAN_FREE, PLAN_PRO, ROLE_ADMIN
from .identity_service import RequestContext


CREATE_MATERIAL = "CREATE_MATERIAL"
DELETE_MATERIAL = "DELETE_MATERIAL"
CREATE_TRANSACTION = "CREATE_TRANSACTION"
VIEW_MATERIALS = "VIEW_MATERIALS"
VIEW_HISTORY = "VIEW_HISTORY"
VIEW_ANALYTICS = "VIEW_ANALYTICS"

ALL_ACTIONS = {
    CREATE_MATERIAL,
    DELETE_MATERIAL,
    CREATE_TRANSACTION,
    VIEW_MATERIALS,
    VIEW_HISTORY,
    VIEW_ANALYTICS,
}

ADMIN_ONLY_ACTIONS = {CREATE_MATERIAL, DELETE_MATERIAL}
PRO_ONLY_ACTIONS = {VIEW_ANALYTICS}

DEFAULT_FREE_PLAN_MATERIAL_LIMIT = 5


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: str | None = None
    error: ServiceError | None = None

    @classmethod
    def allow(cls) -> "PolicyDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, error: ServiceError) -> "PolicyDecision":
        return cls(allowed=False, reason=error.message, error=error)


def free_plan_material_limit() -> int:
    return current_app.config.get("FREE_PLAN_MATERIAL_LIMIT", DEFAULT_FREE_PLAN_MATERIAL_LIMIT)


def count_active_materials(tenant_id: str) -> int:
    """Non-deleted materials only; soft-deleted rows free up quota."""
    return (
        db.session.query(Material)
        .filter(Material.tenant_id == tenant_id, Material.deleted_at.is_(None))
        .count()
    )


def authorize(
    action: str,
    ctx: RequestContext,
    *,
    material_count: int | None = None,
    material_limit: int = DEFAULT_FREE_PLAN_MATERIAL_LIMIT,
) -> PolicyDecision:
    if action not in ALL_ACTIONS:
        raise ValueError(f"unknown action: {action}")

    if action in ADMIN_ONLY_ACTIONS and ctx.user_role != ROLE_ADMIN:
        return PolicyDecision.deny(AuthorizationError(
            f"Action forbidden. Only {ROLE_ADMIN} users can perform this operation."
        ))

    if action in PRO_ONLY_ACTIONS and ctx.tenant_plan != PLAN_PRO:
        return PolicyDecision.deny(PlanRestrictedError(
            "Analytics Summary is a PRO-plan feature. Upgrade your tenant to access this endpoint."
        ))

    if action == CREATE_MATERIAL and ctx.tenant_plan == PLAN_FREE:
        if material_count is None:
            raise ValueError("material_count is required to authorize CREATE_MATERIAL on FREE plan")
        if material_count >= material_limit:
            return PolicyDecision.deny(PlanLimitExceededError(
                f"FREE plan tenants are limited to {material_limit} materials. Upgrade to PRO to add more."
            ))

    return PolicyDecision.allow()


def enforce(action: str, ctx: RequestContext) -> None:
    """
    Evaluate the gate for ctx and raise on denial.

    For CREATE_MATERIAL the caller must already hold the tenant's critical
    section so the count cannot change before the insert commits.
    """
    material_count = None
    limit = free_plan_material_limit()
    if action == CREATE_MATERIAL and ctx.tenant_plan == PLAN_FREE and ctx.user_role == ROLE_ADMIN:
        material_count = count_active_materials(ctx.tenant_id)

    decision = authorize(action, ctx, material_count=material_count, material_limit=limit)
    if not decision.allowed:
        raise decision.error
