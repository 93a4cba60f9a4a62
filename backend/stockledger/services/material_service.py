# backend/stockledger/services/material_service.py
"""
Material Catalog and Soft-Delete Manager

MULTI-TENANT: every query filters on ctx.tenant_id. A material that is
missing, owned by another tenant or soft-deleted produces the same
NotFoundError; callers cannot probe for existence.

Soft delete sets deleted_at only. current_stock and the transaction history
are left untouched and remain available through
ledger_service.get_material_history().
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Material, StockTransaction, Tenant
from ..time_utils import utcnow
from . import policy_service
from .concurrency import lock_for_update, material_locks, run_with_retry, tenant_locks, unit_of_work
from .identity_service import RequestContext


MATERIAL_NOT_FOUND = "Material not found or does not belong to your tenant."
DEFAULT_RECENT_TRANSACTIONS = 10


def load_active_material(ctx: RequestContext, material_id: str, *, lock: bool = False) -> Material:
    """
    Fetch a non-deleted material owned by the caller's tenant.

    lock=True takes a row lock for the rest of the current DB transaction.
    """
    query = db.session.query(Material).filter(
        Material.id == material_id,
        Material.tenant_id == ctx.tenant_id,
        Material.deleted_at.is_(None),
    )
    if lock:
        query = lock_for_update(query)
    material = query.first()
    if material is None:
        raise NotFoundError(MATERIAL_NOT_FOUND, entity="material", entity_id=material_id)
    return material


def _create_material_once(ctx: RequestContext, name: str, unit: str) -> Material:
    # Row lock on the tenant serializes creates across processes
    lock_for_update(db.session.query(Tenant).filter(Tenant.id == ctx.tenant_id)).first()

    policy_service.enforce(policy_service.CREATE_MATERIAL, ctx)

    # Names of soft-deleted materials stay reserved (unique constraint covers them)
    existing = (
        db.session.query(Material.id)
        .filter(Material.tenant_id == ctx.tenant_id, Material.name == name)
        .first()
    )
    if existing:
        raise ConflictError(f"Material with name '{name}' already exists in this tenant.")

    material = Material(tenant_id=ctx.tenant_id, name=name, unit=unit, current_stock=0)
    db.session.add(material)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(f"Material with name '{name}' already exists in this tenant.") from exc

    current_app.logger.info("Created material %s (%s) in tenant %s", material.id, name, ctx.tenant_id)
    return material


def create_material(ctx: RequestContext, *, name: str, unit: str) -> Material:
    """
    Create a material with zero stock.

    The plan-limit count and the insert happen inside the tenant's critical
    section, so concurrent creates cannot overshoot the FREE cap.

    Raises:
        AuthorizationError: caller is not ADMIN
        PlanLimitExceededError: FREE tenant at its material cap
        ConflictError: name already used in this tenant
    """
    with unit_of_work(ctx, policy_service.CREATE_MATERIAL):
        with tenant_locks.hold(ctx.tenant_id):
            return run_with_retry(lambda: _create_material_once(ctx, name, unit))


def list_materials(ctx: RequestContext, *, name: str | None = None, unit: str | None = None) -> list[Material]:
    """
    Tenant-scoped listing of non-deleted materials, newest first.

    name: case-insensitive substring match
    unit: case-insensitive exact match
    """
    with unit_of_work(ctx, policy_service.VIEW_MATERIALS):
        policy_service.enforce(policy_service.VIEW_MATERIALS, ctx)

        query = db.session.query(Material).filter(
            Material.tenant_id == ctx.tenant_id,
            Material.deleted_at.is_(None),
        )
        if name:
            query = query.filter(func.lower(Material.name).contains(name.lower(), autoescape=True))
        if unit:
            query = query.filter(func.lower(Material.unit) == unit.lower())

        return query.order_by(Material.created_at.desc(), Material.id.desc()).all()


def recent_transactions(material_id: str, limit: int) -> list[StockTransaction]:
    return (
        db.session.query(StockTransaction)
        .filter(StockTransaction.material_id == material_id)
        .order_by(StockTransaction.sequence.desc())
        .limit(limit)
        .all()
    )


def get_material(ctx: RequestContext, material_id: str) -> dict:
    """Material detail with its most recent transactions (newest first)."""
    with unit_of_work(ctx, policy_service.VIEW_MATERIALS):
        policy_service.enforce(policy_service.VIEW_MATERIALS, ctx)
        material = load_active_material(ctx, material_id)

        limit = current_app.config.get("RECENT_TRANSACTIONS_LIMIT", DEFAULT_RECENT_TRANSACTIONS)
        transactions = recent_transactions(material.id, limit)

        data = material.to_dict()
        data["transactions"] = [tx.to_dict() for tx in transactions]
        return data


def _soft_delete_once(ctx: RequestContext, material_id: str) -> Material:
    material = load_active_material(ctx, material_id, lock=True)
    material.deleted_at = utcnow()
    db.session.commit()

    current_app.logger.info("Soft-deleted material %s in tenant %s", material.id, ctx.tenant_id)
    return material


def soft_delete_material(ctx: RequestContext, material_id: str) -> Material:
    """
    Mark a material deleted.

    Shares the material's critical section with ledger movements: once this
    commits, no movement can land on the material. A second call fails with
    NotFoundError.
    """
    with unit_of_work(ctx, policy_service.DELETE_MATERIAL):
        policy_service.enforce(policy_service.DELETE_MATERIAL, ctx)
        with material_locks.hold(material_id):
            return run_with_retry(lambda: _soft_delete_once(ctx, material_id))
