# Overview: Read-only aggregates over committed ledger data.

from __future__ import annotations

from sqlalchemy import case, func

from ..extensions import db
from ..models import Material, StockTransaction
from ..models.inventory import TX_IN, TX_OUT, units_to_quantity
from . import policy_service
from .concurrency import unit_of_work
from .identity_service import RequestContext


def analytics_summary(ctx: RequestContext) -> dict:
    """
    Per-tenant totals: non-deleted material count and quantities moved in
    and out. PRO plan only; the plan comes from ctx, resolved per request.
    """
    with unit_of_work(ctx, policy_service.VIEW_ANALYTICS):
        policy_service.enforce(policy_service.VIEW_ANALYTICS, ctx)

        material_count = policy_service.count_active_materials(ctx.tenant_id)

        rows = (
            db.session.query(
                StockTransaction.type,
                func.coalesce(func.sum(StockTransaction.quantity_units), 0).label("total"),
            )
            .filter(StockTransaction.tenant_id == ctx.tenant_id)
            .group_by(StockTransaction.type)
            .all()
        )
        totals = {row.type: int(row.total or 0) for row in rows}
        total_in = units_to_quantity(totals.get(TX_IN, 0))
        total_out = units_to_quantity(totals.get(TX_OUT, 0))

        return {
            "tenant_id": ctx.tenant_id,
            "material_count": material_count,
            "total_quantity_in": float(total_in),
            "total_quantity_out": float(total_out),
            "net_stock_movement": float(total_in - total_out),
        }


def verify_ledger(tenant_id: str | None = None) -> list[dict]:
    """
    Compare every material's cached current_stock with the signed sum of its
    history (soft-deleted materials included). Returns the mismatches; an
    empty list means the ledger is consistent.
    """
    signed = case(
        (StockTransaction.type == TX_IN, StockTransaction.quantity_units),
        else_=-StockTransaction.quantity_units,
    )
    net = (
        db.session.query(
            StockTransaction.material_id.label("material_id"),
            func.sum(signed).label("net"),
        )
        .group_by(StockTransaction.material_id)
        .subquery()
    )

    query = (
        db.session.query(Material, net.c.net)
        .outerjoin(net, net.c.material_id == Material.id)
    )
    if tenant_id is not None:
        query = query.filter(Material.tenant_id == tenant_id)

    mismatches = []
    for material, net_sum in query.order_by(Material.tenant_id, Material.created_at).all():
        ledger_units = int(net_sum or 0)
        if ledger_units != material.current_stock_units:
            mismatches.append({
                "tenant_id": material.tenant_id,
                "material_id": material.id,
                "name": material.name,
                "current_stock": float(material.current_stock),
                "ledger_stock": float(units_to_quantity(ledger_units)),
            })
    return mismatches
