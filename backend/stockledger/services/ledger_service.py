# Overview: Service-layer operations for the stock ledger; the only writer of Material.current_stock.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Material, StockTransaction
from ..models.inventory import ALL_TX_TYPES, MAX_QUANTITY, TX_IN, TX_OUT
from ..time_utils import utcnow
from ..validation import coerce_quantity
from . import policy_service
from .concurrency import material_locks, run_with_retry, unit_of_work
from .identity_service import RequestContext
from .material_service import MATERIAL_NOT_FOUND, load_active_material
"""
Stock Ledger Invariants (authoritative)

- Material.current_stock == SUM(+quantity for IN, -quantity for OUT) over the
  material's StockTransaction rows, at every commit.
- current_stock is never negative; an OUT larger than the stock is rejected
  before anything is written.
- The stock update and the transaction insert are one commit. There is no
  code path that writes one without the other.
- StockTransaction rows are append-only; sequence numbers each material's
  history 1..n with no gaps.
- Movements on one material are totally ordered: in-process KeyedLock,
  SELECT ... FOR UPDATE, and the Material.version_id optimistic check.
- Soft-deleted materials never receive a transaction.
"""


@dataclass(frozen=True)
class MovementResult:
    material: Material
    transaction: StockTransaction

    def to_dict(self) -> dict:
        return {
            "material": {
                "id": self.material.id,
                "current_stock": float(self.material.current_stock),
            },
            "transaction": self.transaction.to_dict(),
        }


def _validate_movement(tx_type: str, quantity) -> Decimal:
    if tx_type not in ALL_TX_TYPES:
        raise ValidationError(
            details=[{"field": "type", "message": f"type must be one of: {', '.join(ALL_TX_TYPES)}"}]
        )
    qty = coerce_quantity(quantity)
    if qty <= 0:
        raise ValidationError(details=[{"field": "quantity", "message": "quantity must be > 0"}])
    return qty


def _next_sequence(material_id: str) -> int:
    last = (
        db.session.query(func.max(StockTransaction.sequence))
        .filter(StockTransaction.material_id == material_id)
        .scalar()
    )
    return int(last or 0) + 1


def _apply_movement_once(ctx: RequestContext, material_id: str, tx_type: str, quantity: Decimal) -> MovementResult:
    material = load_active_material(ctx, material_id, lock=True)

    pre = material.current_stock
    if tx_type == TX_OUT and pre < quantity:
        raise InsufficientStockError(available=pre, requested=quantity, unit=material.unit)

    post = pre + quantity if tx_type == TX_IN else pre - quantity
    if post > MAX_QUANTITY:
        raise ValidationError(details=[{
            "field": "quantity",
            "message": f"current stock cannot exceed {MAX_QUANTITY} {material.unit}",
        }])

    material.current_stock = post
    tx = StockTransaction(
        tenant_id=ctx.tenant_id,
        material_id=material.id,
        sequence=_next_sequence(material.id),
        type=tx_type,
        quantity=quantity,
        pre_transaction_stock=pre,
        created_at=utcnow(),
    )
    db.session.add(tx)

    try:
        db.session.commit()
    except IntegrityError as exc:
        # Another writer took this ledger position; re-run from a fresh read
        db.session.rollback()
        raise StaleDataError(str(exc.orig)) from exc

    current_app.logger.info(
        "Ledger %s %s on material %s (tenant %s): %s -> %s",
        tx_type, quantity, material.id, ctx.tenant_id, pre, post,
    )
    return MovementResult(material=material, transaction=tx)


def apply_movement(ctx: RequestContext, material_id: str, tx_type: str, quantity) -> MovementResult:
    """
    Apply one IN/OUT movement and append its transaction atomically.

    Any role may move stock. Validation and policy run before the critical
    section; the read of current_stock, the insufficiency check and the
    commit all run inside it.

    Raises:
        ValidationError: bad type or quantity, or stock would exceed
            MAX_QUANTITY (nothing written)
        NotFoundError: material missing, foreign or soft-deleted
        InsufficientStockError: OUT larger than current stock (nothing written)
        ConflictError: material busy past the lock timeout, or retries exhausted
    """
    with unit_of_work(ctx, policy_service.CREATE_TRANSACTION):
        policy_service.enforce(policy_service.CREATE_TRANSACTION, ctx)
        qty = _validate_movement(tx_type, quantity)

        with material_locks.hold(material_id):
            return run_with_retry(lambda: _apply_movement_once(ctx, material_id, tx_type, qty))


def get_material_history(ctx: RequestContext, material_id: str) -> dict:
    """
    Full, chronological history of one of the tenant's materials, including
    soft-deleted ones.

    Replays the ledger from zero: each entry carries the stock after the
    movement, and snapshot_matches tells whether the stored
    pre_transaction_stock agrees with the replay. consistent is True when
    every snapshot matches and the replay ends at current_stock.
    """
    with unit_of_work(ctx, policy_service.VIEW_HISTORY):
        policy_service.enforce(policy_service.VIEW_HISTORY, ctx)

        material = (
            db.session.query(Material)
            .filter(Material.id == material_id, Material.tenant_id == ctx.tenant_id)
            .first()
        )
        if material is None:
            raise NotFoundError(MATERIAL_NOT_FOUND, entity="material", entity_id=material_id)

        transactions = (
            db.session.query(StockTransaction)
            .filter(StockTransaction.material_id == material.id)
            .order_by(StockTransaction.sequence.asc())
            .all()
        )

        running = Decimal(0)
        consistent = True
        entries = []
        for tx in transactions:
            snapshot_matches = tx.pre_transaction_stock == running
            consistent = consistent and snapshot_matches
            running += tx.signed_quantity
            entry = tx.to_dict()
            entry["post_transaction_stock"] = float(running)
            entry["snapshot_matches"] = snapshot_matches
            entries.append(entry)

        consistent = consistent and running == material.current_stock

        return {
            "material": material.to_dict(),
            "transactions": entries,
            "replayed_stock": float(running),
            "consistent": consistent,
        }
