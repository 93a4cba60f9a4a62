from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .tenancy import new_id


TX_IN = "IN"
TX_OUT = "OUT"
ALL_TX_TYPES = (TX_IN, TX_OUT)

# Quantities are stored as integer units of 1/10000 (like the *_cents
# columns elsewhere), so every database sums them exactly.
QUANTITY_SCALE = 4
UNITS_PER_QUANTITY = 10 ** QUANTITY_SCALE

# 18 significant digits, 4 after the point; fits a signed 64-bit BIGINT
MAX_QUANTITY_UNITS = 10 ** 18 - 1


def quantity_to_units(value) -> int:
    """Decimal quantity -> integer units. Rejects more than QUANTITY_SCALE decimals."""
    units = Decimal(str(value)).scaleb(QUANTITY_SCALE)
    if units != units.to_integral_value():
        raise ValueError(f"quantity {value} has more than {QUANTITY_SCALE} decimal places")
    return int(units)


def units_to_quantity(units) -> Decimal:
    return Decimal(int(units or 0)).scaleb(-QUANTITY_SCALE)


MAX_QUANTITY = units_to_quantity(MAX_QUANTITY_UNITS)


def _as_number(value):
    if value is None:
        return None
    return float(value)


class Material(db.Model):
    """
    A tenant's stock-keeping material.

    current_stock is a cached value: it always equals the signed sum of the
    material's StockTransaction rows. Only ledger_service.apply_movement
    writes it, in the same commit as the transaction row.

    Soft delete: deleted_at set -> excluded from listing, lookup and
    mutation; history is retained.
    """
    __tablename__ = "materials"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "name", name="uq_materials_tenant_name"),
        db.CheckConstraint("current_stock_units >= 0", name="ck_materials_stock_non_negative"),
        db.Index("ix_materials_tenant_deleted", "tenant_id", "deleted_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    tenant_id = db.Column(db.String(36), db.ForeignKey("tenants.id"), nullable=False, index=True)

    name = db.Column(db.String(100), nullable=False)
    unit = db.Column(db.String(20), nullable=False)

    current_stock_units = db.Column(db.BigInteger, nullable=False, default=0)

    # Optimistic concurrency guard: a stale read fails the UPDATE
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    tenant = db.relationship("Tenant", backref=db.backref("materials", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def current_stock(self) -> Decimal:
        return units_to_quantity(self.current_stock_units)

    @current_stock.setter
    def current_stock(self, value) -> None:
        self.current_stock_units = quantity_to_units(value)

    def __repr__(self) -> str:
        return f"<Material id={self.id} name={self.name!r} stock={self.current_stock} tenant_id={self.tenant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "unit": self.unit,
            "current_stock": _as_number(self.current_stock),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "deleted_at": to_utc_z(self.deleted_at),
        }


class StockTransaction(db.Model):
    """
    One IN or OUT movement against a material.

    IMMUTABLE: no update or delete path exists. pre_transaction_stock is a
    point-in-time snapshot so history can be audited without trusting
    Material.current_stock.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.CheckConstraint("type IN ('IN', 'OUT')", name="ck_stock_transactions_type"),
        db.CheckConstraint("quantity_units > 0", name="ck_stock_transactions_quantity_positive"),
        # Per-material ledger position; a second writer computing the same
        # position from a stale read fails here.
        db.UniqueConstraint("material_id", "sequence", name="uq_stock_transactions_material_sequence"),
        db.Index("ix_stock_transactions_material_created", "material_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    tenant_id = db.Column(db.String(36), db.ForeignKey("tenants.id"), nullable=False, index=True)
    material_id = db.Column(db.String(36), db.ForeignKey("materials.id"), nullable=False, index=True)
    sequence = db.Column(db.Integer, nullable=False)

    type = db.Column(db.String(8), nullable=False)
    quantity_units = db.Column(db.BigInteger, nullable=False)
    pre_transaction_stock_units = db.Column(db.BigInteger, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    material = db.relationship("Material")

    @property
    def quantity(self) -> Decimal:
        return units_to_quantity(self.quantity_units)

    @quantity.setter
    def quantity(self, value) -> None:
        self.quantity_units = quantity_to_units(value)

    @property
    def pre_transaction_stock(self) -> Decimal:
        return units_to_quantity(self.pre_transaction_stock_units)

    @pre_transaction_stock.setter
    def pre_transaction_stock(self, value) -> None:
        self.pre_transaction_stock_units = quantity_to_units(value)

    @property
    def signed_quantity(self) -> Decimal:
        return self.quantity if self.type == TX_IN else -self.quantity

    def __repr__(self) -> str:
        return f"<StockTransaction id={self.id} type={self.type} qty={self.quantity} material_id={self.material_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "material_id": self.material_id,
            "sequence": self.sequence,
            "type": self.type,
            "quantity": _as_number(self.quantity),
            "pre_transaction_stock": _as_number(self.pre_transaction_stock),
            "created_at": to_utc_z(self.created_at),
        }
