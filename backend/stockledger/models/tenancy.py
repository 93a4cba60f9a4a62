from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


PLAN_FREE = "FREE"
PLAN_PRO = "PRO"
ALL_PLANS = (PLAN_FREE, PLAN_PRO)

ROLE_ADMIN = "ADMIN"
ROLE_USER = "USER"
ALL_ROLES = (ROLE_ADMIN, ROLE_USER)


def new_id() -> str:
    """Opaque primary key; not guessable across tenants."""
    return str(uuid.uuid4())


class Tenant(db.Model):
    """
    Multi-tenant root: every material, transaction and user belongs to
    exactly one tenant.

    DESIGN:
    - Tenant names are globally unique
    - plan gates quotas (FREE material cap) and endpoints (PRO analytics)
    - plan is mutable; tenants are never deleted
    """
    __tablename__ = "tenants"
    __table_args__ = (
        db.CheckConstraint("plan IN ('FREE', 'PRO')", name="ck_tenants_plan"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(100), nullable=False, unique=True)
    plan = db.Column(db.String(8), nullable=False, default=PLAN_FREE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    users = db.relationship("User", back_populates="tenant", lazy=True)

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} name={self.name!r} plan={self.plan}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "plan": self.plan,
            "created_at": to_utc_z(self.created_at),
        }


class User(db.Model):
    """
    A user belongs to exactly one tenant. Immutable after creation.

    Email is globally unique (one identity, one tenant).
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("role IN ('ADMIN', 'USER')", name="ck_users_role"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    tenant_id = db.Column(db.String(36), db.ForeignKey("tenants.id"), nullable=False, index=True)

    email = db.Column(db.String(255), nullable=False, unique=True)
    name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(8), nullable=False, default=ROLE_USER)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    tenant = db.relationship("Tenant", back_populates="users")

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
        }
