"""
Tenant Service: provisioning of tenants and their users.

WHY: Every tenant starts with exactly one ADMIN user, created in the same
commit as the tenant, so a tenant is never reachable without someone able
to manage its materials.

SECURITY INVARIANTS:
1. Tenant names are globally unique
2. User emails are globally unique (one identity belongs to one tenant)
3. Users never move between tenants; roles are fixed at creation

USAGE:
    from stockledger.services.tenant_service import create_tenant

    tenant, admin = create_tenant(name="Acme", plan="FREE",
                                  admin_email="ops@acme.test", admin_name="Ops Lead")
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Tenant, User
from ..models.tenancy import ALL_PLANS, ALL_ROLES, PLAN_FREE, ROLE_ADMIN, ROLE_USER


def _ensure_tenant_name_free(name: str) -> None:
    if db.session.query(Tenant.id).filter(Tenant.name == name).first():
        raise ConflictError("The tenant name already exists. Please choose a different name.")


def _ensure_email_free(email: str) -> None:
    if db.session.query(User.id).filter(User.email == email).first():
        raise ConflictError("The email address provided is already in use globally. Please use a unique email.")


def _conflict_from_integrity(exc: IntegrityError) -> ConflictError:
    # Lost a race against a concurrent create; the message names the column
    message = str(exc.orig).lower()
    if "email" in message:
        return ConflictError("The email address provided is already in use globally. Please use a unique email.")
    if "name" in message:
        return ConflictError("The tenant name already exists. Please choose a different name.")
    return ConflictError("A conflict occurred.")


def create_tenant(*, name: str, admin_email: str, admin_name: str, plan: str = PLAN_FREE) -> tuple[Tenant, User]:
    """
    Create a tenant and its initial ADMIN user in one commit.

    Raises:
        ValidationError: unknown plan
        ConflictError: tenant name or admin email already taken
    """
    if plan not in ALL_PLANS:
        raise ValidationError(details=[{"field": "plan", "message": f"plan must be one of: {', '.join(ALL_PLANS)}"}])

    _ensure_tenant_name_free(name)
    _ensure_email_free(admin_email)

    tenant = Tenant(name=name, plan=plan)
    db.session.add(tenant)
    db.session.flush()

    admin = User(tenant_id=tenant.id, email=admin_email, name=admin_name, role=ROLE_ADMIN)
    db.session.add(admin)

    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise _conflict_from_integrity(exc) from exc

    current_app.logger.info("Created tenant %s (%s plan) with admin %s", tenant.id, tenant.plan, admin.id)
    return tenant, admin


def create_user(*, tenant_id: str, email: str, name: str, role: str = ROLE_USER) -> User:
    """Add a user to an existing tenant."""
    if role not in ALL_ROLES:
        raise ValidationError(details=[{"field": "role", "message": f"role must be one of: {', '.join(ALL_ROLES)}"}])

    get_tenant(tenant_id)
    _ensure_email_free(email)

    user = User(tenant_id=tenant_id, email=email, name=name, role=role)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise _conflict_from_integrity(exc) from exc

    current_app.logger.info("Created %s user %s in tenant %s", role, user.id, tenant_id)
    return user


def get_tenant(tenant_id: str) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant not found.", entity="tenant", entity_id=tenant_id)
    return tenant


def list_tenants() -> list[Tenant]:
    return db.session.query(Tenant).order_by(Tenant.created_at.asc()).all()


def set_tenant_plan(*, tenant_id: str, plan: str) -> Tenant:
    """
    Change a tenant's plan. Takes effect on the caller's next request.

    Downgrading to FREE does not remove materials above the cap; it only
    blocks further creation until the tenant is back under it.
    """
    if plan not in ALL_PLANS:
        raise ValidationError(details=[{"field": "plan", "message": f"plan must be one of: {', '.join(ALL_PLANS)}"}])

    tenant = get_tenant(tenant_id)
    previous = tenant.plan
    tenant.plan = plan
    db.session.commit()

    current_app.logger.info("Tenant %s plan changed %s -> %s", tenant_id, previous, plan)
    return tenant
