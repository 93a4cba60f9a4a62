# Overview: Resolves caller-supplied identifiers into an explicit request context.

"""
Identity resolution.

MULTI-TENANT: every tenant-scoped operation receives a RequestContext built
here from the caller's Tenant-ID / User-ID. Services take the context as an
argument; nothing downstream reads identity from ambient state.

The tenant plan is re-read from the database on every resolution, so a plan
change takes effect on the next request.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import AuthenticationError, AuthorizationError
from ..extensions import db
from ..models import Tenant, User
from ..models.tenancy import ROLE_ADMIN


@dataclass(frozen=True)
class RequestContext:
    tenant_id: str
    user_id: str
    user_role: str
    tenant_plan: str

    @property
    def is_admin(self) -> bool:
        return self.user_role == ROLE_ADMIN


def resolve_request_context(tenant_id: str | None, user_id: str | None) -> RequestContext:
    """
    Build a RequestContext from raw identifiers.

    Raises:
        AuthenticationError: identifiers missing or tenant unknown
        AuthorizationError: user unknown or not a member of the tenant
    """
    tenant_id = (tenant_id or "").strip()
    user_id = (user_id or "").strip()

    if not tenant_id or not user_id:
        raise AuthenticationError(
            "Missing Tenant-ID or User-ID headers. All inventory operations must be tenant-scoped."
        )

    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise AuthenticationError("The provided Tenant-ID does not correspond to an active tenant.")

    user = (
        db.session.query(User)
        .filter(User.id == user_id, User.tenant_id == tenant.id)
        .first()
    )
    if user is None:
        raise AuthorizationError("User not found or does not belong to the specified tenant.")

    return RequestContext(
        tenant_id=tenant.id,
        user_id=user.id,
        user_role=user.role,
        tenant_plan=tenant.plan,
    )
