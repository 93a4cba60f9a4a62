# Overview: Append-only security audit trail for denials and cross-tenant probes.

from __future__ import annotations

from flask import current_app, has_request_context, request

from ..errors import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    PlanLimitExceededError,
    PlanRestrictedError,
    ServiceError,
)
from ..extensions import db
from ..models import Material, SecurityEvent
from ..time_utils import utcnow


def _clip(field: str, value: str | None) -> str | None:
    """Truncate to the String(n) length of the SecurityEvent column."""
    if value is None:
        return None
    length = SecurityEvent.__table__.c[field].type.length
    return value[:length] if length else value


def log_security_event(
    *,
    event_type: str,
    success: bool,
    tenant_id: str | None = None,
    user_id: str | None = None,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    Commits on its own: callers must not be inside an open unit of work
    (roll back first).

    event_type examples:
    - AUTHENTICATION_FAILED
    - AUTHORIZATION_FAILED
    - POLICY_DENIED
    - CROSS_TENANT_ACCESS_DENIED
    """
    ip_address = None
    user_agent = None
    if has_request_context():
        ip_address = request.remote_addr
        user_agent = request.headers.get("User-Agent")
        if resource is None:
            resource = request.path

    # Identifiers, path and User-Agent come straight from the request
    event = SecurityEvent(
        tenant_id=_clip("tenant_id", tenant_id),
        user_id=_clip("user_id", user_id),
        event_type=_clip("event_type", event_type),
        resource=_clip("resource", resource),
        action=_clip("action", action),
        success=success,
        reason=reason,
        ip_address=_clip("ip_address", ip_address),
        user_agent=_clip("user_agent", user_agent),
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()

    current_app.logger.warning(
        "security event %s tenant=%s user=%s action=%s: %s",
        event_type, tenant_id, user_id, action, reason,
    )
    return event


def _material_owned_elsewhere(material_id: str, tenant_id: str) -> bool:
    return (
        db.session.query(Material.id)
        .filter(Material.id == material_id, Material.tenant_id != tenant_id)
        .first()
        is not None
    )


def audit_denial(ctx, exc: ServiceError, *, action: str) -> None:
    """
    Record a denied operation. No-op for errors that are not security
    relevant (validation, insufficient stock, plain not-found).
    """
    tenant_id = getattr(ctx, "tenant_id", None)
    user_id = getattr(ctx, "user_id", None)

    if isinstance(exc, (PlanRestrictedError, PlanLimitExceededError, AuthorizationError)):
        event_type = "POLICY_DENIED"
    elif isinstance(exc, AuthenticationError):
        event_type = "AUTHENTICATION_FAILED"
    elif (
        isinstance(exc, NotFoundError)
        and exc.entity == "material"
        and tenant_id
        and _material_owned_elsewhere(exc.entity_id, tenant_id)
    ):
        # The caller only ever sees NOT_FOUND.
        event_type = "CROSS_TENANT_ACCESS_DENIED"
    else:
        return

    log_security_event(
        event_type=event_type,
        success=False,
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        reason=exc.message,
    )
