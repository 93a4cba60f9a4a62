# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, g, request

from .errors import AuthenticationError, AuthorizationError, json_error
from .services import identity_service, security_service


def require_tenant_context(f):
    """
    Resolve the caller's identity and establish tenant context.

    MULTI-TENANT: Sets g.request_context to a RequestContext. Routes pass it
    explicitly to every service call; services never read g.

    SECURITY: Returns 401 if:
    - Tenant-ID or User-ID header missing
    - Tenant-ID unknown
    Returns 403 if:
    - User-ID unknown or not a member of that tenant
    Failures are recorded as security events.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        tenant_id = request.headers.get(current_app.config["TENANT_HEADER"])
        user_id = request.headers.get(current_app.config["USER_HEADER"])

        try:
            context = identity_service.resolve_request_context(tenant_id, user_id)
        except (AuthenticationError, AuthorizationError) as e:
            security_service.log_security_event(
                event_type="AUTHENTICATION_FAILED" if isinstance(e, AuthenticationError) else "AUTHORIZATION_FAILED",
                success=False,
                tenant_id=tenant_id,
                user_id=user_id,
                action=request.method,
                reason=e.message,
            )
            return json_error(e)

        g.request_context = context
        return f(*args, **kwargs)

    return decorated_function
