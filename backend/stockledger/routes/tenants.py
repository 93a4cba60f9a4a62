# Overview: Flask API routes for tenant provisioning; parses input and returns JSON responses.

"""
Tenant setup route.

No identity headers required: this is how a caller obtains a Tenant-ID and
the User-ID of the tenant's first ADMIN.
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import ServiceError, ValidationError, json_error
from ..models import Tenant, User
from ..models.tenancy import PLAN_FREE
from ..services import tenant_service
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_tenant,
    enforce_rules_user,
    validate_payload,
)


tenants_bp = Blueprint("tenants", __name__, url_prefix="/api/tenants")

TENANT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "plan"},
    required_on_create={"name"},
    min_lengths={"name": 3},
)

ADMIN_POLICY = ModelValidationPolicy(
    writable_fields={"email", "name"},
    required_on_create={"email", "name"},
    min_lengths={"name": 3},
)


def _prefixed(exc: ValidationError, prefix: str) -> ValidationError:
    details = [
        {"field": f"{prefix}{d['field']}", "message": d["message"]}
        for d in (exc.details or [])
    ]
    return ValidationError(exc.message, details=details)


@tenants_bp.post("")
def create_tenant_route():
    """
    Create a tenant and its initial ADMIN user.

    Body: {"name": str, "plan": "FREE" | "PRO" (default FREE),
           "admin": {"email": str, "name": str}}
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return json_error(ValidationError("Invalid JSON payload"))

    tenant_fields = {k: v for k, v in payload.items() if k != "admin"}
    admin_payload = payload.get("admin")

    try:
        if "admin" not in payload:
            raise ValidationError("Invalid request payload", details=[{"field": "admin", "message": "admin is required"}])
        if not isinstance(admin_payload, dict):
            raise ValidationError("Invalid request payload", details=[{"field": "admin", "message": "admin must be an object"}])

        tenant_patch = validate_payload(model=Tenant, payload=tenant_fields, policy=TENANT_POLICY, partial=False)
        enforce_rules_tenant(tenant_patch)

        try:
            admin_patch = validate_payload(model=User, payload=admin_payload, policy=ADMIN_POLICY, partial=False)
            enforce_rules_user(admin_patch)
        except ValidationError as e:
            raise _prefixed(e, "admin.")

        tenant, admin = tenant_service.create_tenant(
            name=tenant_patch["name"],
            plan=tenant_patch.get("plan") or PLAN_FREE,
            admin_email=admin_patch["email"],
            admin_name=admin_patch["name"],
        )
    except ServiceError as e:
        return json_error(e)

    headers = current_app.config
    return jsonify({
        "message": "Tenant and initial Admin user created successfully. Use these IDs in subsequent requests.",
        "tenant_id": tenant.id,
        "admin_user_id": admin.id,
        "tenant": {"name": tenant.name, "plan": tenant.plan},
        "instructions": {
            "header1": f"{headers['TENANT_HEADER']}: {tenant.id}",
            "header2": f"{headers['USER_HEADER']}: {admin.id}",
        },
    }), 201
