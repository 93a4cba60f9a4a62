# Overview: Flask API routes for materials and stock movements; parses input and returns JSON responses.

# backend/stockledger/routes/materials.py
"""
Material and stock movement routes.

MULTI-TENANT: every route runs under @require_tenant_context and passes
g.request_context to the services explicitly.

SECURITY:
- Create / delete material: ADMIN only (enforced by the policy gate)
- Create transaction, read routes: any member of the tenant
- Missing, foreign and soft-deleted materials all answer 404
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_tenant_context
from ..errors import InternalError, ServiceError, json_error
from ..models import Material, StockTransaction
from ..services import ledger_service, material_service
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_transaction,
    validate_payload,
)


materials_bp = Blueprint("materials", __name__, url_prefix="/api/materials")

MATERIAL_POLICY = ModelValidationPolicy(
    writable_fields={"name", "unit"},
    required_on_create={"name", "unit"},
)

TRANSACTION_POLICY = ModelValidationPolicy(
    writable_fields={"type", "quantity"},
    required_on_create={"type", "quantity"},
    quantity_fields={"quantity"},
)


@materials_bp.post("")
@require_tenant_context
def create_material_route():
    """
    Create a material with zero stock.

    ADMIN only. FREE tenants are capped at 5 non-deleted materials.
    """
    payload = request.get_json(silent=True)

    try:
        patch = validate_payload(model=Material, payload=payload, policy=MATERIAL_POLICY, partial=False)
        material = material_service.create_material(
            g.request_context,
            name=patch["name"],
            unit=patch["unit"],
        )
    except ServiceError as e:
        return json_error(e)

    return jsonify(material.to_dict()), 201


@materials_bp.get("")
@require_tenant_context
def list_materials_route():
    """
    List the tenant's non-deleted materials, newest first.

    Query params:
    - name: case-insensitive substring filter
    - unit: case-insensitive exact filter
    """
    try:
        materials = material_service.list_materials(
            g.request_context,
            name=request.args.get("name"),
            unit=request.args.get("unit"),
        )
    except ServiceError as e:
        return json_error(e)

    return jsonify({
        "items": [m.to_dict() for m in materials],
        "count": len(materials),
    })


@materials_bp.get("/<material_id>")
@require_tenant_context
def get_material_route(material_id: str):
    """Material detail with its 10 most recent transactions."""
    try:
        return jsonify(material_service.get_material(g.request_context, material_id))
    except ServiceError as e:
        return json_error(e)


@materials_bp.delete("/<material_id>")
@require_tenant_context
def delete_material_route(material_id: str):
    """Soft delete. ADMIN only. History is kept."""
    try:
        material = material_service.soft_delete_material(g.request_context, material_id)
    except ServiceError as e:
        return json_error(e)

    return jsonify({
        "message": f"Material '{material.name}' successfully soft-deleted.",
        "id": material.id,
        "deleted_at": material.to_dict()["deleted_at"],
    })


@materials_bp.post("/<material_id>/transactions")
@require_tenant_context
def create_transaction_route(material_id: str):
    """
    Apply an IN or OUT movement.

    Body: {"type": "IN" | "OUT", "quantity": <number > 0>}
    The stock update and the transaction record commit together.
    """
    payload = request.get_json(silent=True)

    try:
        patch = validate_payload(
            model=StockTransaction,
            payload=payload,
            policy=TRANSACTION_POLICY,
            partial=False,
        )
        enforce_rules_transaction(patch)
        result = ledger_service.apply_movement(
            g.request_context,
            material_id,
            patch["type"],
            patch["quantity"],
        )
    except ServiceError as e:
        return json_error(e)
    except Exception:
        current_app.logger.exception("Failed to apply stock movement")
        return json_error(InternalError())

    return jsonify(result.to_dict()), 201


@materials_bp.get("/<material_id>/history")
@require_tenant_context
def material_history_route(material_id: str):
    """
    Full ledger of a material, soft-deleted or not, replayed from zero.
    """
    try:
        return jsonify(ledger_service.get_material_history(g.request_context, material_id))
    except ServiceError as e:
        return json_error(e)
