# Overview: Flask API routes for analytics; parses input and returns JSON responses.

"""
Analytics Routes

Read-only tenant summary over committed ledger data. PRO plan only; the
plan is checked on every request.
"""

from flask import Blueprint, g, jsonify

from ..decorators import require_tenant_context
from ..errors import ServiceError, json_error
from ..services import reporting_service


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("/summary")
@require_tenant_context
def analytics_summary_route():
    try:
        return jsonify(reporting_service.analytics_summary(g.request_context))
    except ServiceError as e:
        return json_error(e)
