# Overview: Flask API routes for inventory movements; read-only audit trail.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError, error_response
from ..services import inventory_service

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/movements")
@require_auth
@require_role("VIEW_INVENTORY")
def list_movements():
    """Query params: product_id (optional), limit (default 200, max 1000)."""
    limit = min(max(request.args.get("limit", default=200, type=int), 1), 1000)
    try:
        movements = inventory_service.list_stock_movements(
            product_id=request.args.get("product_id"),
            limit=limit,
        )
    except DomainError as e:
        return error_response(e)
    return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)}), 200
