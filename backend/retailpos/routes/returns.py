# Overview: Flask API routes for returns; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError, error_response
from ..services import return_service
from ..validation import json_body

returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


@returns_bp.post("")
@require_auth
@require_role("CREATE_RETURN")
def create_return_route():
    """
    Body: {"sale_id", "product_id", "quantity", "reason", "refund_amount"}
    Available to: admin, manager, cashier
    """
    try:
        data = json_body()
        ret = return_service.create_return(
            sale_id=data.get("sale_id"),
            product_id=data.get("product_id"),
            quantity=data.get("quantity"),
            reason=data.get("reason"),
            refund_amount=data.get("refund_amount"),
            user_id=g.current_user.id,
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create return")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"return": ret.to_dict()}), 201


@returns_bp.get("")
@require_auth
@require_role("VIEW_RETURNS")
def list_returns_route():
    returns = return_service.list_returns(sale_id=request.args.get("sale_id"))
    return jsonify({"items": [r.to_dict() for r in returns], "count": len(returns)}), 200
