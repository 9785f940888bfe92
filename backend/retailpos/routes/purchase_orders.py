# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

# backend/retailpos/routes/purchase_orders.py
"""
Purchase order routes.

SECURITY: admin and manager only.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError, error_response
from ..services import purchase_order_service
from ..validation import json_body

purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_orders_bp.post("")
@require_auth
@require_role("MANAGE_PURCHASE_ORDERS")
def create_purchase_order_route():
    """Body: {"supplier_id", "items": [{"product_id", "quantity", "unit_cost"}]}"""
    try:
        data = json_body()
        order = purchase_order_service.create_purchase_order(
            supplier_id=data.get("supplier_id"),
            items=data.get("items"),
            user_id=g.current_user.id,
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"purchase_order": order.to_dict(include_items=True)}), 201


@purchase_orders_bp.get("")
@require_auth
@require_role("VIEW_PURCHASE_ORDERS")
def list_purchase_orders_route():
    try:
        orders = purchase_order_service.list_purchase_orders(
            status=request.args.get("status"),
            supplier_id=request.args.get("supplier_id"),
        )
    except DomainError as e:
        return error_response(e)
    return jsonify({"items": [o.to_dict() for o in orders], "count": len(orders)}), 200


@purchase_orders_bp.get("/<order_id>")
@require_auth
@require_role("VIEW_PURCHASE_ORDERS")
def get_purchase_order_route(order_id: str):
    try:
        order = purchase_order_service.get_purchase_order(order_id)
    except DomainError as e:
        return error_response(e)
    return jsonify({"purchase_order": order.to_dict(include_items=True)}), 200


@purchase_orders_bp.post("/<order_id>/receive")
@require_auth
@require_role("RECEIVE_PURCHASE_ORDER")
def receive_purchase_order_route(order_id: str):
    try:
        order = purchase_order_service.receive_purchase_order(
            order_id=order_id,
            user_id=g.current_user.id,
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to receive purchase order")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"purchase_order": order.to_dict(include_items=True)}), 200


@purchase_orders_bp.post("/<order_id>/cancel")
@require_auth
@require_role("MANAGE_PURCHASE_ORDERS")
def cancel_purchase_order_route(order_id: str):
    try:
        order = purchase_order_service.cancel_purchase_order(order_id=order_id)
    except DomainError as e:
        return error_response(e)
    return jsonify({"purchase_order": order.to_dict()}), 200
