# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/retailpos/routes/sales.py
"""Sales API routes with role enforcement"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError, error_response
from ..services import sales_service
from ..time_utils import parse_iso_datetime
from ..validation import json_body

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_role("CREATE_SALE")
def create_sale_route():
    """
    Complete a sale from a cart.

    Body:
        {
          "customer_id": str?,
          "payment_method": "cash" | "card" | "transfer",
          "discount_amount": "0.00"?,
          "subtotal"/"tax_amount"/"total": str?   (checked, never trusted)
          "lines": [{"product_id", "quantity", "unit_price"?, "total_price"?}]
        }
    Available to: admin, manager, cashier
    """
    try:
        data = json_body()
        sale = sales_service.create_sale(
            user_id=g.current_user.id,
            lines=data.get("lines"),
            payment_method=data.get("payment_method"),
            customer_id=data.get("customer_id"),
            discount_amount=data.get("discount_amount"),
            subtotal=data.get("subtotal"),
            tax_amount=data.get("tax_amount"),
            total=data.get("total"),
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"sale": sale.to_dict(include_items=True)}), 201


@sales_bp.get("")
@require_auth
@require_role("VIEW_SALES")
def list_sales_route():
    """Query params: start, end (ISO-8601), customer_id."""
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start/end must be ISO-8601 datetimes", "kind": "validation_failed"}), 400

    sales = sales_service.list_sales(
        start=start,
        end=end,
        customer_id=request.args.get("customer_id"),
    )
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200


@sales_bp.get("/<sale_id>")
@require_auth
@require_role("VIEW_SALES")
def get_sale_route(sale_id: str):
    try:
        sale = sales_service.get_sale(sale_id)
    except DomainError as e:
        return error_response(e)
    return jsonify({"sale": sale.to_dict(include_items=True)}), 200
