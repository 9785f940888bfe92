# Overview: Flask API routes for customers; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError, error_response
from ..services import customer_service
from ..validation import json_body, parse_positive_int

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_role("VIEW_CUSTOMERS")
def list_customers_route():
    """Query params: search (name, email or phone), limit (default 200)."""
    try:
        limit = parse_positive_int(request.args.get("limit", 200), "limit")
        customers = customer_service.list_customers(search=request.args.get("search"), limit=limit)
    except DomainError as e:
        return error_response(e)
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.get("/<customer_id>")
@require_auth
@require_role("VIEW_CUSTOMERS")
def get_customer_route(customer_id: str):
    try:
        customer = customer_service.get_customer(customer_id)
    except DomainError as e:
        return error_response(e)
    return jsonify(customer.to_dict()), 200


@customers_bp.post("")
@require_auth
@require_role("MANAGE_CUSTOMERS")
def create_customer_route():
    """
    Body: {"name", "email"?, "phone"?, "address"?, "city"?}
    Available to: admin, manager, cashier
    """
    try:
        customer = customer_service.create_customer(payload=json_body())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Failed to create customer"}), 500
    return jsonify(customer.to_dict()), 201


@customers_bp.put("/<customer_id>")
@require_auth
@require_role("MANAGE_CUSTOMERS")
def update_customer_route(customer_id: str):
    try:
        customer = customer_service.update_customer(customer_id=customer_id, payload=json_body())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Failed to update customer"}), 500
    return jsonify(customer.to_dict()), 200


@customers_bp.delete("/<customer_id>")
@require_auth
@require_role("DELETE_CUSTOMER")
def delete_customer_route(customer_id: str):
    try:
        customer_service.delete_customer(customer_id=customer_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Failed to delete customer"}), 500
    return jsonify({"ok": True}), 200
