# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/retailpos/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations and stock adjustments: any role
- Create/update: admin or manager
- Delete: admin
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError, error_response
from ..services import inventory_service, products_service, reporting_service
from ..validation import json_body, parse_int

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_role("VIEW_PRODUCTS")
def list_products():
    """
    Query params:
    - search: substring of name, SKU or barcode
    - category: category id
    - supplier: supplier id
    - stock_status: "low" | "out"
    """
    try:
        products = products_service.list_products(
            search=request.args.get("search"),
            category_id=request.args.get("category"),
            supplier_id=request.args.get("supplier"),
            stock_status=request.args.get("stock_status"),
        )
    except DomainError as e:
        return error_response(e)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.get("/low-stock")
@require_auth
@require_role("VIEW_INVENTORY")
def low_stock():
    return jsonify({"items": reporting_service.low_stock_products()}), 200


@products_bp.get("/barcode/<barcode>")
@require_auth
@require_role("VIEW_PRODUCTS")
def get_by_barcode(barcode: str):
    try:
        product = products_service.get_product_by_barcode(barcode)
    except DomainError as e:
        return error_response(e)
    return jsonify(product.to_dict()), 200


@products_bp.get("/<product_id>")
@require_auth
@require_role("VIEW_PRODUCTS")
def get_product(product_id: str):
    try:
        product = inventory_service.get_product(product_id)
    except DomainError as e:
        return error_response(e)
    return jsonify(product.to_dict()), 200


@products_bp.post("")
@require_auth
@require_role("CREATE_PRODUCT")
def create_product_route():
    try:
        payload = json_body()
        product = products_service.create_product(payload=payload, user_id=g.current_user.id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Failed to create product"}), 500
    return jsonify(product.to_dict()), 201


@products_bp.put("/<product_id>")
@require_auth
@require_role("UPDATE_PRODUCT")
def update_product_route(product_id: str):
    try:
        payload = json_body()
        product = products_service.update_product(product_id=product_id, payload=payload)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Failed to update product"}), 500
    return jsonify(product.to_dict()), 200


@products_bp.delete("/<product_id>")
@require_auth
@require_role("DELETE_PRODUCT")
def delete_product_route(product_id: str):
    try:
        products_service.delete_product(product_id=product_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Failed to delete product"}), 500
    return jsonify({"ok": True}), 200


@products_bp.post("/<product_id>/adjust-stock")
@require_auth
@require_role("ADJUST_STOCK")
def adjust_stock_route(product_id: str):
    """
    Manual stock correction.

    Body: {"quantity_delta": int (non-zero, signed), "reason": str?}
    """
    try:
        data = json_body()
        delta = parse_int(data.get("quantity_delta"), "quantity_delta")
        movement = inventory_service.adjust_stock(
            product_id=product_id,
            quantity_delta=delta,
            reason=data.get("reason"),
            user_id=g.current_user.id,
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Failed to adjust stock"}), 500

    return jsonify({
        "movement": movement.to_dict(),
        "product": movement.product.to_dict(),
    }), 201
