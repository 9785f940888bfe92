# Overview: Flask API routes for categories and suppliers; parses input and returns JSON responses.
"""
Category and supplier routes.

SECURITY: All routes require authentication.
- Read: any role
- Create/update: admin or manager
- Delete: admin, and only when nothing references the row
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError, error_response
from ..services import products_service
from ..validation import json_body

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")
suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


# -- CATEGORIES --

@categories_bp.get("")
@require_auth
@require_role("VIEW_CATALOG")
def list_categories_route():
    categories = products_service.list_categories()
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)}), 200


@categories_bp.get("/<category_id>")
@require_auth
@require_role("VIEW_CATALOG")
def get_category_route(category_id: str):
    try:
        category = products_service.get_category(category_id)
    except DomainError as e:
        return error_response(e)
    return jsonify(category.to_dict()), 200


@categories_bp.post("")
@require_auth
@require_role("MANAGE_CATALOG")
def create_category_route():
    """Body: {"name", "slug"?, "description"?}; slug defaults to the slugified name."""
    try:
        data = json_body()
        category = products_service.create_category(
            name=data.get("name"),
            description=data.get("description"),
            slug=data.get("slug"),
        )
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Failed to create category"}), 500
    return jsonify(category.to_dict()), 201


@categories_bp.put("/<category_id>")
@require_auth
@require_role("MANAGE_CATALOG")
def update_category_route(category_id: str):
    try:
        category = products_service.update_category(category_id=category_id, payload=json_body())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Failed to update category"}), 500
    return jsonify(category.to_dict()), 200


@categories_bp.delete("/<category_id>")
@require_auth
@require_role("DELETE_CATALOG")
def delete_category_route(category_id: str):
    try:
        products_service.delete_category(category_id=category_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Failed to delete category"}), 500
    return jsonify({"ok": True}), 200


# -- SUPPLIERS --

@suppliers_bp.get("")
@require_auth
@require_role("VIEW_CATALOG")
def list_suppliers_route():
    suppliers = products_service.list_suppliers(search=request.args.get("search"))
    return jsonify({"items": [s.to_dict() for s in suppliers], "count": len(suppliers)}), 200


@suppliers_bp.get("/<supplier_id>")
@require_auth
@require_role("VIEW_CATALOG")
def get_supplier_route(supplier_id: str):
    try:
        supplier = products_service.get_supplier(supplier_id)
    except DomainError as e:
        return error_response(e)
    return jsonify(supplier.to_dict()), 200


@suppliers_bp.post("")
@require_auth
@require_role("MANAGE_CATALOG")
def create_supplier_route():
    """Body: {"name", "contact_person"?, "email"?, "phone"?, "address"?, "city"?, "country"?}"""
    try:
        data = json_body()
        fields = {k: v for k, v in data.items() if k != "name"}
        supplier = products_service.create_supplier(name=data.get("name"), **fields)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Failed to create supplier"}), 500
    return jsonify(supplier.to_dict()), 201


@suppliers_bp.put("/<supplier_id>")
@require_auth
@require_role("MANAGE_CATALOG")
def update_supplier_route(supplier_id: str):
    try:
        supplier = products_service.update_supplier(supplier_id=supplier_id, payload=json_body())
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Failed to update supplier"}), 500
    return jsonify(supplier.to_dict()), 200


@suppliers_bp.delete("/<supplier_id>")
@require_auth
@require_role("DELETE_CATALOG")
def delete_supplier_route(supplier_id: str):
    try:
        products_service.delete_supplier(supplier_id=supplier_id)
    except DomainError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete supplier")
        return jsonify({"error": "Failed to delete supplier"}), 500
    return jsonify({"ok": True}), 200
