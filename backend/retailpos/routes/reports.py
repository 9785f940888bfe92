# Overview: Flask API routes for dashboard reports; read-only projections.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError, error_response
from ..services import reporting_service

reports_bp = Blueprint("reports", __name__, url_prefix="/api/dashboard")


@reports_bp.get("/metrics")
@require_auth
@require_role("VIEW_REPORTS")
def metrics():
    return jsonify(reporting_service.dashboard_metrics()), 200


@reports_bp.get("/top-products")
@require_auth
@require_role("VIEW_REPORTS")
def top_products():
    limit = request.args.get("limit", default=5, type=int)
    try:
        items = reporting_service.top_products(limit)
    except DomainError as e:
        return error_response(e)
    return jsonify({"items": items}), 200


@reports_bp.get("/sales-data")
@require_auth
@require_role("VIEW_REPORTS")
def sales_data():
    days = request.args.get("days", default=7, type=int)
    try:
        items = reporting_service.sales_data(days)
    except DomainError as e:
        return error_response(e)
    return jsonify({"items": items}), 200
