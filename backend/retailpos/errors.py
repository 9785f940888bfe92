# Overview: Domain error taxonomy shared by services and routes.

"""
Every error raised by the service layer carries:
- kind: machine-readable code returned to API clients
- status_code: HTTP status the routes translate it to
- details: optional structured context (field errors, offending lines)

Services raise; routes translate via error_response(). Nothing in the
service layer catches these to hide them.
"""

from __future__ import annotations

from flask import jsonify


class DomainError(Exception):
    """Base class for business-rule failures surfaced to callers."""
    kind = "error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message, "kind": self.kind}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(DomainError):
    """Referenced product/sale/order/customer/supplier/category does not exist."""
    kind = "not_found"
    status_code = 404


class ValidationFailedError(DomainError):
    """Malformed input or a monetary reconciliation mismatch."""
    kind = "validation_failed"
    status_code = 400


class InsufficientStockError(DomainError):
    """A tracked product's quantity would go negative."""
    kind = "insufficient_stock"
    status_code = 409


class ConflictError(DomainError):
    """Uniqueness violation (SKU, invoice number, username, slug)."""
    kind = "conflict"
    status_code = 409


class InvalidStateTransitionError(DomainError):
    """Forbidden lifecycle transition, e.g. receiving a received order."""
    kind = "invalid_state_transition"
    status_code = 409


class StoreUnavailableError(DomainError):
    """The persistent store failed; the transaction was rolled back."""
    kind = "store_unavailable"
    status_code = 503


def error_response(exc: DomainError):
    return jsonify(exc.to_dict()), exc.status_code
