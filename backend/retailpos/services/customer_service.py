# backend/retailpos/services/customer_service.py
"""
Customer Service

Customer master data. loyalty_points and total_spent are aggregates owned by
sales_service.create_sale() and are not writable here.
"""
from __future__ import annotations

import logging

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Customer, Sale
from ..validation import ModelValidationPolicy, enforce_rules_contact, validate_payload
from .concurrency import atomic

logger = logging.getLogger(__name__)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "city"},
    required_on_create={"name"},
)


def list_customers(*, search: str | None = None, limit: int = 200) -> list[Customer]:
    q = db.session.query(Customer)
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(
            Customer.name.ilike(term),
            Customer.email.ilike(term),
            Customer.phone.ilike(term),
        ))
    return q.order_by(Customer.name.asc(), Customer.id.asc()).limit(limit).all()


def get_customer(customer_id: str) -> Customer:
    customer = db.session.get(Customer, customer_id) if customer_id else None
    if customer is None:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def create_customer(*, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    enforce_rules_contact(patch)

    with atomic():
        customer = Customer(**patch)
        db.session.add(customer)

    logger.info("Created customer %s", customer.id)
    return customer


def update_customer(*, customer_id: str, payload: dict) -> Customer:
    """Partial update of contact fields; a concurrent sale surfaces as Conflict."""
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    enforce_rules_contact(patch)

    with atomic():
        customer = get_customer(customer_id)
        for k, v in patch.items():
            setattr(customer, k, v)

    return customer


def delete_customer(*, customer_id: str) -> None:
    """Customers with sales keep their history and cannot be removed."""
    with atomic():
        customer = get_customer(customer_id)
        if db.session.query(Sale.id).filter_by(customer_id=customer.id).first() is not None:
            raise ConflictError(
                "Customer has sales history",
                details={"customer_id": customer.id},
            )
        db.session.delete(customer)

    logger.info("Deleted customer %s", customer_id)
