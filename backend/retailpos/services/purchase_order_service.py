# Overview: Service-layer operations for purchase orders; receipt restocks through the inventory ledger.

"""
Purchase Order Service

WHY: Restocking is document-first. A purchase order records what was ordered
from a supplier; receiving it is the only way ordered goods reach stock.

LIFECYCLE:
1. PENDING: created with one or more lines
2. RECEIVED: every line posted to the ledger as a 'purchase' movement and
   the product's cost_price updated to the line's unit_cost
3. CANCELLED: closed without any stock effect

RECEIVED and CANCELLED are terminal. Receiving twice is rejected, never
double-counted.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ..errors import InvalidStateTransitionError, NotFoundError, ValidationFailedError
from ..extensions import db
from ..models import PurchaseOrder, PurchaseOrderItem, Supplier
from ..models.base import quantize_money
from ..models.inventory import MOVEMENT_PURCHASE
from ..models.purchasing import (
    PO_STATUS_CANCELLED,
    PO_STATUS_PENDING,
    PO_STATUS_RECEIVED,
    PO_STATUSES,
)
from ..time_utils import utcnow
from ..validation import parse_money, parse_positive_int
from .concurrency import atomic, lock_for_update
from .document_service import PURCHASE_ORDER, next_document_number
from .inventory_service import apply_stock_delta, get_product

logger = logging.getLogger(__name__)


def _parse_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationFailedError("A purchase order needs at least one item", details={"field": "items"})

    items = []
    errors = {}
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            errors[str(index)] = "item must be an object"
            continue
        try:
            if not raw.get("product_id"):
                raise ValidationFailedError("product_id is required")
            items.append({
                "product_id": str(raw["product_id"]),
                "quantity": parse_positive_int(raw.get("quantity"), "quantity"),
                "unit_cost": parse_money(raw.get("unit_cost"), "unit_cost"),
            })
        except ValidationFailedError as exc:
            errors[str(index)] = exc.message

    if errors:
        raise ValidationFailedError("Invalid purchase order items", details={"items": errors})
    return items


def create_purchase_order(*, supplier_id: str, items, user_id: str) -> PurchaseOrder:
    """
    Create a PENDING purchase order.

    total_amount = SUM(quantity * unit_cost) over the lines.

    Raises:
        ValidationFailedError: empty or malformed items
        NotFoundError: unknown supplier or product
    """
    parsed = _parse_items(items)

    with atomic():
        supplier = db.session.get(Supplier, supplier_id) if supplier_id else None
        if supplier is None:
            raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})

        for item in parsed:
            get_product(item["product_id"])

        order = PurchaseOrder(
            order_number=next_document_number(document_type=PURCHASE_ORDER, prefix="PO"),
            supplier_id=supplier.id,
            status=PO_STATUS_PENDING,
            total_amount=Decimal("0.00"),
            user_id=user_id,
        )
        db.session.add(order)
        db.session.flush()

        total = Decimal("0.00")
        for position, item in enumerate(parsed, start=1):
            line_total = quantize_money(item["unit_cost"] * item["quantity"])
            total += line_total
            db.session.add(PurchaseOrderItem(
                purchase_order_id=order.id,
                product_id=item["product_id"],
                position=position,
                quantity=item["quantity"],
                unit_cost=item["unit_cost"],
                total_cost=line_total,
            ))
        order.total_amount = quantize_money(total)

    logger.info("Purchase order %s created for supplier %s", order.order_number, supplier.name)
    return order


def get_purchase_order(order_id: str) -> PurchaseOrder:
    order = db.session.get(PurchaseOrder, order_id) if order_id else None
    if order is None:
        raise NotFoundError("Purchase order not found", details={"purchase_order_id": order_id})
    return order


def list_purchase_orders(*, status: str | None = None, supplier_id: str | None = None) -> list[PurchaseOrder]:
    q = db.session.query(PurchaseOrder)
    if status:
        if status not in PO_STATUSES:
            raise ValidationFailedError(
                f"status must be one of: {', '.join(PO_STATUSES)}",
                details={"field": "status"},
            )
        q = q.filter(PurchaseOrder.status == status)
    if supplier_id:
        q = q.filter(PurchaseOrder.supplier_id == supplier_id)
    return q.order_by(PurchaseOrder.created_at.desc()).all()


def _locked_pending_order(order_id: str, action: str) -> PurchaseOrder:
    order = lock_for_update(
        db.session.query(PurchaseOrder).filter_by(id=order_id)
    ).first() if order_id else None
    if order is None:
        raise NotFoundError("Purchase order not found", details={"purchase_order_id": order_id})
    if order.status != PO_STATUS_PENDING:
        raise InvalidStateTransitionError(
            f"Cannot {action} a purchase order in status {order.status}",
            details={"purchase_order_id": order.id, "status": order.status},
        )
    return order


def receive_purchase_order(*, order_id: str, user_id: str) -> PurchaseOrder:
    """
    Receive a PENDING order: restock every line and mark it RECEIVED.

    All lines, the cost updates and the status change commit together.
    """
    with atomic():
        order = _locked_pending_order(order_id, "receive")

        for item in order.items:
            apply_stock_delta(
                product_id=item.product_id,
                delta=item.quantity,
                movement_type=MOVEMENT_PURCHASE,
                reason=f"Purchase Order {order.order_number}",
                reference=order.id,
                user_id=user_id,
            )
            item.product.cost_price = item.unit_cost

        order.status = PO_STATUS_RECEIVED
        order.received_at = utcnow()

    logger.info("Purchase order %s received (%d line(s))", order.order_number, len(order.items))
    return order


def cancel_purchase_order(*, order_id: str) -> PurchaseOrder:
    with atomic():
        order = _locked_pending_order(order_id, "cancel")
        order.status = PO_STATUS_CANCELLED

    logger.info("Purchase order %s cancelled", order.order_number)
    return order
