"""
Sales Service - completes a cart into a durable Sale in one transaction.

WHY: A sale touches the sale header, N line items, N stock balances, N
audit rows and the customer's aggregates. Either all of it commits or none
of it does; a missing product on line k must not leave lines 1..k-1 behind.

TOTALS: the server derives every monetary figure from the lines and the
configured tax rate. Client-supplied figures are only checked against the
derived ones, never stored as-is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR

from flask import current_app

from ..errors import InsufficientStockError, NotFoundError, ValidationFailedError
from ..extensions import db
from ..models import Customer, Product, Sale, SaleItem
from ..models.base import quantize_money
from ..models.inventory import MOVEMENT_SALE
from ..models.sales import PAYMENT_METHODS, SALE_STATUS_COMPLETED
from ..validation import parse_money, parse_positive_int
from .concurrency import atomic, lock_for_update
from .document_service import INVOICE, next_document_number
from .inventory_service import apply_stock_delta, get_product

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    unit_price: Decimal | None = None
    total_price: Decimal | None = None


@dataclass(frozen=True)
class SaleTotals:
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal


def parse_cart_lines(raw_lines) -> list[CartLine]:
    """Validate raw JSON line dicts into CartLines (no database access)."""
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ValidationFailedError("A sale needs at least one line", details={"field": "lines"})

    lines = []
    errors = {}
    for index, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            errors[str(index)] = "line must be an object"
            continue
        try:
            product_id = raw.get("product_id")
            if not product_id:
                raise ValidationFailedError("product_id is required")
            quantity = parse_positive_int(raw.get("quantity"), "quantity")
            unit_price = raw.get("unit_price")
            total_price = raw.get("total_price")
            lines.append(CartLine(
                product_id=str(product_id),
                quantity=quantity,
                unit_price=parse_money(unit_price, "unit_price") if unit_price is not None else None,
                total_price=parse_money(total_price, "total_price") if total_price is not None else None,
            ))
        except ValidationFailedError as exc:
            errors[str(index)] = exc.message

    if errors:
        raise ValidationFailedError("Invalid sale lines", details={"lines": errors})
    return lines


def compute_totals(line_totals: list[Decimal], *, tax_rate: Decimal, discount_amount: Decimal) -> SaleTotals:
    """
    subtotal = SUM(line totals)
    tax      = subtotal * tax_rate, rounded half-up to the cent
    total    = subtotal + tax - discount
    """
    subtotal = quantize_money(sum(line_totals, Decimal("0")))
    tax_amount = quantize_money(subtotal * tax_rate)
    discount_amount = quantize_money(discount_amount)

    if discount_amount > subtotal + tax_amount:
        raise ValidationFailedError(
            "discount_amount cannot exceed subtotal plus tax",
            details={"field": "discount_amount"},
        )

    total = subtotal + tax_amount - discount_amount
    return SaleTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount_amount,
        total=quantize_money(total),
    )


def loyalty_points_for(total: Decimal) -> int:
    """One point (times the configured rate) per whole currency unit."""
    per_unit = current_app.config.get("LOYALTY_POINTS_PER_UNIT", 1)
    return int(total.to_integral_value(rounding=ROUND_FLOOR)) * per_unit


def _reconcile(supplied: dict, totals: SaleTotals) -> None:
    mismatches = {}
    for field in ("subtotal", "tax_amount", "total"):
        value = supplied.get(field)
        if value is None:
            continue
        amount = parse_money(value, field)
        expected = getattr(totals, field)
        if amount != expected:
            mismatches[field] = {"supplied": str(amount), "expected": str(expected)}

    if mismatches:
        raise ValidationFailedError("Sale totals do not reconcile", details={"mismatches": mismatches})


def _validate_on_hand(priced: list[tuple[CartLine, Product]]) -> None:
    """Reject up front, listing every short product; the ledger re-checks atomically."""
    requested: dict[str, int] = {}
    products: dict[str, Product] = {}
    for line, product in priced:
        if not product.track_stock:
            continue
        requested[product.id] = requested.get(product.id, 0) + line.quantity
        products[product.id] = product

    insufficient = []
    for product_id, qty in requested.items():
        product = products[product_id]
        if product.quantity < qty:
            insufficient.append({
                "product_id": product_id,
                "sku": product.sku,
                "requested_quantity": qty,
                "on_hand": product.quantity,
            })

    if insufficient:
        raise InsufficientStockError("Insufficient stock to complete sale", details={"items": insufficient})


def create_sale(
    *,
    user_id: str,
    lines,
    payment_method: str,
    customer_id: str | None = None,
    discount_amount=None,
    subtotal=None,
    tax_amount=None,
    total=None,
    tax_rate: Decimal | None = None,
) -> Sale:
    """
    Turn a cart into a completed Sale.

    Steps (one transaction):
    1. Validate lines, resolve products/customer, derive and reconcile totals.
    2. Allocate invoice number INV-NNNNNN and insert the Sale header.
    3. Per line, in order: insert SaleItem, then decrement stock through the
       ledger (tracked products only).
    4. Credit the customer's total_spent and loyalty_points.

    Raises:
        ValidationFailedError, NotFoundError, InsufficientStockError
    """
    if payment_method not in PAYMENT_METHODS:
        raise ValidationFailedError(
            f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
            details={"field": "payment_method"},
        )

    cart = parse_cart_lines(lines)
    discount = parse_money(discount_amount, "discount_amount") if discount_amount is not None else Decimal("0.00")
    if tax_rate is None:
        tax_rate = Decimal(str(current_app.config.get("TAX_RATE", "0")))

    with atomic():
        customer = None
        if customer_id:
            customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
            if customer is None:
                raise NotFoundError("Customer not found", details={"customer_id": customer_id})

        priced: list[tuple[CartLine, Product]] = []
        line_totals = []
        line_errors = {}
        for index, line in enumerate(cart):
            product = get_product(line.product_id, require_active=True)
            unit_price = line.unit_price if line.unit_price is not None else quantize_money(product.selling_price)
            line_total = quantize_money(unit_price * line.quantity)
            if line.total_price is not None and line.total_price != line_total:
                line_errors[str(index)] = {"supplied": str(line.total_price), "expected": str(line_total)}
            priced.append((
                CartLine(line.product_id, line.quantity, unit_price, line_total),
                product,
            ))
            line_totals.append(line_total)

        if line_errors:
            raise ValidationFailedError(
                "Line total_price must equal quantity * unit_price",
                details={"lines": line_errors},
            )

        totals = compute_totals(line_totals, tax_rate=tax_rate, discount_amount=discount)
        _reconcile({"subtotal": subtotal, "tax_amount": tax_amount, "total": total}, totals)
        _validate_on_hand(priced)

        sale = Sale(
            invoice_number=next_document_number(document_type=INVOICE, prefix="INV"),
            customer_id=customer.id if customer else None,
            user_id=user_id,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            discount_amount=totals.discount_amount,
            total=totals.total,
            payment_method=payment_method,
            status=SALE_STATUS_COMPLETED,
        )
        db.session.add(sale)
        db.session.flush()

        for position, (line, product) in enumerate(priced, start=1):
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=product.id,
                position=position,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
            ))
            if product.track_stock:
                apply_stock_delta(
                    product_id=product.id,
                    delta=-line.quantity,
                    movement_type=MOVEMENT_SALE,
                    reason="Sale transaction",
                    reference=sale.id,
                    user_id=user_id,
                )

        if customer is not None:
            customer.total_spent = quantize_money(customer.total_spent) + totals.total
            customer.loyalty_points = (customer.loyalty_points or 0) + loyalty_points_for(totals.total)

    logger.info(
        "Sale %s completed: %d line(s), total %s, customer=%s",
        sale.invoice_number, len(priced), sale.total, sale.customer_id,
    )
    return sale


def get_sale(sale_id: str) -> Sale:
    sale = db.session.get(Sale, sale_id) if sale_id else None
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def list_sales(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    customer_id: str | None = None,
    limit: int = 500,
) -> list[Sale]:
    q = db.session.query(Sale)
    if start is not None:
        q = q.filter(Sale.created_at >= start)
    if end is not None:
        q = q.filter(Sale.created_at <= end)
    if customer_id:
        q = q.filter(Sale.customer_id == customer_id)
    return q.order_by(Sale.created_at.desc()).limit(limit).all()
