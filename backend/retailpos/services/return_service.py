"""
Return Processing Service

WHY: A return puts goods back on the shelf and records the refund against
the original sale. The Return row and its 'return' stock movement are one
unit of work.

RULES:
- The product must appear on the sale.
- Quantity is capped per (sale, product): sold minus already returned.
- Stock is restored through the inventory ledger (+quantity).
- Sale status moves to 'refunded' once every sold unit has come back,
  otherwise to 'partial_refund'.
- Customer loyalty_points / total_spent are not reversed.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func

from ..errors import NotFoundError, ValidationFailedError
from ..extensions import db
from ..models import Return, Sale, SaleItem
from ..models.base import quantize_money
from ..models.inventory import MOVEMENT_RETURN
from ..models.sales import SALE_STATUS_PARTIAL_REFUND, SALE_STATUS_REFUNDED
from ..validation import parse_money, parse_positive_int, require_text
from .concurrency import atomic, lock_for_update
from .inventory_service import MAX_REASON_LENGTH, apply_stock_delta, get_product

logger = logging.getLogger(__name__)


def _sold_quantity(sale_id: str, product_id: str | None = None) -> int:
    q = db.session.query(func.coalesce(func.sum(SaleItem.quantity), 0)).filter(SaleItem.sale_id == sale_id)
    if product_id is not None:
        q = q.filter(SaleItem.product_id == product_id)
    return int(q.scalar() or 0)


def _returned_quantity(sale_id: str, product_id: str | None = None) -> int:
    q = db.session.query(func.coalesce(func.sum(Return.quantity), 0)).filter(Return.sale_id == sale_id)
    if product_id is not None:
        q = q.filter(Return.product_id == product_id)
    return int(q.scalar() or 0)


def refunded_amount(sale_id: str) -> Decimal:
    """SUM of refunds already issued against a sale (summed in Python, exact)."""
    rows = db.session.query(Return.refund_amount).filter(Return.sale_id == sale_id)
    return quantize_money(sum((row.refund_amount for row in rows), Decimal("0")))


def returnable_quantity(sale_id: str, product_id: str) -> int:
    return _sold_quantity(sale_id, product_id) - _returned_quantity(sale_id, product_id)


def create_return(
    *,
    sale_id: str,
    product_id: str,
    quantity,
    reason,
    refund_amount,
    user_id: str,
) -> Return:
    """
    Record a return against a sale and restock the product.

    Raises:
        NotFoundError: sale or product missing
        ValidationFailedError: bad quantity/refund, product not on the sale,
            or quantity above what is still returnable
    """
    quantity = parse_positive_int(quantity, "quantity")
    reason = require_text(reason, "reason")
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationFailedError(
            f"reason cannot exceed {MAX_REASON_LENGTH} characters", details={"field": "reason"}
        )
    refund = parse_money(refund_amount, "refund_amount")

    with atomic():
        sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first() if sale_id else None
        if sale is None:
            raise NotFoundError("Sale not found", details={"sale_id": sale_id})
        product = get_product(product_id)

        sold = _sold_quantity(sale.id, product.id)
        if sold == 0:
            raise ValidationFailedError(
                "Product was not part of this sale",
                details={"sale_id": sale.id, "product_id": product.id},
            )

        remaining = sold - _returned_quantity(sale.id, product.id)
        if quantity > remaining:
            raise ValidationFailedError(
                "Return quantity exceeds quantity still returnable",
                details={"requested_quantity": quantity, "returnable_quantity": remaining},
            )

        refundable = quantize_money(sale.total) - refunded_amount(sale.id)
        if refund > refundable:
            raise ValidationFailedError(
                "refund_amount exceeds what is left to refund on this sale",
                details={
                    "field": "refund_amount",
                    "requested_refund": str(refund),
                    "refundable_amount": str(refundable),
                },
            )

        ret = Return(
            sale_id=sale.id,
            product_id=product.id,
            quantity=quantity,
            reason=reason,
            refund_amount=refund,
            user_id=user_id,
        )
        db.session.add(ret)
        db.session.flush()

        apply_stock_delta(
            product_id=product.id,
            delta=quantity,
            movement_type=MOVEMENT_RETURN,
            reason=reason,
            reference=sale.id,
            user_id=user_id,
        )

        if _returned_quantity(sale.id) >= _sold_quantity(sale.id):
            sale.status = SALE_STATUS_REFUNDED
        else:
            sale.status = SALE_STATUS_PARTIAL_REFUND

    logger.info(
        "Return of %d x %s against %s (refund %s)",
        quantity, product.sku, sale.invoice_number, ret.refund_amount,
    )
    return ret


def list_returns(*, sale_id: str | None = None, limit: int = 500) -> list[Return]:
    q = db.session.query(Return)
    if sale_id:
        q = q.filter(Return.sale_id == sale_id)
    return q.order_by(Return.created_at.desc()).limit(limit).all()
