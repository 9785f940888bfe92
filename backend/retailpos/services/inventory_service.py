# Overview: Service-layer operations for inventory; the single choke-point for stock quantity.

# backend/retailpos/services/inventory_service.py

from __future__ import annotations

import logging

from sqlalchemy import update

from ..errors import InsufficientStockError, NotFoundError, ValidationFailedError
from ..extensions import db
from ..models import Product, StockMovement
from ..models.inventory import MOVEMENT_ADJUSTMENT, MOVEMENT_TYPES
from ..time_utils import utcnow
from .concurrency import atomic

"""
Inventory Ledger Invariants (authoritative)

Quantity model:
- Product.quantity is a stored running balance.
- It is changed ONLY through apply_stock_delta(), which writes the new
  balance and appends exactly one StockMovement with the same signed delta.
- Therefore, per product: quantity == opening quantity + SUM(StockMovement.quantity).

Business invariants:
- Tracked products (track_stock=True) never go below zero. The check is an
  atomic conditional UPDATE (... WHERE quantity + delta >= 0); zero rows
  affected means InsufficientStock. No read-then-write window exists, so
  concurrent sales on different processes cannot both oversell.
- Untracked products accept any delta.
- Every movement is attributed to a user.

Transactions:
- apply_stock_delta() never commits. Callers (sales, returns, purchase-order
  receipt, manual adjustment) run it inside their own atomic() block so the
  balance, the audit row and the caller's documents commit together.
"""

logger = logging.getLogger(__name__)

# StockMovement.reason column width
MAX_REASON_LENGTH = 255


def get_product(product_id: str, *, require_active: bool = False) -> Product:
    product = db.session.get(Product, product_id) if product_id else None
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    if require_active and not product.is_active:
        raise ValidationFailedError("Product is inactive", details={"product_id": product_id})
    return product


def _validate_delta(delta) -> int:
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationFailedError("quantity delta must be an integer", details={"field": "quantity"})
    if delta == 0:
        raise ValidationFailedError("quantity delta must be non-zero", details={"field": "quantity"})
    return delta


def apply_stock_delta(
    *,
    product_id: str,
    delta: int,
    movement_type: str,
    user_id: str,
    reason: str | None = None,
    reference: str | None = None,
) -> StockMovement:
    """
    Change a product's quantity by `delta` and append the matching StockMovement.

    Raises:
        ValidationFailedError: bad delta / movement type / missing actor / reason too long
        NotFoundError: product does not exist
        InsufficientStockError: tracked product would go negative
    """
    delta = _validate_delta(delta)
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationFailedError(
            f"movement_type must be one of: {', '.join(MOVEMENT_TYPES)}",
            details={"field": "movement_type"},
        )
    if not user_id:
        raise ValidationFailedError("Acting user is required for stock movements", details={"field": "user_id"})
    if reason is not None and not isinstance(reason, str):
        raise ValidationFailedError("reason must be a string", details={"field": "reason"})
    if reason is not None and len(reason) > MAX_REASON_LENGTH:
        raise ValidationFailedError(
            f"reason cannot exceed {MAX_REASON_LENGTH} characters", details={"field": "reason"}
        )

    product = get_product(product_id)

    stmt = update(Product).where(Product.id == product.id)
    if product.track_stock:
        stmt = stmt.where(Product.quantity + delta >= 0)
    stmt = stmt.values(
        quantity=Product.quantity + delta,
        updated_at=utcnow(),
    ).execution_options(synchronize_session=False)

    result = db.session.execute(stmt)
    db.session.refresh(product, ["quantity", "updated_at"])

    if result.rowcount == 0:
        logger.info(
            "Rejected %s of %s for product %s: on hand %s",
            movement_type, delta, product.sku, product.quantity,
        )
        raise InsufficientStockError(
            f"Insufficient stock for {product.name}",
            details={
                "product_id": product.id,
                "sku": product.sku,
                "requested_quantity": -delta,
                "on_hand": product.quantity,
            },
        )

    movement = StockMovement(
        product_id=product.id,
        movement_type=movement_type,
        quantity=delta,
        reason=reason,
        reference=reference,
        user_id=user_id,
    )
    db.session.add(movement)
    db.session.flush()

    logger.debug(
        "Stock %s %+d for %s -> %s (ref=%s)",
        movement_type, delta, product.sku, product.quantity, reference,
    )
    return movement


def adjust_stock(
    *,
    product_id: str,
    quantity_delta: int,
    user_id: str,
    reason: str | None = None,
) -> StockMovement:
    """Manual correction (count differences, shrink, damage) as its own transaction."""
    with atomic():
        movement = apply_stock_delta(
            product_id=product_id,
            delta=quantity_delta,
            movement_type=MOVEMENT_ADJUSTMENT,
            reason=reason,
            user_id=user_id,
        )
    logger.info("Adjusted product %s by %+d", product_id, quantity_delta)
    return movement


def list_stock_movements(*, product_id: str | None = None, limit: int = 200) -> list[StockMovement]:
    q = db.session.query(StockMovement)
    if product_id:
        get_product(product_id)
        q = q.filter(StockMovement.product_id == product_id)

    return q.order_by(
        StockMovement.created_at.desc(),
        StockMovement.id.desc(),
    ).limit(limit).all()


def movement_balance(product_id: str) -> int:
    """SUM of all movement deltas recorded for a product."""
    total = db.session.query(
        db.func.coalesce(db.func.sum(StockMovement.quantity), 0)
    ).filter(StockMovement.product_id == product_id).scalar()
    return int(total or 0)
