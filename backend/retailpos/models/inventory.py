from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .base import new_id

MOVEMENT_SALE = "sale"
MOVEMENT_PURCHASE = "purchase"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_RETURN = "return"
MOVEMENT_TRANSFER = "transfer"
MOVEMENT_TYPES = (
    MOVEMENT_SALE,
    MOVEMENT_PURCHASE,
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_RETURN,
    MOVEMENT_TRANSFER,
)


class StockMovement(db.Model):
    """
    Append-only audit row for one signed quantity change.

    For every product: quantity == opening quantity + SUM(quantity) over its
    movements. Rows are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint(
            "movement_type IN ('sale', 'purchase', 'adjustment', 'return', 'transfer')",
            name="ck_stock_movements_type",
        ),
        db.CheckConstraint("quantity <> 0", name="ck_stock_movements_nonzero"),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)

    # Signed delta (negative = consumption)
    quantity = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)

    # Originating sale / purchase order id (weak reference, not a FK)
    reference = db.Column(db.String(64), nullable=True, index=True)

    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "reason": self.reason,
            "reference": self.reference,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
