from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .base import Money, new_id, money_str


class Return(db.Model):
    """
    Product return against a prior sale.

    Always paired with a StockMovement(type='return', quantity=+quantity)
    written in the same transaction.
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_returns_quantity_positive"),
        db.Index("ix_returns_sale_product", "sale_id", "product_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sale_id = db.Column(db.String(36), db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    refund_amount = db.Column(Money, nullable=False)

    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "reason": self.reason,
            "refund_amount": money_str(self.refund_amount),
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Monotonic counters for human-readable document numbers.

    One row per document type (INVOICE, PURCHASE_ORDER). Incremented with an
    atomic UPDATE so concurrent writers never receive the same number.
    """
    __tablename__ = "document_sequences"

    document_type = db.Column(db.String(32), primary_key=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
