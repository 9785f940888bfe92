from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .base import Money, new_id, money_str

PAYMENT_METHODS = ("cash", "card", "transfer")

SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_REFUNDED = "refunded"
SALE_STATUS_PARTIAL_REFUND = "partial_refund"
SALE_STATUSES = (SALE_STATUS_COMPLETED, SALE_STATUS_REFUNDED, SALE_STATUS_PARTIAL_REFUND)


class Sale(db.Model):
    """
    Completed sale header.

    Monetary fields reconcile: total == subtotal + tax_amount - discount_amount.
    Headers are immutable once written except for status transitions driven
    by returns.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint(
            "payment_method IN ('cash', 'card', 'transfer')", name="ck_sales_payment_method"
        ),
        db.CheckConstraint(
            "status IN ('completed', 'refunded', 'partial_refund')", name="ck_sales_status"
        ),
        db.Index("ix_sales_created_at", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    # Server-allocated, e.g. "INV-000123"
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)

    customer_id = db.Column(db.String(36), db.ForeignKey("customers.id"), nullable=True, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)

    subtotal = db.Column(Money, nullable=False)
    tax_amount = db.Column(Money, nullable=False, default=0)
    discount_amount = db.Column(Money, nullable=False, default=0)
    total = db.Column(Money, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    user = db.relationship("User")
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleItem.position",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "user_id": self.user_id,
            "subtotal": money_str(self.subtotal),
            "tax_amount": money_str(self.tax_amount),
            "discount_amount": money_str(self.discount_amount),
            "total": money_str(self.total),
            "payment_method": self.payment_method,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Line item owned by exactly one Sale; never mutated on its own."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    sale_id = db.Column(
        db.String(36), db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False, index=True)

    # Cart order (1-based)
    position = db.Column(db.Integer, nullable=False, default=1)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(Money, nullable=False)
    total_price = db.Column(Money, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "position": self.position,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "total_price": money_str(self.total_price),
        }
