from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .base import Money, new_id, money_str

PO_STATUS_PENDING = "pending"
PO_STATUS_RECEIVED = "received"
PO_STATUS_CANCELLED = "cancelled"
PO_STATUSES = (PO_STATUS_PENDING, PO_STATUS_RECEIVED, PO_STATUS_CANCELLED)


class PurchaseOrder(db.Model):
    """
    Purchase order from a supplier.

    LIFECYCLE:
    pending -> received   (terminal; restocks every line)
    pending -> cancelled  (terminal; no stock effect)
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'received', 'cancelled')", name="ck_purchase_orders_status"
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    order_number = db.Column(db.String(64), nullable=False, unique=True)
    supplier_id = db.Column(db.String(36), db.ForeignKey("suppliers.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=PO_STATUS_PENDING, index=True)
    total_amount = db.Column(Money, nullable=False)

    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    received_at = db.Column(db.DateTime, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier", backref=db.backref("purchase_orders", lazy=True))
    items = db.relationship(
        "PurchaseOrderItem",
        backref="purchase_order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.position",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "supplier_id": self.supplier_id,
            "status": self.status,
            "total_amount": money_str(self.total_amount),
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "received_at": to_utc_z(self.received_at) if self.received_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseOrderItem(db.Model):
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_order_items_quantity_positive"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    purchase_order_id = db.Column(
        db.String(36),
        db.ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(db.String(36), db.ForeignKey("products.id"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=1)

    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(Money, nullable=False)
    total_cost = db.Column(Money, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "product_id": self.product_id,
            "position": self.position,
            "quantity": self.quantity,
            "unit_cost": money_str(self.unit_cost),
            "total_cost": money_str(self.total_cost),
        }
