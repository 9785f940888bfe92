from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .base import Money, new_id, money_str


class Customer(db.Model):
    """
    Customer master data for tracking purchases and loyalty.

    Denormalized aggregates (loyalty_points, total_spent) are incremented by
    sales_service.create_sale() inside the sale transaction. Refunds do not
    decrement them.
    """
    __tablename__ = "customers"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(128), nullable=True)

    loyalty_points = db.Column(db.Integer, nullable=False, default=0)
    total_spent = db.Column(Money, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "loyalty_points": self.loyalty_points,
            "total_spent": money_str(self.total_spent),
            "created_at": to_utc_z(self.created_at),
        }
