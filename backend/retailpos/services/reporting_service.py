# Overview: Read-only reporting projections (dashboard, top products, daily sales, low stock).

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from ..errors import ValidationFailedError
from ..extensions import db
from ..models import Category, Customer, Product, Sale, SaleItem
from ..models.base import money_str, quantize_money
from ..time_utils import day_bounds, utc_today

MAX_TOP_PRODUCTS = 100
MAX_SALES_DAYS = 366


def _sum_money(values) -> Decimal:
    # Summed in Python so SQLite never rounds money through REAL
    return quantize_money(sum((v for v in values if v is not None), Decimal("0")))


def _low_stock_filter(query):
    return query.filter(
        Product.track_stock.is_(True),
        Product.quantity <= Product.min_stock_level,
    )


def dashboard_metrics() -> dict:
    """Store-wide counters; "today" is the current UTC calendar day."""
    start, end = day_bounds(utc_today())

    today_totals = [
        row.total
        for row in db.session.query(Sale.total).filter(Sale.created_at >= start, Sale.created_at < end)
    ]

    return {
        "total_products": db.session.query(Product).count(),
        "total_categories": db.session.query(Category).count(),
        "total_customers": db.session.query(Customer).count(),
        "total_revenue": money_str(_sum_money(row.total for row in db.session.query(Sale.total))),
        "low_stock_items": _low_stock_filter(db.session.query(Product)).count(),
        "today_sales": money_str(_sum_money(today_totals)),
        "today_transactions": len(today_totals),
    }


def top_products(limit: int = 5) -> list[dict]:
    """
    Best sellers by revenue across all sales.

    Products are accumulated in sale-history order; the sort is stable so
    equal revenue keeps first-seen order.
    """
    if limit < 1 or limit > MAX_TOP_PRODUCTS:
        raise ValidationFailedError(
            f"limit must be between 1 and {MAX_TOP_PRODUCTS}", details={"field": "limit"}
        )

    rows = (
        db.session.query(SaleItem.product_id, SaleItem.quantity, SaleItem.total_price, Product.name)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .join(Product, Product.id == SaleItem.product_id)
        .order_by(Sale.created_at.asc(), Sale.invoice_number.asc(), SaleItem.position.asc())
        .all()
    )

    totals: dict[str, dict] = {}
    for row in rows:
        entry = totals.get(row.product_id)
        if entry is None:
            entry = totals[row.product_id] = {
                "product_id": row.product_id,
                "name": row.name,
                "quantity": 0,
                "revenue": Decimal("0.00"),
            }
        entry["quantity"] += row.quantity
        entry["revenue"] += quantize_money(row.total_price)

    ranked = sorted(totals.values(), key=lambda e: e["revenue"], reverse=True)[:limit]
    return [{**e, "revenue": money_str(e["revenue"])} for e in ranked]


def sales_data(days: int = 7) -> list[dict]:
    """
    Daily sales for the trailing `days` UTC days ending today.

    Ascending by date; days without sales are present with zeros.
    """
    if days < 1 or days > MAX_SALES_DAYS:
        raise ValidationFailedError(
            f"days must be between 1 and {MAX_SALES_DAYS}", details={"field": "days"}
        )

    today = utc_today()
    first_day = today - timedelta(days=days - 1)
    range_start, _ = day_bounds(first_day)
    _, range_end = day_bounds(today)

    buckets = {
        first_day + timedelta(days=offset): {"sales": Decimal("0.00"), "transactions": 0}
        for offset in range(days)
    }

    rows = db.session.query(Sale.created_at, Sale.total).filter(
        Sale.created_at >= range_start,
        Sale.created_at < range_end,
    )
    for created_at, total in rows:
        bucket = buckets[created_at.date()]
        bucket["sales"] += quantize_money(total)
        bucket["transactions"] += 1

    return [
        {
            "date": day.isoformat(),
            "sales": money_str(bucket["sales"]),
            "transactions": bucket["transactions"],
        }
        for day, bucket in sorted(buckets.items())
    ]


def low_stock_products() -> list[dict]:
    products = (
        _low_stock_filter(db.session.query(Product))
        .order_by(Product.quantity.asc(), Product.name.asc())
        .all()
    )
    result = []
    for product in products:
        data = product.to_dict()
        data["category_name"] = product.category.name if product.category else None
        data["supplier_name"] = product.supplier.name if product.supplier else None
        result.append(data)
    return result
