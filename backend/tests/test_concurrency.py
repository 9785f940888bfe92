"""
Concurrency tests on a file-backed SQLite database.

Each worker thread pushes its own app context, so it gets its own session
and connection. Writers are serialised by BEGIN IMMEDIATE.

Verifies:
- Two simultaneous sales of the whole stock: exactly one wins
- Simultaneous sales never share an invoice number
- Simultaneous full-value refunds on one sale: exactly one is accepted
"""

import threading
from decimal import Decimal

import pytest

from retailpos import create_app
from retailpos.config import TestingConfig
from retailpos.errors import InsufficientStockError, ValidationFailedError
from retailpos.extensions import db
from retailpos.models import Product, Return, Sale, StockMovement, User
from retailpos.services import inventory_service, return_service, sales_service


@pytest.fixture
def file_app(tmp_path):
    """Separate app on an on-disk database so threads use real connections."""

    class FileConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'concurrency.db'}"

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def seeded(file_app):
    user = User(
        username="till",
        email="till@retailpos.local",
        full_name="Till",
        password_hash="not-used",
        role="cashier",
    )
    product = Product(
        name="Concurrent Product",
        sku="CONCUR-1",
        cost_price=Decimal("3.50"),
        selling_price=Decimal("10.00"),
        quantity=5,
        min_stock_level=0,
        track_stock=True,
    )
    db.session.add_all([user, product])
    db.session.commit()
    return {"user_id": user.id, "product_id": product.id}


def _run_workers(app, target, count):
    """Start `count` threads together; return (results, errors)."""
    barrier = threading.Barrier(count, timeout=10)
    results = []
    errors = []
    lock = threading.Lock()

    def worker(index):
        with app.app_context():
            try:
                barrier.wait()
                outcome = target(index)
                with lock:
                    results.append(outcome)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results, errors


class TestConcurrentSales:

    def test_two_sales_of_full_stock_only_one_wins(self, file_app, seeded):
        def sell(_index):
            sale = sales_service.create_sale(
                user_id=seeded["user_id"],
                lines=[{"product_id": seeded["product_id"], "quantity": 5}],
                payment_method="cash",
            )
            return sale.invoice_number

        sold, errors = _run_workers(file_app, sell, 2)

        assert len(sold) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], InsufficientStockError)

        db.session.expire_all()
        product = db.session.get(Product, seeded["product_id"])
        assert product.quantity == 0
        movements = db.session.query(StockMovement).filter_by(
            product_id=product.id, movement_type="sale",
        ).all()
        assert [m.quantity for m in movements] == [-5]
        assert db.session.query(Sale).count() == 1
        assert inventory_service.movement_balance(product.id) == -5

    def test_invoice_numbers_are_unique(self, file_app, seeded):
        product = db.session.get(Product, seeded["product_id"])
        product.quantity = 50
        db.session.commit()

        def sell(_index):
            sale = sales_service.create_sale(
                user_id=seeded["user_id"],
                lines=[{"product_id": seeded["product_id"], "quantity": 1}],
                payment_method="card",
            )
            return sale.invoice_number

        numbers, errors = _run_workers(file_app, sell, 8)

        assert errors == []
        assert sorted(numbers) == [f"INV-{n:06d}" for n in range(1, 9)]

        db.session.expire_all()
        assert db.session.get(Product, seeded["product_id"]).quantity == 42


class TestConcurrentReturns:

    def test_full_value_refunds_race(self, file_app, seeded):
        sale = sales_service.create_sale(
            user_id=seeded["user_id"],
            lines=[{"product_id": seeded["product_id"], "quantity": 2}],
            payment_method="cash",
        )
        sale_id, sale_total = sale.id, sale.total

        def refund(_index):
            return return_service.create_return(
                sale_id=sale_id,
                product_id=seeded["product_id"],
                quantity=1,
                reason="Changed mind",
                refund_amount=str(sale_total),
                user_id=seeded["user_id"],
            ).id

        accepted, errors = _run_workers(file_app, refund, 2)

        assert len(accepted) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], ValidationFailedError)
        assert errors[0].details["refundable_amount"] == "0.00"

        db.session.expire_all()
        assert db.session.query(Return).filter_by(sale_id=sale_id).count() == 1
        assert db.session.get(Product, seeded["product_id"]).quantity == 4
