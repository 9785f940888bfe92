"""
Inventory ledger tests.

Verifies:
- Every quantity change has exactly one matching StockMovement
- quantity == opening quantity + SUM(movement deltas)
- Tracked products never go negative; rejected changes leave no trace
- Untracked products accept any delta
"""

import pytest

from retailpos.errors import InsufficientStockError, NotFoundError, ValidationFailedError
from retailpos.extensions import db
from retailpos.models import Product, StockMovement
from retailpos.services import inventory_service
from retailpos.services.concurrency import atomic

from conftest import make_product


def _movements(product_id):
    return db.session.query(StockMovement).filter_by(product_id=product_id).all()


class TestAdjustStock:

    def test_positive_adjustment_records_movement(self, db_session, product, admin):
        movement = inventory_service.adjust_stock(
            product_id=product.id, quantity_delta=7, user_id=admin.id, reason="Recount",
        )

        db_session.refresh(product)
        assert product.quantity == 12
        assert movement.movement_type == "adjustment"
        assert movement.quantity == 7
        assert movement.reason == "Recount"
        assert movement.user_id == admin.id
        assert len(_movements(product.id)) == 1

    def test_negative_adjustment_within_stock(self, db_session, product, cashier):
        inventory_service.adjust_stock(product_id=product.id, quantity_delta=-5, user_id=cashier.id)

        db_session.refresh(product)
        assert product.quantity == 0

    def test_adjustment_below_zero_rejected(self, db_session, product, admin):
        with pytest.raises(InsufficientStockError) as exc_info:
            inventory_service.adjust_stock(product_id=product.id, quantity_delta=-6, user_id=admin.id)

        assert exc_info.value.details["on_hand"] == 5
        assert exc_info.value.details["requested_quantity"] == 6
        db_session.refresh(product)
        assert product.quantity == 5
        assert _movements(product.id) == []

    def test_untracked_product_may_go_negative(self, db_session, admin):
        gift_wrap = make_product(db_session, sku="WRAP", quantity=0, track_stock=False)

        inventory_service.adjust_stock(product_id=gift_wrap.id, quantity_delta=-3, user_id=admin.id)

        db_session.refresh(gift_wrap)
        assert gift_wrap.quantity == -3
        assert len(_movements(gift_wrap.id)) == 1

    @pytest.mark.parametrize("delta", [0, True, "3", 1.5])
    def test_invalid_delta_rejected(self, db_session, product, admin, delta):
        with pytest.raises(ValidationFailedError):
            inventory_service.adjust_stock(product_id=product.id, quantity_delta=delta, user_id=admin.id)

    def test_missing_actor_rejected(self, db_session, product):
        with pytest.raises(ValidationFailedError):
            inventory_service.adjust_stock(product_id=product.id, quantity_delta=1, user_id=None)

        db_session.refresh(product)
        assert product.quantity == 5

    def test_overlong_reason_rejected(self, db_session, product, admin):
        with pytest.raises(ValidationFailedError) as exc_info:
            inventory_service.adjust_stock(
                product_id=product.id, quantity_delta=1, user_id=admin.id, reason="r" * 256,
            )

        assert exc_info.value.details["field"] == "reason"
        db_session.refresh(product)
        assert product.quantity == 5
        assert _movements(product.id) == []

    def test_unknown_product(self, db_session, admin):
        with pytest.raises(NotFoundError):
            inventory_service.adjust_stock(product_id="missing", quantity_delta=1, user_id=admin.id)


class TestLedgerInvariant:

    def test_balance_matches_opening_plus_movements(self, db_session, product, admin):
        opening = product.quantity
        for delta in (10, -4, 3, -14, 2):
            inventory_service.adjust_stock(product_id=product.id, quantity_delta=delta, user_id=admin.id)

        # Rejected attempt must not disturb the invariant
        with pytest.raises(InsufficientStockError):
            inventory_service.adjust_stock(product_id=product.id, quantity_delta=-100, user_id=admin.id)

        db_session.refresh(product)
        assert product.quantity == opening + inventory_service.movement_balance(product.id)
        assert product.quantity == 2
        assert product.quantity >= 0

    def test_ledger_does_not_commit_on_its_own(self, db_session, product, admin):
        with pytest.raises(RuntimeError):
            with atomic():
                inventory_service.apply_stock_delta(
                    product_id=product.id,
                    delta=4,
                    movement_type="adjustment",
                    user_id=admin.id,
                )
                raise RuntimeError("caller failed after the ledger call")

        assert db_session.get(Product, product.id).quantity == 5
        assert _movements(product.id) == []

    def test_unknown_movement_type_rejected(self, db_session, product, admin):
        with pytest.raises(ValidationFailedError):
            with atomic():
                inventory_service.apply_stock_delta(
                    product_id=product.id, delta=1, movement_type="gift", user_id=admin.id,
                )


class TestListMovements:

    def test_newest_first_and_filtered(self, db_session, product, admin):
        other = make_product(db_session, sku="OTHER", quantity=1)
        inventory_service.adjust_stock(product_id=product.id, quantity_delta=1, user_id=admin.id)
        inventory_service.adjust_stock(product_id=other.id, quantity_delta=1, user_id=admin.id)
        inventory_service.adjust_stock(product_id=product.id, quantity_delta=2, user_id=admin.id)

        movements = inventory_service.list_stock_movements(product_id=product.id)

        assert [m.quantity for m in movements] == [2, 1]
        assert len(inventory_service.list_stock_movements()) == 3
