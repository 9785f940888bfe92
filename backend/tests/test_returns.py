"""
Return workflow tests.

Verifies:
- Scenario D: a return restocks via a 'return' movement
- Returned quantity is capped per (sale, product)
- Sale status moves to partial_refund / refunded
- Customer aggregates are not reversed
"""

from decimal import Decimal

import pytest

from retailpos.errors import NotFoundError, ValidationFailedError
from retailpos.models import Return, StockMovement
from retailpos.services import return_service, sales_service

from conftest import make_product


@pytest.fixture
def sale(db_session, product, cashier):
    """Sale of 3 units of product P (leaves quantity=2)."""
    return sales_service.create_sale(
        user_id=cashier.id,
        lines=[{"product_id": product.id, "quantity": 3}],
        payment_method="card",
    )


def _return(sale, product, user, quantity=1, refund="10.85", reason="Damaged packaging"):
    return return_service.create_return(
        sale_id=sale.id,
        product_id=product.id,
        quantity=quantity,
        reason=reason,
        refund_amount=refund,
        user_id=user.id,
    )


class TestCreateReturn:

    def test_scenario_d_return_restocks(self, db_session, sale, product, cashier):
        ret = _return(sale, product, cashier)

        db_session.refresh(product)
        assert product.quantity == 3
        assert ret.refund_amount == Decimal("10.85")

        movement = (
            db_session.query(StockMovement)
            .filter_by(product_id=product.id, movement_type="return")
            .one()
        )
        assert movement.quantity == 1
        assert movement.reason == "Damaged packaging"
        assert movement.reference == sale.id
        assert movement.user_id == cashier.id

    def test_partial_then_full_refund_status(self, db_session, sale, product, cashier):
        _return(sale, product, cashier, quantity=1)
        db_session.refresh(sale)
        assert sale.status == "partial_refund"

        _return(sale, product, cashier, quantity=2)
        db_session.refresh(sale)
        assert sale.status == "refunded"
        assert return_service.returnable_quantity(sale.id, product.id) == 0

    def test_cannot_return_more_than_sold(self, db_session, sale, product, cashier):
        with pytest.raises(ValidationFailedError) as exc_info:
            _return(sale, product, cashier, quantity=4)

        assert exc_info.value.details["returnable_quantity"] == 3
        db_session.refresh(product)
        assert product.quantity == 2
        assert db_session.query(Return).count() == 0

    def test_cap_accounts_for_prior_returns(self, db_session, sale, product, cashier):
        _return(sale, product, cashier, quantity=2)

        with pytest.raises(ValidationFailedError):
            _return(sale, product, cashier, quantity=2)

        db_session.refresh(product)
        assert product.quantity == 4

    def test_product_not_on_sale(self, db_session, sale, cashier):
        stranger = make_product(db_session, sku="STRANGER", quantity=1)
        with pytest.raises(ValidationFailedError):
            _return(sale, stranger, cashier)

    def test_unknown_sale(self, db_session, product, cashier):
        with pytest.raises(NotFoundError):
            return_service.create_return(
                sale_id="missing", product_id=product.id, quantity=1,
                reason="x", refund_amount="1.00", user_id=cashier.id,
            )

    @pytest.mark.parametrize("field,value", [
        ("quantity", 0),
        ("reason", "   "),
        ("refund", "-1.00"),
        ("refund", 1.5),
    ])
    def test_invalid_input(self, db_session, sale, product, cashier, field, value):
        kwargs = {field: value}
        with pytest.raises(ValidationFailedError):
            _return(sale, product, cashier, **kwargs)

    def test_refund_does_not_reverse_customer_aggregates(self, db_session, product, customer, cashier):
        sold = sales_service.create_sale(
            user_id=cashier.id,
            lines=[{"product_id": product.id, "quantity": 1}],
            payment_method="cash",
            customer_id=customer.id,
        )
        _return(sold, product, cashier, quantity=1)

        db_session.refresh(customer)
        assert customer.loyalty_points == 10
        assert customer.total_spent == Decimal("10.85")

    def test_list_returns(self, db_session, sale, product, cashier):
        ret = _return(sale, product, cashier)
        assert [r.id for r in return_service.list_returns(sale_id=sale.id)] == [ret.id]
        assert return_service.list_returns(sale_id="other") == []

    def test_refunds_across_returns_cannot_exceed_sale_total(self, db_session, product, cashier):
        """Two 1-unit returns on a 2-unit sale each claiming the whole total."""
        two_units = sales_service.create_sale(
            user_id=cashier.id,
            lines=[{"product_id": product.id, "quantity": 2}],
            payment_method="cash",
        )
        assert two_units.total == Decimal("21.70")

        _return(two_units, product, cashier, quantity=1, refund="21.70")

        with pytest.raises(ValidationFailedError) as exc_info:
            _return(two_units, product, cashier, quantity=1, refund="21.70")

        assert exc_info.value.details["field"] == "refund_amount"
        assert exc_info.value.details["refundable_amount"] == "0.00"
        assert db_session.query(Return).filter_by(sale_id=two_units.id).count() == 1
        db_session.refresh(product)
        assert product.quantity == 4

    def test_remaining_refund_can_still_be_issued(self, db_session, sale, product, cashier):
        _return(sale, product, cashier, quantity=1, refund="20.00")

        with pytest.raises(ValidationFailedError) as exc_info:
            _return(sale, product, cashier, quantity=1, refund="12.56")
        assert exc_info.value.details["refundable_amount"] == "12.55"

        ret = _return(sale, product, cashier, quantity=1, refund="12.55")
        assert ret.refund_amount == Decimal("12.55")
        assert return_service.refunded_amount(sale.id) == Decimal("32.55")

    def test_reason_longer_than_column_is_rejected(self, db_session, sale, product, cashier):
        with pytest.raises(ValidationFailedError) as exc_info:
            _return(sale, product, cashier, reason="x" * 256)

        assert exc_info.value.details["field"] == "reason"
        assert db_session.query(Return).count() == 0
        db_session.refresh(product)
        assert product.quantity == 2

    def test_reason_at_column_width_is_kept_whole(self, db_session, sale, product, cashier):
        reason = "y" * 255
        ret = _return(sale, product, cashier, reason=reason)

        movement = db_session.query(StockMovement).filter_by(movement_type="return").one()
        assert ret.reason == reason
        assert movement.reason == reason
