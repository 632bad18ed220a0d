# Overview: Pytest coverage for sale creation (pricing, validation order, stock effects).

"""
Sale Creation Tests

Covers:
- Line pricing: gross = unit price x quantity, net = gross - discount
- Header totals equal the sums over detail rows
- Validation failures leave no sale, no details, and no stock change
- Stock sufficiency is checked per product across duplicate lines
- A stock change rejected at write time rolls back the whole sale
- Locked-database errors are retried without double-writing
"""

from datetime import datetime

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from gympos.errors import (
    DiscountExceedsTotalError,
    InsufficientStockError,
    InvalidDiscountError,
    InvalidInputError,
    InvalidPriceError,
    InvalidQuantityError,
    NotFoundError,
    PaymentMethodNotActiveError,
    ProductNotActiveError,
    SaleError,
)
from gympos.extensions import db
from gympos.models import Sale, SaleDetail
from gympos.services import sale_ledger, sales_service
from gympos.services.sales_service import SaleLineInput


def _counts() -> tuple[int, int]:
    return db.session.query(Sale).count(), db.session.query(SaleDetail).count()


class TestCreateSalePricing:

    def test_single_line_sale_decrements_stock(self, db_session, cash, water):
        """Stock 10 at 5.00, sell 3: total 15.00 and stock 7."""
        sale = sales_service.create_sale(
            user_id=1,
            payment_method_id=cash.id,
            lines=[SaleLineInput(product_id=water.id, quantity=3)],
        )

        assert sale.id is not None
        assert sale.kind == "NORMAL"
        assert sale.status == "COMPLETED"
        assert sale.voided_sale_id is None
        assert sale.total_cents == 1500
        assert sale.total_discount_cents == 0
        assert water.stock == 7

    def test_totals_equal_sum_of_detail_rows(self, db_session, cash, water, shaker):
        sale = sales_service.create_sale(
            user_id=1,
            payment_method_id=cash.id,
            lines=[
                SaleLineInput(product_id=water.id, quantity=2, discount_cents=100),
                SaleLineInput(product_id=shaker.id, quantity=1, discount_cents=250),
                SaleLineInput(product_id=water.id, quantity=1),
            ],
        )

        details = sale.details
        assert len(details) == 3
        assert sale.total_cents == sum(d.net_cents for d in details)
        assert sale.total_discount_cents == sum(d.discount_cents for d in details)
        assert sale.total_cents == (1000 - 100) + (1000 - 250) + 500
        assert sale.total_discount_cents == 350

    def test_discount_reduces_net(self, db_session, cash, shaker):
        """Gross 20.00 with discount 3.00 nets 17.00."""
        sale = sales_service.create_sale(
            user_id=1,
            payment_method_id=cash.id,
            lines=[SaleLineInput(product_id=shaker.id, quantity=2, discount_cents=300)],
        )

        detail = sale.details[0]
        assert detail.gross_cents == 2000
        assert detail.discount_cents == 300
        assert detail.net_cents == 1700
        assert sale.total_cents == 1700

    def test_discount_equal_to_gross_is_allowed(self, db_session, cash, water):
        sale = sales_service.create_sale(
            user_id=1,
            payment_method_id=cash.id,
            lines=[SaleLineInput(product_id=water.id, quantity=1, discount_cents=500)],
        )
        assert sale.total_cents == 0

    def test_explicit_unit_price_overrides_catalog(self, db_session, cash, water):
        sale = sales_service.create_sale(
            user_id=1,
            payment_method_id=cash.id,
            lines=[SaleLineInput(product_id=water.id, quantity=2, unit_price_cents=450)],
        )

        assert sale.details[0].unit_price_cents == 450
        assert sale.total_cents == 900

    def test_explicit_zero_price_is_a_free_item(self, db_session, cash, water):
        sale = sales_service.create_sale(
            user_id=1,
            payment_method_id=cash.id,
            lines=[SaleLineInput(product_id=water.id, quantity=1, unit_price_cents=0)],
        )

        assert sale.total_cents == 0
        assert water.stock == 9

    def test_accepts_mapping_lines(self, db_session, cash, water):
        sale = sales_service.create_sale(
            user_id=1,
            payment_method_id=cash.id,
            lines=[{"product_id": water.id, "quantity": 2, "discount_cents": 50}],
        )
        assert sale.total_cents == 950

    def test_caller_supplied_sale_date_is_kept(self, db_session, cash, water):
        when = datetime(2026, 3, 1, 9, 30)
        sale = sales_service.create_sale(
            user_id=1,
            payment_method_id=cash.id,
            lines=[SaleLineInput(product_id=water.id, quantity=1)],
            sale_date=when,
        )
        assert sale.sale_date == when

    def test_duplicate_product_lines_decrement_once_by_sum(self, db_session, cash, water, shaker):
        sales_service.create_sale(
            user_id=1,
            payment_method_id=cash.id,
            lines=[
                SaleLineInput(product_id=water.id, quantity=4),
                SaleLineInput(product_id=shaker.id, quantity=2),
                SaleLineInput(product_id=water.id, quantity=6),
            ],
        )

        assert water.stock == 0
        assert shaker.stock == 3


class TestCreateSaleValidation:

    def _assert_untouched(self, *products_and_stock):
        assert _counts() == (0, 0)
        for product, stock in products_and_stock:
            assert product.stock == stock

    def test_missing_user_is_invalid_input(self, db_session, cash, water):
        with pytest.raises(InvalidInputError):
            sales_service.create_sale(
                user_id=None,
                payment_method_id=cash.id,
                lines=[SaleLineInput(product_id=water.id, quantity=1)],
            )
        self._assert_untouched((water, 10))

    def test_missing_payment_method_reference_is_invalid_input(self, db_session, water):
        with pytest.raises(InvalidInputError):
            sales_service.create_sale(
                user_id=1,
                payment_method_id=None,
                lines=[SaleLineInput(product_id=water.id, quantity=1)],
            )

    def test_no_lines_is_invalid_input(self, db_session, cash):
        with pytest.raises(InvalidInputError):
            sales_service.create_sale(user_id=1, payment_method_id=cash.id, lines=[])
        assert _counts() == (0, 0)

    def test_unknown_payment_method(self, db_session, water):
        with pytest.raises(NotFoundError):
            sales_service.create_sale(
                user_id=1,
                payment_method_id=9999,
                lines=[SaleLineInput(product_id=water.id, quantity=1)],
            )
        self._assert_untouched((water, 10))

    def test_inactive_payment_method(self, db_session, retired_card, water):
        with pytest.raises(PaymentMethodNotActiveError):
            sales_service.create_sale(
                user_id=1,
                payment_method_id=retired_card.id,
                lines=[SaleLineInput(product_id=water.id, quantity=1)],
            )
        self._assert_untouched((water, 10))

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity(self, db_session, cash, water, quantity):
        with pytest.raises(InvalidQuantityError):
            sales_service.create_sale(
                user_id=1,
                payment_method_id=cash.id,
                lines=[SaleLineInput(product_id=water.id, quantity=quantity)],
            )
        self._assert_untouched((water, 10))

    def test_negative_unit_price(self, db_session, cash, water):
        with pytest.raises(InvalidPriceError):
            sales_service.create_sale(
                user_id=1,
                payment_method_id=cash.id,
                lines=[SaleLineInput(product_id=water.id, quantity=1, unit_price_cents=-1)],
            )
        self._assert_untouched((water, 10))

    def test_negative_discount(self, db_session, cash, water):
        with pytest.raises(InvalidDiscountError):
            sales_service.create_sale(
                user_id=1,
                payment_method_id=cash.id,
                lines=[SaleLineInput(product_id=water.id, quantity=1, discount_cents=-10)],
            )
        self._assert_untouched((water, 10))

    def test_discount_exceeding_gross(self, db_session, cash, shaker):
        """Gross 20.00 with discount 25.00 is rejected."""
        with pytest.raises(DiscountExceedsTotalError) as exc_info:
            sales_service.create_sale(
                user_id=1,
                payment_method_id=cash.id,
                lines=[SaleLineInput(product_id=shaker.id, quantity=2, discount_cents=2500)],
            )
        assert exc_info.value.details["gross_cents"] == 2000
        assert isinstance(exc_info.value, SaleError)
        self._assert_untouched((shaker, 5))

    def test_arithmetic_checked_before_catalog(self, db_session, cash):
        """A bad quantity is reported even when the product does not exist."""
        with pytest.raises(InvalidQuantityError):
            sales_service.create_sale(
                user_id=1,
                payment_method_id=cash.id,
                lines=[SaleLineInput(product_id=4242, quantity=0)],
            )

    def test_catalog_priced_discount_checked_before_product_lookup(self, db_session, cash, water):
        """Water grosses 5.00, a 9.00 discount is rejected before the unknown product is reported."""
        with pytest.raises(DiscountExceedsTotalError) as exc_info:
            sales_service.create_sale(
                user_id=1,
                payment_method_id=cash.id,
                lines=[
                    SaleLineInput(product_id=4242, quantity=1),
                    SaleLineInput(product_id=water.id, quantity=1, discount_cents=900),
                ],
            )
        assert exc_info.value.details["line"] == 1
        assert exc_info.value.details["gross_cents"] == 500
        self._assert_untouched((water, 10))

    def test_unknown_product(self, db_session, cash, water):
        with pytest.raises(NotFoundError) as exc_info:
            sales_service.create_sale(
                user_id=1,
                payment_method_id=cash.id,
                lines=[
                    SaleLineInput(product_id=water.id, quantity=1),
                    SaleLineInput(product_id=4242, quantity=1),
                ],
            )
        assert exc_info.value.details == {"product_id": 4242}
        self._assert_untouched((water, 10))

    def test_inactive_product(self, db_session, cash, water, discontinued):
        with pytest.raises(ProductNotActiveError):
            sales_service.create_sale(
                user_id=1,
                payment_method_id=cash.id,
                lines=[
                    SaleLineInput(product_id=water.id, quantity=1),
                    SaleLineInput(product_id=discontinued.id, quantity=1),
                ],
            )
        self._assert_untouched((water, 10), (discontinued, 20))


class TestCreateSaleStock:

    def test_quantity_over_stock(self, db_session, cash, water):
        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.create_sale(
                user_id=1,
                payment_method_id=cash.id,
                lines=[SaleLineInput(product_id=water.id, quantity=11)],
            )
        assert exc_info.value.details["items"] == [
            {"product_id": water.id, "requested_quantity": 11, "on_hand": 10}
        ]
        assert water.stock == 10

    def test_split_lines_cannot_bypass_stock_check(self, db_session, cash, water):
        """Stock 10, two lines of 6 for the same product: rejected, stock stays 10."""
        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.create_sale(
                user_id=1,
                payment_method_id=cash.id,
                lines=[
                    SaleLineInput(product_id=water.id, quantity=6),
                    SaleLineInput(product_id=water.id, quantity=6),
                ],
            )
        assert exc_info.value.details["items"][0]["requested_quantity"] == 12
        assert water.stock == 10
        assert _counts() == (0, 0)

    def test_one_short_product_blocks_every_line(self, db_session, cash, water, shaker):
        with pytest.raises(InsufficientStockError):
            sales_service.create_sale(
                user_id=1,
                payment_method_id=cash.id,
                lines=[
                    SaleLineInput(product_id=water.id, quantity=2),
                    SaleLineInput(product_id=shaker.id, quantity=6),
                ],
            )
        assert water.stock == 10
        assert shaker.stock == 5
        assert _counts() == (0, 0)

    def test_stock_taken_after_validation_rolls_back_sale(self, db_session, cash, water):
        """
        Another writer drains stock after this request loaded the product.

        The in-memory product still says 10, so validation passes; the
        conditional decrement then matches no row and the whole unit,
        header and details included, is rolled back.
        """
        assert water.stock == 10
        db_session.execute(text("UPDATE products SET stock = 2 WHERE id = :id"), {"id": water.id})

        with pytest.raises(InsufficientStockError):
            sales_service.create_sale(
                user_id=1,
                payment_method_id=cash.id,
                lines=[SaleLineInput(product_id=water.id, quantity=5)],
            )

        assert _counts() == (0, 0)
        assert water.stock == 10


class TestSaleLookups:

    def test_get_sale_returns_details(self, db_session, cash, water):
        created = sales_service.create_sale(
            user_id=7,
            payment_method_id=cash.id,
            lines=[SaleLineInput(product_id=water.id, quantity=2)],
        )

        sale = sales_service.get_sale(created.id)
        assert sale.user_id == 7
        assert [(d.product_id, d.quantity) for d in sale.details] == [(water.id, 2)]

    def test_get_missing_sale(self, db_session):
        with pytest.raises(NotFoundError):
            sales_service.get_sale(12345)

    def test_list_sales_filters_by_user_and_date(self, db_session, cash, water):
        first = sales_service.create_sale(
            user_id=1,
            payment_method_id=cash.id,
            lines=[SaleLineInput(product_id=water.id, quantity=1)],
            sale_date=datetime(2026, 1, 10, 12, 0),
        )
        second = sales_service.create_sale(
            user_id=2,
            payment_method_id=cash.id,
            lines=[SaleLineInput(product_id=water.id, quantity=1)],
            sale_date=datetime(2026, 2, 10, 12, 0),
        )

        assert [s.id for s in sales_service.list_sales()] == [second.id, first.id]
        assert [s.id for s in sales_service.list_sales(user_id=1)] == [first.id]
        january = sales_service.list_sales(
            start=datetime(2026, 1, 1),
            end=datetime(2026, 1, 31, 23, 59, 59),
        )
        assert [s.id for s in january] == [first.id]


class TestCreateSaleRetry:

    def test_locked_database_is_retried_once_written_once(self, db_session, monkeypatch, cash, water):
        real_batch = sale_ledger.create_detail_batch
        calls = []

        def locked_once(sale_id, details):
            calls.append(sale_id)
            if len(calls) == 1:
                raise OperationalError("INSERT INTO sale_details", {}, Exception("database is locked"))
            return real_batch(sale_id, details)

        monkeypatch.setattr(sale_ledger, "create_detail_batch", locked_once)

        sale = sales_service.create_sale(
            user_id=1,
            payment_method_id=cash.id,
            lines=[SaleLineInput(product_id=water.id, quantity=4)],
        )

        assert len(calls) == 2
        assert _counts() == (1, 1)
        assert sale.total_cents == 2000
        assert water.stock == 6

    def test_gives_up_after_configured_attempts(self, db_session, monkeypatch, cash, water):
        calls = []

        def always_locked(sale_id, details):
            calls.append(sale_id)
            raise OperationalError("INSERT INTO sale_details", {}, Exception("database is locked"))

        monkeypatch.setattr(sale_ledger, "create_detail_batch", always_locked)

        with pytest.raises(OperationalError):
            sales_service.create_sale(
                user_id=1,
                payment_method_id=cash.id,
                lines=[SaleLineInput(product_id=water.id, quantity=4)],
            )

        assert len(calls) == 3
        assert _counts() == (0, 0)
        assert water.stock == 10
