"""
Sale Engine - multi-line sale creation and voiding

Create: validate everything first (header refs, line arithmetic, catalog,
aggregated stock), then write header + details + stock decrements in one
unit of work.

Void: flip the original to VOIDED, write a compensating VOID sale with
negated money, and restore stock once per product. Also one unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping

from flask import current_app

from ..errors import (
    DiscountExceedsTotalError,
    InsufficientStockError,
    InvalidDiscountError,
    InvalidInputError,
    InvalidPriceError,
    InvalidQuantityError,
    NotFoundError,
    PaymentMethodNotActiveError,
    ProductNotActiveError,
    SaleCannotBeVoidedError,
)
from ..extensions import db
from ..models import (
    Product,
    Sale,
    SaleDetail,
    SALE_KIND_NORMAL,
    SALE_KIND_VOID,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_VOIDED,
)
from gympos.time_utils import utcnow, parse_iso_datetime, to_naive_utc
from . import sale_ledger
from .concurrency import run_with_retry
from .payment_methods_service import get_payment_method
from .products_service import adjust_stock


@dataclass(frozen=True)
class SaleLineInput:
    """One requested line. unit_price_cents=None means catalog price."""
    product_id: int
    quantity: int
    unit_price_cents: int | None = None
    discount_cents: int = 0


def _coerce_line(line: SaleLineInput | Mapping) -> SaleLineInput:
    if isinstance(line, SaleLineInput):
        return line
    if isinstance(line, Mapping):
        return SaleLineInput(
            product_id=line.get("product_id"),
            quantity=line.get("quantity"),
            unit_price_cents=line.get("unit_price_cents"),
            discount_cents=line.get("discount_cents") or 0,
        )
    raise InvalidInputError("Invalid line item")


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _normalize_sale_date(value: datetime | str | None) -> datetime:
    if value is None:
        return utcnow()
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise InvalidInputError("sale_date must be an ISO-8601 datetime")
        return dt or utcnow()
    return to_naive_utc(value)


def _sum_quantities_by_product(items: Iterable) -> dict[int, int]:
    """Group lines (inputs or detail rows) by product, summing quantities."""
    totals: dict[int, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return totals


def _validate_line(index: int, line: SaleLineInput, product: Product | None) -> None:
    """
    Arithmetic checks for one line, including discount <= gross.

    Gross uses the explicit unit price, else the catalog price of a product
    that exists. A missing product is reported later by _ensure_sellable.
    """
    details = {"line": index, "product_id": line.product_id}

    if not _is_int(line.quantity) or line.quantity <= 0:
        raise InvalidQuantityError("Quantity must be a positive integer", details=details)

    if line.unit_price_cents is not None:
        if not _is_int(line.unit_price_cents) or line.unit_price_cents < 0:
            raise InvalidPriceError("Unit price must be >= 0", details=details)

    if not _is_int(line.discount_cents) or line.discount_cents < 0:
        raise InvalidDiscountError("Discount must be >= 0", details=details)

    unit_price = line.unit_price_cents
    if unit_price is None and product is not None:
        unit_price = product.price_cents
    if unit_price is not None:
        _check_discount_within_gross(index, line, unit_price)


def _check_discount_within_gross(index: int, line: SaleLineInput, unit_price_cents: int) -> int:
    gross = unit_price_cents * line.quantity
    if line.discount_cents > gross:
        raise DiscountExceedsTotalError(
            "Discount exceeds line total",
            details={
                "line": index,
                "product_id": line.product_id,
                "gross_cents": gross,
                "discount_cents": line.discount_cents,
            },
        )
    return gross


def _fetch_products(lines: list[SaleLineInput]) -> dict[int, Product | None]:
    products: dict[int, Product | None] = {}
    for line in lines:
        if line.product_id in products:
            continue
        products[line.product_id] = db.session.get(Product, line.product_id) if line.product_id is not None else None
    return products


def _ensure_sellable(lines: list[SaleLineInput], products: dict[int, Product | None]) -> None:
    for line in lines:
        product = products[line.product_id]
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": line.product_id})
        if not product.is_active:
            raise ProductNotActiveError("Product is not active", details={"product_id": product.id})


def _validate_on_hand(products: dict[int, Product], product_totals: dict[int, int]) -> None:
    insufficient = []
    for product_id, qty in product_totals.items():
        product = products[product_id]
        if not product.has_stock(qty):
            insufficient.append({
                "product_id": product_id,
                "requested_quantity": qty,
                "on_hand": product.stock,
            })

    if insufficient:
        raise InsufficientStockError(
            "Insufficient stock to complete sale",
            details={"items": insufficient},
        )


def _price_lines(lines: list[SaleLineInput], products: dict[int, Product]) -> list[SaleDetail]:
    details = []
    for index, line in enumerate(lines):
        unit_price = line.unit_price_cents
        if unit_price is None:
            unit_price = products[line.product_id].price_cents
        gross = _check_discount_within_gross(index, line, unit_price)
        details.append(SaleDetail(
            product_id=line.product_id,
            unit_price_cents=unit_price,
            quantity=line.quantity,
            gross_cents=gross,
            discount_cents=line.discount_cents,
            net_cents=gross - line.discount_cents,
        ))
    return details


def create_sale(
    *,
    user_id: int,
    payment_method_id: int,
    lines: list[SaleLineInput | Mapping],
    sale_date: datetime | str | None = None,
) -> Sale:
    """
    Create a COMPLETED normal sale with its line items and stock effects.

    Nothing is written until every validation passes. Stock is decremented
    once per distinct product by the summed quantity of its lines.
    """
    if not user_id or not payment_method_id:
        raise InvalidInputError("user_id and payment_method_id required")
    if not lines:
        raise InvalidInputError("At least one line item is required")

    line_inputs = [_coerce_line(line) for line in lines]
    occurred_at = _normalize_sale_date(sale_date)

    def _op():
        method = get_payment_method(payment_method_id)
        if not method.is_active:
            raise PaymentMethodNotActiveError(
                "Payment method is not active",
                details={"payment_method_id": payment_method_id},
            )

        products = _fetch_products(line_inputs)
        for index, line in enumerate(line_inputs):
            _validate_line(index, line, products[line.product_id])

        _ensure_sellable(line_inputs, products)
        details = _price_lines(line_inputs, products)

        product_totals = _sum_quantities_by_product(line_inputs)
        _validate_on_hand(products, product_totals)

        sale = Sale(
            sale_date=occurred_at,
            total_cents=sum(d.net_cents for d in details),
            total_discount_cents=sum(d.discount_cents for d in details),
            user_id=user_id,
            kind=SALE_KIND_NORMAL,
            status=SALE_STATUS_COMPLETED,
            payment_method_id=method.id,
        )

        sale_ledger.create_header(sale)
        sale_ledger.create_detail_batch(sale.id, details)

        for product_id, qty in product_totals.items():
            adjust_stock(product_id, -qty)

        db.session.commit()
        current_app.logger.info(
            "Sale %s completed: user_id=%s lines=%d total_cents=%s",
            sale.id, user_id, len(details), sale.total_cents,
        )
        return sale

    return run_with_retry(_op)


def _reverse_detail(detail: SaleDetail) -> SaleDetail:
    return SaleDetail(
        product_id=detail.product_id,
        unit_price_cents=detail.unit_price_cents,
        quantity=detail.quantity,
        gross_cents=-detail.gross_cents,
        discount_cents=-detail.discount_cents,
        net_cents=-detail.net_cents,
    )


def void_sale(sale_id: int, user_id: int, reason: str | None = None) -> Sale:
    """
    Void a COMPLETED normal sale and return the compensating VOID sale.

    The original's detail rows, not its totals, drive the reversal. Stock is
    restored exactly once per distinct product even when the original had
    several lines for the same product.
    """
    if not user_id:
        raise InvalidInputError("user_id required")

    def _op():
        original = sale_ledger.get_header_by_id(sale_id, lock=True)
        if original is None:
            raise NotFoundError("Sale not found", details={"sale_id": sale_id})

        if not original.can_be_voided():
            raise SaleCannotBeVoidedError(
                "Only COMPLETED normal sales can be voided",
                details={"sale_id": sale_id, "status": original.status, "kind": original.kind},
            )

        details = sale_ledger.get_details_by_sale_id(original.id)
        if not details:
            raise SaleCannotBeVoidedError("Cannot void sale with no lines", details={"sale_id": sale_id})

        product_totals = _sum_quantities_by_product(details)
        now = utcnow()

        original.status = SALE_STATUS_VOIDED
        original.voided_by_user_id = user_id
        original.voided_at = now
        original.void_reason = reason
        sale_ledger.update_header(original)

        void = Sale(
            sale_date=now,
            total_cents=-original.total_cents,
            total_discount_cents=-original.total_discount_cents,
            user_id=user_id,
            kind=SALE_KIND_VOID,
            status=SALE_STATUS_COMPLETED,
            payment_method_id=original.payment_method_id,
            voided_sale_id=original.id,
            void_reason=reason,
        )
        sale_ledger.create_header(void)
        sale_ledger.create_detail_batch(void.id, [_reverse_detail(d) for d in details])

        for product_id, qty in product_totals.items():
            adjust_stock(product_id, qty)

        db.session.commit()
        current_app.logger.info(
            "Sale %s voided by user_id=%s: void sale %s total_cents=%s",
            original.id, user_id, void.id, void.total_cents,
        )
        return void

    return run_with_retry(_op)


def get_sale(sale_id: int) -> Sale:
    """Sale header; line items are available on sale.details."""
    sale = sale_ledger.get_header_by_id(sale_id)
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def list_sales(
    start: datetime | None = None,
    end: datetime | None = None,
    user_id: int | None = None,
) -> list[Sale]:
    return sale_ledger.list_headers(start=start, end=end, user_id=user_id)
