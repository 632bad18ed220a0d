# backend/gympos/services/products_service.py
"""
Product Catalog

Holds product identity, price, active flag, and stock count.

STOCK INVARIANT: stock never goes negative. adjust_stock is the only writer
used by the sale engine and expresses every change as one conditional
UPDATE ("stock = stock + delta WHERE stock + delta >= 0"), so concurrent
sales serialize in the database instead of racing on a value read into
Python. adjust_stock never commits; it joins the caller's unit of work.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import InvalidInputError, InvalidPriceError, InvalidQuantityError, NotFoundError, InsufficientStockError
from ..models import Product, SaleDetail
from .concurrency import run_with_retry

PRODUCT_MUTABLE_FIELDS = {"name", "description", "price_cents", "is_active"}


def _validate_product_fields(name: str | None, price_cents: int | None, stock: int | None = None) -> None:
    if name is not None and not name.strip():
        raise InvalidInputError("name is required")
    if price_cents is not None and price_cents < 0:
        raise InvalidPriceError("price_cents must be >= 0", details={"price_cents": price_cents})
    if stock is not None and stock < 0:
        raise InvalidQuantityError("stock must be >= 0", details={"stock": stock})


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def list_products(active: bool | None = None) -> list[Product]:
    q = db.session.query(Product)
    if active is not None:
        q = q.filter(Product.is_active.is_(active))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def search_products(term: str) -> list[Product]:
    pattern = f"%{term.strip()}%"
    return (
        db.session.query(Product)
        .filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )


def create_product(
    *,
    name: str,
    price_cents: int,
    stock: int = 0,
    description: str | None = None,
    is_active: bool = True,
) -> Product:
    if name is None:
        raise InvalidInputError("name is required")
    _validate_product_fields(name, price_cents, stock)

    product = Product(
        name=name.strip(),
        description=description,
        price_cents=price_cents,
        stock=stock,
        is_active=is_active,
    )
    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, patch: dict) -> Product:
    """Apply a partial update. Stock is not patchable here; use update_product_stock."""
    product = get_product(product_id)

    unknown = set(patch) - PRODUCT_MUTABLE_FIELDS
    if unknown:
        raise InvalidInputError(f"Field not allowed: {', '.join(sorted(unknown))}")

    for required in ("name", "price_cents", "is_active"):
        if required in patch and patch[required] is None:
            raise InvalidInputError(f"{required} cannot be null", details={"field": required})

    _validate_product_fields(patch.get("name"), patch.get("price_cents"))

    for k, v in patch.items():
        if k == "name":
            v = v.strip()
        setattr(product, k, v)

    db.session.commit()
    return product


def delete_product(product_id: int) -> None:
    """Delete a product that no sale references; referenced products should be deactivated instead."""
    product = get_product(product_id)

    referenced = db.session.query(SaleDetail.id).filter_by(product_id=product_id).first()
    if referenced:
        raise InvalidInputError(
            "Product is referenced by sales; deactivate it instead",
            details={"product_id": product_id},
        )

    db.session.delete(product)
    db.session.commit()


def adjust_stock(product_id: int, delta: int) -> None:
    """
    Atomically add delta (either sign) to a product's stock.

    The row is only touched when the result stays >= 0. A zero-row update
    means the product is gone or the stock would go negative.
    """
    if delta == 0:
        return

    updated = (
        db.session.query(Product)
        .filter(Product.id == product_id, Product.stock + delta >= 0)
        .update(
            {Product.stock: Product.stock + delta},
            synchronize_session=False,
        )
    )
    if updated:
        return

    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})

    current_app.logger.warning(
        "Rejected stock adjustment product_id=%s delta=%s", product_id, delta,
    )
    raise InsufficientStockError(
        "Insufficient stock",
        details={"items": [{"product_id": product_id, "requested_quantity": -delta}]},
    )


def update_product_stock(product_id: int, delta: int) -> Product:
    """Manual stock correction (receiving, shrinkage). Commits on its own."""
    def _op():
        get_product(product_id)
        adjust_stock(product_id, delta)
        db.session.commit()
        return get_product(product_id)

    return run_with_retry(_op)
