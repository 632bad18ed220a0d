# Overview: Sale Ledger Store - durable storage for sale headers and line items.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Sale, SaleDetail
from .concurrency import lock_for_update
"""
Sale Ledger Invariants

- Every write here flushes into the caller's unit of work; nothing commits.
- Headers and their detail batch are written in the same transaction.
- Detail rows are append-only: no update or delete helpers exist.
"""


def create_header(sale: Sale) -> Sale:
    db.session.add(sale)
    db.session.flush()
    return sale


def update_header(sale: Sale) -> Sale:
    """Flush header changes; version_id makes a concurrent update raise StaleDataError."""
    db.session.add(sale)
    db.session.flush()
    return sale


def create_detail_batch(sale_id: int, details: list[SaleDetail]) -> list[SaleDetail]:
    for detail in details:
        detail.sale_id = sale_id
        db.session.add(detail)
    db.session.flush()
    return details


def get_header_by_id(sale_id: int, *, lock: bool = False) -> Sale | None:
    query = db.session.query(Sale).filter_by(id=sale_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def get_details_by_sale_id(sale_id: int) -> list[SaleDetail]:
    return (
        db.session.query(SaleDetail)
        .filter_by(sale_id=sale_id)
        .order_by(SaleDetail.id.asc())
        .all()
    )


def list_headers(
    start: datetime | None = None,
    end: datetime | None = None,
    user_id: int | None = None,
) -> list[Sale]:
    """Headers ordered newest first. Date bounds are inclusive."""
    q = db.session.query(Sale)
    if start is not None:
        q = q.filter(Sale.sale_date >= start)
    if end is not None:
        q = q.filter(Sale.sale_date <= end)
    if user_id is not None:
        q = q.filter(Sale.user_id == user_id)
    return q.order_by(Sale.sale_date.desc(), Sale.id.desc()).all()
