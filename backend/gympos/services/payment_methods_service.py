# backend/gympos/services/payment_methods_service.py
"""Payment Method Registry: active/inactive methods referenced by sales."""
from __future__ import annotations

from ..extensions import db
from ..errors import InvalidInputError, NotFoundError
from ..models import PaymentMethod, PAYMENT_METHOD_TYPES, Sale

PAYMENT_METHOD_MUTABLE_FIELDS = {"name", "type", "is_active"}


def _normalize_type(method_type: str) -> str:
    value = (method_type or "").strip().upper()
    if value not in PAYMENT_METHOD_TYPES:
        raise InvalidInputError(
            f"type must be one of {', '.join(PAYMENT_METHOD_TYPES)}",
            details={"type": method_type},
        )
    return value


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    q = db.session.query(PaymentMethod).filter(PaymentMethod.name == name)
    if exclude_id is not None:
        q = q.filter(PaymentMethod.id != exclude_id)
    if q.first():
        raise InvalidInputError("Payment method name already exists", details={"name": name})


def get_payment_method(payment_method_id: int) -> PaymentMethod:
    method = db.session.get(PaymentMethod, payment_method_id)
    if method is None:
        raise NotFoundError("Payment method not found", details={"payment_method_id": payment_method_id})
    return method


def list_payment_methods(active: bool | None = None) -> list[PaymentMethod]:
    q = db.session.query(PaymentMethod)
    if active is not None:
        q = q.filter(PaymentMethod.is_active.is_(active))
    return q.order_by(PaymentMethod.name.asc()).all()


def create_payment_method(*, name: str, method_type: str = "CASH", is_active: bool = True) -> PaymentMethod:
    if not name or not name.strip():
        raise InvalidInputError("name is required")
    name = name.strip()
    _ensure_unique_name(name)

    method = PaymentMethod(name=name, type=_normalize_type(method_type), is_active=is_active)
    db.session.add(method)
    db.session.commit()
    return method


def update_payment_method(payment_method_id: int, patch: dict) -> PaymentMethod:
    method = get_payment_method(payment_method_id)

    unknown = set(patch) - PAYMENT_METHOD_MUTABLE_FIELDS
    if unknown:
        raise InvalidInputError(f"Field not allowed: {', '.join(sorted(unknown))}")

    if "name" in patch:
        name = (patch["name"] or "").strip()
        if not name:
            raise InvalidInputError("name is required")
        _ensure_unique_name(name, exclude_id=method.id)
        method.name = name
    if "type" in patch:
        method.type = _normalize_type(patch["type"])
    if "is_active" in patch:
        method.is_active = bool(patch["is_active"])

    db.session.commit()
    return method


def delete_payment_method(payment_method_id: int) -> None:
    method = get_payment_method(payment_method_id)

    referenced = db.session.query(Sale.id).filter_by(payment_method_id=payment_method_id).first()
    if referenced:
        raise InvalidInputError(
            "Payment method is referenced by sales; deactivate it instead",
            details={"payment_method_id": payment_method_id},
        )

    db.session.delete(method)
    db.session.commit()
