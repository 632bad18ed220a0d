# Overview: Domain error taxonomy shared by the catalog, registry, and sale engine.

"""
Every failure the sale engine can report is a DomainError subclass.

- code: stable machine-readable kind (e.g. "INSUFFICIENT_STOCK")
- http_status: what a transport layer should answer with
- details: structured context (offending ids, requested vs on-hand, ...)

Validation errors are raised before any write. Errors raised after writes
started are rolled back by run_with_retry, never half-applied.
"""

from __future__ import annotations


class DomainError(Exception):
    code = "DOMAIN_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class InvalidInputError(DomainError):
    """Missing required identity, reference, or line-item set."""
    code = "INVALID_INPUT"


class NotFoundError(DomainError):
    code = "NOT_FOUND"
    http_status = 404


class ProductNotActiveError(DomainError):
    code = "PRODUCT_NOT_ACTIVE"
    http_status = 409


class PaymentMethodNotActiveError(DomainError):
    code = "PAYMENT_METHOD_NOT_ACTIVE"
    http_status = 409


class InsufficientStockError(DomainError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409


class InvalidQuantityError(DomainError):
    code = "INVALID_QUANTITY"


class InvalidPriceError(DomainError):
    code = "INVALID_PRICE"


class SaleError(DomainError):
    """Raised for sale operation errors."""
    code = "SALE_ERROR"


class InvalidDiscountError(SaleError):
    code = "INVALID_DISCOUNT"


class DiscountExceedsTotalError(SaleError):
    code = "DISCOUNT_EXCEEDS_TOTAL"


class SaleCannotBeVoidedError(SaleError):
    code = "SALE_CANNOT_BE_VOIDED"
    http_status = 409
