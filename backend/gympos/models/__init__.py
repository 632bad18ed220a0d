from .catalog import Product, PaymentMethod, PAYMENT_METHOD_TYPES
from .sales import (
    Sale,
    SaleDetail,
    SALE_KIND_NORMAL,
    SALE_KIND_VOID,
    SALE_STATUS_PENDING,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_VOIDED,
)

__all__ = [
    'Product', 'PaymentMethod', 'PAYMENT_METHOD_TYPES',
    'Sale', 'SaleDetail',
    'SALE_KIND_NORMAL', 'SALE_KIND_VOID',
    'SALE_STATUS_PENDING', 'SALE_STATUS_COMPLETED', 'SALE_STATUS_VOIDED',
]
