from __future__ import annotations

from ..extensions import db
from gympos.time_utils import to_utc_z

SALE_KIND_NORMAL = "NORMAL"
SALE_KIND_VOID = "VOID"

SALE_STATUS_PENDING = "PENDING"
SALE_STATUS_COMPLETED = "COMPLETED"
SALE_STATUS_VOIDED = "VOIDED"


class Sale(db.Model):
    """
    Sale header: aggregate record for one transaction.

    LIFECYCLE: PENDING -> COMPLETED -> VOIDED. Only COMPLETED NORMAL sales
    can be voided.

    VOIDS: voiding never edits the money on the original. It flips the
    original to VOIDED and writes a compensating VOID-kind sale with negated
    totals whose voided_sale_id points back at the original. A NORMAL sale
    never carries voided_sale_id; a VOID sale always does.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint(
            "(kind = 'VOID' AND voided_sale_id IS NOT NULL) OR "
            "(kind = 'NORMAL' AND voided_sale_id IS NULL)",
            name="ck_sales_kind_back_reference",
        ),
        db.Index("ix_sales_sale_date", "sale_date"),
        db.Index("ix_sales_user_sale_date", "user_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False)

    # Totals in cents (negative on VOID sales)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    total_discount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Acting user (owned by the auth subsystem, not enforced here)
    user_id = db.Column(db.Integer, nullable=False, index=True)

    kind = db.Column(db.String(16), nullable=False, default=SALE_KIND_NORMAL, index=True)
    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_PENDING, index=True)

    payment_method_id = db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=False, index=True)
    voided_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    # Void audit trail
    voided_by_user_id = db.Column(db.Integer, nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    payment_method = db.relationship("PaymentMethod")
    voided_sale = db.relationship("Sale", remote_side=[id])
    __mapper_args__ = {"version_id_col": version_id}

    def is_normal(self) -> bool:
        return self.kind == SALE_KIND_NORMAL

    def is_void(self) -> bool:
        return self.kind == SALE_KIND_VOID

    def can_be_voided(self) -> bool:
        return self.is_normal() and self.status == SALE_STATUS_COMPLETED

    def __repr__(self) -> str:
        return f"<Sale id={self.id} kind={self.kind} status={self.status} total_cents={self.total_cents}>"

    def to_dict(self, include_details: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_date": to_utc_z(self.sale_date),
            "total_cents": self.total_cents,
            "total_discount_cents": self.total_discount_cents,
            "user_id": self.user_id,
            "kind": self.kind,
            "status": self.status,
            "payment_method_id": self.payment_method_id,
            "voided_sale_id": self.voided_sale_id,
            "voided_by_user_id": self.voided_by_user_id,
            "voided_at": to_utc_z(self.voided_at),
            "void_reason": self.void_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_details:
            data["details"] = [d.to_dict() for d in self.details]
        return data


class SaleDetail(db.Model):
    """
    Line item on a sale. Written once with its sale, never updated.

    On VOID sales the money columns are negated but quantity stays positive:
    it counts units moved, it is not a signed ledger value.
    """
    __tablename__ = "sale_details"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_details_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    gross_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    net_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("details", lazy=True, order_by="SaleDetail.id"))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "gross_cents": self.gross_cents,
            "discount_cents": self.discount_cents,
            "net_cents": self.net_cents,
            "created_at": to_utc_z(self.created_at),
        }
