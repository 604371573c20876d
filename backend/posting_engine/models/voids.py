from __future__ import annotations

from ..extensions import db
from posting_engine.time_utils import to_utc_z
from .billing import _ItemLineMixin


class VoidedSale(db.Model):
    """
    Historical snapshot of a voided receipt, invoice or invoice payment.

    SOURCES:
    - CASH_SALE: a receipt (fully paid sale) was voided
    - INVOICE_SALE: an invoice was cancelled
    - INVOICE_PAYMENT: a payment against invoices was voided

    INVARIANTS:
    - refunded_amount_cents <= total_paid_cents
    - is_refunded == (refunded_amount_cents >= total_paid_cents)
    """
    __tablename__ = "voided_sales"
    __table_args__ = (
        db.UniqueConstraint("void_no", name="uq_voided_sales_void_no"),
        db.CheckConstraint("refunded_amount_cents >= 0", name="ck_voided_sales_refunded_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    void_no = db.Column(db.String(32), nullable=False)
    void_source = db.Column(db.String(32), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)
    receipt_no = db.Column(db.String(32), nullable=True, index=True)
    invoice_no = db.Column(db.String(32), nullable=True, index=True)

    trans_date = db.Column(db.DateTime(timezone=True), nullable=False)
    void_date = db.Column(db.DateTime(timezone=True), nullable=False)
    void_sys_date = db.Column(db.DateTime(timezone=True), nullable=False)
    void_reason = db.Column(db.String(255), nullable=True)

    total_due_cents = db.Column(db.Integer, nullable=False, default=0)
    total_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_due_cents = db.Column(db.Integer, nullable=False, default=0)
    paid_for_invoice_cents = db.Column(db.Integer, nullable=False, default=0)
    status_at_void = db.Column(db.String(16), nullable=True)

    refunded_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    is_refunded = db.Column(db.Boolean, nullable=False, default=False)

    trans_type = db.Column(db.String(32), nullable=False)
    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship("VoidedSaleLine", backref="voided_sale", lazy=True, order_by="VoidedSaleLine.id")
    refunds = db.relationship("Refund", backref="voided_sale", lazy=True, order_by="Refund.id")

    @property
    def refundable_cents(self) -> int:
        return max(0, (self.total_paid_cents or 0) - (self.refunded_amount_cents or 0))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "void_no": self.void_no,
            "void_source": self.void_source,
            "customer_id": self.customer_id,
            "sale_id": self.sale_id,
            "receipt_no": self.receipt_no,
            "invoice_no": self.invoice_no,
            "trans_date": to_utc_z(self.trans_date),
            "void_date": to_utc_z(self.void_date),
            "void_reason": self.void_reason,
            "total_due_cents": self.total_due_cents,
            "total_paid_cents": self.total_paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "paid_for_invoice_cents": self.paid_for_invoice_cents,
            "status_at_void": self.status_at_void,
            "refunded_amount_cents": self.refunded_amount_cents,
            "is_refunded": self.is_refunded,
            "refundable_cents": self.refundable_cents,
            "trans_type": self.trans_type,
            "lines": [line.to_dict() for line in self.lines],
        }


class VoidedSaleLine(_ItemLineMixin, db.Model):
    """Positive historical copy of a line that was reversed by a void."""
    __tablename__ = "voided_sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    voided_sale_id = db.Column(db.Integer, db.ForeignKey("voided_sales.id"), nullable=False, index=True)


class Refund(db.Model):
    """Cash returned against a voided sale. IMMUTABLE."""
    __tablename__ = "refunds"
    __table_args__ = (
        db.UniqueConstraint("refund_no", name="uq_refunds_refund_no"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    refund_no = db.Column(db.String(32), nullable=False)
    voided_sale_id = db.Column(db.Integer, db.ForeignKey("voided_sales.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    refund_date = db.Column(db.DateTime(timezone=True), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method_id = db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=False)
    remarks = db.Column(db.String(255), nullable=True)

    year_part = db.Column(db.Integer, nullable=False)
    month_part = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "refund_no": self.refund_no,
            "voided_sale_id": self.voided_sale_id,
            "customer_id": self.customer_id,
            "refund_date": to_utc_z(self.refund_date),
            "amount_cents": self.amount_cents,
            "payment_method_id": self.payment_method_id,
            "remarks": self.remarks,
            "user_id": self.user_id,
        }
