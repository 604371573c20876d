from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db
from posting_engine.time_utils import to_utc_z


class _VoidFieldsMixin:
    """
    Void metadata written exactly once by the void processor.

    voided is claimed with a conditional UPDATE (voided = false -> true) so
    two concurrent voids of the same document cannot both proceed.
    """
    voided = db.Column(db.Boolean, nullable=False, default=False, index=True)
    void_date = db.Column(db.DateTime(timezone=True), nullable=True)
    void_sys_date = db.Column(db.DateTime(timezone=True), nullable=True)
    void_no = db.Column(db.String(32), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)
    void_user_id = db.Column(db.Integer, nullable=True)

    def void_dict(self) -> dict:
        return {
            "voided": self.voided,
            "void_date": to_utc_z(self.void_date),
            "void_no": self.void_no,
            "void_reason": self.void_reason,
            "void_user_id": self.void_user_id,
        }


class _ItemLineMixin:
    """
    Priced item line. Reversal rows written by a void carry negative
    quantity and line total.
    """
    id = db.Column(db.Integer, primary_key=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @declared_attr
    def product_id(cls):
        return db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class Sale(_VoidFieldsMixin, db.Model):
    """
    Checkout snapshot, one per posted cart.

    WHY: Receipts and invoices come and go (voids, payments), the sale keeps
    what the customer was charged and what they handed over at the counter.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_customer_date", "customer_id", "trans_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True)

    receipt_no = db.Column(db.String(32), nullable=True, index=True)
    invoice_no = db.Column(db.String(32), nullable=True, index=True)

    total_due_cents = db.Column(db.Integer, nullable=False)
    total_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    change_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_method_id = db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=True)

    trans_type = db.Column(db.String(32), nullable=False)
    year_part = db.Column(db.Integer, nullable=False)
    month_part = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship("SaleLine", backref="sale", lazy=True, order_by="SaleLine.id")

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "trans_date": to_utc_z(self.trans_date),
            "customer_id": self.customer_id,
            "store_id": self.store_id,
            "receipt_no": self.receipt_no,
            "invoice_no": self.invoice_no,
            "total_due_cents": self.total_due_cents,
            "total_paid_cents": self.total_paid_cents,
            "change_cents": self.change_cents,
            "payment_method_id": self.payment_method_id,
            "trans_type": self.trans_type,
            "year_part": self.year_part,
            "month_part": self.month_part,
            "user_id": self.user_id,
        }
        data.update(self.void_dict())
        return data


class SaleLine(_ItemLineMixin, db.Model):
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)


class Receipt(_VoidFieldsMixin, db.Model):
    """Cash receipt for a fully paid (or zero-value) sale. No debtor impact."""
    __tablename__ = "receipts"
    __table_args__ = (
        db.UniqueConstraint("receipt_no", name="uq_receipts_receipt_no"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    receipt_no = db.Column(db.String(32), nullable=False)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    total_due_cents = db.Column(db.Integer, nullable=False)
    total_paid_cents = db.Column(db.Integer, nullable=False)
    change_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_method_id = db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=True)

    trans_type = db.Column(db.String(32), nullable=False)
    year_part = db.Column(db.Integer, nullable=False)
    month_part = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship("ReceiptLine", backref="receipt", lazy=True, order_by="ReceiptLine.id")

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "receipt_no": self.receipt_no,
            "trans_date": to_utc_z(self.trans_date),
            "customer_id": self.customer_id,
            "total_due_cents": self.total_due_cents,
            "total_paid_cents": self.total_paid_cents,
            "change_cents": self.change_cents,
            "payment_method_id": self.payment_method_id,
            "trans_type": self.trans_type,
            "lines": [line.to_dict() for line in self.lines],
        }
        data.update(self.void_dict())
        return data


class ReceiptLine(_ItemLineMixin, db.Model):
    __tablename__ = "receipt_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    receipt_id = db.Column(db.Integer, db.ForeignKey("receipts.id"), nullable=False, index=True)


class Invoice(_VoidFieldsMixin, db.Model):
    """
    Credit sale awaiting payment.

    STATUS:
    - OPEN: balance outstanding
    - CLOSED: balance_due == 0
    - CANCELLED: voided (terminal)

    balance_due_cents and total_paid_cents are only changed through atomic
    column increments in invoice_service.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_no", name="uq_invoices_invoice_no"),
        db.Index("ix_invoices_customer_status", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_no = db.Column(db.String(32), nullable=False)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    total_due_cents = db.Column(db.Integer, nullable=False)
    total_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_due_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="OPEN", index=True)

    trans_type = db.Column(db.String(32), nullable=False)
    year_part = db.Column(db.Integer, nullable=False)
    month_part = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship("InvoiceLine", backref="invoice", lazy=True, order_by="InvoiceLine.id")

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "invoice_no": self.invoice_no,
            "trans_date": to_utc_z(self.trans_date),
            "customer_id": self.customer_id,
            "total_due_cents": self.total_due_cents,
            "total_paid_cents": self.total_paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "status": self.status,
            "trans_type": self.trans_type,
            "lines": [line.to_dict() for line in self.lines],
        }
        data.update(self.void_dict())
        return data


class InvoiceLine(_ItemLineMixin, db.Model):
    __tablename__ = "invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)


class InvoiceLog(db.Model):
    """
    Append-only invoice ledger.

    Debits raise what the customer owes on the invoice, credits lower it.
    Never used to compute balances; balances are denormalized on Invoice.
    """
    __tablename__ = "invoice_logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False)
    invoice_no = db.Column(db.String(32), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    reference_no = db.Column(db.String(32), nullable=True, index=True)
    trans_type = db.Column(db.String(32), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    debit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)

    year_part = db.Column(db.Integer, nullable=False)
    month_part = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "trans_date": to_utc_z(self.trans_date),
            "invoice_no": self.invoice_no,
            "customer_id": self.customer_id,
            "reference_no": self.reference_no,
            "trans_type": self.trans_type,
            "description": self.description,
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
        }


class InvoicePayment(_VoidFieldsMixin, db.Model):
    """
    Receipt-level payment against one or more invoices.

    INVARIANT: total_paid_cents == SUM(details.amount_cents).
    """
    __tablename__ = "invoice_payments"
    __table_args__ = (
        db.UniqueConstraint("receipt_no", name="uq_invoice_payments_receipt_no"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    receipt_no = db.Column(db.String(32), nullable=False)
    trans_date = db.Column(db.DateTime(timezone=True), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    total_paid_cents = db.Column(db.Integer, nullable=False)
    payment_method_id = db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=True)

    trans_type = db.Column(db.String(32), nullable=False)
    year_part = db.Column(db.Integer, nullable=False)
    month_part = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    details = db.relationship("InvoicePaymentDetail", backref="payment", lazy=True, order_by="InvoicePaymentDetail.id")

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "receipt_no": self.receipt_no,
            "trans_date": to_utc_z(self.trans_date),
            "customer_id": self.customer_id,
            "total_paid_cents": self.total_paid_cents,
            "payment_method_id": self.payment_method_id,
            "trans_type": self.trans_type,
            "details": [d.to_dict() for d in self.details],
        }
        data.update(self.void_dict())
        return data


class InvoicePaymentDetail(db.Model):
    """One invoice's share of an InvoicePayment."""
    __tablename__ = "invoice_payment_details"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_payment_id = db.Column(db.Integer, db.ForeignKey("invoice_payments.id"), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    invoice_no = db.Column(db.String(32), nullable=False)
    receipt_no = db.Column(db.String(32), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    balance_before_cents = db.Column(db.Integer, nullable=False)

    invoice = db.relationship("Invoice")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_payment_id": self.invoice_payment_id,
            "invoice_id": self.invoice_id,
            "invoice_no": self.invoice_no,
            "receipt_no": self.receipt_no,
            "amount_cents": self.amount_cents,
            "balance_before_cents": self.balance_before_cents,
        }
