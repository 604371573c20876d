# Overview: Read-only consistency checks over the denormalized balances and the logs that explain them.

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import case, func

from ..extensions import db
from ..models import (
    Debtor,
    DebtorLog,
    Invoice,
    InvoicePayment,
    InvoicePaymentDetail,
    ProductTransaction,
    StockLevel,
    VoidedSale,
)
from posting_engine.constants import BillingTransType, InvoiceStatus


@dataclass
class Violation:
    check: str
    reference: str
    message: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "check": self.check,
            "reference": self.reference,
            "message": self.message,
            "details": self.details,
        }


def _invoice_violations() -> list[Violation]:
    found: list[Violation] = []
    invoices = (
        db.session.query(Invoice)
        .filter(Invoice.status != InvoiceStatus.CANCELLED.value)
        .order_by(Invoice.id)
        .all()
    )
    for invoice in invoices:
        if invoice.balance_due_cents + invoice.total_paid_cents != invoice.total_due_cents:
            found.append(Violation(
                "invoice_balance",
                invoice.invoice_no,
                "balance_due + total_paid != total_due",
                {
                    "balance_due_cents": invoice.balance_due_cents,
                    "total_paid_cents": invoice.total_paid_cents,
                    "total_due_cents": invoice.total_due_cents,
                },
            ))
        closed = invoice.status == InvoiceStatus.CLOSED.value
        if closed != (invoice.balance_due_cents == 0):
            found.append(Violation(
                "invoice_status",
                invoice.invoice_no,
                f"status {invoice.status} with balance {invoice.balance_due_cents}",
            ))
    return found


def _refund_violations() -> list[Violation]:
    found: list[Violation] = []
    for voided in db.session.query(VoidedSale).order_by(VoidedSale.id).all():
        refunded = voided.refunded_amount_cents
        if refunded < 0 or refunded > voided.total_paid_cents:
            found.append(Violation(
                "refund_bounds",
                voided.void_no,
                "refunded amount outside 0..total_paid",
                {"refunded_amount_cents": refunded, "total_paid_cents": voided.total_paid_cents},
            ))
        if voided.is_refunded != (refunded >= voided.total_paid_cents):
            found.append(Violation(
                "refund_flag",
                voided.void_no,
                "is_refunded does not match refunded amount",
            ))
    return found


def _debtor_violations() -> list[Violation]:
    # Refund rows are debits that lower the balance
    movement = case(
        (DebtorLog.trans_type == BillingTransType.REFUND.value, -DebtorLog.debit_cents),
        else_=DebtorLog.debit_cents - DebtorLog.credit_cents,
    )
    logged = dict(
        db.session.query(DebtorLog.debtor_id, func.coalesce(func.sum(movement), 0))
        .group_by(DebtorLog.debtor_id)
        .all()
    )
    found: list[Violation] = []
    for debtor in db.session.query(Debtor).order_by(Debtor.id).all():
        expected = int(logged.get(debtor.id, 0))
        if debtor.balance_cents != expected:
            found.append(Violation(
                "debtor_balance",
                f"customer {debtor.customer_id} {debtor.debtor_type}",
                "debtor balance differs from its log",
                {"balance_cents": debtor.balance_cents, "log_sum_cents": expected},
            ))
    return found


def _stock_violations() -> list[Violation]:
    moved = dict(
        ((product_id, store_id), int(total or 0))
        for product_id, store_id, total in (
            db.session.query(
                ProductTransaction.product_id,
                ProductTransaction.store_id,
                func.sum(ProductTransaction.quantity_in - ProductTransaction.quantity_out),
            )
            .group_by(ProductTransaction.product_id, ProductTransaction.store_id)
            .all()
        )
    )
    found: list[Violation] = []
    levels = {(level.product_id, level.store_id): level.quantity for level in db.session.query(StockLevel).all()}
    for key in sorted(set(moved) | set(levels)):
        on_hand = levels.get(key, 0)
        logged = moved.get(key, 0)
        if on_hand != logged:
            product_id, store_id = key
            found.append(Violation(
                "stock_level",
                f"product {product_id} store {store_id}",
                "stock level differs from movement log",
                {"stock_level": on_hand, "movement_sum": logged},
            ))
    return found


def _payment_violations() -> list[Violation]:
    rows = (
        db.session.query(
            InvoicePayment.receipt_no,
            InvoicePayment.total_paid_cents,
            func.coalesce(func.sum(InvoicePaymentDetail.amount_cents), 0),
        )
        .outerjoin(InvoicePaymentDetail, InvoicePaymentDetail.invoice_payment_id == InvoicePayment.id)
        .group_by(InvoicePayment.id, InvoicePayment.receipt_no, InvoicePayment.total_paid_cents)
        .order_by(InvoicePayment.id)
        .all()
    )
    return [
        Violation(
            "payment_details",
            receipt_no,
            "payment total differs from the sum of its details",
            {"total_paid_cents": total, "detail_sum_cents": int(detail_sum)},
        )
        for receipt_no, total, detail_sum in rows
        if total != int(detail_sum)
    ]


def check_invariants() -> list[Violation]:
    """Run every check; an empty list means the ledgers agree with each other."""
    return (
        _invoice_violations()
        + _refund_violations()
        + _debtor_violations()
        + _stock_violations()
        + _payment_violations()
    )
