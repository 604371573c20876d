# Overview: Invoice status machine; balance/paid moves are atomic increments followed by a status re-derivation.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, update

from ..extensions import db
from ..models import Invoice
from posting_engine.constants import InvoiceStatus
from .concurrency import increment_columns


"""
Invoice invariants

- balance_due + total_paid == total_due while status != CANCELLED
- status == CLOSED iff balance_due == 0 (for non-cancelled invoices)
- CANCELLED is terminal
"""


def _sync_status(invoice_id: int) -> None:
    # Re-derive OPEN/CLOSED from the stored balance, never from a cached object
    db.session.execute(
        update(Invoice)
        .where(Invoice.id == invoice_id, Invoice.status != InvoiceStatus.CANCELLED.value)
        .values(
            status=case(
                (Invoice.balance_due_cents == 0, InvoiceStatus.CLOSED.value),
                else_=InvoiceStatus.OPEN.value,
            )
        )
        .execution_options(synchronize_session="fetch")
    )


def apply_invoice_payment(invoice: Invoice, amount_cents: int) -> Invoice:
    """balance_due -= amount, total_paid += amount; CLOSED when the balance hits zero."""
    if amount_cents <= 0:
        raise ValueError("Payment amount must be positive")
    increment_columns(Invoice, invoice.id, balance_due_cents=-amount_cents, total_paid_cents=amount_cents)
    _sync_status(invoice.id)
    db.session.refresh(invoice)
    return invoice


def reverse_invoice_payment(invoice: Invoice, amount_cents: int) -> Invoice:
    """Undo a payment: balance_due += amount, total_paid -= amount; CLOSED reopens to OPEN."""
    if amount_cents <= 0:
        raise ValueError("Reversal amount must be positive")
    increment_columns(Invoice, invoice.id, balance_due_cents=amount_cents, total_paid_cents=-amount_cents)
    _sync_status(invoice.id)
    db.session.refresh(invoice)
    return invoice


def cancel_invoice(
    invoice: Invoice,
    *,
    void_no: str,
    void_date: datetime,
    void_sys_date: datetime,
    reason: str | None,
    user_id: int | None,
    trans_type: str,
) -> Invoice:
    """Move an invoice to CANCELLED and stamp its void metadata."""
    invoice.status = InvoiceStatus.CANCELLED.value
    invoice.voided = True
    invoice.void_no = void_no
    invoice.void_date = void_date
    invoice.void_sys_date = void_sys_date
    invoice.void_reason = reason
    invoice.void_user_id = user_id
    invoice.trans_type = trans_type
    db.session.flush()
    return invoice
