# Overview: Void/reversal processor; applies the exact inverse of a posted receipt, invoice or invoice payment.

"""
Void Service

WHY: Posted documents are never edited or deleted. A mistake is corrected
by a void that writes compensating entries and an immutable VoidedSale
snapshot, so every ledger can be replayed to the current balance.

ORDERING (the safety-critical rule):
An invoice void first voids every non-void payment applied to the
invoice (restoring the debt those payments settled), then cancels the
invoice and removes its full original amount from the debtor. Reversing
in the other order would double count the debtor adjustment. The order is
produced by compute_reversal_plan and nowhere else.

CLAIMS:
Each document is claimed with a conditional UPDATE (voided false -> true)
before anything else is written. A claim affecting zero rows means another
void got there first and the operation fails with "already voided".
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Sequence

from ..errors import LedgerError
from ..extensions import db
from ..models import (
    Invoice,
    InvoiceLine,
    InvoicePayment,
    InvoicePaymentDetail,
    Receipt,
    ReceiptLine,
    Sale,
    SaleLine,
    VoidedSale,
    VoidedSaleLine,
)
from posting_engine.constants import (
    PREFIX_VOID,
    BillingTransType,
    InvoiceStatus,
    InvoiceTransType,
    VoidSource,
)
from posting_engine.time_utils import normalize_trans_date, utcnow
from .concurrency import claim_row, run_in_transaction
from .debtor_service import adjust_debtor_balance, ensure_debtor
from .invoice_service import cancel_invoice, reverse_invoice_payment
from .ledger_service import write_debtor_log, write_invoice_log
from .numbering_service import next_reference_number


class VoidError(LedgerError):
    """Raised when a void cannot be applied."""
    pass


# =============================================================================
# REVERSAL PLAN (pure)
# =============================================================================

class ReversalAction(str, Enum):
    VOID_RECEIPT = "VOID_RECEIPT"
    VOID_PAYMENT = "VOID_PAYMENT"
    CANCEL_INVOICE = "CANCEL_INVOICE"


class TargetKind(str, Enum):
    RECEIPT = "RECEIPT"
    INVOICE = "INVOICE"
    PAYMENT = "PAYMENT"


@dataclass(frozen=True)
class AttachedPayment:
    receipt_no: str
    voided: bool = False


@dataclass(frozen=True)
class ReversalTarget:
    """What is being voided, plus the payments applied to it (posting order)."""
    kind: TargetKind
    reference_no: str
    payments: tuple[AttachedPayment, ...] = ()


@dataclass(frozen=True)
class ReversalStep:
    action: ReversalAction
    reference_no: str


def compute_reversal_plan(target: ReversalTarget) -> list[ReversalStep]:
    """
    Ordered steps that undo target.

    - RECEIPT: [VOID_RECEIPT]
    - PAYMENT: [VOID_PAYMENT]
    - INVOICE: one VOID_PAYMENT per distinct non-void attached payment, in
      posting order, then exactly one CANCEL_INVOICE
    """
    kind = TargetKind(target.kind)
    if kind == TargetKind.RECEIPT:
        return [ReversalStep(ReversalAction.VOID_RECEIPT, target.reference_no)]
    if kind == TargetKind.PAYMENT:
        return [ReversalStep(ReversalAction.VOID_PAYMENT, target.reference_no)]

    steps: list[ReversalStep] = []
    seen: set[str] = set()
    for payment in target.payments:
        if payment.voided or payment.receipt_no in seen:
            continue
        seen.add(payment.receipt_no)
        steps.append(ReversalStep(ReversalAction.VOID_PAYMENT, payment.receipt_no))
    steps.append(ReversalStep(ReversalAction.CANCEL_INVOICE, target.reference_no))
    return steps


def load_invoice_target(invoice: Invoice) -> ReversalTarget:
    """Build the reversal target for an invoice from the payments applied to it."""
    rows: Sequence[tuple[str, bool]] = (
        db.session.query(InvoicePayment.receipt_no, InvoicePayment.voided)
        .join(InvoicePaymentDetail, InvoicePaymentDetail.invoice_payment_id == InvoicePayment.id)
        .filter(InvoicePaymentDetail.invoice_id == invoice.id)
        .order_by(InvoicePayment.id)
        .all()
    )
    return ReversalTarget(
        kind=TargetKind.INVOICE,
        reference_no=invoice.invoice_no,
        payments=tuple(AttachedPayment(receipt_no, bool(voided)) for receipt_no, voided in rows),
    )


# =============================================================================
# HELPERS
# =============================================================================

@dataclass(frozen=True)
class _VoidStamp:
    void_no: str
    void_date: datetime
    void_sys_date: datetime
    reason: str | None
    user_id: int | None

    def fields(self, trans_type: str) -> dict:
        return {
            "void_no": self.void_no,
            "void_date": self.void_date,
            "void_sys_date": self.void_sys_date,
            "void_reason": self.reason,
            "void_user_id": self.user_id,
            "trans_type": trans_type,
        }


def _new_stamp(void_date: datetime, reason: str | None, user_id: int | None) -> _VoidStamp:
    return _VoidStamp(
        void_no=next_reference_number(PREFIX_VOID, when=void_date),
        void_date=void_date,
        void_sys_date=utcnow(),
        reason=reason,
        user_id=user_id,
    )


def _claim(model, row_id: int, stamp: _VoidStamp, trans_type: str, label: str) -> None:
    if not claim_row(model, row_id, "voided", **stamp.fields(trans_type)):
        raise VoidError(f"{label} already voided")


def _reverse_lines(source_lines, *, line_model, parent_field: str, parent_id: int, sale: Sale | None, voided_sale: VoidedSale) -> None:
    """Negative reversal rows on the document (and sale), positive copies on the VoidedSale."""
    originals = [line for line in source_lines if line.quantity > 0]
    for line in originals:
        reversal = {
            "product_id": line.product_id,
            "quantity": -line.quantity,
            "unit_price_cents": line.unit_price_cents,
            "line_total_cents": -line.line_total_cents,
        }
        db.session.add(line_model(**{parent_field: parent_id}, **reversal))
        if sale is not None:
            db.session.add(SaleLine(sale_id=sale.id, **reversal))
        db.session.add(VoidedSaleLine(
            voided_sale_id=voided_sale.id,
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents,
            line_total_cents=line.line_total_cents,
        ))


def _mirror_on_sale(sale: Sale | None, stamp: _VoidStamp) -> None:
    if sale is None:
        return
    claim_row(Sale, sale.id, "voided", **stamp.fields(BillingTransType.SALE_CANCELLATION.value))
    db.session.refresh(sale)


# =============================================================================
# VOID STEPS (run inside an enclosing transaction)
# =============================================================================

def _void_receipt_locked(receipt_no: str, void_date: datetime, reason: str | None, user_id: int | None) -> VoidedSale:
    receipt = db.session.query(Receipt).filter_by(receipt_no=receipt_no).first()
    if not receipt:
        raise VoidError(f"Receipt {receipt_no} not found")

    stamp = _new_stamp(void_date, reason, user_id)
    _claim(Receipt, receipt.id, stamp, BillingTransType.SALE_CANCELLATION.value, f"Receipt {receipt_no}")
    db.session.refresh(receipt)

    sale = db.session.query(Sale).filter_by(receipt_no=receipt_no, invoice_no=None).first()
    _mirror_on_sale(sale, stamp)

    # Change handed back at the counter was never kept, so it is not refundable
    kept = receipt.total_paid_cents - receipt.change_cents
    voided_sale = VoidedSale(
        void_no=stamp.void_no,
        void_source=VoidSource.CASH_SALE.value,
        customer_id=receipt.customer_id,
        sale_id=sale.id if sale else None,
        receipt_no=receipt_no,
        trans_date=receipt.trans_date,
        void_date=void_date,
        void_sys_date=stamp.void_sys_date,
        void_reason=reason,
        total_due_cents=receipt.total_due_cents,
        total_paid_cents=kept,
        balance_due_cents=max(0, receipt.total_due_cents - kept),
        status_at_void=None,
        refunded_amount_cents=0,
        is_refunded=kept <= 0,
        trans_type=BillingTransType.SALE_CANCELLATION.value,
        user_id=user_id,
    )
    db.session.add(voided_sale)
    db.session.flush()

    _reverse_lines(
        list(receipt.lines),
        line_model=ReceiptLine,
        parent_field="receipt_id",
        parent_id=receipt.id,
        sale=sale,
        voided_sale=voided_sale,
    )
    db.session.flush()
    return voided_sale


def _void_payment_locked(receipt_no: str, void_date: datetime, reason: str | None, user_id: int | None) -> VoidedSale:
    payment = db.session.query(InvoicePayment).filter_by(receipt_no=receipt_no).first()
    if not payment:
        raise VoidError(f"Payment {receipt_no} not found")

    stamp = _new_stamp(void_date, reason, user_id)
    _claim(InvoicePayment, payment.id, stamp, BillingTransType.PAYMENT_CANCELLATION.value, f"Payment {receipt_no}")
    db.session.refresh(payment)

    voided_sale = VoidedSale(
        void_no=stamp.void_no,
        void_source=VoidSource.INVOICE_PAYMENT.value,
        customer_id=payment.customer_id,
        receipt_no=receipt_no,
        trans_date=payment.trans_date,
        void_date=void_date,
        void_sys_date=stamp.void_sys_date,
        void_reason=reason,
        total_due_cents=0,
        total_paid_cents=payment.total_paid_cents,
        balance_due_cents=0,
        paid_for_invoice_cents=payment.total_paid_cents,
        refunded_amount_cents=0,
        is_refunded=payment.total_paid_cents <= 0,
        trans_type=BillingTransType.PAYMENT_CANCELLATION.value,
        user_id=user_id,
    )
    db.session.add(voided_sale)

    for detail in payment.details:
        invoice = db.session.get(Invoice, detail.invoice_id)
        if invoice is None or invoice.status == InvoiceStatus.CANCELLED.value:
            continue
        reverse_invoice_payment(invoice, detail.amount_cents)
        write_invoice_log(
            invoice_no=invoice.invoice_no,
            customer_id=invoice.customer_id,
            trans_date=void_date,
            trans_type=InvoiceTransType.PAYMENT_CANCELLATION.value,
            reference_no=stamp.void_no,
            debit_cents=detail.amount_cents,
            description=f"Reversal for payment {receipt_no}",
            user_id=user_id,
        )

    debtor = ensure_debtor(payment.customer_id)
    adjust_debtor_balance(debtor, payment.total_paid_cents)
    write_debtor_log(
        debtor_id=debtor.id,
        customer_id=payment.customer_id,
        trans_date=void_date,
        trans_type=BillingTransType.PAYMENT_CANCELLATION.value,
        reference_no=stamp.void_no,
        debit_cents=payment.total_paid_cents,
        description=f"Payment reversal {receipt_no}",
        user_id=user_id,
    )
    db.session.flush()
    return voided_sale


def _void_invoice_locked(invoice_no: str, void_date: datetime, reason: str | None, user_id: int | None) -> VoidedSale:
    invoice = db.session.query(Invoice).filter_by(invoice_no=invoice_no).first()
    if not invoice:
        raise VoidError(f"Invoice {invoice_no} not found")

    stamp = _new_stamp(void_date, reason, user_id)
    _claim(Invoice, invoice.id, stamp, BillingTransType.SALE_CANCELLATION.value, f"Invoice {invoice_no}")
    db.session.refresh(invoice)

    paid_before_void = invoice.total_paid_cents
    for step in compute_reversal_plan(load_invoice_target(invoice)):
        if step.action == ReversalAction.VOID_PAYMENT:
            _void_payment_locked(
                step.reference_no,
                void_date,
                f"Voided due to cancellation of invoice {invoice_no}",
                user_id,
            )
            continue

        db.session.refresh(invoice)
        cancel_invoice(
            invoice,
            void_no=stamp.void_no,
            void_date=void_date,
            void_sys_date=stamp.void_sys_date,
            reason=reason,
            user_id=user_id,
            trans_type=BillingTransType.SALE_CANCELLATION.value,
        )

    sale = db.session.query(Sale).filter_by(invoice_no=invoice_no).first()
    _mirror_on_sale(sale, stamp)

    # Money paid against the invoice is refundable through the payment voids above
    voided_sale = VoidedSale(
        void_no=stamp.void_no,
        void_source=VoidSource.INVOICE_SALE.value,
        customer_id=invoice.customer_id,
        sale_id=sale.id if sale else None,
        invoice_no=invoice_no,
        trans_date=invoice.trans_date,
        void_date=void_date,
        void_sys_date=stamp.void_sys_date,
        void_reason=reason,
        total_due_cents=invoice.total_due_cents,
        total_paid_cents=invoice.total_paid_cents,
        balance_due_cents=invoice.balance_due_cents,
        paid_for_invoice_cents=paid_before_void,
        status_at_void=InvoiceStatus.CANCELLED.value,
        refunded_amount_cents=0,
        is_refunded=invoice.total_paid_cents <= 0,
        trans_type=BillingTransType.SALE_CANCELLATION.value,
        user_id=user_id,
    )
    db.session.add(voided_sale)
    db.session.flush()

    _reverse_lines(
        list(invoice.lines),
        line_model=InvoiceLine,
        parent_field="invoice_id",
        parent_id=invoice.id,
        sale=sale,
        voided_sale=voided_sale,
    )

    write_invoice_log(
        invoice_no=invoice_no,
        customer_id=invoice.customer_id,
        trans_date=void_date,
        trans_type=InvoiceTransType.SALE_CANCELLATION.value,
        reference_no=stamp.void_no,
        credit_cents=invoice.total_due_cents,
        description=f"Cancellation of invoice {invoice_no}",
        user_id=user_id,
    )

    debtor = ensure_debtor(invoice.customer_id)
    adjust_debtor_balance(debtor, -invoice.total_due_cents)
    write_debtor_log(
        debtor_id=debtor.id,
        customer_id=invoice.customer_id,
        trans_date=void_date,
        trans_type=BillingTransType.SALE_CANCELLATION.value,
        reference_no=stamp.void_no,
        credit_cents=invoice.total_due_cents,
        description=f"Cancellation of invoice {invoice_no}",
        user_id=user_id,
    )
    db.session.flush()
    return voided_sale


# =============================================================================
# PUBLIC ENTRY POINTS (one transaction each)
# =============================================================================

def void_receipt(receipt_no: str, reason: str | None, *, actor_user_id: int | None, void_date=None) -> VoidedSale:
    """
    Void a cash receipt and its sale.

    Returns:
        VoidedSale (source CASH_SALE); its total_paid is the refundable amount

    Raises:
        VoidError: Unknown receipt, already voided, or storage failure
    """
    when = normalize_trans_date(void_date)

    def _op():
        return _void_receipt_locked(receipt_no, when, reason, actor_user_id)

    return run_in_transaction(_op, error_cls=VoidError, failure_message="Void failed")


def void_payment(receipt_no: str, reason: str | None, *, actor_user_id: int | None, void_date=None) -> VoidedSale:
    """Void an invoice payment: reopen every invoice it settled and restore the debt."""
    when = normalize_trans_date(void_date)

    def _op():
        return _void_payment_locked(receipt_no, when, reason, actor_user_id)

    return run_in_transaction(_op, error_cls=VoidError, failure_message="Void failed")


def void_invoice(invoice_no: str, reason: str | None, *, actor_user_id: int | None, void_date=None) -> VoidedSale:
    """
    Cancel an invoice after voiding every payment applied to it.

    All nested payment voids share this transaction.
    """
    when = normalize_trans_date(void_date)

    def _op():
        return _void_invoice_locked(invoice_no, when, reason, actor_user_id)

    return run_in_transaction(_op, error_cls=VoidError, failure_message="Void failed")


def void_sale(sale_id: int, reason: str | None, *, actor_user_id: int | None, void_date=None) -> VoidedSale:
    """Void whatever a sale posted: its invoice when it has one, otherwise its receipt."""
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise VoidError(f"Sale {sale_id} not found")
    if sale.invoice_no:
        return void_invoice(sale.invoice_no, reason, actor_user_id=actor_user_id, void_date=void_date)
    if sale.receipt_no:
        return void_receipt(sale.receipt_no, reason, actor_user_id=actor_user_id, void_date=void_date)
    raise VoidError(f"Sale {sale_id} has nothing to void")
