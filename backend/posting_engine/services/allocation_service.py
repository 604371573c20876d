# Overview: Multi-invoice payment allocator; spreads one payment over a caller-ordered list of open invoices.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from flask import current_app

from ..errors import LedgerError
from ..extensions import db
from ..models import Customer, Invoice, InvoicePayment, InvoicePaymentDetail, PaymentMethod
from posting_engine.constants import (
    PREFIX_RECEIPT,
    BillingTransType,
    InvoiceStatus,
    InvoiceTransType,
    PaymentSource,
)
from posting_engine.time_utils import normalize_trans_date, period_parts
from posting_engine.validation import ValidationError, require_amount, require_id
from .concurrency import lock_for_update, run_in_transaction
from .debtor_service import adjust_debtor_balance, ensure_debtor
from .invoice_service import apply_invoice_payment
from .ledger_service import write_collection, write_debtor_log, write_invoice_log
from .numbering_service import next_reference_number


class AllocationError(LedgerError):
    """Raised when a payment cannot be allocated."""
    pass


@dataclass
class InvoiceAllocation:
    invoice_no: str
    amount_cents: int
    balance_before_cents: int
    balance_after_cents: int
    status: str


@dataclass
class AllocationResult:
    paid_cents: int
    receipt_no: str | None = None
    invoice_payment_id: int | None = None
    collection_id: int | None = None
    allocations: list[InvoiceAllocation] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _invoice_numbers(invoices: Any) -> list[str]:
    numbers: list[str] = []
    for raw in invoices or []:
        if isinstance(raw, str):
            number = raw
        elif isinstance(raw, dict):
            number = raw.get("invoice_no")
        else:
            number = getattr(raw, "invoice_no", None)
        if not number:
            raise ValidationError("Each invoice entry needs an invoice_no")
        numbers.append(str(number).strip())
    return numbers


def allocate_payment(
    customer_id: int,
    paid_amount_cents: int,
    invoices,
    payment_method_id: int | None,
    *,
    actor_user_id: int | None,
    trans_date=None,
) -> AllocationResult:
    """
    Apply one payment across invoices in the order given.

    Each invoice takes min(remaining, its stored balance); iteration stops
    once nothing remains, so later invoices are left untouched. The caller
    decides priority (typically oldest first); the list is never re-sorted.

    Unknown invoices, or invoices of another customer, abort the whole
    allocation. CLOSED or CANCELLED invoices are skipped with a warning.
    A payment larger than the listed balances is rejected so the payment
    total always equals the sum of its details. A paid amount of zero is a
    no-op.

    Returns:
        AllocationResult with per-invoice allocations in application order

    Raises:
        ValidationError: Malformed input
        AllocationError: Unknown customer/invoice/payment method, or a storage
            failure ("Payment allocation failed")
    """
    customer_id = require_id("customer_id", customer_id)
    paid = require_amount("paid_amount_cents", paid_amount_cents)
    numbers = _invoice_numbers(invoices)
    when = normalize_trans_date(trans_date)

    if paid == 0:
        return AllocationResult(paid_cents=0)
    if payment_method_id is None:
        raise ValidationError("payment_method_id is required when an amount is paid")
    if not numbers:
        raise ValidationError("At least one invoice is required")

    year, month = period_parts(when)

    def _op() -> AllocationResult:
        if not db.session.get(Customer, customer_id):
            raise AllocationError(f"Customer {customer_id} not found")
        if not db.session.get(PaymentMethod, payment_method_id):
            raise AllocationError(f"Payment method {payment_method_id} not found")

        receipt_no = next_reference_number(PREFIX_RECEIPT, when=when)
        result = AllocationResult(paid_cents=paid, receipt_no=receipt_no)

        payment = InvoicePayment(
            receipt_no=receipt_no,
            trans_date=when,
            customer_id=customer_id,
            total_paid_cents=paid,
            payment_method_id=payment_method_id,
            trans_type=BillingTransType.PAYMENT.value,
            year_part=year,
            month_part=month,
            user_id=actor_user_id,
        )
        db.session.add(payment)
        db.session.flush()
        result.invoice_payment_id = payment.id

        remaining = paid
        for invoice_no in numbers:
            if remaining <= 0:
                break

            invoice = lock_for_update(db.session.query(Invoice).filter_by(invoice_no=invoice_no)).first()
            if not invoice:
                raise AllocationError(f"Invoice {invoice_no} not found", details={"invoice_no": invoice_no})
            if invoice.customer_id != customer_id:
                raise AllocationError(
                    f"Invoice {invoice_no} does not belong to customer {customer_id}",
                    details={"invoice_no": invoice_no},
                )
            if invoice.status != InvoiceStatus.OPEN.value or invoice.balance_due_cents <= 0:
                current_app.logger.warning(
                    "Skipping invoice %s in payment %s: status %s", invoice_no, receipt_no, invoice.status
                )
                result.skipped.append(invoice_no)
                continue

            balance_before = invoice.balance_due_cents
            amount = min(remaining, balance_before)
            apply_invoice_payment(invoice, amount)

            write_invoice_log(
                invoice_no=invoice_no,
                customer_id=customer_id,
                trans_date=when,
                trans_type=InvoiceTransType.PAYMENT.value,
                reference_no=receipt_no,
                credit_cents=amount,
                description=f"Payment {receipt_no}",
                user_id=actor_user_id,
            )
            db.session.add(InvoicePaymentDetail(
                invoice_payment_id=payment.id,
                invoice_id=invoice.id,
                invoice_no=invoice_no,
                receipt_no=receipt_no,
                amount_cents=amount,
                balance_before_cents=balance_before,
            ))
            result.allocations.append(InvoiceAllocation(
                invoice_no=invoice_no,
                amount_cents=amount,
                balance_before_cents=balance_before,
                balance_after_cents=invoice.balance_due_cents,
                status=invoice.status,
            ))
            remaining -= amount

        if not result.allocations:
            raise AllocationError("No open invoice could take the payment", details={"skipped": result.skipped})

        if remaining:
            raise AllocationError(
                f"Payment exceeds the outstanding balance of the listed invoices by {remaining}",
                details={"unapplied_cents": remaining},
            )

        debtor = ensure_debtor(customer_id)
        adjust_debtor_balance(debtor, -paid)
        write_debtor_log(
            debtor_id=debtor.id,
            customer_id=customer_id,
            trans_date=when,
            trans_type=BillingTransType.PAYMENT.value,
            reference_no=receipt_no,
            credit_cents=paid,
            description=f"Payment {receipt_no}",
            user_id=actor_user_id,
        )

        collection = write_collection(
            receipt_no=receipt_no,
            customer_id=customer_id,
            trans_date=when,
            payment_source=PaymentSource.INVOICE_PAYMENT.value,
            trans_type=BillingTransType.PAYMENT.value,
            amounts={payment_method_id: paid},
            user_id=actor_user_id,
        )
        result.collection_id = collection.id

        db.session.flush()
        return result

    return run_in_transaction(_op, error_cls=AllocationError, failure_message="Payment allocation failed")
