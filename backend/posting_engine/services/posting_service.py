# Overview: Sale/invoice poster; turns a priced cart plus a tendered amount into receipt, invoice, debtor and cash entries.

"""
Sale Posting Service

WHY: A checkout is a single financial event that touches several ledgers.
Posting them together in one transaction keeps receipts, invoices, debtor
balances, collections and stock consistent with each other.

DECISION POLICY:
- amount_due = SUM(quantity * unit_price)
- has_receipt = paid > 0 or amount_due == 0
- has_invoice = paid < amount_due
- A receipt without an invoice is a plain cash sale (no debtor impact)
- Every receipt gets exactly one Collection row, zero-value sales included
- An invoice takes the full amount as debt, then any amount paid at the
  counter is applied to it immediately
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from ..errors import LedgerError
from ..extensions import db
from ..models import (
    Customer,
    Invoice,
    InvoiceLine,
    InvoicePayment,
    InvoicePaymentDetail,
    PaymentMethod,
    Product,
    Receipt,
    ReceiptLine,
    Requisition,
    RequisitionHistory,
    RequisitionLine,
    Sale,
    SaleLine,
    Store,
)
from posting_engine.constants import (
    PREFIX_INVOICE,
    PREFIX_RECEIPT,
    STAGE_POSTED,
    BillingTransType,
    InvoiceStatus,
    InvoiceTransType,
    PartyKind,
    PaymentSource,
)
from posting_engine.time_utils import normalize_trans_date, period_parts
from posting_engine.validation import LineItem, StockItem, ValidationError, parse_line_items, require_amount, require_id
from .concurrency import run_in_transaction
from .debtor_service import adjust_debtor_balance, ensure_debtor
from .inventory_service import _post_issue
from .invoice_service import apply_invoice_payment
from .ledger_service import write_collection, write_debtor_log, write_invoice_log
from .numbering_service import next_reference_number


class PostingError(LedgerError):
    """Raised when a sale cannot be posted."""
    pass


@dataclass
class PostingResult:
    sale_id: int
    amount_due_cents: int
    paid_cents: int
    change_cents: int
    receipt_no: str | None = None
    invoice_no: str | None = None
    invoice_id: int | None = None
    receipt_id: int | None = None
    invoice_payment_id: int | None = None
    collection_id: int | None = None
    issue_id: int | None = None

    @property
    def has_receipt(self) -> bool:
        return self.receipt_no is not None

    @property
    def has_invoice(self) -> bool:
        return self.invoice_no is not None


def _copy_lines(model, parent_field: str, parent_id: int, lines: list[LineItem]) -> None:
    for line in lines:
        db.session.add(model(**{
            parent_field: parent_id,
            "product_id": line.product_id,
            "quantity": line.quantity,
            "unit_price_cents": line.unit_price_cents,
            "line_total_cents": line.line_total_cents,
        }))


def _issue_sold_stock(
    *,
    sale: Sale,
    customer: Customer,
    store_id: int,
    lines: list[LineItem],
    trans_date: datetime,
    user_id: int | None,
):
    """Record a posted requisition for the sale and issue the goods to the customer at cost."""
    costs = dict(
        db.session.query(Product.id, Product.cost_price_cents)
        .filter(Product.id.in_({line.product_id for line in lines}))
        .all()
    )
    missing = {line.product_id for line in lines} - set(costs)
    if missing:
        raise PostingError(f"Unknown products: {sorted(missing)}")

    items = [StockItem(line.product_id, line.quantity, costs[line.product_id] or 0) for line in lines]

    issue_doc = _post_issue(
        from_store_id=store_id,
        to_kind=PartyKind.CUSTOMER,
        to_id=customer.id,
        to_name=customer.display_name,
        items=items,
        delivery_no=sale.receipt_no or sale.invoice_no,
        expiry_date=None,
        trans_date=trans_date,
        user_id=user_id,
        check_stock=False,
    )

    requisition = Requisition(
        trans_date=trans_date,
        sale_id=sale.id,
        from_store_id=store_id,
        to_kind=PartyKind.CUSTOMER.value,
        to_id=customer.id,
        stage=STAGE_POSTED,
        total_cents=issue_doc.total_cents,
        delivery_no=issue_doc.delivery_no,
        user_id=user_id,
    )
    db.session.add(requisition)
    db.session.flush()
    for item in items:
        db.session.add(RequisitionLine(
            requisition_id=requisition.id,
            product_id=item.product_id,
            quantity=item.quantity,
            price_cents=item.price_cents,
        ))
    db.session.add(RequisitionHistory(
        requisition_id=requisition.id,
        stage=STAGE_POSTED,
        remarks=f"Sold at cashier ({sale.receipt_no or sale.invoice_no})",
        user_id=user_id,
    ))
    return issue_doc


def post_sale_transaction(
    customer_id: int,
    line_items,
    paid_amount_cents: int,
    payment_method_id: int | None,
    store_id: int | None,
    *,
    actor_user_id: int | None,
    trans_date=None,
) -> PostingResult:
    """
    Post a checkout.

    Args:
        customer_id: Customer being billed
        line_items: [{product_id, quantity, unit_price_cents}], at least one
        paid_amount_cents: Amount tendered at the counter (>= 0)
        payment_method_id: Tender; required when paid_amount_cents > 0
        store_id: Selling store; stock is issued from it when the cashier
            affects stock
        actor_user_id: User stamped on every row written
        trans_date: Business date (defaults to now; may be backdated)

    Returns:
        PostingResult with the numbers and ids created

    Raises:
        ValidationError: Malformed input (nothing written)
        PostingError: Unknown customer/store/payment method, or a storage
            failure ("Sale posting failed"); the whole posting is rolled back
    """
    lines = parse_line_items(line_items)
    customer_id = require_id("customer_id", customer_id)
    paid = require_amount("paid_amount_cents", paid_amount_cents)
    if paid > 0 and payment_method_id is None:
        raise ValidationError("payment_method_id is required when an amount is paid")
    when = normalize_trans_date(trans_date)

    amount_due = sum(line.line_total_cents for line in lines)
    has_receipt = paid > 0 or amount_due == 0
    has_invoice = paid < amount_due
    change = max(0, paid - amount_due)
    year, month = period_parts(when)
    affect_stock = current_app.config["LEDGER_AFFECT_STOCK_AT_CASHIER"]

    def _op() -> PostingResult:
        customer = db.session.get(Customer, customer_id)
        if not customer:
            raise PostingError(f"Customer {customer_id} not found")
        if payment_method_id is not None and not db.session.get(PaymentMethod, payment_method_id):
            raise PostingError(f"Payment method {payment_method_id} not found")
        if affect_stock:
            if store_id is None:
                raise PostingError("store_id is required when sales affect stock")
            if not db.session.get(Store, store_id):
                raise PostingError(f"Store {store_id} not found")

        receipt_no = next_reference_number(PREFIX_RECEIPT, when=when) if has_receipt else None
        invoice_no = next_reference_number(PREFIX_INVOICE, when=when) if has_invoice else None

        result = PostingResult(
            sale_id=0,
            amount_due_cents=amount_due,
            paid_cents=paid,
            change_cents=change,
            receipt_no=receipt_no,
            invoice_no=invoice_no,
        )

        trans_type = BillingTransType.INVOICE.value if has_invoice else BillingTransType.CASH.value

        if has_invoice:
            invoice = Invoice(
                invoice_no=invoice_no,
                trans_date=when,
                customer_id=customer_id,
                total_due_cents=amount_due,
                total_paid_cents=0,
                balance_due_cents=amount_due,
                status=InvoiceStatus.OPEN.value,
                trans_type=trans_type,
                year_part=year,
                month_part=month,
                user_id=actor_user_id,
            )
            db.session.add(invoice)
            db.session.flush()
            _copy_lines(InvoiceLine, "invoice_id", invoice.id, lines)
            result.invoice_id = invoice.id

            write_invoice_log(
                invoice_no=invoice_no,
                customer_id=customer_id,
                trans_date=when,
                trans_type=InvoiceTransType.NEW_INVOICE.value,
                reference_no=invoice_no,
                debit_cents=amount_due,
                description=f"Invoice {invoice_no}",
                user_id=actor_user_id,
            )

            debtor = ensure_debtor(customer_id)
            adjust_debtor_balance(debtor, amount_due)
            write_debtor_log(
                debtor_id=debtor.id,
                customer_id=customer_id,
                trans_date=when,
                trans_type=BillingTransType.INVOICE.value,
                reference_no=invoice_no,
                debit_cents=amount_due,
                description=f"Invoice {invoice_no}",
                user_id=actor_user_id,
            )

            if has_receipt:
                apply_invoice_payment(invoice, paid)
                write_invoice_log(
                    invoice_no=invoice_no,
                    customer_id=customer_id,
                    trans_date=when,
                    trans_type=InvoiceTransType.PAYMENT.value,
                    reference_no=receipt_no,
                    credit_cents=paid,
                    description=f"Payment {receipt_no}",
                    user_id=actor_user_id,
                )
                adjust_debtor_balance(debtor, -paid)
                write_debtor_log(
                    debtor_id=debtor.id,
                    customer_id=customer_id,
                    trans_date=when,
                    trans_type=BillingTransType.PAYMENT.value,
                    reference_no=receipt_no,
                    credit_cents=paid,
                    description=f"Payment {receipt_no} on {invoice_no}",
                    user_id=actor_user_id,
                )

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
                db.session.add(InvoicePaymentDetail(
                    invoice_payment_id=payment.id,
                    invoice_id=invoice.id,
                    invoice_no=invoice_no,
                    receipt_no=receipt_no,
                    amount_cents=paid,
                    balance_before_cents=amount_due,
                ))
                result.invoice_payment_id = payment.id
        else:
            receipt = Receipt(
                receipt_no=receipt_no,
                trans_date=when,
                customer_id=customer_id,
                total_due_cents=amount_due,
                total_paid_cents=paid,
                change_cents=change,
                payment_method_id=payment_method_id,
                trans_type=trans_type,
                year_part=year,
                month_part=month,
                user_id=actor_user_id,
            )
            db.session.add(receipt)
            db.session.flush()
            _copy_lines(ReceiptLine, "receipt_id", receipt.id, lines)
            result.receipt_id = receipt.id

        sale = Sale(
            trans_date=when,
            customer_id=customer_id,
            store_id=store_id,
            receipt_no=receipt_no,
            invoice_no=invoice_no,
            total_due_cents=amount_due,
            total_paid_cents=paid,
            change_cents=change,
            payment_method_id=payment_method_id,
            trans_type=BillingTransType.SALES.value,
            year_part=year,
            month_part=month,
            user_id=actor_user_id,
        )
        db.session.add(sale)
        db.session.flush()
        _copy_lines(SaleLine, "sale_id", sale.id, lines)
        result.sale_id = sale.id

        if has_receipt:
            source = PaymentSource.INVOICE_PAYMENT if has_invoice else PaymentSource.CASH_SALE
            collection = write_collection(
                receipt_no=receipt_no,
                customer_id=customer_id,
                trans_date=when,
                payment_source=source.value,
                trans_type=BillingTransType.PAYMENT.value,
                amounts={payment_method_id: paid},
                user_id=actor_user_id,
            )
            result.collection_id = collection.id

        if affect_stock:
            issue_doc = _issue_sold_stock(
                sale=sale,
                customer=customer,
                store_id=store_id,
                lines=lines,
                trans_date=when,
                user_id=actor_user_id,
            )
            result.issue_id = issue_doc.id

        db.session.flush()
        return result

    return run_in_transaction(_op, error_cls=PostingError, failure_message="Sale posting failed")
