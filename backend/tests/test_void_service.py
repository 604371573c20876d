"""
Void/reversal tests.

Verifies:
- Reversal plan ordering (payments before invoice cancellation)
- Receipt, payment and invoice voids and their compensating entries
- Debtor balance returns to its pre-sale value after an invoice void
- A document can be voided once
"""

import pytest

from posting_engine.models import (
    DebtorLog,
    Invoice,
    InvoiceLine,
    InvoiceLog,
    InvoicePayment,
    Receipt,
    ReceiptLine,
    Sale,
    SaleLine,
    VoidedSale,
)
from posting_engine.services.allocation_service import allocate_payment
from posting_engine.services.debtor_service import get_debtor_balance
from posting_engine.services.posting_service import post_sale_transaction
from posting_engine.services.void_service import (
    AttachedPayment,
    ReversalAction,
    ReversalStep,
    ReversalTarget,
    TargetKind,
    VoidError,
    compute_reversal_plan,
    void_invoice,
    void_payment,
    void_receipt,
    void_sale,
)


@pytest.fixture
def sell(store, customer, product, cash, actor_id, ledger_config):
    ledger_config(LEDGER_AFFECT_STOCK_AT_CASHIER=False)

    def _sell(amount_due, paid):
        return post_sale_transaction(
            customer.id,
            [{"product_id": product.id, "quantity": 2, "unit_price_cents": amount_due // 2}],
            paid,
            cash.id if paid else None,
            store.id,
            actor_user_id=actor_id,
        )
    return _sell


# =============================================================================
# REVERSAL PLAN (pure)
# =============================================================================


class TestReversalPlan:

    def test_receipt_plan(self):
        plan = compute_reversal_plan(ReversalTarget(TargetKind.RECEIPT, "REC1"))
        assert plan == [ReversalStep(ReversalAction.VOID_RECEIPT, "REC1")]

    def test_payment_plan(self):
        plan = compute_reversal_plan(ReversalTarget(TargetKind.PAYMENT, "REC2"))
        assert plan == [ReversalStep(ReversalAction.VOID_PAYMENT, "REC2")]

    def test_invoice_plan_voids_payments_first(self):
        target = ReversalTarget(
            TargetKind.INVOICE,
            "INV1",
            payments=(AttachedPayment("REC1"), AttachedPayment("REC2")),
        )

        plan = compute_reversal_plan(target)

        assert [step.action for step in plan] == [
            ReversalAction.VOID_PAYMENT,
            ReversalAction.VOID_PAYMENT,
            ReversalAction.CANCEL_INVOICE,
        ]
        assert [step.reference_no for step in plan] == ["REC1", "REC2", "INV1"]

    def test_invoice_plan_skips_voided_and_duplicate_payments(self):
        target = ReversalTarget(
            TargetKind.INVOICE,
            "INV1",
            payments=(
                AttachedPayment("REC1", voided=True),
                AttachedPayment("REC2"),
                AttachedPayment("REC2"),
            ),
        )

        plan = compute_reversal_plan(target)

        assert plan == [
            ReversalStep(ReversalAction.VOID_PAYMENT, "REC2"),
            ReversalStep(ReversalAction.CANCEL_INVOICE, "INV1"),
        ]

    def test_unpaid_invoice_plan_is_single_cancellation(self):
        plan = compute_reversal_plan(ReversalTarget(TargetKind.INVOICE, "INV9"))
        assert plan == [ReversalStep(ReversalAction.CANCEL_INVOICE, "INV9")]


# =============================================================================
# RECEIPT VOID
# =============================================================================


class TestVoidReceipt:

    def test_void_receipt_reverses_lines(self, db_session, customer, actor_id, sell):
        result = sell(1000, 1000)

        voided = void_receipt(result.receipt_no, "Wrong item", actor_user_id=actor_id)

        receipt = db_session.query(Receipt).filter_by(receipt_no=result.receipt_no).one()
        assert receipt.voided is True
        assert receipt.trans_type == "SALE_CANCELLATION"
        assert receipt.void_no == voided.void_no
        assert db_session.get(Sale, result.sale_id).voided is True

        assert voided.void_source == "CASH_SALE"
        assert voided.total_paid_cents == 1000
        assert voided.void_no.startswith("VOD")

        quantities = [line.quantity for line in db_session.query(ReceiptLine).order_by(ReceiptLine.id)]
        assert quantities == [2, -2]
        assert sum(line.line_total_cents for line in db_session.query(SaleLine)) == 0
        assert [(line.quantity, line.line_total_cents) for line in voided.lines] == [(2, 1000)]

        assert get_debtor_balance(customer.id) == 0

    def test_change_is_not_refundable(self, db_session, actor_id, sell):
        result = sell(1000, 1200)

        voided = void_receipt(result.receipt_no, None, actor_user_id=actor_id)

        assert voided.total_paid_cents == 1000
        assert voided.is_refunded is False

    def test_second_void_is_rejected(self, db_session, actor_id, sell):
        result = sell(1000, 1000)
        void_receipt(result.receipt_no, "first", actor_user_id=actor_id)

        with pytest.raises(VoidError, match="already voided"):
            void_receipt(result.receipt_no, "second", actor_user_id=actor_id)

        assert db_session.query(VoidedSale).count() == 1
        assert db_session.query(ReceiptLine).count() == 2

    def test_unknown_receipt(self, db_session, actor_id):
        with pytest.raises(VoidError):
            void_receipt("REC-NOPE", None, actor_user_id=actor_id)


# =============================================================================
# PAYMENT VOID
# =============================================================================


class TestVoidPayment:

    def test_void_payment_reopens_invoice(self, db_session, customer, cash, actor_id, sell):
        result = sell(1000, 0)
        payment = allocate_payment(customer.id, 1000, [result.invoice_no], cash.id, actor_user_id=actor_id)
        invoice = db_session.query(Invoice).filter_by(invoice_no=result.invoice_no).one()
        assert invoice.status == "CLOSED"
        assert get_debtor_balance(customer.id) == 0

        voided = void_payment(payment.receipt_no, "Bounced", actor_user_id=actor_id)

        db_session.refresh(invoice)
        assert invoice.status == "OPEN"
        assert invoice.balance_due_cents == 1000
        assert invoice.total_paid_cents == 0
        assert get_debtor_balance(customer.id) == 1000

        assert voided.void_source == "INVOICE_PAYMENT"
        assert voided.total_paid_cents == 1000

        reversal = db_session.query(InvoiceLog).filter_by(reference_no=voided.void_no).one()
        assert (reversal.debit_cents, reversal.credit_cents) == (1000, 0)
        debtor_entry = db_session.query(DebtorLog).filter_by(reference_no=voided.void_no).one()
        assert debtor_entry.debit_cents == 1000

    def test_voided_payment_cannot_be_voided_again(self, db_session, customer, cash, actor_id, sell):
        result = sell(1000, 0)
        payment = allocate_payment(customer.id, 500, [result.invoice_no], cash.id, actor_user_id=actor_id)
        void_payment(payment.receipt_no, None, actor_user_id=actor_id)

        with pytest.raises(VoidError, match="already voided"):
            void_payment(payment.receipt_no, None, actor_user_id=actor_id)

        assert get_debtor_balance(customer.id) == 1000


# =============================================================================
# INVOICE VOID
# =============================================================================


class TestVoidInvoice:

    def test_closed_invoice_with_two_payments(self, db_session, customer, cash, actor_id, sell):
        before = get_debtor_balance(customer.id)
        result = sell(1000, 600)
        allocate_payment(customer.id, 400, [result.invoice_no], cash.id, actor_user_id=actor_id)
        invoice = db_session.query(Invoice).filter_by(invoice_no=result.invoice_no).one()
        assert invoice.status == "CLOSED"

        voided = void_invoice(result.invoice_no, "Customer returned goods", actor_user_id=actor_id)

        db_session.refresh(invoice)
        assert invoice.status == "CANCELLED"
        assert invoice.voided is True
        assert invoice.balance_due_cents == 1000
        assert invoice.total_paid_cents == 0

        payments = db_session.query(InvoicePayment).all()
        assert len(payments) == 2
        assert all(p.voided for p in payments)
        assert all(p.trans_type == "PAYMENT_CANCELLATION" for p in payments)

        assert get_debtor_balance(customer.id) == before

        assert voided.void_source == "INVOICE_SALE"
        assert voided.status_at_void == "CANCELLED"
        assert voided.paid_for_invoice_cents == 1000
        assert voided.total_paid_cents == 0
        assert db_session.query(VoidedSale).count() == 3

    def test_invoice_log_nets_to_zero(self, db_session, customer, cash, actor_id, sell):
        result = sell(1000, 600)
        allocate_payment(customer.id, 400, [result.invoice_no], cash.id, actor_user_id=actor_id)

        void_invoice(result.invoice_no, None, actor_user_id=actor_id)

        logs = db_session.query(InvoiceLog).filter_by(invoice_no=result.invoice_no).all()
        assert sum(log.debit_cents for log in logs) == sum(log.credit_cents for log in logs)

    def test_unpaid_invoice_void(self, db_session, customer, actor_id, sell):
        result = sell(1000, 0)
        assert get_debtor_balance(customer.id) == 1000

        void_invoice(result.invoice_no, None, actor_user_id=actor_id)

        assert get_debtor_balance(customer.id) == 0
        cancel = db_session.query(DebtorLog).filter_by(trans_type="SALE_CANCELLATION").one()
        assert cancel.credit_cents == 1000

        quantities = [line.quantity for line in db_session.query(InvoiceLine).order_by(InvoiceLine.id)]
        assert quantities == [2, -2]
        sale = db_session.get(Sale, result.sale_id)
        assert sale.voided is True

    def test_previously_voided_payment_is_not_voided_twice(self, db_session, customer, cash, actor_id, sell):
        result = sell(1000, 600)
        payment_no = result.receipt_no
        void_payment(payment_no, None, actor_user_id=actor_id)
        assert get_debtor_balance(customer.id) == 1000

        void_invoice(result.invoice_no, None, actor_user_id=actor_id)

        assert get_debtor_balance(customer.id) == 0
        assert db_session.query(VoidedSale).filter_by(void_source="INVOICE_PAYMENT").count() == 1

    def test_cancelled_invoice_cannot_be_voided_again(self, db_session, actor_id, sell):
        result = sell(1000, 0)
        void_invoice(result.invoice_no, None, actor_user_id=actor_id)

        with pytest.raises(VoidError, match="already voided"):
            void_invoice(result.invoice_no, None, actor_user_id=actor_id)


# =============================================================================
# SALE DISPATCH
# =============================================================================


class TestVoidSale:

    def test_cash_sale_voids_receipt(self, db_session, actor_id, sell):
        result = sell(1000, 1000)
        voided = void_sale(result.sale_id, None, actor_user_id=actor_id)
        assert voided.void_source == "CASH_SALE"

    def test_credit_sale_voids_invoice(self, db_session, actor_id, sell):
        result = sell(1000, 300)
        voided = void_sale(result.sale_id, None, actor_user_id=actor_id)
        assert voided.void_source == "INVOICE_SALE"
        assert voided.invoice_no == result.invoice_no

    def test_unknown_sale(self, db_session, actor_id):
        with pytest.raises(VoidError):
            void_sale(12345, None, actor_user_id=actor_id)
