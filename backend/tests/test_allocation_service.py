"""
Multi-invoice payment allocation tests.

Verifies:
- Caller order decides which invoice is paid first
- Per-invoice amount is min(remaining, balance)
- Zero payment is a no-op
- Unknown/foreign invoices abort, closed invoices are skipped
- Payment total always equals the sum of its details
"""

import pytest

from posting_engine.models import Collection, DebtorLog, Invoice, InvoiceLog, InvoicePayment, InvoicePaymentDetail
from posting_engine.services.allocation_service import AllocationError, allocate_payment
from posting_engine.services.debtor_service import get_debtor_balance
from posting_engine.services.posting_service import post_sale_transaction
from posting_engine.validation import ValidationError


@pytest.fixture
def credit_sale(store, customer, product, actor_id, ledger_config):
    """Post an unpaid sale for `amount` and return its invoice number."""
    ledger_config(LEDGER_AFFECT_STOCK_AT_CASHIER=False)

    def _post(amount, customer_id=None):
        result = post_sale_transaction(
            customer_id or customer.id,
            [{"product_id": product.id, "quantity": 1, "unit_price_cents": amount}],
            0,
            None,
            store.id,
            actor_user_id=actor_id,
        )
        return result.invoice_no
    return _post


def _invoice(db_session, invoice_no):
    return db_session.query(Invoice).filter_by(invoice_no=invoice_no).one()


# =============================================================================
# ORDERING
# =============================================================================


class TestAllocationOrder:

    def test_first_invoice_closed_then_remainder(self, db_session, customer, cash, actor_id, credit_sale):
        a = credit_sale(100)
        b = credit_sale(50)

        result = allocate_payment(
            customer.id,
            120,
            [{"invoice_no": a, "balance_due": 100}, {"invoice_no": b, "balance_due": 50}],
            cash.id,
            actor_user_id=actor_id,
        )

        assert [(x.invoice_no, x.amount_cents) for x in result.allocations] == [(a, 100), (b, 20)]
        invoice_a = _invoice(db_session, a)
        invoice_b = _invoice(db_session, b)
        assert (invoice_a.balance_due_cents, invoice_a.status) == (0, "CLOSED")
        assert (invoice_b.balance_due_cents, invoice_b.status) == (30, "OPEN")

    def test_caller_order_is_not_resorted(self, db_session, customer, cash, actor_id, credit_sale):
        a = credit_sale(100)
        b = credit_sale(50)

        result = allocate_payment(customer.id, 120, [b, a], cash.id, actor_user_id=actor_id)

        assert [(x.invoice_no, x.amount_cents) for x in result.allocations] == [(b, 50), (a, 70)]
        assert _invoice(db_session, a).balance_due_cents == 30

    def test_invoices_past_the_money_are_untouched(self, db_session, customer, cash, actor_id, credit_sale):
        a = credit_sale(100)
        b = credit_sale(50)

        result = allocate_payment(customer.id, 100, [a, b], cash.id, actor_user_id=actor_id)

        assert [x.invoice_no for x in result.allocations] == [a]
        assert _invoice(db_session, b).total_paid_cents == 0
        assert db_session.query(InvoiceLog).filter_by(invoice_no=b, trans_type="PAYMENT").count() == 0


# =============================================================================
# LEDGER EFFECTS
# =============================================================================


class TestAllocationLedgers:

    def test_one_payment_many_details(self, db_session, customer, cash, actor_id, credit_sale):
        a = credit_sale(100)
        b = credit_sale(50)

        result = allocate_payment(customer.id, 150, [a, b], cash.id, actor_user_id=actor_id)

        payment = db_session.query(InvoicePayment).filter_by(receipt_no=result.receipt_no).one()
        assert payment.total_paid_cents == 150
        assert sum(d.amount_cents for d in payment.details) == 150
        assert {d.receipt_no for d in payment.details} == {result.receipt_no}

        collection = db_session.query(Collection).filter_by(receipt_no=result.receipt_no).one()
        assert collection.total_cents == 150

    def test_debtor_decreases_by_full_payment(self, db_session, customer, cash, actor_id, credit_sale):
        a = credit_sale(100)
        b = credit_sale(50)
        assert get_debtor_balance(customer.id) == 150

        result = allocate_payment(customer.id, 120, [a, b], cash.id, actor_user_id=actor_id)

        assert get_debtor_balance(customer.id) == 30
        log = db_session.query(DebtorLog).filter_by(reference_no=result.receipt_no).one()
        assert (log.debit_cents, log.credit_cents) == (0, 120)

    def test_balance_identity_holds(self, db_session, customer, cash, actor_id, credit_sale):
        numbers = [credit_sale(amount) for amount in (300, 200, 100)]

        allocate_payment(customer.id, 450, numbers, cash.id, actor_user_id=actor_id)

        for invoice in db_session.query(Invoice).all():
            assert invoice.balance_due_cents + invoice.total_paid_cents == invoice.total_due_cents
            assert (invoice.status == "CLOSED") == (invoice.balance_due_cents == 0)


# =============================================================================
# EDGE CASES
# =============================================================================


class TestAllocationEdges:

    def test_zero_payment_is_noop(self, db_session, customer, cash, actor_id, credit_sale):
        a = credit_sale(100)

        result = allocate_payment(customer.id, 0, [a], cash.id, actor_user_id=actor_id)

        assert result.allocations == []
        assert result.receipt_no is None
        assert db_session.query(InvoicePayment).count() == 0
        assert db_session.query(Collection).count() == 0
        assert _invoice(db_session, a).balance_due_cents == 100

    def test_closed_invoice_is_skipped(self, db_session, customer, cash, actor_id, credit_sale):
        a = credit_sale(100)
        b = credit_sale(50)
        allocate_payment(customer.id, 100, [a], cash.id, actor_user_id=actor_id)

        result = allocate_payment(customer.id, 50, [a, b], cash.id, actor_user_id=actor_id)

        assert result.skipped == [a]
        assert [x.invoice_no for x in result.allocations] == [b]

    def test_unknown_invoice_aborts(self, db_session, customer, cash, actor_id, credit_sale):
        a = credit_sale(100)

        with pytest.raises(AllocationError):
            allocate_payment(customer.id, 150, [a, "INV-MISSING"], cash.id, actor_user_id=actor_id)

        assert _invoice(db_session, a).balance_due_cents == 100
        assert db_session.query(InvoicePaymentDetail).count() == 0

    def test_foreign_invoice_aborts(self, db_session, customer, other_customer, cash, actor_id, credit_sale):
        theirs = credit_sale(100, customer_id=other_customer.id)

        with pytest.raises(AllocationError):
            allocate_payment(customer.id, 50, [theirs], cash.id, actor_user_id=actor_id)

        assert _invoice(db_session, theirs).balance_due_cents == 100

    def test_overpayment_is_rejected(self, db_session, customer, cash, actor_id, credit_sale):
        a = credit_sale(100)

        with pytest.raises(AllocationError) as excinfo:
            allocate_payment(customer.id, 130, [a], cash.id, actor_user_id=actor_id)

        assert excinfo.value.details["unapplied_cents"] == 30
        assert _invoice(db_session, a).balance_due_cents == 100
        assert get_debtor_balance(customer.id) == 100

    def test_requires_invoices(self, db_session, customer, cash, actor_id):
        with pytest.raises(ValidationError):
            allocate_payment(customer.id, 100, [], cash.id, actor_user_id=actor_id)
