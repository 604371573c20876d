"""
Ledger audit and CLI tests.
"""

import pytest

from posting_engine.models import Debtor, Invoice, StockLevel
from posting_engine.services.allocation_service import allocate_payment
from posting_engine.services.audit_service import check_invariants
from posting_engine.services.posting_service import post_sale_transaction
from posting_engine.services.refund_service import refund
from posting_engine.services.void_service import void_payment, void_receipt


@pytest.fixture
def busy_ledger(db_session, store, customer, product, cash, actor_id, stock_in):
    """A few postings of every kind, all consistent."""
    stock_in(store.id, product.id, 10)
    credit = post_sale_transaction(
        customer.id,
        [{"product_id": product.id, "quantity": 2, "unit_price_cents": 500}],
        300,
        cash.id,
        store.id,
        actor_user_id=actor_id,
    )
    allocate_payment(customer.id, 200, [credit.invoice_no], cash.id, actor_user_id=actor_id)
    cash_sale = post_sale_transaction(
        customer.id,
        [{"product_id": product.id, "quantity": 1, "unit_price_cents": 400}],
        400,
        cash.id,
        store.id,
        actor_user_id=actor_id,
    )
    voided = void_receipt(cash_sale.receipt_no, "Wrong customer", actor_user_id=actor_id)
    refund(voided.id, 150, cash.id, actor_user_id=actor_id)
    return credit


class TestCheckInvariants:

    def test_consistent_ledger_has_no_violations(self, busy_ledger):
        assert check_invariants() == []

    def test_tampered_invoice_is_reported(self, db_session, busy_ledger):
        invoice = db_session.query(Invoice).filter_by(invoice_no=busy_ledger.invoice_no).one()
        invoice.balance_due_cents += 1
        db_session.commit()

        checks = {v.check for v in check_invariants()}

        assert checks == {"invoice_balance"}

    def test_tampered_stock_level_is_reported(self, db_session, busy_ledger, store, product):
        level = db_session.query(StockLevel).filter_by(store_id=store.id, product_id=product.id).one()
        level.quantity = 99
        db_session.commit()

        violations = check_invariants()

        assert [v.check for v in violations] == ["stock_level"]
        assert violations[0].to_dict()["details"]["stock_level"] == 99

    def test_tampered_debtor_is_reported(self, db_session, busy_ledger, customer):
        debtor = db_session.query(Debtor).filter_by(customer_id=customer.id).one()
        assert debtor.balance_cents == 500
        debtor.balance_cents = 450
        db_session.commit()

        violations = check_invariants()

        assert [v.check for v in violations] == ["debtor_balance"]
        assert violations[0].details == {"balance_cents": 450, "log_sum_cents": 500}

    def test_refund_debit_lowers_expected_debtor_balance(self, db_session, busy_ledger, customer, cash, actor_id):
        payment = allocate_payment(customer.id, 500, [busy_ledger.invoice_no], cash.id, actor_user_id=actor_id)
        voided = void_payment(payment.receipt_no, "Paid twice", actor_user_id=actor_id)
        refund(voided.id, 500, cash.id, actor_user_id=actor_id)

        assert check_invariants() == []


class TestLedgerCommands:

    def test_audit_passes(self, app, busy_ledger):
        result = app.test_cli_runner().invoke(args=["ledger", "audit"])

        assert result.exit_code == 0
        assert "PASS" in result.output

    def test_audit_fails_on_violation(self, app, db_session, busy_ledger):
        invoice = db_session.query(Invoice).filter_by(invoice_no=busy_ledger.invoice_no).one()
        invoice.total_paid_cents = 0
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["ledger", "audit"])

        assert result.exit_code == 1
        assert "FAIL [invoice_balance]" in result.output

    def test_next_number(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["ledger", "next-number", "rec"])
        second = runner.invoke(args=["ledger", "next-number", "REC"])

        assert first.exit_code == 0
        assert first.output.strip().startswith("REC")
        assert first.output.strip().endswith("001")
        assert second.output.strip().endswith("002")

    def test_next_number_rejects_unknown_prefix(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["ledger", "next-number", "ABC"])
        assert result.exit_code != 0
