"""
Inventory movement tests.

Verifies:
- Receive/issue move stock levels and append movement rows
- Stock level always equals the movement log balance
- Negative-stock guard and its configuration switch
- Expiry lots grow on receive and disappear at zero
- Pending receives post once
- Supplier receipts reprice the product and log the cost
"""

from datetime import date

import pytest

from posting_engine.models import Issue, Product, ProductCostLog, ProductExpiryLot, ProductTransaction, Receive, StockLevel
from posting_engine.services.inventory_service import (
    InventoryError,
    create_receive_record,
    get_product_quantity,
    get_transaction_balance,
    issue,
    post_pending_receive,
    receive,
)
from posting_engine.validation import StockItem, ValidationError


# =============================================================================
# RECEIVE / ISSUE
# =============================================================================


class TestReceive:

    def test_receive_increases_stock(self, db_session, store, supplier, product, actor_id):
        doc = receive(
            store.id, "SUPPLIER", supplier.id, None,
            [{"product_id": product.id, "quantity": 12, "price_cents": 180}],
            actor_user_id=actor_id, purchase_ref="PO-17",
        )

        assert doc.stage == 4
        assert doc.delivery_no.startswith("RCV")
        assert doc.total_cents == 12 * 180
        assert get_product_quantity(product.id, store.id) == 12

        row = db_session.query(ProductTransaction).one()
        assert (row.quantity_in, row.quantity_out) == (12, 0)
        assert row.trans_type == "Receive"
        assert row.source_description == "Medisupply Ltd"
        assert row.reference == doc.delivery_no

    def test_receive_from_same_store_is_rejected(self, db_session, store, product, actor_id):
        with pytest.raises(InventoryError):
            receive(store.id, "STORE", store.id, None, [{"product_id": product.id, "quantity": 1}], actor_user_id=actor_id)

    def test_unknown_party_kind(self, db_session, store, product, actor_id):
        with pytest.raises(ValidationError):
            receive(store.id, "WAREHOUSE", 1, None, [{"product_id": product.id, "quantity": 1}], actor_user_id=actor_id)


class TestIssue:

    def test_issue_decreases_stock(self, db_session, store, branch, product, actor_id, stock_in):
        stock_in(store.id, product.id, 10)

        doc = issue(
            store.id, "STORE", branch.id, None,
            [{"product_id": product.id, "quantity": 4, "price_cents": 200}],
            actor_user_id=actor_id,
        )

        assert doc.stage == 4
        assert doc.delivery_no.startswith("ISS")
        assert get_product_quantity(product.id, store.id) == 6
        out = db_session.query(ProductTransaction).filter_by(trans_type="Issue").one()
        assert out.quantity_out == 4
        assert out.source_description == "Branch Store"

    def test_insufficient_stock_writes_nothing(self, db_session, store, branch, product, actor_id, stock_in):
        stock_in(store.id, product.id, 3)

        with pytest.raises(InventoryError) as excinfo:
            issue(store.id, "STORE", branch.id, None, [{"product_id": product.id, "quantity": 5}], actor_user_id=actor_id)

        assert excinfo.value.details["on_hand"] == 3
        assert get_product_quantity(product.id, store.id) == 3
        assert db_session.query(Issue).count() == 0

    def test_guard_aggregates_repeated_products(self, db_session, store, branch, product, actor_id, stock_in):
        stock_in(store.id, product.id, 5)
        items = [{"product_id": product.id, "quantity": 3}, {"product_id": product.id, "quantity": 3}]

        with pytest.raises(InventoryError):
            issue(store.id, "STORE", branch.id, None, items, actor_user_id=actor_id)

    def test_negative_stock_when_allowed(self, db_session, store, branch, product, actor_id, ledger_config):
        ledger_config(LEDGER_ALLOW_NEGATIVE_STOCK=True)

        issue(store.id, "STORE", branch.id, None, [{"product_id": product.id, "quantity": 2}], actor_user_id=actor_id)

        assert get_product_quantity(product.id, store.id) == -2

    def test_issue_to_same_store_is_rejected(self, db_session, store, product, actor_id, stock_in):
        stock_in(store.id, product.id, 5)
        with pytest.raises(InventoryError):
            issue(store.id, "STORE", store.id, None, [{"product_id": product.id, "quantity": 1}], actor_user_id=actor_id)

    @pytest.mark.parametrize("quantity", [0, -1, "2.5"])
    def test_bad_quantities(self, db_session, store, branch, product, actor_id, quantity):
        with pytest.raises(ValidationError):
            issue(store.id, "STORE", branch.id, None, [{"product_id": product.id, "quantity": quantity}], actor_user_id=actor_id)

    @pytest.mark.parametrize("quantity, price_cents", [(-5, 0), (0, 100), (2, -1)])
    def test_stock_item_instances_are_validated(self, db_session, store, branch, product, actor_id, stock_in, quantity, price_cents):
        stock_in(store.id, product.id, 4)
        bad = [StockItem(product.id, quantity, price_cents)]

        with pytest.raises(ValidationError):
            issue(store.id, "STORE", branch.id, None, bad, actor_user_id=actor_id)
        with pytest.raises(ValidationError):
            receive(branch.id, "STORE", store.id, None, bad, actor_user_id=actor_id)
        with pytest.raises(ValidationError):
            create_receive_record(branch.id, "STORE", store.id, bad, actor_user_id=actor_id)

        assert get_product_quantity(product.id, store.id) == 4
        assert get_product_quantity(product.id, branch.id) == 0
        assert db_session.query(Issue).count() == 0


class TestStockAgreesWithLog:

    def test_level_matches_movement_balance(self, db_session, store, branch, customer, product, other_product, actor_id, stock_in):
        stock_in(store.id, product.id, 20)
        stock_in(store.id, other_product.id, 7)
        issue(store.id, "STORE", branch.id, None, [{"product_id": product.id, "quantity": 6}], actor_user_id=actor_id)
        issue(store.id, "CUSTOMER", customer.id, None, [{"product_id": other_product.id, "quantity": 2}], actor_user_id=actor_id)

        for level in db_session.query(StockLevel).all():
            assert level.quantity == get_transaction_balance(level.product_id, level.store_id)
        assert get_product_quantity(product.id) == 14
        assert get_product_quantity(product.id, branch.id) == 0


# =============================================================================
# EXPIRY LOTS
# =============================================================================


class TestExpiryLots:

    def test_lot_created_and_drawn_down(self, db_session, store, branch, product, actor_id, stock_in):
        expiry = date(2027, 6, 30)
        stock_in(store.id, product.id, 5, expiry_date=expiry)
        stock_in(store.id, product.id, 3, expiry_date=expiry)

        lot = db_session.query(ProductExpiryLot).one()
        assert lot.quantity == 8

        issue(store.id, "STORE", branch.id, None, [{"product_id": product.id, "quantity": 8}],
              expiry_date=expiry, actor_user_id=actor_id)

        assert db_session.query(ProductExpiryLot).count() == 0

    def test_untracked_movements_leave_lots_alone(self, db_session, store, product, stock_in):
        stock_in(store.id, product.id, 5)
        assert db_session.query(ProductExpiryLot).count() == 0


# =============================================================================
# PENDING RECEIVES
# =============================================================================


class TestPendingReceive:

    def test_pending_receive_moves_stock_once(self, db_session, store, supplier, product, actor_id):
        pending = create_receive_record(
            store.id, "SUPPLIER", supplier.id,
            [{"product_id": product.id, "quantity": 9, "price_cents": 100}],
            actor_user_id=actor_id,
        )
        assert pending.stage == 2
        assert get_product_quantity(product.id, store.id) == 0

        posted = post_pending_receive(pending.id, actor_user_id=actor_id)

        assert posted.stage == 4
        assert get_product_quantity(product.id, store.id) == 9

        with pytest.raises(InventoryError):
            post_pending_receive(pending.id, actor_user_id=actor_id)
        assert get_product_quantity(product.id, store.id) == 9

    def test_unknown_receive(self, db_session):
        with pytest.raises(InventoryError):
            post_pending_receive(999, actor_user_id=None)

    def test_receive_record_stage_must_be_pending_or_posted(self, db_session, store, supplier, product, actor_id):
        with pytest.raises(ValidationError):
            create_receive_record(
                store.id, "SUPPLIER", supplier.id, [{"product_id": product.id, "quantity": 1}],
                stage=3, actor_user_id=actor_id,
            )
        assert db_session.query(Receive).count() == 0


# =============================================================================
# SUPPLIER COSTING
# =============================================================================


class TestSupplierCosting:

    def test_receipt_reprices_product(self, db_session, store, branch, supplier, product, actor_id, stock_in):
        stock_in(branch.id, product.id, 10, price_cents=200)

        receive(
            store.id, "SUPPLIER", supplier.id, None,
            [{"product_id": product.id, "quantity": 10, "price_cents": 500}],
            actor_user_id=actor_id,
        )

        repriced = db_session.get(Product, product.id)
        assert repriced.prev_cost_cents == 200
        assert repriced.cost_price_cents == 500
        # 10 on hand at 200 plus 10 received at 500
        assert repriced.average_cost_cents == 350
        logs = db_session.query(ProductCostLog).order_by(ProductCostLog.id).all()
        assert [(log.product_id, log.cost_price_cents) for log in logs] == [(product.id, 200), (product.id, 500)]

    def test_repeated_lines_take_last_price(self, db_session, store, supplier, product, actor_id):
        receive(
            store.id, "SUPPLIER", supplier.id, None,
            [
                {"product_id": product.id, "quantity": 2, "price_cents": 100},
                {"product_id": product.id, "quantity": 2, "price_cents": 300},
            ],
            actor_user_id=actor_id,
        )

        repriced = db_session.get(Product, product.id)
        assert (repriced.prev_cost_cents, repriced.cost_price_cents) == (200, 300)
        assert repriced.average_cost_cents == 200
        assert db_session.query(ProductCostLog).count() == 1

    def test_store_transfer_keeps_cost(self, db_session, store, branch, product, actor_id):
        receive(
            store.id, "STORE", branch.id, None,
            [{"product_id": product.id, "quantity": 3, "price_cents": 900}],
            actor_user_id=actor_id,
        )

        unchanged = db_session.get(Product, product.id)
        assert unchanged.cost_price_cents == 200
        assert unchanged.prev_cost_cents is None
        assert db_session.query(ProductCostLog).count() == 0

    def test_pending_receive_reprices_when_posted(self, db_session, store, supplier, product, actor_id):
        pending = create_receive_record(
            store.id, "SUPPLIER", supplier.id,
            [{"product_id": product.id, "quantity": 5, "price_cents": 120}],
            actor_user_id=actor_id,
        )
        assert db_session.get(Product, product.id).cost_price_cents == 200
        assert db_session.query(ProductCostLog).count() == 0

        post_pending_receive(pending.id, actor_user_id=actor_id)

        repriced = db_session.get(Product, product.id)
        assert (repriced.cost_price_cents, repriced.average_cost_cents) == (120, 120)
        assert db_session.query(ProductCostLog).count() == 1
