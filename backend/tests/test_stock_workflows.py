"""
Requisition, adjustment and physical count workflow tests.
"""

from datetime import date

import pytest

from posting_engine.models import (
    AdjustmentReason,
    PhysicalInventory,
    PhysicalStockBalance,
    Product,
    ProductCostLog,
    ProductExpiryLot,
    ProductTransaction,
    Receive,
    Requisition,
    RequisitionHistory,
)
from posting_engine.services.adjustment_service import AdjustmentError, create_normal_adjustment, post_normal_adjustment
from posting_engine.services.count_service import CountError, commit_physical_inventory, create_physical_inventory
from posting_engine.services.inventory_service import InventoryError, get_product_quantity, post_pending_receive
from posting_engine.services.requisition_service import (
    RequisitionError,
    approve_requisition,
    create_requisition,
    get_pending_receive,
    issue_requisition,
    return_requisition_to_draft,
)
from posting_engine.validation import CountItem, ValidationError


# =============================================================================
# REQUISITIONS
# =============================================================================


class TestRequisitionLifecycle:

    def _approved(self, store, to_kind, to_id, product, actor_id, quantity=4):
        requisition = create_requisition(
            store.id, to_kind, to_id,
            [{"product_id": product.id, "quantity": quantity, "price_cents": 200}],
            actor_user_id=actor_id,
        )
        return approve_requisition(requisition.id, actor_user_id=actor_id, remarks="ok")

    def test_double_entry_transfer_posts_both_sides(self, db_session, store, branch, product, actor_id, stock_in):
        stock_in(store.id, product.id, 10)
        requisition = self._approved(store, "STORE", branch.id, product, actor_id)

        issue_doc = issue_requisition(requisition.id, actor_user_id=actor_id)

        requisition = db_session.get(Requisition, requisition.id)
        assert requisition.stage == 4
        assert requisition.delivery_no == issue_doc.delivery_no
        assert get_product_quantity(product.id, store.id) == 6
        assert get_product_quantity(product.id, branch.id) == 4

        received = db_session.query(Receive).filter_by(delivery_no=issue_doc.delivery_no).one()
        assert received.stage == 4

        stages = [h.stage for h in db_session.query(RequisitionHistory).order_by(RequisitionHistory.id)]
        assert stages == [1, 2, 4]

    def test_single_entry_transfer_waits_for_receive(
        self, db_session, store, branch, product, actor_id, stock_in, ledger_config
    ):
        ledger_config(LEDGER_DOUBLE_ENTRY_ISSUING=False)
        stock_in(store.id, product.id, 10)
        requisition = self._approved(store, "STORE", branch.id, product, actor_id)

        issue_requisition(requisition.id, actor_user_id=actor_id)

        assert db_session.get(Requisition, requisition.id).stage == 3
        assert get_product_quantity(product.id, store.id) == 6
        assert get_product_quantity(product.id, branch.id) == 0

        pending = get_pending_receive(requisition.id)
        assert pending is not None and pending.stage == 2

        post_pending_receive(pending.id, actor_user_id=actor_id)

        assert get_product_quantity(product.id, branch.id) == 4
        assert db_session.get(Requisition, requisition.id).stage == 4

    def test_customer_requisition_completes_on_issue(self, db_session, store, customer, product, actor_id, stock_in):
        stock_in(store.id, product.id, 10)
        requisition = self._approved(store, "CUSTOMER", customer.id, product, actor_id)

        issue_requisition(requisition.id, actor_user_id=actor_id)

        assert db_session.get(Requisition, requisition.id).stage == 4
        assert db_session.query(Receive).filter_by(to_store_id=store.id).count() == 1

    def test_draft_cannot_be_issued(self, db_session, store, branch, product, actor_id):
        requisition = create_requisition(
            store.id, "STORE", branch.id, [{"product_id": product.id, "quantity": 1}], actor_user_id=actor_id
        )
        with pytest.raises(RequisitionError):
            issue_requisition(requisition.id, actor_user_id=actor_id)

    def test_return_to_draft(self, db_session, store, branch, product, actor_id):
        requisition = self._approved(store, "STORE", branch.id, product, actor_id)

        returned = return_requisition_to_draft(requisition.id, actor_user_id=actor_id, remarks="fix qty")

        assert returned.stage == 1
        with pytest.raises(RequisitionError):
            return_requisition_to_draft(requisition.id, actor_user_id=actor_id)

    def test_insufficient_stock_keeps_requisition_approved(self, db_session, store, branch, product, actor_id):
        requisition = self._approved(store, "STORE", branch.id, product, actor_id)

        with pytest.raises(InventoryError):
            issue_requisition(requisition.id, actor_user_id=actor_id)

        assert db_session.get(Requisition, requisition.id).stage == 2

    def test_same_store_requisition_rejected(self, db_session, store, product, actor_id):
        with pytest.raises(RequisitionError):
            create_requisition(store.id, "STORE", store.id, [{"product_id": product.id, "quantity": 1}], actor_user_id=actor_id)


# =============================================================================
# NORMAL ADJUSTMENTS
# =============================================================================


class TestNormalAdjustment:

    def test_add_reason_receives_stock(self, db_session, store, product, add_reason, actor_id):
        adjustment = create_normal_adjustment(
            store.id, add_reason.id, [{"product_id": product.id, "quantity": 3}], actor_user_id=actor_id
        )
        assert get_product_quantity(product.id, store.id) == 0

        posted = post_normal_adjustment(adjustment.id, actor_user_id=actor_id)

        assert posted.stage == 2
        assert get_product_quantity(product.id, store.id) == 3
        row = db_session.query(ProductTransaction).one()
        assert row.source_kind == "ADJUSTMENT_REASON"
        assert row.source_description == "Found in store"

    def test_deduct_reason_issues_stock(self, db_session, store, product, deduct_reason, actor_id, stock_in):
        stock_in(store.id, product.id, 10)
        adjustment = create_normal_adjustment(
            store.id, deduct_reason.id, [{"product_id": product.id, "quantity": 4}], actor_user_id=actor_id
        )

        post_normal_adjustment(adjustment.id, actor_user_id=actor_id)

        assert get_product_quantity(product.id, store.id) == 6

    def test_adjustment_posts_once(self, db_session, store, product, add_reason, actor_id):
        adjustment = create_normal_adjustment(
            store.id, add_reason.id, [{"product_id": product.id, "quantity": 3}], actor_user_id=actor_id
        )
        post_normal_adjustment(adjustment.id, actor_user_id=actor_id)

        with pytest.raises(AdjustmentError):
            post_normal_adjustment(adjustment.id, actor_user_id=actor_id)
        assert get_product_quantity(product.id, store.id) == 3

    def test_unknown_reason(self, db_session, store, product, actor_id):
        with pytest.raises(AdjustmentError):
            create_normal_adjustment(store.id, 77, [{"product_id": product.id, "quantity": 1}], actor_user_id=actor_id)


# =============================================================================
# PHYSICAL INVENTORY
# =============================================================================


class TestPhysicalInventory:

    def test_commit_posts_variances(self, db_session, store, product, other_product, actor_id, stock_in):
        stock_in(store.id, product.id, 10)
        stock_in(store.id, other_product.id, 4)

        count = create_physical_inventory(
            store.id,
            [
                {"product_id": product.id, "counted_qty": 8, "price_cents": 250},
                {"product_id": other_product.id, "counted_qty": 6},
            ],
            actor_user_id=actor_id,
            description="Quarter end count",
        )
        assert [line.expected_qty for line in count.lines] == [10, 4]

        closed = commit_physical_inventory(count.id, actor_user_id=actor_id)

        assert closed.stage == 3
        assert closed.closed_date is not None
        assert get_product_quantity(product.id, store.id) == 8
        assert get_product_quantity(other_product.id, store.id) == 6

        reason = db_session.query(AdjustmentReason).filter_by(name="Physical Inventory").one()
        moves = db_session.query(ProductTransaction).filter_by(source_id=reason.id, source_kind="ADJUSTMENT_REASON").all()
        assert sorted((m.product_id, m.quantity_in, m.quantity_out) for m in moves) == sorted([
            (product.id, 0, 2),
            (other_product.id, 2, 0),
        ])
        assert {m.reference for m in moves} == {f"PI-{count.id}"}

        balances = {b.product_id: b.quantity for b in db_session.query(PhysicalStockBalance)}
        assert balances == {product.id: 8, other_product.id: 6}

    def test_cost_updated_when_delta_exists(self, db_session, store, product, other_product, actor_id, stock_in):
        stock_in(store.id, product.id, 10)
        stock_in(store.id, other_product.id, 4, price_cents=350)
        receipt_logs = db_session.query(ProductCostLog).count()

        count = create_physical_inventory(
            store.id,
            [
                {"product_id": product.id, "counted_qty": 9, "price_cents": 260},
                {"product_id": other_product.id, "counted_qty": 4, "price_cents": 999},
            ],
            actor_user_id=actor_id,
        )
        commit_physical_inventory(count.id, actor_user_id=actor_id)

        changed = db_session.get(Product, product.id)
        assert (changed.prev_cost_cents, changed.cost_price_cents) == (200, 260)
        untouched = db_session.get(Product, other_product.id)
        assert untouched.cost_price_cents == 350
        count_logs = db_session.query(ProductCostLog).order_by(ProductCostLog.id).all()[receipt_logs:]
        assert [(log.product_id, log.cost_price_cents) for log in count_logs] == [(product.id, 260)]

    def test_expiry_lots_rebuilt_from_count(self, db_session, store, product, actor_id, stock_in):
        stock_in(store.id, product.id, 5, expiry_date=date(2026, 1, 31))

        count = create_physical_inventory(
            store.id,
            [
                {"product_id": product.id, "counted_qty": 3, "expiry_date": "2027-03-31", "batch_no": "B7"},
                {"product_id": product.id, "counted_qty": 1, "expiry_date": "2027-09-30"},
            ],
            actor_user_id=actor_id,
        )
        commit_physical_inventory(count.id, actor_user_id=actor_id)

        lots = db_session.query(ProductExpiryLot).order_by(ProductExpiryLot.expiry_date).all()
        assert [(lot.expiry_date, lot.quantity, lot.batch_no) for lot in lots] == [
            (date(2027, 3, 31), 3, "B7"),
            (date(2027, 9, 30), 1, None),
        ]
        assert get_product_quantity(product.id, store.id) == 4

    def test_recommit_is_rejected(self, db_session, store, product, actor_id, stock_in):
        stock_in(store.id, product.id, 5)
        count = create_physical_inventory(store.id, [{"product_id": product.id, "counted_qty": 2}], actor_user_id=actor_id)
        commit_physical_inventory(count.id, actor_user_id=actor_id)

        with pytest.raises(CountError):
            commit_physical_inventory(count.id, actor_user_id=actor_id)
        assert get_product_quantity(product.id, store.id) == 2

    def test_unknown_product(self, db_session, store, actor_id):
        with pytest.raises(CountError):
            create_physical_inventory(store.id, [{"product_id": 555, "counted_qty": 1}], actor_user_id=actor_id)

    @pytest.mark.parametrize("line", [
        CountItem(product_id=1, counted_qty=-1),
        CountItem(product_id=1, counted_qty=2, price_cents=-50),
        CountItem(product_id=0, counted_qty=2),
    ])
    def test_count_item_instances_are_validated(self, db_session, store, actor_id, line):
        with pytest.raises(ValidationError):
            create_physical_inventory(store.id, [line], actor_user_id=actor_id)
        assert db_session.query(PhysicalInventory).count() == 0
