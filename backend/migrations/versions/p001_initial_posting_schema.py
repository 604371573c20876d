"""Initial posting engine schema: parties, stock, documents, billing, debtors, voids, collections

Revision ID: p001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "p001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _created_at():
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP"))


def _void_columns():
    return [
        sa.Column("voided", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("void_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("void_sys_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("void_no", sa.String(length=32), nullable=True),
        sa.Column("void_reason", sa.String(length=255), nullable=True),
        sa.Column("void_user_id", sa.Integer(), nullable=True),
    ]


def _item_line_columns():
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("line_total_cents", sa.Integer(), nullable=False),
        _created_at(),
    ]


def _stock_line_columns():
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
    ]


def _period_columns():
    return [
        sa.Column("year_part", sa.Integer(), nullable=False),
        sa.Column("month_part", sa.Integer(), nullable=False),
    ]


def upgrade():
    # Parties
    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(length=128), nullable=True),
        sa.Column("other_names", sa.String(length=128), nullable=True),
        sa.Column("surname", sa.String(length=128), nullable=True),
        sa.Column("company_name", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("supplier_type", sa.String(length=16), nullable=False, server_default="company"),
        sa.Column("first_name", sa.String(length=128), nullable=True),
        sa.Column("other_names", sa.String(length=128), nullable=True),
        sa.Column("surname", sa.String(length=128), nullable=True),
        sa.Column("company_name", sa.String(length=255), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "adjustment_reasons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False, unique=True),
        sa.Column("action", sa.String(length=16), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "payment_methods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=64), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sqlite_autoincrement=True,
    )

    # Products and stock
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("cost_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("prev_cost_cents", sa.Integer(), nullable=True),
        sa.Column("average_cost_cents", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "number_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("prefix", sa.String(length=8), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("prefix", name="uq_number_sequences_prefix"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "stock_levels",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("product_id", "store_id", name="uq_stock_levels_product_store"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_levels_product_id", "stock_levels", ["product_id"], unique=False)
    op.create_index("ix_stock_levels_store_id", "stock_levels", ["store_id"], unique=False)

    op.create_table(
        "product_expiry_lots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("expiry_date", sa.Date(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("batch_no", sa.String(length=50), nullable=True),
        sa.UniqueConstraint("store_id", "product_id", "expiry_date", name="uq_expiry_lots_store_product_date"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_product_expiry_lots_store_id", "product_expiry_lots", ["store_id"], unique=False)
    op.create_index("ix_product_expiry_lots_product_id", "product_expiry_lots", ["product_id"], unique=False)

    op.create_table(
        "product_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False),
        sa.Column("source_kind", sa.String(length=32), nullable=False),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("source_description", sa.String(length=255), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("reference", sa.String(length=64), nullable=True),
        sa.Column("trans_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("trans_type", sa.String(length=32), nullable=False),
        sa.Column("trans_description", sa.String(length=255), nullable=True),
        sa.Column("quantity_in", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quantity_out", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_product_txns_product_store", "product_transactions", ["product_id", "store_id"], unique=False)
    op.create_index("ix_product_transactions_trans_date", "product_transactions", ["trans_date"], unique=False)
    op.create_index("ix_product_transactions_reference", "product_transactions", ["reference"], unique=False)
    op.create_index("ix_product_transactions_trans_type", "product_transactions", ["trans_type"], unique=False)

    op.create_table(
        "product_cost_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("cost_price_cents", sa.Integer(), nullable=False),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_product_cost_logs_product_id", "product_cost_logs", ["product_id"], unique=False)

    op.create_table(
        "physical_stock_balances",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_physical_stock_balances_trans_date", "physical_stock_balances", ["trans_date"], unique=False)

    # Sales (requisitions may point at the sale that raised them)
    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=True),
        sa.Column("receipt_no", sa.String(length=32), nullable=True),
        sa.Column("invoice_no", sa.String(length=32), nullable=True),
        sa.Column("total_due_cents", sa.Integer(), nullable=False),
        sa.Column("total_paid_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("change_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_method_id", sa.Integer(), sa.ForeignKey("payment_methods.id"), nullable=True),
        sa.Column("trans_type", sa.String(length=32), nullable=False),
        *_period_columns(),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        *_void_columns(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sales_customer_date", "sales", ["customer_id", "trans_date"], unique=False)
    op.create_index("ix_sales_receipt_no", "sales", ["receipt_no"], unique=False)
    op.create_index("ix_sales_invoice_no", "sales", ["invoice_no"], unique=False)
    op.create_index("ix_sales_voided", "sales", ["voided"], unique=False)

    op.create_table(
        "sale_lines",
        *_item_line_columns(),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sale_lines_sale_id", "sale_lines", ["sale_id"], unique=False)

    # Stock documents
    op.create_table(
        "requisitions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=True),
        sa.Column("from_store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False),
        sa.Column("to_kind", sa.String(length=32), nullable=False),
        sa.Column("to_id", sa.Integer(), nullable=False),
        sa.Column("stage", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("delivery_no", sa.String(length=32), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_requisitions_from_store_id", "requisitions", ["from_store_id"], unique=False)
    op.create_index("ix_requisitions_stage", "requisitions", ["stage"], unique=False)
    op.create_index("ix_requisitions_delivery_no", "requisitions", ["delivery_no"], unique=False)

    op.create_table(
        "requisition_lines",
        *_stock_line_columns(),
        sa.Column("requisition_id", sa.Integer(), sa.ForeignKey("requisitions.id"), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_requisition_lines_requisition_id", "requisition_lines", ["requisition_id"], unique=False)

    op.create_table(
        "requisition_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("requisition_id", sa.Integer(), sa.ForeignKey("requisitions.id"), nullable=False),
        sa.Column("stage", sa.Integer(), nullable=False),
        sa.Column("remarks", sa.String(length=255), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_requisition_history_requisition_id", "requisition_history", ["requisition_id"], unique=False)

    op.create_table(
        "issues",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("delivery_no", sa.String(length=32), nullable=True),
        sa.Column("from_store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False),
        sa.Column("to_kind", sa.String(length=32), nullable=False),
        sa.Column("to_id", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stage", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_issues_delivery_no", "issues", ["delivery_no"], unique=False)
    op.create_index("ix_issues_from_store_id", "issues", ["from_store_id"], unique=False)

    op.create_table(
        "issue_lines",
        *_stock_line_columns(),
        sa.Column("issue_id", sa.Integer(), sa.ForeignKey("issues.id"), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_issue_lines_issue_id", "issue_lines", ["issue_id"], unique=False)

    op.create_table(
        "receives",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("delivery_no", sa.String(length=32), nullable=True),
        sa.Column("to_store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False),
        sa.Column("from_kind", sa.String(length=32), nullable=False),
        sa.Column("from_id", sa.Integer(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stage", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("remarks", sa.String(length=255), nullable=True),
        sa.Column("purchase_ref", sa.String(length=64), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_receives_delivery_no", "receives", ["delivery_no"], unique=False)
    op.create_index("ix_receives_to_store_id", "receives", ["to_store_id"], unique=False)
    op.create_index("ix_receives_stage", "receives", ["stage"], unique=False)

    op.create_table(
        "receive_lines",
        *_stock_line_columns(),
        sa.Column("receive_id", sa.Integer(), sa.ForeignKey("receives.id"), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_receive_lines_receive_id", "receive_lines", ["receive_id"], unique=False)

    op.create_table(
        "normal_adjustments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False),
        sa.Column("adjustment_reason_id", sa.Integer(), sa.ForeignKey("adjustment_reasons.id"), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stage", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_normal_adjustments_store_id", "normal_adjustments", ["store_id"], unique=False)

    op.create_table(
        "normal_adjustment_lines",
        *_stock_line_columns(),
        sa.Column("adjustment_id", sa.Integer(), sa.ForeignKey("normal_adjustments.id"), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_normal_adjustment_lines_adjustment_id", "normal_adjustment_lines", ["adjustment_id"], unique=False)

    op.create_table(
        "physical_inventories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), sa.ForeignKey("stores.id"), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("stage", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("closed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_physical_inventories_store_id", "physical_inventories", ["store_id"], unique=False)

    op.create_table(
        "physical_inventory_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("physical_inventory_id", sa.Integer(), sa.ForeignKey("physical_inventories.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("batch_no", sa.String(length=50), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("expected_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("counted_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
        sqlite_autoincrement=True,
    )
    op.create_index(
        "ix_physical_inventory_lines_physical_inventory_id",
        "physical_inventory_lines",
        ["physical_inventory_id"],
        unique=False,
    )

    # Receipts and invoices
    op.create_table(
        "receipts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("receipt_no", sa.String(length=32), nullable=False),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("total_due_cents", sa.Integer(), nullable=False),
        sa.Column("total_paid_cents", sa.Integer(), nullable=False),
        sa.Column("change_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_method_id", sa.Integer(), sa.ForeignKey("payment_methods.id"), nullable=True),
        sa.Column("trans_type", sa.String(length=32), nullable=False),
        *_period_columns(),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        *_void_columns(),
        sa.UniqueConstraint("receipt_no", name="uq_receipts_receipt_no"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_receipts_voided", "receipts", ["voided"], unique=False)

    op.create_table(
        "receipt_lines",
        *_item_line_columns(),
        sa.Column("receipt_id", sa.Integer(), sa.ForeignKey("receipts.id"), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_receipt_lines_receipt_id", "receipt_lines", ["receipt_id"], unique=False)

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_no", sa.String(length=32), nullable=False),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("total_due_cents", sa.Integer(), nullable=False),
        sa.Column("total_paid_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("balance_due_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="OPEN"),
        sa.Column("trans_type", sa.String(length=32), nullable=False),
        *_period_columns(),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        *_void_columns(),
        sa.UniqueConstraint("invoice_no", name="uq_invoices_invoice_no"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_invoices_customer_status", "invoices", ["customer_id", "status"], unique=False)
    op.create_index("ix_invoices_status", "invoices", ["status"], unique=False)
    op.create_index("ix_invoices_voided", "invoices", ["voided"], unique=False)

    op.create_table(
        "invoice_lines",
        *_item_line_columns(),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_invoice_lines_invoice_id", "invoice_lines", ["invoice_id"], unique=False)

    op.create_table(
        "invoice_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("invoice_no", sa.String(length=32), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("reference_no", sa.String(length=32), nullable=True),
        sa.Column("trans_type", sa.String(length=32), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("debit_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("credit_cents", sa.Integer(), nullable=False, server_default="0"),
        *_period_columns(),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_invoice_logs_invoice_no", "invoice_logs", ["invoice_no"], unique=False)
    op.create_index("ix_invoice_logs_reference_no", "invoice_logs", ["reference_no"], unique=False)

    op.create_table(
        "invoice_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("receipt_no", sa.String(length=32), nullable=False),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("total_paid_cents", sa.Integer(), nullable=False),
        sa.Column("payment_method_id", sa.Integer(), sa.ForeignKey("payment_methods.id"), nullable=True),
        sa.Column("trans_type", sa.String(length=32), nullable=False),
        *_period_columns(),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        *_void_columns(),
        sa.UniqueConstraint("receipt_no", name="uq_invoice_payments_receipt_no"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_invoice_payments_customer_id", "invoice_payments", ["customer_id"], unique=False)
    op.create_index("ix_invoice_payments_voided", "invoice_payments", ["voided"], unique=False)

    op.create_table(
        "invoice_payment_details",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("invoice_payment_id", sa.Integer(), sa.ForeignKey("invoice_payments.id"), nullable=False),
        sa.Column("invoice_id", sa.Integer(), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("invoice_no", sa.String(length=32), nullable=False),
        sa.Column("receipt_no", sa.String(length=32), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("balance_before_cents", sa.Integer(), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_invoice_payment_details_invoice_payment_id", "invoice_payment_details", ["invoice_payment_id"], unique=False)
    op.create_index("ix_invoice_payment_details_invoice_id", "invoice_payment_details", ["invoice_id"], unique=False)
    op.create_index("ix_invoice_payment_details_receipt_no", "invoice_payment_details", ["receipt_no"], unique=False)

    # Debtors
    op.create_table(
        "debtors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("debtor_type", sa.String(length=32), nullable=False, server_default="Individual"),
        sa.Column("balance_cents", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        sa.UniqueConstraint("customer_id", "debtor_type", name="uq_debtors_customer_type"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_debtors_customer_id", "debtors", ["customer_id"], unique=False)

    op.create_table(
        "debtor_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("debtor_id", sa.Integer(), sa.ForeignKey("debtors.id"), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reference_no", sa.String(length=32), nullable=True),
        sa.Column("trans_type", sa.String(length=32), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("debit_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("credit_cents", sa.Integer(), nullable=False, server_default="0"),
        *_period_columns(),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_debtor_logs_debtor_id", "debtor_logs", ["debtor_id"], unique=False)
    op.create_index("ix_debtor_logs_customer_id", "debtor_logs", ["customer_id"], unique=False)
    op.create_index("ix_debtor_logs_reference_no", "debtor_logs", ["reference_no"], unique=False)

    # Voids and refunds
    op.create_table(
        "voided_sales",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("void_no", sa.String(length=32), nullable=False),
        sa.Column("void_source", sa.String(length=32), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=True),
        sa.Column("receipt_no", sa.String(length=32), nullable=True),
        sa.Column("invoice_no", sa.String(length=32), nullable=True),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("void_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("void_sys_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("void_reason", sa.String(length=255), nullable=True),
        sa.Column("total_due_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_paid_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("balance_due_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("paid_for_invoice_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status_at_void", sa.String(length=16), nullable=True),
        sa.Column("refunded_amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_refunded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("trans_type", sa.String(length=32), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("void_no", name="uq_voided_sales_void_no"),
        sa.CheckConstraint("refunded_amount_cents >= 0", name="ck_voided_sales_refunded_nonneg"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_voided_sales_void_source", "voided_sales", ["void_source"], unique=False)
    op.create_index("ix_voided_sales_customer_id", "voided_sales", ["customer_id"], unique=False)
    op.create_index("ix_voided_sales_receipt_no", "voided_sales", ["receipt_no"], unique=False)
    op.create_index("ix_voided_sales_invoice_no", "voided_sales", ["invoice_no"], unique=False)

    op.create_table(
        "voided_sale_lines",
        *_item_line_columns(),
        sa.Column("voided_sale_id", sa.Integer(), sa.ForeignKey("voided_sales.id"), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_voided_sale_lines_voided_sale_id", "voided_sale_lines", ["voided_sale_id"], unique=False)

    op.create_table(
        "refunds",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("refund_no", sa.String(length=32), nullable=False),
        sa.Column("voided_sale_id", sa.Integer(), sa.ForeignKey("voided_sales.id"), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("refund_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("payment_method_id", sa.Integer(), sa.ForeignKey("payment_methods.id"), nullable=False),
        sa.Column("remarks", sa.String(length=255), nullable=True),
        *_period_columns(),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("refund_no", name="uq_refunds_refund_no"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_refunds_voided_sale_id", "refunds", ["voided_sale_id"], unique=False)

    # Collections
    op.create_table(
        "collections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("receipt_no", sa.String(length=32), nullable=False),
        sa.Column("trans_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("payment_source", sa.String(length=32), nullable=False),
        sa.Column("trans_type", sa.String(length=32), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        *_period_columns(),
        sa.Column("user_id", sa.Integer(), nullable=True),
        _created_at(),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_collections_receipt_no", "collections", ["receipt_no"], unique=False)

    op.create_table(
        "collection_amounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("collection_id", sa.Integer(), sa.ForeignKey("collections.id"), nullable=False),
        sa.Column("payment_method_id", sa.Integer(), sa.ForeignKey("payment_methods.id"), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.UniqueConstraint("collection_id", "payment_method_id", name="uq_collection_amounts_method"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_collection_amounts_collection_id", "collection_amounts", ["collection_id"], unique=False)


def downgrade():
    for table in (
        "collection_amounts",
        "collections",
        "refunds",
        "voided_sale_lines",
        "voided_sales",
        "debtor_logs",
        "debtors",
        "invoice_payment_details",
        "invoice_payments",
        "invoice_logs",
        "invoice_lines",
        "invoices",
        "receipt_lines",
        "receipts",
        "physical_inventory_lines",
        "physical_inventories",
        "normal_adjustment_lines",
        "normal_adjustments",
        "receive_lines",
        "receives",
        "issue_lines",
        "issues",
        "requisition_history",
        "requisition_lines",
        "requisitions",
        "sale_lines",
        "sales",
        "physical_stock_balances",
        "product_cost_logs",
        "product_transactions",
        "product_expiry_lots",
        "stock_levels",
        "number_sequences",
        "products",
        "payment_methods",
        "adjustment_reasons",
        "suppliers",
        "customers",
        "stores",
    ):
        op.drop_table(table)
