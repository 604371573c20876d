"""Shared vocabulary of the posting engine.

Every status, source and transaction-type tag written to the ledgers is
defined here once; columns store the ``.value`` strings.
"""

from __future__ import annotations

from enum import Enum


class PartyKind(str, Enum):
    """Closed set of entities a stock movement or billing row may point at."""

    STORE = "STORE"
    CUSTOMER = "CUSTOMER"
    SUPPLIER = "SUPPLIER"
    ADJUSTMENT_REASON = "ADJUSTMENT_REASON"


class BillingTransType(str, Enum):
    CASH = "CASH"
    INVOICE = "INVOICE"
    REFUND = "REFUND"
    PAYMENT = "PAYMENT"
    PAYMENT_CANCELLATION = "PAYMENT_CANCELLATION"
    SALE_CANCELLATION = "SALE_CANCELLATION"
    SALES = "SALES"


class InvoiceTransType(str, Enum):
    NEW_INVOICE = "NEW_INVOICE"
    PAYMENT = "PAYMENT"
    PAYMENT_CANCELLATION = "PAYMENT_CANCELLATION"
    SALE_CANCELLATION = "SALE_CANCELLATION"


class InvoiceStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class PaymentSource(str, Enum):
    CASH_SALE = "CASH_SALE"
    INVOICE_PAYMENT = "INVOICE_PAYMENT"


class VoidSource(str, Enum):
    CASH_SALE = "CASH_SALE"
    INVOICE_SALE = "INVOICE_SALE"
    INVOICE_PAYMENT = "INVOICE_PAYMENT"


# Void sources whose refunds also move the customer's debtor balance
INVOICE_VOID_SOURCES = frozenset({VoidSource.INVOICE_SALE.value, VoidSource.INVOICE_PAYMENT.value})


class StockTransType(str, Enum):
    ISSUE = "Issue"
    RECEIVE = "Receive"


class AdjustmentAction(str, Enum):
    ADD = "Add"
    DEDUCT = "Deduct"


# Document workflow stages (requisitions, issues, receives)
STAGE_DRAFT = 1
STAGE_APPROVED = 2
STAGE_ISSUED = 3
STAGE_POSTED = 4

# Normal adjustments post at stage 2; physical counts close at stage 3
ADJUSTMENT_STAGE_DRAFT = 1
ADJUSTMENT_STAGE_POSTED = 2
PHYSICAL_INVENTORY_STAGE_DRAFT = 1
PHYSICAL_INVENTORY_STAGE_CLOSED = 3


# Reference-number prefixes
PREFIX_RECEIPT = "REC"
PREFIX_INVOICE = "INV"
PREFIX_VOID = "VOD"
PREFIX_REFUND = "REF"
PREFIX_ISSUE = "ISS"
PREFIX_RECEIVE = "RCV"

PHYSICAL_INVENTORY_REASON_NAME = "Physical Inventory"


__all__ = [
    "PartyKind",
    "BillingTransType",
    "InvoiceTransType",
    "InvoiceStatus",
    "PaymentSource",
    "VoidSource",
    "INVOICE_VOID_SOURCES",
    "StockTransType",
    "AdjustmentAction",
    "STAGE_DRAFT",
    "STAGE_APPROVED",
    "STAGE_ISSUED",
    "STAGE_POSTED",
    "ADJUSTMENT_STAGE_DRAFT",
    "ADJUSTMENT_STAGE_POSTED",
    "PHYSICAL_INVENTORY_STAGE_DRAFT",
    "PHYSICAL_INVENTORY_STAGE_CLOSED",
    "PREFIX_RECEIPT",
    "PREFIX_INVOICE",
    "PREFIX_VOID",
    "PREFIX_REFUND",
    "PREFIX_ISSUE",
    "PREFIX_RECEIVE",
    "PHYSICAL_INVENTORY_REASON_NAME",
]
