from .parties import Store, Customer, Supplier, AdjustmentReason, PaymentMethod
from .inventory import Product, StockLevel, ProductExpiryLot, ProductTransaction, ProductCostLog, PhysicalStockBalance
from .documents import (
    NumberSequence,
    Requisition, RequisitionLine, RequisitionHistory,
    Issue, IssueLine, Receive, ReceiveLine,
    NormalAdjustment, NormalAdjustmentLine,
    PhysicalInventory, PhysicalInventoryLine,
)
from .billing import Sale, SaleLine, Receipt, ReceiptLine, Invoice, InvoiceLine, InvoiceLog, InvoicePayment, InvoicePaymentDetail
from .debtors import Debtor, DebtorLog
from .voids import VoidedSale, VoidedSaleLine, Refund
from .cash import Collection, CollectionAmount

__all__ = [
    'Store', 'Customer', 'Supplier', 'AdjustmentReason', 'PaymentMethod',
    'Product', 'StockLevel', 'ProductExpiryLot', 'ProductTransaction', 'ProductCostLog', 'PhysicalStockBalance',
    'NumberSequence',
    'Requisition', 'RequisitionLine', 'RequisitionHistory',
    'Issue', 'IssueLine', 'Receive', 'ReceiveLine',
    'NormalAdjustment', 'NormalAdjustmentLine',
    'PhysicalInventory', 'PhysicalInventoryLine',
    'Sale', 'SaleLine', 'Receipt', 'ReceiptLine',
    'Invoice', 'InvoiceLine', 'InvoiceLog', 'InvoicePayment', 'InvoicePaymentDetail',
    'Debtor', 'DebtorLog',
    'VoidedSale', 'VoidedSaleLine', 'Refund',
    'Collection', 'CollectionAmount',
]
