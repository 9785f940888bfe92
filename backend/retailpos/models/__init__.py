from .catalog import Category, Supplier, Product
from .customers import Customer
from .sales import Sale, SaleItem
from .inventory import StockMovement
from .documents import Return, DocumentSequence
from .purchasing import PurchaseOrder, PurchaseOrderItem
from .auth import User, SessionToken

__all__ = [
    'Category', 'Supplier', 'Product',
    'Customer',
    'Sale', 'SaleItem',
    'StockMovement',
    'Return', 'DocumentSequence',
    'PurchaseOrder', 'PurchaseOrderItem',
    'User', 'SessionToken',
]
