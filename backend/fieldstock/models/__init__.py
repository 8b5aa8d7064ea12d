from .reference import Category, UnitOfMeasure, Supplier, Location
from .inventory import InventoryItem, InventoryTransaction, InventoryItemHistory, InventoryPriceHistory
from .allocations import InventoryAllocation
from .purchasing import InventoryPurchaseOrder, InventoryPurchaseOrderItem
from .alerts import InventoryStockAlert
from .counts import InventoryCount, InventoryCountItem
from .sequences import DocumentSequence

__all__ = [
    'Category', 'UnitOfMeasure', 'Supplier', 'Location',
    'InventoryItem', 'InventoryTransaction', 'InventoryItemHistory', 'InventoryPriceHistory',
    'InventoryAllocation',
    'InventoryPurchaseOrder', 'InventoryPurchaseOrderItem',
    'InventoryStockAlert',
    'InventoryCount', 'InventoryCountItem',
    'DocumentSequence',
]
