from .inventory import InventoryItem, StockAdjustment, STOCK_IN, STOCK_LOW, STOCK_OUT
from .catalog import PosProduct, OnlineProduct, OnlineProductVariant
from .customers import Customer, CustomerAddress, CartItem
from .coupons import Coupon, CouponRedemption
from .orders import Order, OrderLine, IdempotencyKey, PendingCheckout, CHANNEL_POS, CHANNEL_ONLINE
from .finance import InvoiceSettings, DocumentSequence, LedgerEntry, CompanySettings, DEFAULT_INVOICE_FORMAT
from .outbox import OutboxTask

__all__ = [
    'InventoryItem', 'StockAdjustment', 'STOCK_IN', 'STOCK_LOW', 'STOCK_OUT',
    'PosProduct', 'OnlineProduct', 'OnlineProductVariant',
    'Customer', 'CustomerAddress', 'CartItem',
    'Coupon', 'CouponRedemption',
    'Order', 'OrderLine', 'IdempotencyKey', 'PendingCheckout', 'CHANNEL_POS', 'CHANNEL_ONLINE',
    'InvoiceSettings', 'DocumentSequence', 'LedgerEntry', 'CompanySettings', 'DEFAULT_INVOICE_FORMAT',
    'OutboxTask',
]
