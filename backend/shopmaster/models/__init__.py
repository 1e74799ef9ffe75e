from .catalog import Category, Product, ProductVariant
from .inventory import InventoryLog, INVENTORY_LOG_TYPES
from .orders import Order, OrderItem, DocumentSequence, ORDER_STATUSES, PAYMENT_METHODS, PAYMENT_STATUSES
from .auth import User, Role, UserRole, SessionToken
from .engagement import Review, WishlistItem

__all__ = [
    'Category', 'Product', 'ProductVariant',
    'InventoryLog', 'INVENTORY_LOG_TYPES',
    'Order', 'OrderItem', 'DocumentSequence',
    'ORDER_STATUSES', 'PAYMENT_METHODS', 'PAYMENT_STATUSES',
    'User', 'Role', 'UserRole', 'SessionToken',
    'Review', 'WishlistItem',
]
