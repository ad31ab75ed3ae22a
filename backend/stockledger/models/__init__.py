from .inventory import Product, StockMovement, decode_movement_kind, product_name_key
from .customers import Customer, CreditEntry
from .sales import Sale

__all__ = [
    'Product', 'StockMovement', 'decode_movement_kind', 'product_name_key',
    'Customer', 'CreditEntry',
    'Sale',
]
