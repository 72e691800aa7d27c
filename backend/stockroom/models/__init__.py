from .catalog import Unit, Product, Inventory, Customer, ProductUnitRate
from .auth import User, Manages, SessionToken
from .stock import StockMovement, StockTransfer
from .orders import Order

__all__ = [
    'Unit', 'Product', 'Inventory', 'Customer', 'ProductUnitRate',
    'User', 'Manages', 'SessionToken',
    'StockMovement', 'StockTransfer',
    'Order',
]
