from ..extensions import db
from .batch import Batch
from .clinic import Clinic
from .order import ORDER_STATUSES, Order, OrderItem
from .outbound import Outbound
from .product import Product, ReturnPolicy
from .returns import EMPTY_BOX_MEMO, OrderReturn, Return, SupplierReturnNotification
from .supplier import Supplier, SupplierManager, SupplierProduct

__all__ = [
    'db',
    'Batch',
    'Clinic',
    'ORDER_STATUSES',
    'Order',
    'OrderItem',
    'Outbound',
    'Product',
    'ReturnPolicy',
    'EMPTY_BOX_MEMO',
    'OrderReturn',
    'Return',
    'SupplierReturnNotification',
    'Supplier',
    'SupplierManager',
    'SupplierProduct',
]
