from .auth import User, SessionToken, SecurityEvent
from .products import Product
from .customers import Customer
from .employees import Employee
from .sales import Sale, SaleItem
from .documents import OrderSequence

__all__ = [
    'User', 'SessionToken', 'SecurityEvent',
    'Product',
    'Customer',
    'Employee',
    'Sale', 'SaleItem',
    'OrderSequence',
]
