from .customers import Customer
from .inventory import Item
from .sales import Sale, SaleLineItem, Payment

__all__ = [
    'Customer',
    'Item',
    'Sale', 'SaleLineItem', 'Payment',
]
