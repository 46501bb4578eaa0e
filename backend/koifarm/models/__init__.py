from .catalog import Product
from .sales import Sale, SaleLine
from .members import Member, MemberPurchase

__all__ = [
    'Product',
    'Sale', 'SaleLine',
    'Member', 'MemberPurchase',
]
