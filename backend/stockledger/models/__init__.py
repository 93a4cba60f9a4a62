from .tenancy import Tenant, User
from .inventory import Material, StockTransaction
from .security import SecurityEvent

__all__ = [
    'Tenant', 'User',
    'Material', 'StockTransaction',
    'SecurityEvent',
]
