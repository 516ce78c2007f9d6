from .auth import User, SessionToken
from .receipts import GoodsReceipt
from .activity import ErpActivityLog

__all__ = [
    'User', 'SessionToken',
    'GoodsReceipt',
    'ErpActivityLog',
]
