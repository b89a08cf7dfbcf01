"""
Utils module initialization.
"""

from .memory_utils import save_memory, load_memory
from .instamart_client import (
    CartTools,
    InstamartClient,
    DEFAULT_INSTAMART_URL,
    DEFAULT_SEARCH_LIMIT,
    MAX_SEARCH_LIMIT,
)
from .order_store import OrderStore, OrderNotFoundError
from .swiggy_account import SwiggyAccount, normalize_phone

__all__ = [
    # Memory utilities
    "save_memory",
    "load_memory",
    # Instamart client
    "CartTools",
    "InstamartClient",
    "DEFAULT_INSTAMART_URL",
    "DEFAULT_SEARCH_LIMIT",
    "MAX_SEARCH_LIMIT",
    # Orders
    "OrderStore",
    "OrderNotFoundError",
    # Account
    "SwiggyAccount",
    "normalize_phone",
]
