from .api import ApiError, Customer, StorefrontClient
from .cart import Cart, CartLine, CartResult
from .catalog import CatalogFilter
from .storage import JSONFileStorage

__all__ = [
    "ApiError",
    "Cart",
    "CartLine",
    "CartResult",
    "CatalogFilter",
    "Customer",
    "JSONFileStorage",
    "StorefrontClient",
]
