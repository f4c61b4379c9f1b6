"""
Shopping cart service package.

Exports the cart aggregate, its factory, and the collaborator contracts a
caller wires in: session storage, identity, validation and the durable
repository.
"""

from shopcart.services.cart.exceptions import (
    CartError,
    CartStorageError,
    DurableSyncError,
    InvalidItemError,
    ItemNotFoundError,
)
from shopcart.services.cart.identity import IdentityProvider, StaticIdentityProvider
from shopcart.services.cart.items import LineItem, derive_row_id
from shopcart.services.cart.repository import CartRepository, SQLAlchemyCartRepository
from shopcart.services.cart.service import ShoppingCart, get_shopping_cart
from shopcart.services.cart.store import (
    CartStore,
    InMemorySessionStorage,
    RedisSessionStorage,
    SessionStorage,
)
from shopcart.services.cart.sync import CartSyncAdapter
from shopcart.services.cart.validation import ItemValidator, PydanticItemValidator

__all__ = [
    "CartError",
    "CartStorageError",
    "DurableSyncError",
    "InvalidItemError",
    "ItemNotFoundError",
    "IdentityProvider",
    "StaticIdentityProvider",
    "LineItem",
    "derive_row_id",
    "CartRepository",
    "SQLAlchemyCartRepository",
    "ShoppingCart",
    "get_shopping_cart",
    "CartStore",
    "InMemorySessionStorage",
    "RedisSessionStorage",
    "SessionStorage",
    "CartSyncAdapter",
    "ItemValidator",
    "PydanticItemValidator",
]
