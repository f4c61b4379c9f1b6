"""
Database models package initialization.

This module exports the durable cart models for SQLAlchemy and Alembic
auto-generation. Models are imported here to ensure they are registered with
the Base metadata for proper migration generation and relationship resolution.
"""

from shopcart.database.base import Base, BaseModel, TimestampMixin, UUIDMixin
from shopcart.database.models.cart import Cart, CartItem

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "Cart",
    "CartItem",
]
