"""
Database package initialization.

This module serves as the entry point for the durable cart storage package.

The package follows a modular structure:
- base: declarative base and mixins
- connection: async engine and session management
- models: SQLAlchemy ORM models for carts and cart rows
"""

# Import submodules explicitly when needed to avoid circular dependencies

__all__ = []
