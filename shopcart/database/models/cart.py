"""
Durable shopping cart database models.

This module defines the Cart and CartItem models that mirror the shopper's
transient cart into durable storage. A cart record is scoped to a signed-in
owner or, failing that, to an anonymous session, and holds one row per
distinct line item identity.
"""

import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopcart.database.base import BaseModel


class Cart(BaseModel):
    """
    Durable cart record for one owner or session.

    The session identifier is stamped on every open so the record can be
    found again for anonymous shoppers, and the owner identifier is stamped
    once the shopper signs in.

    Attributes:
        id: Unique cart identifier (UUID)
        owner_id: Signed-in owner identifier (nullable for anonymous)
        session_id: Last session identifier that opened this record
        items: Durable line rows
    """

    __tablename__ = "carts"

    owner_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Signed-in owner identifier (null for anonymous)",
    )

    session_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Session identifier that last opened the cart",
    )

    items: Mapped[list["CartItem"]] = relationship(
        "CartItem",
        back_populates="cart",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="CartItem.created_at",
    )

    __table_args__ = (
        Index("ix_carts_owner_id", "owner_id"),
        Index("ix_carts_session_id", "session_id"),
        CheckConstraint(
            "length(session_id) >= 1",
            name="ck_carts_session_id_min_length",
        ),
        {"comment": "Durable shopping carts scoped to owner or session"},
    )

    def __repr__(self) -> str:
        identifier = (
            f"owner_id='{self.owner_id}'"
            if self.owner_id
            else f"session_id='{self.session_id}'"
        )
        return f"<Cart(id={self.id}, {identifier})>"

    @property
    def is_anonymous(self) -> bool:
        return self.owner_id is None

    def is_empty(self) -> bool:
        return len(self.items) == 0


class CartItem(BaseModel):
    """
    Durable line row mirroring one transient line item.

    Attributes:
        cart_id: Foreign key to parent cart
        row_id: Content-derived line identity at the time of mirroring
        product_id: External product reference
        name: Display label
        price: Unit price without tax
        quantity: Quantity (may be fractional)
        options: Option set as JSON
    """

    __tablename__ = "cart_items"

    cart_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("carts.id", ondelete="CASCADE"),
        nullable=False,
        comment="Foreign key to parent cart",
    )

    row_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Content-derived line identity",
    )

    product_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="External product reference",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display label",
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=4),
        nullable=False,
        comment="Unit price without tax",
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(precision=12, scale=4),
        nullable=False,
        comment="Line quantity",
    )

    options: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Option set",
    )

    cart: Mapped["Cart"] = relationship(
        "Cart",
        back_populates="items",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("cart_id", "row_id", name="uq_cart_items_cart_row"),
        Index("ix_cart_items_cart_id", "cart_id"),
        CheckConstraint("quantity > 0", name="ck_cart_items_quantity_positive"),
        CheckConstraint("price >= 0", name="ck_cart_items_price_non_negative"),
        {"comment": "Durable cart line rows"},
    )

    def __repr__(self) -> str:
        return (
            f"<CartItem(id={self.id}, cart_id={self.cart_id}, "
            f"row_id='{self.row_id}', quantity={self.quantity}, price={self.price})>"
        )
