"""
Durable cart repository for data access operations.

This module defines the CartRepository contract used by the durable sync
adapter and its SQLAlchemy implementation. The SQL repository scopes cart
records to an owner or a session, upserts and deletes line rows, and loads an
owner's rows for hydration. Every method commits its own unit of work and
wraps database failures in DurableSyncError.
"""

import uuid
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shopcart.core.logging import get_logger
from shopcart.database.models.cart import Cart, CartItem
from shopcart.schemas.cart import DurableCartRow
from shopcart.services.cart.exceptions import DurableSyncError
from shopcart.services.cart.items import LineItem

logger = get_logger(__name__)


class CartRepository(ABC):
    """Abstract durable cart repository."""

    @abstractmethod
    async def find_or_create(
        self, owner_id: Optional[str], session_id: str
    ) -> uuid.UUID:
        """Return the ID of the record for the owner (or session), creating it."""

    @abstractmethod
    async def upsert_row(self, cart_id: uuid.UUID, item: LineItem) -> None:
        """Insert or overwrite the row keyed by (cart_id, row_id, product_id)."""

    @abstractmethod
    async def update_row(self, cart_id: uuid.UUID, item: LineItem) -> bool:
        """Overwrite the row keyed by (cart_id, row_id); False if absent."""

    @abstractmethod
    async def delete_row(self, cart_id: uuid.UUID, row_id: str) -> bool:
        """Delete the row; False if absent."""

    @abstractmethod
    async def count_rows(self, cart_id: uuid.UUID) -> int:
        """Count rows remaining in the record."""

    @abstractmethod
    async def delete_record(self, cart_id: uuid.UUID) -> bool:
        """Delete the record and its rows; False if absent."""

    @abstractmethod
    async def find_by_owner(self, owner_id: str) -> Optional[list[DurableCartRow]]:
        """Return the owner's rows, or None if the owner has no record."""


class SQLAlchemyCartRepository(CartRepository):
    """
    Repository for durable cart records backed by SQLAlchemy.

    Provides async methods for cart record scoping, row upserts and
    deletions, and hydration queries.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize cart repository.

        Args:
            session: Async database session for operations
        """
        self.session = session
        logger.debug("SQLAlchemyCartRepository initialized")

    async def _fail(self, message: str, error: SQLAlchemyError, **context) -> None:
        await self.session.rollback()
        logger.error(
            message,
            error=str(error),
            error_type=type(error).__name__,
            **context,
        )
        raise DurableSyncError(message, error=str(error), **context) from error

    async def _get_row(self, cart_id: uuid.UUID, row_id: str) -> Optional[CartItem]:
        stmt = select(CartItem).where(
            CartItem.cart_id == cart_id,
            CartItem.row_id == row_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_or_create(
        self, owner_id: Optional[str], session_id: str
    ) -> uuid.UUID:
        """
        Find or create the durable cart record for the current scope.

        Authenticated shoppers are matched by owner. An owner without a record
        claims the anonymous record of the current session, if there is one.
        Anonymous shoppers are matched by session. The session ID is stamped
        on every call and the owner ID whenever one is known.

        Args:
            owner_id: Signed-in owner identifier, if any
            session_id: Current session identifier

        Returns:
            Cart record ID

        Raises:
            DurableSyncError: If database operation fails
        """
        try:
            cart = None
            if owner_id:
                result = await self.session.execute(
                    select(Cart)
                    .where(Cart.owner_id == owner_id)
                    .order_by(Cart.updated_at.desc())
                    .limit(1)
                )
                cart = result.scalars().first()

            if cart is None:
                result = await self.session.execute(
                    select(Cart)
                    .where(Cart.session_id == session_id, Cart.owner_id.is_(None))
                    .order_by(Cart.updated_at.desc())
                    .limit(1)
                )
                cart = result.scalars().first()
                if cart is not None and owner_id:
                    logger.info(
                        "Claiming anonymous cart for owner",
                        cart_id=str(cart.id),
                        session_id=session_id,
                        owner_id=owner_id,
                    )

            created = cart is None
            if created:
                cart = Cart(session_id=session_id)
                self.session.add(cart)

            cart.session_id = session_id
            if owner_id:
                cart.owner_id = owner_id

            await self.session.flush()
            cart_id = cart.id
            await self.session.commit()

            logger.info(
                "Durable cart opened",
                cart_id=str(cart_id),
                created=created,
                owner_id=owner_id,
                session_id=session_id,
            )
            return cart_id

        except SQLAlchemyError as e:
            await self._fail(
                "Failed to open durable cart",
                e,
                owner_id=owner_id,
                session_id=session_id,
            )

    async def upsert_row(self, cart_id: uuid.UUID, item: LineItem) -> None:
        """
        Insert or overwrite a durable row from a line item.

        Rows are matched on row ID alone, so a row whose product was changed
        by an update is overwritten when the original product is added again.

        Raises:
            DurableSyncError: If database operation fails
        """
        try:
            row = await self._get_row(cart_id, item.row_id)
            created = row is None
            if created:
                row = CartItem(cart_id=cart_id, row_id=item.row_id)
                self.session.add(row)

            row.product_id = item.product_id
            self._copy_item(row, item)
            await self.session.commit()

            logger.debug(
                "Durable row upserted",
                cart_id=str(cart_id),
                row_id=item.row_id,
                created=created,
            )

        except SQLAlchemyError as e:
            await self._fail(
                "Failed to upsert durable row",
                e,
                cart_id=str(cart_id),
                row_id=item.row_id,
            )

    async def update_row(self, cart_id: uuid.UUID, item: LineItem) -> bool:
        """
        Overwrite the durable row with the same row ID.

        Returns:
            True if the row existed and was updated

        Raises:
            DurableSyncError: If database operation fails
        """
        try:
            row = await self._get_row(cart_id, item.row_id)
            if row is None:
                logger.warning(
                    "Durable row not found for update",
                    cart_id=str(cart_id),
                    row_id=item.row_id,
                )
                return False

            row.product_id = item.product_id
            self._copy_item(row, item)
            await self.session.commit()

            logger.debug("Durable row updated", cart_id=str(cart_id), row_id=item.row_id)
            return True

        except SQLAlchemyError as e:
            await self._fail(
                "Failed to update durable row",
                e,
                cart_id=str(cart_id),
                row_id=item.row_id,
            )

    async def delete_row(self, cart_id: uuid.UUID, row_id: str) -> bool:
        """
        Delete a durable row.

        Raises:
            DurableSyncError: If database operation fails
        """
        try:
            result = await self.session.execute(
                delete(CartItem).where(
                    CartItem.cart_id == cart_id,
                    CartItem.row_id == row_id,
                )
            )
            await self.session.commit()

            deleted = result.rowcount > 0
            logger.debug(
                "Durable row deleted",
                cart_id=str(cart_id),
                row_id=row_id,
                deleted=deleted,
            )
            return deleted

        except SQLAlchemyError as e:
            await self._fail(
                "Failed to delete durable row",
                e,
                cart_id=str(cart_id),
                row_id=row_id,
            )

    async def count_rows(self, cart_id: uuid.UUID) -> int:
        """
        Count durable rows for a record.

        Raises:
            DurableSyncError: If database operation fails
        """
        try:
            result = await self.session.execute(
                select(func.count())
                .select_from(CartItem)
                .where(CartItem.cart_id == cart_id)
            )
            return result.scalar_one()

        except SQLAlchemyError as e:
            await self._fail("Failed to count durable rows", e, cart_id=str(cart_id))

    async def delete_record(self, cart_id: uuid.UUID) -> bool:
        """
        Delete a durable cart record and all of its rows.

        Raises:
            DurableSyncError: If database operation fails
        """
        try:
            await self.session.execute(
                delete(CartItem).where(CartItem.cart_id == cart_id)
            )
            result = await self.session.execute(delete(Cart).where(Cart.id == cart_id))
            await self.session.commit()

            deleted = result.rowcount > 0
            if deleted:
                logger.info("Durable cart deleted", cart_id=str(cart_id))
            else:
                logger.debug("Durable cart not found for deletion", cart_id=str(cart_id))
            return deleted

        except SQLAlchemyError as e:
            await self._fail("Failed to delete durable cart", e, cart_id=str(cart_id))

    async def find_by_owner(self, owner_id: str) -> Optional[list[DurableCartRow]]:
        """
        Load the owner's most recent durable cart rows.

        Returns:
            Durable rows, or None if the owner has no record

        Raises:
            DurableSyncError: If database operation fails
        """
        try:
            result = await self.session.execute(
                select(Cart.id)
                .where(Cart.owner_id == owner_id)
                .order_by(Cart.updated_at.desc())
                .limit(1)
            )
            cart_id = result.scalars().first()

            if cart_id is None:
                logger.debug("No durable cart found for owner", owner_id=owner_id)
                return None

            result = await self.session.execute(
                select(CartItem)
                .where(CartItem.cart_id == cart_id)
                .order_by(CartItem.created_at)
                .execution_options(populate_existing=True)
            )
            rows = [
                DurableCartRow.model_validate(row) for row in result.scalars().all()
            ]
            logger.debug(
                "Durable cart loaded for owner",
                owner_id=owner_id,
                cart_id=str(cart_id),
                rows=len(rows),
            )
            return rows

        except SQLAlchemyError as e:
            await self._fail(
                "Failed to load durable cart for owner", e, owner_id=owner_id
            )

    @staticmethod
    def _copy_item(row: CartItem, item: LineItem) -> None:
        row.name = item.name
        row.price = item.unit_price
        row.quantity = item.quantity
        row.options = dict(item.options)
