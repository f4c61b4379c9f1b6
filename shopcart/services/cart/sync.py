"""
Best-effort mirror of cart mutations to the durable store.

The CartSyncAdapter forwards add/update/remove/destroy to a CartRepository
scoped to the current owner or session, and performs the once-per-session
hydration query. Each repository call is bounded by a timeout. Failures are
logged and never reach the cart's caller.
"""

import asyncio
import uuid
from typing import Any, Awaitable, Callable, Optional, TypeVar

from shopcart.core.logging import get_logger
from shopcart.schemas.cart import DurableCartRow
from shopcart.services.cart.identity import IdentityProvider
from shopcart.services.cart.items import LineItem
from shopcart.services.cart.repository import CartRepository
from shopcart.services.cart.store import SessionStorage

logger = get_logger(__name__)

T = TypeVar("T")

HYDRATION_FLAG_KEY = "cart_hydrated"

_FAILED = object()


class CartSyncAdapter:
    """
    Mirror cart changes to a durable repository.

    The adapter holds the ID of the durable record for the current scope.
    If the record could not be opened, mirror calls try to open it again
    before writing.
    """

    def __init__(
        self,
        repository: CartRepository,
        identity: IdentityProvider,
        storage: SessionStorage,
        timeout_seconds: float = 2.0,
        delete_empty_record: bool = True,
    ):
        """
        Initialize sync adapter.

        Args:
            repository: Durable cart repository
            identity: Provider for the current owner and session
            storage: Session slot holding the hydration flag
            timeout_seconds: Upper bound for each repository call
            delete_empty_record: Delete the durable record once its last row is removed
        """
        self.repository = repository
        self.identity = identity
        self.storage = storage
        self.timeout_seconds = timeout_seconds
        self.delete_empty_record = delete_empty_record
        self._cart_id: Optional[uuid.UUID] = None

    @property
    def cart_id(self) -> Optional[uuid.UUID]:
        return self._cart_id

    async def _run(
        self,
        operation: str,
        factory: Callable[[], Awaitable[T]],
        **context: Any,
    ) -> Any:
        """
        Await a repository call with a timeout, logging any failure.

        Returns:
            The call's result, or the ``_FAILED`` sentinel
        """
        try:
            return await asyncio.wait_for(factory(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(
                "Durable cart sync failed",
                operation=operation,
                error="timed out",
                error_type="TimeoutError",
                timeout_seconds=self.timeout_seconds,
                **context,
            )
        except Exception as e:
            logger.error(
                "Durable cart sync failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                **context,
            )
        return _FAILED

    async def open(self) -> Optional[uuid.UUID]:
        """
        Find or create the durable record for the current owner or session.

        Returns:
            Record ID, or None when the record could not be opened
        """
        owner_id = self.identity.current_owner_id()
        session_id = self.identity.current_session_id()

        result = await self._run(
            "open",
            lambda: self.repository.find_or_create(owner_id, session_id),
            owner_id=owner_id,
            session_id=session_id,
        )
        self._cart_id = None if result is _FAILED else result
        return self._cart_id

    async def _ensure_record(self) -> Optional[uuid.UUID]:
        if self._cart_id is None:
            await self.open()
        return self._cart_id

    async def mirror_add(self, item: LineItem) -> None:
        cart_id = await self._ensure_record()
        if cart_id is None:
            return
        await self._run(
            "add",
            lambda: self.repository.upsert_row(cart_id, item),
            cart_id=str(cart_id),
            row_id=item.row_id,
        )

    async def mirror_update(self, item: LineItem) -> None:
        cart_id = await self._ensure_record()
        if cart_id is None:
            return
        updated = await self._run(
            "update",
            lambda: self.repository.update_row(cart_id, item),
            cart_id=str(cart_id),
            row_id=item.row_id,
        )
        if updated is False:
            logger.warning(
                "Durable row missing on update",
                cart_id=str(cart_id),
                row_id=item.row_id,
            )

    async def mirror_remove(self, row_id: str) -> None:
        """
        Delete the durable row and, under the cleanup policy, an emptied record.
        """
        cart_id = await self._ensure_record()
        if cart_id is None:
            return

        result = await self._run(
            "remove",
            lambda: self.repository.delete_row(cart_id, row_id),
            cart_id=str(cart_id),
            row_id=row_id,
        )
        if result is _FAILED or not self.delete_empty_record:
            return

        remaining = await self._run(
            "count",
            lambda: self.repository.count_rows(cart_id),
            cart_id=str(cart_id),
        )
        if remaining is _FAILED or remaining > 0:
            return

        deleted = await self._run(
            "delete_empty",
            lambda: self.repository.delete_record(cart_id),
            cart_id=str(cart_id),
        )
        if deleted is not _FAILED:
            logger.info("Empty durable cart deleted", cart_id=str(cart_id))
            self._cart_id = None

    async def mirror_destroy(self) -> None:
        cart_id = await self._ensure_record()
        if cart_id is None:
            return
        result = await self._run(
            "destroy",
            lambda: self.repository.delete_record(cart_id),
            cart_id=str(cart_id),
        )
        if result is not _FAILED:
            self._cart_id = None

    async def hydrate(self, store_is_empty: bool) -> list[DurableCartRow]:
        """
        Return the signed-in owner's durable rows, once per session.

        Nothing is returned when the store already has items, the session has
        been hydrated before, or nobody is signed in. The session flag is set
        before the query runs, so a failed query is not retried.

        Args:
            store_is_empty: Whether the current cart store has no items

        Returns:
            Durable rows to rebuild the cart from (possibly empty)
        """
        if not store_is_empty:
            return []

        if await self.storage.get(HYDRATION_FLAG_KEY):
            logger.debug("Cart already hydrated for session")
            return []

        owner_id = self.identity.current_owner_id()
        if not owner_id:
            return []

        await self.storage.put(HYDRATION_FLAG_KEY, True)

        rows = await self._run(
            "hydrate",
            lambda: self.repository.find_by_owner(owner_id),
            owner_id=owner_id,
        )
        if rows is _FAILED or not rows:
            return []

        logger.info("Durable cart rows loaded", owner_id=owner_id, rows=len(rows))
        return list(rows)
