"""
Shopping cart service orchestrating cart operations.

This module implements the ShoppingCart aggregate providing add, update,
remove and destroy operations, queries over the current cart, formatted price
aggregates, and one-shot hydration from the durable store. The session-backed
cart store is authoritative. Durable mirroring is best-effort and never
changes the outcome of an operation.
"""

from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from shopcart.core.config import Settings, get_settings
from shopcart.core.logging import get_logger, log_performance, set_cart_context
from shopcart.schemas.cart import (
    TOTAL_STOCK_OPTION,
    CartSummary,
    DurableCartRow,
    LineItemRules,
    OptionValue,
)
from shopcart.services.cart.exceptions import InvalidItemError, ItemNotFoundError
from shopcart.services.cart.identity import IdentityProvider
from shopcart.services.cart.items import (
    ZERO,
    LineItem,
    Quantity,
    format_amount,
    normalize_quantity,
)
from shopcart.services.cart.repository import SQLAlchemyCartRepository
from shopcart.services.cart.store import CartStore, SessionStorage
from shopcart.services.cart.sync import CartSyncAdapter
from shopcart.services.cart.validation import ItemValidator, PydanticItemValidator

logger = get_logger(__name__)

Patch = Union[Mapping[str, Any], int, float, str, Decimal, None]


class ShoppingCart:
    """
    Shopping cart aggregate.

    Holds line items under a named cart key in the session slot, merges
    repeated adds of the same product configuration, computes totals, and
    drives the durable sync adapter when one is attached.
    """

    UPDATABLE_FIELDS = frozenset(
        {"product_id", "name", "unit_price", "quantity", "options"}
    )

    def __init__(
        self,
        store: CartStore,
        settings: Settings,
        sync: Optional[CartSyncAdapter] = None,
        validator: Optional[ItemValidator] = None,
        cart_key: Optional[str] = None,
    ):
        """
        Initialize shopping cart.

        Args:
            store: Session-backed cart store
            settings: Cart settings (tax, formatting, cleanup policy)
            sync: Optional durable sync adapter
            validator: Optional validation engine (defaults to Pydantic rules)
            cart_key: Optional cart key (defaults to ``settings.session_key``)
        """
        self.store = store
        self.settings = settings
        self.sync = sync
        self.validator = validator or PydanticItemValidator()
        self._cart_key = cart_key or settings.session_key

    @property
    def cart_key(self) -> str:
        return self._cart_key

    def session(self, cart_key: str) -> "ShoppingCart":
        """
        Switch to another named cart in the same session.

        Raises:
            InvalidItemError: If the cart key is empty
        """
        if not cart_key:
            raise InvalidItemError("Please supply a valid cart key.")
        self._cart_key = cart_key
        logger.debug("Cart key switched", cart_key=cart_key)
        return self

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _check(self, record: Mapping[str, Any]) -> None:
        error = self.validator.validate(record, LineItemRules)
        if error is not None:
            raise InvalidItemError(error, cart_key=self._cart_key)

    def _build_item(
        self, record: Mapping[str, Any]
    ) -> tuple[LineItem, Optional[Any]]:
        """Validate a record and build a candidate with the stock ceiling split off."""
        self._check(record)
        options = dict(record.get("options") or {})
        total_stock = options.pop(TOTAL_STOCK_OPTION, None)
        item = LineItem.create(
            product_id=record["product_id"],
            name=record["name"],
            unit_price=record["unit_price"],
            quantity=record["quantity"],
            options=options,
            tax_rate=self.settings.tax,
        )
        return item, total_stock

    @staticmethod
    def _merge(
        items: dict[str, LineItem],
        candidate: LineItem,
        total_stock: Optional[Any] = None,
    ) -> LineItem:
        existing = items.get(candidate.row_id)
        if existing is not None:
            quantity = existing.quantity + candidate.quantity
            if total_stock is not None:
                ceiling = normalize_quantity(total_stock)
                if quantity > ceiling:
                    logger.debug(
                        "Quantity clamped to stock",
                        row_id=candidate.row_id,
                        requested=str(quantity),
                        total_stock=str(ceiling),
                    )
                    quantity = ceiling
            candidate.quantity = quantity
        items[candidate.row_id] = candidate
        return candidate

    async def add(
        self,
        product_id: Union[str, int],
        name: str,
        unit_price: Any,
        quantity: Any,
        options: Optional[Mapping[str, OptionValue]] = None,
    ) -> str:
        """
        Add a product configuration to the cart.

        Adding a configuration already in the cart replaces the stored line
        with the new one and sums the quantities. A ``totalStock`` option caps
        the summed quantity and is not stored.

        Args:
            product_id: External product reference
            name: Display label
            unit_price: Unit price without tax
            quantity: Quantity to add
            options: Option set

        Returns:
            Row ID of the resulting line

        Raises:
            InvalidItemError: If the item fails validation
        """
        record = {
            "product_id": product_id,
            "name": name,
            "unit_price": unit_price,
            "quantity": quantity,
            "options": dict(options or {}),
        }
        candidate, total_stock = self._build_item(record)

        items = await self.store.load(self._cart_key)
        merged = candidate.row_id in items
        item = self._merge(items, candidate, total_stock)
        await self.store.save(self._cart_key, items)

        logger.info(
            "Item added to cart",
            cart_key=self._cart_key,
            row_id=item.row_id,
            product_id=item.product_id,
            quantity=str(item.quantity),
            merged=merged,
        )

        if self.sync is not None:
            await self.sync.mirror_add(item)

        return item.row_id

    async def update(self, row_id: str, patch: Patch) -> LineItem:
        """
        Update a line in the cart.

        ``patch`` is either a bare quantity or a mapping of the fields to
        change. Replacing ``options`` does not change the row ID.

        Args:
            row_id: Row ID of the line to update
            patch: New quantity, or mapping of field values

        Returns:
            Updated line item

        Raises:
            InvalidItemError: If the patch or the patched line is invalid
            ItemNotFoundError: If the cart has no such row
        """
        if isinstance(patch, Mapping):
            if not patch:
                raise InvalidItemError("Please supply a valid quantity.", row_id=row_id)
            unknown = sorted(set(patch) - self.UPDATABLE_FIELDS)
            if unknown:
                raise InvalidItemError(
                    f"Unknown cart item fields: {', '.join(unknown)}.",
                    row_id=row_id,
                    fields=unknown,
                )
            changes = dict(patch)
        else:
            if not patch:
                raise InvalidItemError("Please supply a valid quantity.", row_id=row_id)
            changes = {"quantity": patch}

        items = await self.store.load(self._cart_key)
        existing = items.get(row_id)
        if existing is None:
            raise ItemNotFoundError(row_id, cart_key=self._cart_key)

        record = existing.to_record()
        record.update(changes)
        self._check(record)

        options = dict(record["options"])
        options.pop(TOTAL_STOCK_OPTION, None)
        item = LineItem(
            row_id=row_id,
            product_id=record["product_id"],
            name=record["name"],
            unit_price=record["unit_price"],
            quantity=record["quantity"],
            options=options,
            tax_rate=existing.tax_rate,
        )
        items[row_id] = item
        await self.store.save(self._cart_key, items)

        logger.info(
            "Cart item updated",
            cart_key=self._cart_key,
            row_id=row_id,
            fields=sorted(changes),
        )

        if self.sync is not None:
            await self.sync.mirror_update(item)

        return item

    async def remove(self, row_id: str) -> None:
        """
        Remove a line from the cart.

        Raises:
            ItemNotFoundError: If the cart has no such row
        """
        items = await self.store.load(self._cart_key)
        if row_id not in items:
            raise ItemNotFoundError(row_id, cart_key=self._cart_key)

        del items[row_id]
        await self.store.save(self._cart_key, items)

        logger.info("Cart item removed", cart_key=self._cart_key, row_id=row_id)

        if self.sync is not None:
            await self.sync.mirror_remove(row_id)

    async def destroy(self) -> None:
        """Forget the current cart and delete its durable record."""
        await self.store.clear(self._cart_key)
        logger.info("Cart destroyed", cart_key=self._cart_key)

        if self.sync is not None:
            await self.sync.mirror_destroy()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def has(self, row_id: str) -> bool:
        items = await self.store.load(self._cart_key)
        return row_id in items

    async def get(self, row_id: str) -> LineItem:
        """
        Get a line by row ID.

        Raises:
            ItemNotFoundError: If the cart has no such row
        """
        items = await self.store.load(self._cart_key)
        try:
            return items[row_id]
        except KeyError:
            raise ItemNotFoundError(row_id, cart_key=self._cart_key) from None

    async def content(self) -> dict[str, LineItem]:
        return dict(await self.store.load(self._cart_key))

    async def count(self) -> Quantity:
        """Sum of quantities across all lines."""
        items = await self.store.load(self._cart_key)
        return sum((item.quantity for item in items.values()), 0)

    async def search(self, predicate: Callable[[LineItem], bool]) -> dict[str, LineItem]:
        """Return the lines matching ``predicate``, keyed by row ID."""
        items = await self.store.load(self._cart_key)
        return {row_id: item for row_id, item in items.items() if predicate(item)}

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def _format(
        self,
        value: Decimal,
        decimals: Optional[int],
        decimal_point: Optional[str],
        thousand_seperator: Optional[str],
    ) -> str:
        defaults = self.settings.format
        return format_amount(
            value,
            decimals=defaults.decimals if decimals is None else decimals,
            decimal_point=(
                defaults.decimal_point if decimal_point is None else decimal_point
            ),
            thousand_seperator=(
                defaults.thousand_seperator
                if thousand_seperator is None
                else thousand_seperator
            ),
        )

    async def summary(self) -> CartSummary:
        """
        Compute the raw pricing figures for the current cart.

        Returns:
            Summary with un-formatted Decimal values
        """
        items = list((await self.store.load(self._cart_key)).values())
        subtotal = sum((item.line_subtotal for item in items), ZERO)
        tax = sum((item.line_tax for item in items), ZERO)
        discount = sum((item.discount for item in items), ZERO)
        gross = sum((item.line_total for item in items), ZERO)
        count = sum((Decimal(item.quantity) for item in items), ZERO)

        return CartSummary(
            subtotal=subtotal,
            tax=tax,
            discount=discount,
            total=gross - discount,
            count=count,
            lines=len(items),
        )

    async def subtotal(
        self,
        decimals: Optional[int] = None,
        decimal_point: Optional[str] = None,
        thousand_seperator: Optional[str] = None,
    ) -> str:
        summary = await self.summary()
        return self._format(
            summary.subtotal, decimals, decimal_point, thousand_seperator
        )

    async def tax(
        self,
        decimals: Optional[int] = None,
        decimal_point: Optional[str] = None,
        thousand_seperator: Optional[str] = None,
    ) -> str:
        summary = await self.summary()
        return self._format(summary.tax, decimals, decimal_point, thousand_seperator)

    async def discount(
        self,
        decimals: Optional[int] = None,
        decimal_point: Optional[str] = None,
        thousand_seperator: Optional[str] = None,
    ) -> str:
        """Sum of flat line discounts, counted once per line."""
        summary = await self.summary()
        return self._format(
            summary.discount, decimals, decimal_point, thousand_seperator
        )

    async def total(
        self,
        decimals: Optional[int] = None,
        decimal_point: Optional[str] = None,
        thousand_seperator: Optional[str] = None,
    ) -> str:
        """Sum of line totals including tax, minus line discounts."""
        summary = await self.summary()
        return self._format(summary.total, decimals, decimal_point, thousand_seperator)

    # ------------------------------------------------------------------
    # Hydration
    # ------------------------------------------------------------------

    async def load_from_records(self, rows: Iterable[DurableCartRow]) -> int:
        """
        Rebuild lines from durable rows.

        Each row goes through the same validation and merge as ``add``, so
        row IDs are recomputed and the current tax rate applies. Invalid rows
        are skipped. The store is written once and nothing is mirrored.

        Returns:
            Number of rows loaded
        """
        items = await self.store.load(self._cart_key)
        loaded = 0
        for row in rows:
            record = {
                "product_id": row.product_id,
                "name": row.name,
                "unit_price": row.price,
                "quantity": row.quantity,
                "options": dict(row.options),
            }
            try:
                candidate, total_stock = self._build_item(record)
            except InvalidItemError as e:
                logger.warning(
                    "Skipping invalid durable row",
                    row_id=row.row_id,
                    product_id=row.product_id,
                    error=e.message,
                )
                continue
            self._merge(items, candidate, total_stock)
            loaded += 1

        if loaded:
            await self.store.save(self._cart_key, items)
        return loaded

    async def hydrate(self) -> int:
        """
        Load the signed-in owner's durable cart into an empty session cart.

        Runs at most once per session. Without a sync adapter this is a no-op.

        Returns:
            Number of rows loaded
        """
        if self.sync is None:
            return 0

        items = await self.store.load(self._cart_key)
        rows = await self.sync.hydrate(store_is_empty=not items)
        if not rows:
            return 0

        with log_performance(
            logger, "cart_hydration", cart_key=self._cart_key, rows=len(rows)
        ):
            return await self.load_from_records(rows)


async def get_shopping_cart(
    storage: SessionStorage,
    identity: IdentityProvider,
    db_session: Optional[AsyncSession] = None,
    settings: Optional[Settings] = None,
    cart_key: Optional[str] = None,
    validator: Optional[ItemValidator] = None,
    hydrate: bool = True,
) -> ShoppingCart:
    """
    Get shopping cart instance for the current shopper.

    Args:
        storage: Session storage slot
        identity: Provider for the current owner and session
        db_session: Optional async database session for durable mirroring
        settings: Optional settings (defaults to global settings)
        cart_key: Optional cart key
        validator: Optional validation engine
        hydrate: Load the owner's durable cart into an empty session cart

    Returns:
        Shopping cart instance
    """
    settings = settings or get_settings()
    set_cart_context(identity.current_session_id(), identity.current_owner_id())

    sync = None
    if settings.database and db_session is not None:
        sync = CartSyncAdapter(
            repository=SQLAlchemyCartRepository(db_session),
            identity=identity,
            storage=storage,
            timeout_seconds=settings.mirror_timeout_seconds,
            delete_empty_record=settings.delete_empty_record,
        )
        await sync.open()
    elif settings.database:
        logger.warning("Durable mirroring enabled without a database session")

    cart = ShoppingCart(
        store=CartStore(storage),
        settings=settings,
        sync=sync,
        validator=validator,
        cart_key=cart_key,
    )

    if hydrate:
        await cart.hydrate()

    return cart
