"""
Line items, option sets and content-derived line identity.

A line item is one priced, quantified product configuration in the cart. Its
row ID is derived from the product reference and the canonicalized option set,
so adding the same product with the same options (in any order) lands on the
same row. Pricing figures are computed on read from unit price, quantity and
tax rate.
"""

import hashlib
import json
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Union

from shopcart.schemas.cart import DISCOUNT_OPTION, OptionValue
from shopcart.services.cart.exceptions import InvalidItemError

Quantity = Union[int, Decimal]

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def canonicalize_options(
    options: Mapping[str, OptionValue],
) -> list[tuple[str, OptionValue]]:
    """
    Order option pairs by key for identity hashing.

    Args:
        options: Option set in any insertion order

    Returns:
        List of (key, value) pairs sorted by key
    """
    return sorted(options.items(), key=lambda pair: pair[0])


def derive_row_id(product_id: Union[str, int], options: Mapping[str, OptionValue]) -> str:
    """
    Derive the row ID for a product and option set.

    The product reference and a compact JSON rendering of the canonicalized
    option pairs are hashed with MD5 into a 32-character hex digest.

    Args:
        product_id: External product reference
        options: Option set

    Returns:
        Hex digest identifying the (product, options) pair

    Example:
        >>> derive_row_id("p1", {"size": "L", "color": "red"}) == derive_row_id(
        ...     "p1", {"color": "red", "size": "L"}
        ... )
        True
    """
    payload = json.dumps(
        canonicalize_options(options), separators=(",", ":"), ensure_ascii=False
    )
    digest = hashlib.md5(
        f"{product_id}{payload}".encode("utf-8"), usedforsecurity=False
    )
    return digest.hexdigest()


def normalize_price(value: Any) -> Decimal:
    """
    Normalize a price given as a string, int, float or Decimal.

    Raises:
        InvalidItemError: If the value is not numeric
    """
    if isinstance(value, bool):
        raise InvalidItemError("Please supply a valid price.", price=value)
    if isinstance(value, str):
        value = value.strip()
    try:
        price = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidItemError("Please supply a valid price.", price=value) from None
    if not price.is_finite():
        raise InvalidItemError("Please supply a valid price.", price=value)
    return price


def normalize_quantity(value: Any) -> Quantity:
    """
    Normalize a quantity, keeping whole numbers as ``int``.

    Raises:
        InvalidItemError: If the value is not numeric
    """
    if isinstance(value, bool):
        raise InvalidItemError("Please supply a valid quantity.", quantity=value)
    try:
        quantity = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidItemError(
            "Please supply a valid quantity.", quantity=value
        ) from None
    if not quantity.is_finite():
        raise InvalidItemError("Please supply a valid quantity.", quantity=value)
    if quantity == quantity.to_integral_value():
        return int(quantity)
    return quantity


def format_amount(
    value: Decimal,
    decimals: int = 2,
    decimal_point: str = ".",
    thousand_seperator: str = ",",
) -> str:
    """
    Format a monetary value with grouped thousands.

    Rounds half up to the requested number of decimals, then applies the
    given separators.

    Example:
        >>> format_amount(Decimal("1234567.891"), 2, ",", ".")
        '1.234.567,89'
    """
    quantum = Decimal(1).scaleb(-decimals)
    rounded = Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)
    if rounded == 0:
        rounded = abs(rounded)
    text = f"{rounded:,.{decimals}f}"
    return (
        text.replace(",", "\x00")
        .replace(".", decimal_point)
        .replace("\x00", thousand_seperator)
    )


class LineItem:
    """
    One priced, quantified product configuration in the cart.

    The row ID is fixed at creation. Quantity, name, price, product and
    options may be changed afterwards without recomputing it.

    Attributes:
        row_id: Content-derived identity
        product_id: External product reference
        name: Display label
        options: Option set
        tax_rate: Tax percentage attached at creation
    """

    def __init__(
        self,
        row_id: str,
        product_id: str,
        name: str,
        unit_price: Any,
        quantity: Any,
        options: Optional[Mapping[str, OptionValue]] = None,
        tax_rate: Any = ZERO,
    ):
        self.row_id = row_id
        self.product_id = str(product_id)
        self.name = name
        self.unit_price = unit_price
        self.quantity = quantity
        self.options: dict[str, OptionValue] = dict(options or {})
        self.tax_rate = Decimal(str(tax_rate))

    @classmethod
    def create(
        cls,
        product_id: Union[str, int],
        name: str,
        unit_price: Any,
        quantity: Any,
        options: Optional[Mapping[str, OptionValue]] = None,
        tax_rate: Any = ZERO,
    ) -> "LineItem":
        """
        Create a line item, deriving its row ID from product and options.

        Args:
            product_id: External product reference
            name: Display label
            unit_price: Unit price without tax
            quantity: Quantity of units
            options: Option set
            tax_rate: Tax percentage from configuration

        Returns:
            New line item
        """
        product_id = str(product_id)
        options = dict(options or {})
        return cls(
            row_id=derive_row_id(product_id, options),
            product_id=product_id,
            name=name,
            unit_price=unit_price,
            quantity=quantity,
            options=options,
            tax_rate=tax_rate,
        )

    @property
    def unit_price(self) -> Decimal:
        return self._unit_price

    @unit_price.setter
    def unit_price(self, value: Any) -> None:
        self._unit_price = normalize_price(value)

    @property
    def quantity(self) -> Quantity:
        return self._quantity

    @quantity.setter
    def quantity(self, value: Any) -> None:
        self._quantity = normalize_quantity(value)

    @property
    def unit_tax(self) -> Decimal:
        """Tax on a single unit."""
        return self.unit_price * self.tax_rate / HUNDRED

    @property
    def unit_price_with_tax(self) -> Decimal:
        return self.unit_price + self.unit_tax

    @property
    def line_subtotal(self) -> Decimal:
        return self.quantity * self.unit_price

    @property
    def line_tax(self) -> Decimal:
        return self.quantity * self.unit_tax

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price_with_tax

    @property
    def discount(self) -> Decimal:
        """Flat discount for the whole line, independent of quantity."""
        value = self.options.get(DISCOUNT_OPTION)
        if value is None:
            return ZERO
        return Decimal(str(value))

    def to_record(self) -> dict[str, Any]:
        """Return the user-facing fields as a plain record for validation."""
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "options": dict(self.options),
        }

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize the line item to JSON-compatible primitives.

        Returns:
            Dictionary suitable for the session storage slot
        """
        quantity = self.quantity
        return {
            "row_id": self.row_id,
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "quantity": quantity if isinstance(quantity, int) else str(quantity),
            "options": dict(self.options),
            "tax_rate": str(self.tax_rate),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LineItem":
        """
        Restore a line item serialized with ``to_dict``.

        The stored row ID is kept as-is.
        """
        return cls(
            row_id=data["row_id"],
            product_id=data["product_id"],
            name=data["name"],
            unit_price=data["unit_price"],
            quantity=data["quantity"],
            options=data.get("options") or {},
            tax_rate=data.get("tax_rate", "0"),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LineItem):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return (
            f"<LineItem(row_id='{self.row_id}', product_id='{self.product_id}', "
            f"quantity={self.quantity}, unit_price={self.unit_price})>"
        )
