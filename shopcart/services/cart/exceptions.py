"""
Shopping cart exception hierarchy.

Every cart error carries a stable machine-readable code and structured
context for logging.
"""


class CartError(Exception):
    """Base exception for cart errors."""

    def __init__(self, message: str, code: str, **context):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context


class InvalidItemError(CartError):
    """Raised when a line item or patch fails validation."""

    def __init__(self, message: str, **context):
        super().__init__(message, code="INVALID_ITEM", **context)


class ItemNotFoundError(CartError):
    """Raised when an operation references a row absent from the cart."""

    def __init__(self, row_id: str, **context):
        super().__init__(
            f"The cart does not contain rowId {row_id}.",
            code="ITEM_NOT_FOUND",
            row_id=row_id,
            **context,
        )


class CartStorageError(CartError):
    """Raised when the transient session storage slot fails."""

    def __init__(self, message: str, **context):
        super().__init__(message, code="CART_STORAGE_FAILED", **context)


class DurableSyncError(CartError):
    """Raised by durable repositories; caught and logged by the sync adapter."""

    def __init__(self, message: str, **context):
        super().__init__(message, code="DURABLE_SYNC_FAILED", **context)
