"""
Field validation contract for cart input.

The cart hands a plain record and a rule-set to an ``ItemValidator`` and gets
back either ``None`` (pass) or the first failure message. The default
implementation treats a Pydantic model class as the rule-set.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ValidationError

from shopcart.core.logging import get_logger

logger = get_logger(__name__)


class ItemValidator(ABC):
    """Abstract validation engine."""

    @abstractmethod
    def validate(self, record: Mapping[str, Any], rules: Any) -> Optional[str]:
        """
        Validate a record against a rule-set.

        Args:
            record: Field values to check
            rules: Rule-set understood by the implementation

        Returns:
            None when the record passes, else the first failure message
        """


class PydanticItemValidator(ItemValidator):
    """Validator whose rule-sets are Pydantic model classes."""

    def validate(
        self, record: Mapping[str, Any], rules: type[BaseModel]
    ) -> Optional[str]:
        try:
            rules.model_validate(dict(record))
        except ValidationError as e:
            error = e.errors()[0]
            location = ".".join(str(part) for part in error["loc"])
            message = f"{location}: {error['msg']}" if location else error["msg"]
            logger.debug(
                "Cart record failed validation",
                rules=rules.__name__,
                error_count=e.error_count(),
                first_error=message,
            )
            return message
        return None
