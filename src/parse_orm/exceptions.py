"""
Exceptions raised by the query and model layer.

Errors coming from the Parse Server itself are ``parse_sdk.ParseError``
subclasses and propagate through this layer unchanged.
"""

from typing import Any


class ParseOrmError(Exception):
    """Base exception for the ORM layer."""

    pass


class InvalidOperator(ParseOrmError, ValueError):
    """Raised when ``where()`` receives an operator it cannot translate."""

    def __init__(self, operator: Any):
        self.operator = operator
        super().__init__(f"Invalid operator: {operator!r}")


class InvalidOrderDirection(ParseOrmError, ValueError):
    """Raised when ``order_by()`` receives an unknown direction."""

    def __init__(self, direction: Any):
        self.direction = direction
        super().__init__(f"Invalid order direction: {direction!r}. Use 'asc', 'desc', 1 or 0.")


class ModelNotFound(ParseOrmError, LookupError):
    """Raised by the ``*_or_fail`` operations when no record matches."""

    def __init__(self, model: type | str | None = None, ids: list[str] | None = None):
        self.model = model
        self.ids = ids or []
        name = getattr(model, "__name__", model) or "model"
        message = f"No query results for model [{name}]"
        if self.ids:
            message += " " + ", ".join(self.ids)
        super().__init__(message)

    @property
    def model_name(self) -> str | None:
        return getattr(self.model, "__name__", self.model)


class ModelNotRegistered(ParseOrmError, LookupError):
    """Raised when a relation names a model class that was never defined."""

    pass
