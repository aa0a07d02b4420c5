"""
Ordered result container returned by queries and to-many relations.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, TypeVar, overload

T = TypeVar("T")


class Collection(list, Generic[T]):  # type: ignore[type-arg]
    """
    A ``list`` of models with a few convenience helpers.

    Example:
        ```python
        posts = Post.query().get()
        posts.first().title
        posts.pluck("title")
        ```
    """

    @overload
    def first(self) -> T | None: ...

    @overload
    def first(self, predicate: Callable[[T], bool]) -> T | None: ...

    def first(self, predicate: Callable[[T], bool] | None = None) -> T | None:
        """Return the first item (optionally the first matching ``predicate``), or ``None``."""
        for item in self:
            if predicate is None or predicate(item):
                return item
        return None

    def last(self) -> T | None:
        return self[-1] if self else None

    def is_empty(self) -> bool:
        return not self

    def is_not_empty(self) -> bool:
        return bool(self)

    def count(self, value: Any = ..., /) -> int:  # type: ignore[override]
        """Number of items, or occurrences of ``value`` when given (``list.count`` semantics)."""
        if value is ...:
            return len(self)
        return super().count(value)

    def pluck(self, attr: str) -> list[Any]:
        """Return ``attr`` read off every item."""
        return [getattr(item, attr, None) for item in self]

    def ids(self) -> list[str | None]:
        return self.pluck("id")

    def __repr__(self) -> str:
        return f"Collection({list.__repr__(self)})"


__all__ = ["Collection"]
