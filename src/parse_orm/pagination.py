"""
Paginator bundles returned by ``Query.paginate()`` and ``Query.simple_paginate()``.

The current page and path are resolved from ambient request context. By
default that context is whatever ``pagination_context()`` put in place; web
integrations can register their own resolvers instead.

Example::

    from parse_orm.pagination import Paginator, pagination_context

    with pagination_context(params=request.query_params, path=request.url.path):
        page = Post.query().paginate(20)

    # or, once at startup:
    Paginator.current_page_resolver(lambda name: int(flask.request.args.get(name, 1)))
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .collection import Collection

PageResolver = Callable[[str], Any]
PathResolver = Callable[[], str]

_request_context: ContextVar[dict[str, Any] | None] = ContextVar("_pagination_request_context", default=None)


@contextmanager
def pagination_context(params: Mapping[str, Any] | None = None, path: str = "/") -> Iterator[None]:
    """
    Make request parameters and path available to the default resolvers.

    Args:
        params: The request's query parameters (e.g. ``{"page": "3"}``).
        path: The request path used to build page links.
    """
    token = _request_context.set({"params": dict(params or {}), "path": path})
    try:
        yield
    finally:
        _request_context.reset(token)


def _default_page_resolver(page_name: str) -> Any:
    context = _request_context.get()
    if context is None:
        return None
    return context["params"].get(page_name)


def _default_path_resolver() -> str:
    context = _request_context.get()
    if context is None:
        return "/"
    return str(context["path"])


class _Resolvers:
    page: PageResolver = _default_page_resolver
    path: PathResolver = _default_path_resolver


class Paginator(BaseModel):
    """
    A page of results without a total count.

    ``has_more_pages`` is inferred from the page being full, so the last page
    of a result set whose size is a multiple of ``per_page`` reports one more
    (empty) page.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: Any = Field(default_factory=Collection)
    per_page: int = Field(gt=0)
    current_page: int = Field(default=1, ge=1)
    path: str = "/"
    page_name: str = "page"
    query: dict[str, Any] = Field(default_factory=dict)

    @field_validator("items", mode="before")
    @classmethod
    def _as_collection(cls, value: Any) -> Collection[Any]:
        if isinstance(value, Collection):
            return value
        return Collection(value or [])

    # ==================== Resolution ====================

    @staticmethod
    def current_page_resolver(resolver: PageResolver) -> None:
        """Register the callable used to read the requested page number by parameter name."""
        _Resolvers.page = resolver  # type: ignore[assignment]

    @staticmethod
    def current_path_resolver(resolver: PathResolver) -> None:
        """Register the callable used to read the current request path."""
        _Resolvers.path = resolver  # type: ignore[assignment]

    @staticmethod
    def reset_resolvers() -> None:
        _Resolvers.page = _default_page_resolver  # type: ignore[assignment]
        _Resolvers.path = _default_path_resolver  # type: ignore[assignment]

    @staticmethod
    def resolve_current_page(page_name: str = "page", default: int = 1) -> int:
        """Return the requested page, or ``default`` when it is absent or not a positive integer."""
        value = _Resolvers.page(page_name)
        try:
            page = int(value)
        except (TypeError, ValueError):
            return default
        return page if page >= 1 else default

    @staticmethod
    def resolve_current_path() -> str:
        return _Resolvers.path()

    # ==================== Accessors ====================

    @property
    def has_more_pages(self) -> bool:
        return len(self.items) >= self.per_page

    @property
    def on_first_page(self) -> bool:
        return self.current_page <= 1

    @property
    def first_item(self) -> int | None:
        if not self.items:
            return None
        return (self.current_page - 1) * self.per_page + 1

    @property
    def last_item(self) -> int | None:
        if self.first_item is None:
            return None
        return self.first_item + len(self.items) - 1

    def count(self) -> int:
        return len(self.items)

    def is_empty(self) -> bool:
        return not self.items

    def url(self, page: int) -> str:
        """Build the link to ``page``, keeping the extra ``query`` parameters."""
        page = max(page, 1)
        params = {**self.query, self.page_name: page}
        separator = "&" if "?" in self.path else "?"
        return f"{self.path}{separator}{urlencode(params)}"

    @property
    def next_page_url(self) -> str | None:
        return self.url(self.current_page + 1) if self.has_more_pages else None

    @property
    def previous_page_url(self) -> str | None:
        return self.url(self.current_page - 1) if self.current_page > 1 else None

    def __len__(self) -> int:
        return len(self.items)


class LengthAwarePaginator(Paginator):
    """A page of results that also knows the total number of matching records."""

    total: int = Field(ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def last_page(self) -> int:
        return max(math.ceil(self.total / self.per_page), 1)

    @property
    def has_more_pages(self) -> bool:
        return self.current_page < self.last_page

    @property
    def has_pages(self) -> bool:
        return self.last_page > 1

    @property
    def on_last_page(self) -> bool:
        return self.current_page >= self.last_page


__all__ = ["Paginator", "LengthAwarePaginator", "pagination_context"]
