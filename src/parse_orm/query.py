from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Self

from parse_sdk import ParseClient, ParseObject, ParseQuery

from .collection import Collection
from .constants import ASCENDING_TOKENS, DESCENDING_TOKENS, OBJECT_ID, OPERATORS, WILDCARD_SELECTS
from .exceptions import InvalidOperator, InvalidOrderDirection, ModelNotFound
from .model import ObjectModel, unwrap
from .pagination import LengthAwarePaginator, Paginator

logger = logging.getLogger(__name__)


class Query:
    """
    A fluent query against one Parse class that materializes typed models.

    ``Query`` wraps a ``ParseQuery`` it owns exclusively. Constraint methods
    return the query itself for chaining; terminal methods (``first``,
    ``get``, ``count``, ``paginate``, ``simple_paginate``, ``chunk_by_id``)
    run it. Model values passed to constraints are sent as pointers to their
    records.

    Example:
        ```python
        posts = (
            Post.query()
            .where("views", ">", 100)
            .where("user", current_user)
            .with_("user", "categories.owner")
            .order_by("createdAt", "desc")
            .get()
        )
        ```
    """

    def __init__(
        self,
        parse_class_name: str,
        model_class: type[ObjectModel],
        use_master_key: bool = False,
        client: ParseClient | None = None,
    ) -> None:
        """
        Initialize the query.

        Args:
            parse_class_name: The Parse class (collection) to query.
            model_class: The model class results are materialized into.
            use_master_key: Run every request of this query with elevated access.
            client: Client to use instead of the process default.
        """
        self._parse_class_name = parse_class_name
        self._model_class = model_class
        self._use_master_key = use_master_key
        self._client = client
        self._parse_query = ParseQuery(parse_class_name, client=client)
        self._include_keys: list[str] = []

    # ==================== Construction ====================

    @classmethod
    def or_queries(cls, *queries: Any) -> Query:
        """
        Combine queries into a logical OR.

        Accepts ``Query`` instances, raw ``ParseQuery`` objects and callables,
        either as arguments or as a single list. A callable receives a fresh
        ``Query`` on the same class, populated before composition. The first
        element must be a ``Query``: its class, model and access level seed
        the result. The operands are not modified.

        Raises:
            TypeError: If the first element is not a ``Query``.

        Example:
            ```python
            Query.or_queries(popular, lambda q: q.where("pinned", True))
            Query.or_queries([popular, recent_parse_query])
            ```
        """
        if len(queries) == 1 and isinstance(queries[0], (list, tuple)):
            queries = tuple(queries[0])
        if not queries or not isinstance(queries[0], Query):
            raise TypeError("or_queries() needs a Query instance as its first element.")

        seed: Query = queries[0]
        parse_queries: list[ParseQuery] = []
        for query in queries:
            if callable(query) and not isinstance(query, (Query, ParseQuery)):
                sub_query = seed._fresh()
                query(sub_query)
                parse_queries.append(sub_query._parse_query)
            else:
                parse_queries.append(seed._parse_query_from(query))

        or_query = seed._fresh()
        or_query._parse_query = ParseQuery.or_queries(parse_queries)
        return or_query

    def or_query(self, *queries: Any) -> Query:
        """Combine this query with ``queries`` into a new logical-OR query."""
        if len(queries) == 1 and isinstance(queries[0], (list, tuple)):
            queries = tuple(queries[0])
        return self.or_queries(self, *queries)

    def _fresh(self) -> Query:
        return type(self)(self._parse_class_name, self._model_class, self._use_master_key, client=self._client)

    def __copy__(self) -> Query:
        clone = self._fresh()
        clone._parse_query = copy.copy(self._parse_query)
        clone._include_keys = list(self._include_keys)
        return clone

    def clone(self) -> Query:
        """Return an independent copy of this query, constraints included."""
        return copy.copy(self)

    def use_master_key(self, value: bool = True) -> Query:
        """Return a copy of this query that runs with (or without) elevated access."""
        clone = self.clone()
        clone._use_master_key = value
        return clone

    @property
    def parse_class_name(self) -> str:
        return self._parse_class_name

    @property
    def model_class(self) -> type[ObjectModel]:
        return self._model_class

    @property
    def uses_master_key(self) -> bool:
        return self._use_master_key

    @property
    def include_keys(self) -> list[str]:
        return list(self._include_keys)

    def get_parse_query(self) -> ParseQuery:
        return self._parse_query

    # ==================== Constraints ====================

    def where(self, key: str | Mapping[str, Any], *args: Any) -> Self:
        """
        Add constraints.

        Three shapes are accepted::

            query.where({"title": "Hello", "user": user})   # equalities
            query.where("title", "Hello")                   # equality
            query.where("views", ">=", 100)                 # operator

        Supported operators: ``=``, ``!=``, ``>``, ``>=``, ``<``, ``<=``, ``in``.

        Raises:
            InvalidOperator: If the operator is not supported. Nothing is sent to the query.
        """
        if isinstance(key, Mapping):
            if args:
                raise TypeError("where() takes no extra arguments when given a mapping.")
            for field, value in key.items():
                self._parse_query.equal_to(field, unwrap(value))
        elif len(args) == 1:
            self._parse_query.equal_to(key, unwrap(args[0]))
        elif len(args) == 2:
            operator, value = args
            method = OPERATORS.get(operator) if isinstance(operator, str) else None
            if method is None:
                raise InvalidOperator(operator)
            getattr(self, method)(key, value)
        else:
            raise TypeError("where() takes a mapping, (key, value) or (key, operator, value).")
        return self

    def when(
        self,
        value: Any,
        callback: Callable[[Self, Any], Any],
        default: Callable[[Self, Any], Any] | None = None,
    ) -> Self:
        """Apply ``callback(query, value)`` if ``value`` is truthy, otherwise ``default`` if given."""
        if value:
            callback(self, value)
        elif default is not None:
            default(self, value)
        return self

    def equal_to(self, key: str, value: Any) -> Self:
        self._parse_query.equal_to(key, unwrap(value))
        return self

    def not_equal_to(self, key: str, value: Any) -> Self:
        self._parse_query.not_equal_to(key, unwrap(value))
        return self

    def greater_than(self, key: str, value: Any) -> Self:
        self._parse_query.greater_than(key, unwrap(value))
        return self

    def greater_than_or_equal_to(self, key: str, value: Any) -> Self:
        self._parse_query.greater_than_or_equal_to(key, unwrap(value))
        return self

    def less_than(self, key: str, value: Any) -> Self:
        self._parse_query.less_than(key, unwrap(value))
        return self

    def less_than_or_equal_to(self, key: str, value: Any) -> Self:
        self._parse_query.less_than_or_equal_to(key, unwrap(value))
        return self

    def contained_in(self, key: str, values: Any) -> Self:
        """
        Match records whose ``key`` is one of ``values``.

        ``values`` may be a single value or any iterable; models are sent as pointers.
        """
        self._parse_query.contained_in(key, _as_list(values))
        return self

    def where_in(self, key: str, values: Any) -> Self:
        """Alias for ``contained_in``."""
        return self.contained_in(key, values)

    def not_contained_in(self, key: str, values: Any) -> Self:
        self._parse_query.not_contained_in(key, _as_list(values))
        return self

    def where_not_in(self, key: str, values: Any) -> Self:
        """Alias for ``not_contained_in``."""
        return self.not_contained_in(key, values)

    def contains_all(self, key: str, values: Any) -> Self:
        self._parse_query.contains_all(key, _as_list(values))
        return self

    def exists(self, key: str) -> Self:
        self._parse_query.exists(key)
        return self

    def where_exists(self, key: str) -> Self:
        return self.exists(key)

    def does_not_exist(self, key: str) -> Self:
        self._parse_query.does_not_exist(key)
        return self

    def where_not_exists(self, key: str) -> Self:
        return self.does_not_exist(key)

    def starts_with(self, key: str, value: str) -> Self:
        self._parse_query.starts_with(key, value)
        return self

    def matches_query(self, key: str, query: Query | ParseQuery) -> Self:
        self._parse_query.matches_query(key, self._parse_query_from(query))
        return self

    def does_not_match_query(self, key: str, query: Query | ParseQuery) -> Self:
        self._parse_query.does_not_match_query(key, self._parse_query_from(query))
        return self

    def matches_key_in_query(self, key: str, query_key: str, query: Query | ParseQuery) -> Self:
        self._parse_query.matches_key_in_query(key, query_key, self._parse_query_from(query))
        return self

    def does_not_match_key_in_query(self, key: str, query_key: str, query: Query | ParseQuery) -> Self:
        self._parse_query.does_not_match_key_in_query(key, query_key, self._parse_query_from(query))
        return self

    # ==================== Ordering, projection, window ====================

    def order_by(self, key: str, direction: int | str = 1) -> Self:
        """
        Order results by ``key``.

        ``direction`` is ``1``, ``"asc"`` or ``"ascending"`` for ascending order and
        ``0``, ``"desc"`` or ``"descending"`` for descending order (case-insensitive).

        Raises:
            InvalidOrderDirection: For any other direction.
        """
        check = direction.lower() if isinstance(direction, str) else direction
        if check in ASCENDING_TOKENS:
            self._parse_query.ascending(key)
        elif check in DESCENDING_TOKENS:
            self._parse_query.descending(key)
        else:
            raise InvalidOrderDirection(direction)
        return self

    def ascending(self, key: str) -> Self:
        self._parse_query.ascending(key)
        return self

    def descending(self, key: str) -> Self:
        self._parse_query.descending(key)
        return self

    def add_ascending(self, key: str) -> Self:
        self._parse_query.add_ascending(key)
        return self

    def add_descending(self, key: str) -> Self:
        self._parse_query.add_descending(key)
        return self

    def select(self, keys: str | Iterable[str]) -> Self:
        self._parse_query.select(keys)
        return self

    def limit(self, value: int) -> Self:
        self._parse_query.limit(value)
        return self

    def skip(self, value: int) -> Self:
        self._parse_query.skip(value)
        return self

    def include_key(self, key: str | Iterable[str]) -> Self:
        """Ask the server to inline pointers at ``key``, without resolving relations on the models."""
        self._parse_query.include_key(key)
        return self

    def with_(self, *keys: str | Sequence[str]) -> Self:
        """
        Eager-load relation paths.

        Each path (``"user"``, ``"categories.owner"``) is included in the
        server response and resolved on every materialized model, so reading
        the relation afterwards needs no further request. Accepts several
        paths or a single list.
        """
        if len(keys) == 1 and isinstance(keys[0], (list, tuple)):
            keys = tuple(keys[0])
        for key in keys:
            self._include_keys.append(key)
            self._parse_query.include_key(key)
        return self

    # ==================== Terminal operations ====================

    def first(self, select_keys: Any = None) -> Any:
        """Return the first matching model, or ``None``."""
        _apply_select(self._parse_query, select_keys)
        record = self._parse_query.first(self._use_master_key)
        if record is None:
            return None
        return self.create_model(record)

    def first_or_fail(self, select_keys: Any = None) -> Any:
        """
        Return the first matching model.

        Raises:
            ModelNotFound: If nothing matches.
        """
        model = self.first(select_keys)
        if model is None:
            raise ModelNotFound(self._model_class)
        return model

    def first_or_new(self, data: Mapping[str, Any]) -> Any:
        """Return the first model matching ``data``, or a new unsaved model built from it."""
        model = self.where(data).first()
        if model is not None:
            return model
        return self._model_class(data, self._use_master_key)

    def first_or_create(self, data: Mapping[str, Any]) -> Any:
        """Return the first model matching ``data``, or create it."""
        model = self.first_or_new(data)
        if model.id is None:
            model.save()
        return model

    def find(self, object_id: str, select_keys: Any = None) -> Any:
        """Return the model with ``object_id``, or ``None``."""
        self._parse_query.equal_to(OBJECT_ID, object_id)
        return self.first(select_keys)

    def find_or_fail(self, object_id: str, select_keys: Any = None) -> Any:
        """
        Return the model with ``object_id``.

        Raises:
            ModelNotFound: If no such record exists.
        """
        model = self.find(object_id, select_keys)
        if model is None:
            raise ModelNotFound(self._model_class, [object_id])
        return model

    def find_or_new(self, object_id: str, select_keys: Any = None) -> Any:
        """Return the model with ``object_id``, or a new blank model."""
        model = self.find(object_id, select_keys)
        if model is None:
            model = self._model_class(None, self._use_master_key)
        return model

    def get(self, select_keys: Any = None) -> Collection[Any]:
        """Run the query and return every matching model."""
        _apply_select(self._parse_query, select_keys)
        return self.create_models(self._parse_query.find(self._use_master_key))

    def count(self) -> int:
        return self._parse_query.count(self._use_master_key)

    def exists_any(self) -> bool:
        """Return whether at least one record matches."""
        return self._parse_query.first(self._use_master_key) is not None

    # ==================== Pagination ====================

    def paginate(
        self,
        per_page: int = 15,
        select_keys: Any = None,
        page_name: str = "page",
        page: int | None = None,
    ) -> LengthAwarePaginator:
        """
        Paginate with a total count.

        The total is counted on a copy of the query taken before the page
        window is applied, so it always reflects every matching record.

        Args:
            per_page: Page size.
            select_keys: Optional projection; ``None``, ``"*"`` and ``["*"]`` select everything.
            page_name: Request parameter holding the page number.
            page: Explicit page; resolved from the request context when omitted.
        """
        page = page or Paginator.resolve_current_page(page_name)

        count_query = copy.copy(self._parse_query)
        total = count_query.count(self._use_master_key)

        items_query = self._parse_query
        items_query.limit(per_page)
        items_query.skip((page - 1) * per_page)
        _apply_select(items_query, select_keys)

        items = self.create_models(items_query.find(self._use_master_key))
        logger.debug(f"paginate {self._parse_class_name}: page {page}, {len(items)} of {total}")

        return LengthAwarePaginator(
            items=items,
            total=total,
            per_page=per_page,
            current_page=page,
            path=Paginator.resolve_current_path(),
            page_name=page_name,
        )

    def simple_paginate(
        self,
        per_page: int = 15,
        select_keys: Any = None,
        page_name: str = "page",
        page: int | None = None,
    ) -> Paginator:
        """Paginate without counting; the paginator has no total."""
        page = page or Paginator.resolve_current_page(page_name)

        items_query = copy.copy(self._parse_query)
        items_query.limit(per_page)
        items_query.skip((page - 1) * per_page)
        _apply_select(items_query, select_keys)

        items = self.create_models(items_query.find(self._use_master_key))

        return Paginator(
            items=items,
            per_page=per_page,
            current_page=page,
            path=Paginator.resolve_current_path(),
            page_name=page_name,
        )

    # ==================== Chunking ====================

    def chunk_by_id(
        self,
        count: int,
        callback: Callable[[Collection[Any]], Any],
        column: str = OBJECT_ID,
        alias: str | None = None,
    ) -> bool:
        """
        Walk every matching record in batches of ``count``, ordered by ``column``.

        Each batch is fetched with ``column > <last value of the previous batch>``
        so records are never skipped or repeated while the set is being read,
        even when the callback writes to it. Batches are fetched strictly one
        after the other.

        Args:
            count: Batch size.
            callback: Called with each batch; returning ``False`` stops the walk.
            column: A monotonic column to order and bound by.
            alias: Attribute to read the cursor from when it differs from ``column``.

        Returns:
            ``True`` when the records were exhausted, ``False`` when the walk
            stopped early (callback returned ``False`` or no cursor could be read).
        """
        if count <= 0:
            raise ValueError("chunk_by_id() count must be positive.")

        last_id: Any = None

        while True:
            query = copy.copy(self._parse_query)
            query.ascending(column)

            if last_id is not None:
                query.greater_than(column, last_id)

            if alias is not None and alias != column:
                _ensure_selected(query, column)

            query.limit(count)

            models = self.create_models(query.find(self._use_master_key))

            if models.is_empty():
                return True

            if callback(models) is False:
                logger.debug(f"chunk_by_id {self._parse_class_name}: stopped by callback")
                return False

            if len(models) < count:
                return True

            last_id = _cursor_value(models.last(), column, alias)
            if last_id is None:
                logger.warning(
                    f"chunk_by_id {self._parse_class_name}: could not read '{alias or column}' "
                    "from the last record of a full batch, stopping."
                )
                return False

    def each_by_id(
        self,
        callback: Callable[[Any], Any],
        count: int = 1000,
        column: str = OBJECT_ID,
        alias: str | None = None,
    ) -> bool:
        """Like ``chunk_by_id`` but calls ``callback`` with one model at a time."""

        def _each(models: Collection[Any]) -> bool:
            for model in models:
                if callback(model) is False:
                    return False
            return True

        return self.chunk_by_id(count, _each, column, alias)

    def chunk(self, count: int, callback: Callable[[Collection[Any]], Any]) -> bool:
        """
        Walk every matching record in batches of ``count`` using ``skip``.

        Cheaper to set up than ``chunk_by_id`` but pages shift if the callback
        adds or removes matching records.
        """
        if count <= 0:
            raise ValueError("chunk() count must be positive.")

        page = 1
        while True:
            query = copy.copy(self._parse_query)
            query.limit(count)
            query.skip((page - 1) * count)

            models = self.create_models(query.find(self._use_master_key))
            if models.is_empty():
                return True
            if callback(models) is False:
                return False
            if len(models) < count:
                return True
            page += 1

    # ==================== Materialization ====================

    def create_model(self, record: ParseObject) -> Any:
        """Wrap ``record`` in the model class and resolve every ``with_()`` path on it."""
        model = self._model_class(record, self._use_master_key)
        for relation_path in self._include_keys:
            _poke(model, relation_path.split("."))
        return model

    def create_models(self, records: Iterable[ParseObject]) -> Collection[Any]:
        return Collection(self.create_model(record) for record in records)

    def _parse_query_from(self, query: Any) -> ParseQuery:
        if isinstance(query, Query):
            return query._parse_query
        if isinstance(query, ParseQuery):
            return query
        raise TypeError(f"Expected a Query or ParseQuery, got {type(query).__name__!r}.")

    def __repr__(self) -> str:
        return f"<Query {self._model_class.__name__} {self._parse_query.to_params()!r}>"


def _as_list(values: Any) -> list[Any]:
    if isinstance(values, (str, bytes, Mapping, ObjectModel)) or not isinstance(values, Iterable):
        values = [values]
    return [unwrap(v) for v in values]


def _apply_select(query: ParseQuery, select_keys: Any) -> None:
    if any(select_keys == wildcard for wildcard in WILDCARD_SELECTS):
        return
    query.select(select_keys)


def _ensure_selected(query: ParseQuery, column: str) -> None:
    # Only matters when the caller narrowed the projection; with no projection every column comes back.
    selected = query.selected_keys
    if not selected or column in selected:
        return
    try:
        query.select([*selected, column])
    except (TypeError, ValueError) as e:
        logger.debug(f"Could not add '{column}' to the projection, keeping the current one: {e}")


def _cursor_value(model: ObjectModel, column: str, alias: str | None) -> Any:
    if alias is not None:
        value = model.get(alias)
        if value is not None:
            return value

    if column == OBJECT_ID:
        return model.id
    return model.get(column)


def _poke(target: Any, path: list[str]) -> None:
    """
    Resolve a relation path on a model or on every model of a collection.

    A collection fans the remaining path out over its members, so
    ``"categories.owner"`` resolves ``owner`` on each category.
    """
    if not path or target is None:
        return
    if isinstance(target, list):
        for member in target:
            _poke(member, path)
        return
    if not isinstance(target, ObjectModel):
        return
    head, *rest = path
    _poke(target.get(head), rest)


__all__ = ["Query"]
