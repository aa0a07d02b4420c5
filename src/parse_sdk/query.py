"""
Remote query object for the Parse REST API.

A ``ParseQuery`` accumulates ``where`` constraints, ordering, projection,
includes and a limit/skip window, then runs ``find``, ``first`` or ``count``
against one Parse class. Constraint values are REST-encoded as soon as they
are added, so the query state is plain JSON and cheap to copy.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any, Self

from .objects import ParseObject, class_path, encode

if TYPE_CHECKING:
    from .client import ParseClient

logger = logging.getLogger(__name__)


class ParseQuery:
    """
    A composable query against one Parse class.

    Every builder method returns the query itself so calls can be chained.

    Example:
        ```python
        query = ParseQuery("Post")
        query.greater_than("views", 100).descending("createdAt").limit(10)
        posts = query.find()
        ```
    """

    def __init__(self, class_name: str, client: ParseClient | None = None):
        self.class_name = class_name
        self._client = client
        self._where: dict[str, Any] = {}
        self._order: list[str] = []
        self._keys: list[str] = []
        self._includes: list[str] = []
        self._limit: int = -1
        self._skip: int = 0

    @classmethod
    def or_queries(cls, queries: Sequence[ParseQuery]) -> ParseQuery:
        """
        Combine queries on the same class into one logical OR.

        Raises:
            ValueError: If no query is given or the queries target different classes.
        """
        if not queries:
            raise ValueError("or_queries() needs at least one query.")
        class_name = queries[0].class_name
        for query in queries:
            if query.class_name != class_name:
                raise ValueError(f"All queries must be for the same class, got {class_name!r} and {query.class_name!r}.")

        result = cls(class_name, client=queries[0]._client)
        result._where = {"$or": [copy.deepcopy(q._where) for q in queries]}
        return result

    @property
    def client(self) -> ParseClient:
        if self._client is not None:
            return self._client
        from .client import ParseClient

        return ParseClient.get_default()

    def __copy__(self) -> ParseQuery:
        clone = ParseQuery(self.class_name, client=self._client)
        clone._where = copy.deepcopy(self._where)
        clone._order = list(self._order)
        clone._keys = list(self._keys)
        clone._includes = list(self._includes)
        clone._limit = self._limit
        clone._skip = self._skip
        return clone

    # ==================== Constraints ====================

    def _add_condition(self, key: str, condition: str, value: Any) -> Self:
        existing = self._where.get(key)
        if not (isinstance(existing, dict) and existing and all(k.startswith("$") for k in existing)):
            self._where[key] = {}
        self._where[key][condition] = value
        return self

    def equal_to(self, key: str, value: Any) -> Self:
        self._where[key] = encode(value)
        return self

    def not_equal_to(self, key: str, value: Any) -> Self:
        return self._add_condition(key, "$ne", encode(value))

    def greater_than(self, key: str, value: Any) -> Self:
        return self._add_condition(key, "$gt", encode(value))

    def greater_than_or_equal_to(self, key: str, value: Any) -> Self:
        return self._add_condition(key, "$gte", encode(value))

    def less_than(self, key: str, value: Any) -> Self:
        return self._add_condition(key, "$lt", encode(value))

    def less_than_or_equal_to(self, key: str, value: Any) -> Self:
        return self._add_condition(key, "$lte", encode(value))

    def contained_in(self, key: str, values: Iterable[Any]) -> Self:
        return self._add_condition(key, "$in", encode(list(values)))

    def not_contained_in(self, key: str, values: Iterable[Any]) -> Self:
        return self._add_condition(key, "$nin", encode(list(values)))

    def contains_all(self, key: str, values: Iterable[Any]) -> Self:
        return self._add_condition(key, "$all", encode(list(values)))

    def exists(self, key: str) -> Self:
        return self._add_condition(key, "$exists", True)

    def does_not_exist(self, key: str) -> Self:
        return self._add_condition(key, "$exists", False)

    def starts_with(self, key: str, value: str) -> Self:
        return self._add_condition(key, "$regex", "^" + _quote(value))

    def matches_query(self, key: str, query: ParseQuery) -> Self:
        return self._add_condition(key, "$inQuery", query._sub_query())

    def does_not_match_query(self, key: str, query: ParseQuery) -> Self:
        return self._add_condition(key, "$notInQuery", query._sub_query())

    def matches_key_in_query(self, key: str, query_key: str, query: ParseQuery) -> Self:
        return self._add_condition(key, "$select", {"key": query_key, "query": query._sub_query()})

    def does_not_match_key_in_query(self, key: str, query_key: str, query: ParseQuery) -> Self:
        return self._add_condition(key, "$dontSelect", {"key": query_key, "query": query._sub_query()})

    def _sub_query(self) -> dict[str, Any]:
        return {"where": copy.deepcopy(self._where), "className": self.class_name}

    # ==================== Ordering, projection, window ====================

    def ascending(self, key: str) -> Self:
        self._order = [key]
        return self

    def descending(self, key: str) -> Self:
        self._order = [f"-{key}"]
        return self

    def add_ascending(self, key: str) -> Self:
        self._order.append(key)
        return self

    def add_descending(self, key: str) -> Self:
        self._order.append(f"-{key}")
        return self

    def select(self, keys: str | Iterable[str]) -> Self:
        if isinstance(keys, str):
            keys = [keys]
        self._keys = list(keys)
        return self

    @property
    def selected_keys(self) -> list[str]:
        return list(self._keys)

    @property
    def included_keys(self) -> list[str]:
        return list(self._includes)

    def include_key(self, key: str | Iterable[str]) -> Self:
        keys = [key] if isinstance(key, str) else list(key)
        for k in keys:
            if k not in self._includes:
                self._includes.append(k)
        return self

    def limit(self, value: int) -> Self:
        self._limit = value
        return self

    def skip(self, value: int) -> Self:
        self._skip = value
        return self

    def to_params(self) -> dict[str, Any]:
        """Compile the query into REST query-string parameters."""
        params: dict[str, Any] = {}
        if self._where:
            params["where"] = json.dumps(self._where, separators=(",", ":"))
        if self._limit >= 0:
            params["limit"] = self._limit
        if self._skip > 0:
            params["skip"] = self._skip
        if self._order:
            params["order"] = ",".join(self._order)
        if self._keys:
            params["keys"] = ",".join(self._keys)
        if self._includes:
            params["include"] = ",".join(self._includes)
        return params

    # ==================== Execution ====================

    def find(self, use_master_key: bool = False) -> list[ParseObject]:
        """Run the query and return the matching records."""
        payload = self.client.get(class_path(self.class_name), self.to_params(), use_master_key=use_master_key)
        results = payload.get("results", [])
        logger.debug(f"find {self.class_name}: {len(results)} record(s)")
        return [ParseObject.from_json(self.class_name, record, client=self._client) for record in results]

    def first(self, use_master_key: bool = False) -> ParseObject | None:
        """Run the query with ``limit=1`` and return the record, or ``None``."""
        query = copy.copy(self)
        query._limit = 1
        results = query.find(use_master_key)
        return results[0] if results else None

    def count(self, use_master_key: bool = False) -> int:
        """Count the matching records. Ordering, projection and window are ignored."""
        params: dict[str, Any] = {"limit": 0, "count": 1}
        if self._where:
            params["where"] = json.dumps(self._where, separators=(",", ":"))
        payload = self.client.get(class_path(self.class_name), params, use_master_key=use_master_key)
        return int(payload.get("count", 0))

    def __repr__(self) -> str:
        return f"<ParseQuery {self.class_name} {self.to_params()!r}>"


def _quote(value: str) -> str:
    return "\\Q" + value.replace("\\E", "\\E\\\\E\\Q") + "\\E"


__all__ = ["ParseQuery"]
