"""
Typed models wrapping Parse records.

A model is a thin object around one ``ParseObject``: attribute reads and
writes go straight to the record, pointers come back as models of the
registered class, and relations declared with the descriptors from
``parse_orm.relations`` are resolved lazily on first access.

Example:
    ```python
    class User(ObjectModel):
        posts = HasMany("Post", "user")

    class Post(ObjectModel):
        user = BelongsTo("User")
        categories = HasManyArray("Category")

    post = Post.create({"title": "Hello", "user": user})
    Post.with_("user", "categories").where("title", "Hello").get()
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar, Self

from parse_sdk import ParseObject

from .collection import Collection
from .exceptions import ModelNotRegistered

if TYPE_CHECKING:
    from .pagination import LengthAwarePaginator, Paginator
    from .query import Query
    from .relations import BoundRelation

logger = logging.getLogger(__name__)

# Global registry of model classes, keyed by Python class name and by Parse class name.
_MODEL_REGISTRY: dict[str, type[ObjectModel]] = {}

_METADATA_KEYS = {"objectId", "createdAt", "updatedAt"}


def get_model_class(name: str | type[ObjectModel]) -> type[ObjectModel]:
    """
    Resolve a model class from its Python or Parse class name.

    Raises:
        ModelNotRegistered: If no model with that name was defined.
    """
    if isinstance(name, type):
        return name
    try:
        return _MODEL_REGISTRY[name]
    except KeyError:
        raise ModelNotRegistered(f"Model '{name}' not found in registry") from None


def get_registered_models() -> list[type[ObjectModel]]:
    return list(dict.fromkeys(_MODEL_REGISTRY.values()))


def unwrap(value: Any) -> Any:
    """Replace models (also inside lists) by their ``ParseObject``."""
    if isinstance(value, ObjectModel):
        return value.get_parse_object()
    if isinstance(value, (list, tuple)):
        return [unwrap(v) for v in value]
    return value


def wrap(value: Any, use_master_key: bool = False) -> Any:
    """Turn ``ParseObject`` values (also inside lists) into models of their registered class."""
    if isinstance(value, ParseObject):
        try:
            model_class = get_model_class(value.class_name)
        except ModelNotRegistered:
            logger.debug(f"No model registered for Parse class {value.class_name!r}, returning raw record.")
            return value
        return model_class(value, use_master_key)
    if isinstance(value, list) and any(isinstance(v, ParseObject) for v in value):
        return Collection(wrap(v, use_master_key) for v in value)
    return value


class ObjectModel:
    """
    Base class for models backed by a Parse class.

    The Parse class name defaults to the Python class name; set
    ``parse_class_name`` to override it. Set ``use_master_key = True`` on a
    model to run all of its queries and writes with elevated access.
    """

    parse_class_name: ClassVar[str] = "ObjectModel"
    use_master_key: ClassVar[bool] = False

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if "parse_class_name" not in cls.__dict__:
            cls.parse_class_name = cls.__name__
        _MODEL_REGISTRY[cls.__name__] = cls
        _MODEL_REGISTRY[cls.parse_class_name] = cls

    def __init__(self, data: ParseObject | Mapping[str, Any] | None = None, use_master_key: bool | None = None) -> None:
        """
        Args:
            data: A fetched record, initial attributes for a new record, or ``None`` for a blank one.
            use_master_key: Elevated access for this instance; defaults to the class setting.
        """
        if use_master_key is None:
            use_master_key = type(self).use_master_key
        object.__setattr__(self, "_use_master_key", use_master_key)
        object.__setattr__(self, "_relations", {})

        if isinstance(data, ParseObject):
            object.__setattr__(self, "_parse_object", data)
        else:
            object.__setattr__(self, "_parse_object", ParseObject(self.parse_class_name))
            for key, value in (data or {}).items():
                setattr(self, key, value)

    # ==================== Class-level query entry points ====================

    @classmethod
    def query(cls, use_master_key: bool | None = None) -> Query:
        """Start a new query on this model's Parse class."""
        from .query import Query

        if use_master_key is None:
            use_master_key = cls.use_master_key
        return Query(cls.parse_class_name, cls, use_master_key=use_master_key)

    @classmethod
    def with_(cls, *keys: str | list[str]) -> Query:
        return cls.query().with_(*keys)

    @classmethod
    def where(cls, key: Any, *args: Any) -> Query:
        return cls.query().where(key, *args)

    @classmethod
    def or_queries(cls, *queries: Any) -> Query:
        from .query import Query

        return Query.or_queries(*queries)

    @classmethod
    def all(cls, select_keys: Any = None) -> Collection[Self]:
        return cls.query().get(select_keys)

    @classmethod
    def find(cls, object_id: str, select_keys: Any = None) -> Self | None:
        return cls.query().find(object_id, select_keys)

    @classmethod
    def find_or_fail(cls, object_id: str, select_keys: Any = None) -> Self:
        return cls.query().find_or_fail(object_id, select_keys)

    @classmethod
    def find_or_new(cls, object_id: str, select_keys: Any = None) -> Self:
        return cls.query().find_or_new(object_id, select_keys)

    @classmethod
    def first_or_new(cls, data: Mapping[str, Any]) -> Self:
        return cls.query().first_or_new(data)

    @classmethod
    def first_or_create(cls, data: Mapping[str, Any]) -> Self:
        return cls.query().first_or_create(data)

    @classmethod
    def paginate(cls, per_page: int = 15, select_keys: Any = None, page_name: str = "page", page: int | None = None) -> LengthAwarePaginator:
        return cls.query().paginate(per_page, select_keys, page_name, page)

    @classmethod
    def simple_paginate(cls, per_page: int = 15, select_keys: Any = None, page_name: str = "page", page: int | None = None) -> Paginator:
        return cls.query().simple_paginate(per_page, select_keys, page_name, page)

    @classmethod
    def chunk_by_id(cls, count: int, callback: Callable[[Collection[Any]], Any], column: str = "objectId", alias: str | None = None) -> bool:
        return cls.query().chunk_by_id(count, callback, column, alias)

    @classmethod
    def create(cls, data: Mapping[str, Any], use_master_key: bool | None = None) -> Self:
        """Build a model from ``data`` and save it."""
        model = cls(data, use_master_key)
        model.save()
        return model

    # ==================== Attributes ====================

    @property
    def id(self) -> str | None:
        return self._parse_object.object_id

    @property
    def created_at(self) -> datetime | None:
        return self._parse_object.created_at

    @property
    def updated_at(self) -> datetime | None:
        return self._parse_object.updated_at

    @property
    def uses_master_key(self) -> bool:
        return bool(self._use_master_key)

    def get_parse_object(self) -> ParseObject:
        return self._parse_object

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")
        return self._read_field(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or self._is_relation(name):
            object.__setattr__(self, name, value)
            return
        self._parse_object.set(name, unwrap(value))
        self._relations.pop(name, None)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Read ``key`` from the record, returning ``default`` when it isn't there.

        Unlike attribute access, record fields named like model methods
        (``update``, ``save``, ``query``...) are returned as stored. Declared
        relations resolve through their descriptor.
        """
        if self._is_relation(key):
            return getattr(self, key)
        try:
            return self._read_field(key)
        except AttributeError:
            return default

    def _read_field(self, name: str) -> Any:
        cache = self._relations
        if name in cache:
            return cache[name]

        parse_object = self._parse_object
        if name in _METADATA_KEYS:
            return parse_object.get(name)
        if not parse_object.is_data_available and parse_object.object_id:
            parse_object.fetch(self._use_master_key)
        if not parse_object.has(name):
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

        value = parse_object.get(name)
        wrapped = wrap(value, self._use_master_key)
        if wrapped is not value:
            cache[name] = wrapped
        return wrapped

    @classmethod
    def _is_relation(cls, name: str) -> bool:
        from .relations import Relation

        return isinstance(getattr(cls, name, None), Relation)

    def has(self, key: str) -> bool:
        return self._parse_object.has(key)

    def relation(self, name: str) -> BoundRelation:
        """
        Return the relation ``name`` bound to this instance.

        Raises:
            AttributeError: If ``name`` is not a relation of this model.
        """
        from .relations import Relation

        descriptor = getattr(type(self), name, None)
        if not isinstance(descriptor, Relation):
            raise AttributeError(f"'{type(self).__name__}' has no relation '{name}'")
        return descriptor.bind(self)

    def forget_relation(self, name: str) -> None:
        """Drop the cached value of a resolved relation so the next access reloads it."""
        self._relations.pop(name, None)

    def to_dict(self) -> dict[str, Any]:
        return self._parse_object.to_dict()

    # ==================== Persistence ====================

    def save(self) -> Self:
        self._parse_object.save(self._use_master_key)
        return self

    def update(self, data: Mapping[str, Any]) -> Self:
        for key, value in data.items():
            setattr(self, key, value)
        return self.save()

    def add(self, key: str, value: Any) -> Self:
        """Append ``value`` (or each element of a list) to the array field ``key``. Call ``save()`` to persist."""
        self._parse_object.add(key, unwrap(value))
        self._relations.pop(key, None)
        return self

    def destroy(self) -> None:
        self._parse_object.destroy(self._use_master_key)

    def refresh(self) -> Self:
        """Reload the record from the server and drop cached relations."""
        self._parse_object.fetch(self._use_master_key)
        self._relations.clear()
        return self

    # ==================== Dunder ====================

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ObjectModel):
            return NotImplemented
        if self.id is None or other.id is None:
            return self is other
        return self.parse_class_name == other.parse_class_name and self.id == other.id

    def __hash__(self) -> int:
        return hash((self.parse_class_name, self.id)) if self.id else id(self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"


__all__ = ["ObjectModel", "get_model_class", "get_registered_models", "unwrap", "wrap"]
