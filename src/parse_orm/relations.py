"""
Relations between models.

Relations are declared as class attributes and resolved lazily the first
time the attribute is read on an instance; the result is cached on the
instance until ``forget_relation()`` or ``refresh()``.

Supported shapes:

* ``BelongsTo``: this record holds a pointer to the related record.
* ``HasMany``: related records hold a pointer back to this record.
* ``HasManyArray``: this record holds an array of pointers.
* ``BelongsToMany``: related records hold an array of pointers that contains this record.

Example:
    ```python
    class Post(ObjectModel):
        user = BelongsTo("User")
        categories = HasManyArray("Category")

    class Category(ObjectModel):
        posts = BelongsToMany("Post", "categories")

    post.categories                                # Collection[Category]
    post.relation("categories").save([laravel, parse])
    category.relation("posts").create({"title": "New"})
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from parse_sdk import ParseObject

from .collection import Collection
from .constants import OBJECT_ID
from .model import ObjectModel, get_model_class, unwrap

if TYPE_CHECKING:
    from .query import Query

logger = logging.getLogger(__name__)


def _lower_first(name: str) -> str:
    return name[:1].lower() + name[1:]


class Relation:
    """Base descriptor. Subclasses implement ``query``, ``get_results``, ``save`` and ``create``."""

    def __init__(self, model: type[ObjectModel] | str, key: str | None = None) -> None:
        self._model = model
        self.key = key
        self.name = ""
        self.owner: type[ObjectModel] | None = None

    def __set_name__(self, owner: type[ObjectModel], name: str) -> None:
        self.owner = owner
        self.name = name
        if self.key is None:
            self.key = self.default_key(owner, name)

    def default_key(self, owner: type[ObjectModel], name: str) -> str:
        return name

    @property
    def related_model(self) -> type[ObjectModel]:
        return get_model_class(self._model)

    def __get__(self, instance: ObjectModel | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        cache = instance._relations
        if self.name not in cache:
            logger.debug(f"Resolving relation {type(instance).__name__}.{self.name} for {instance.id}")
            cache[self.name] = self.get_results(instance)
        return cache[self.name]

    def __set__(self, instance: ObjectModel, value: Any) -> None:
        raise AttributeError(f"Relation '{self.name}' is read-only; use relation('{self.name}').save().")

    def bind(self, instance: ObjectModel) -> BoundRelation:
        return BoundRelation(self, instance)

    def _related_query(self, instance: ObjectModel) -> Query:
        return self.related_model.query(instance.uses_master_key)

    def query(self, instance: ObjectModel) -> Query:
        raise NotImplementedError

    def get_results(self, instance: ObjectModel) -> Any:
        return self.query(instance).get()

    def save(self, instance: ObjectModel, models: ObjectModel | Iterable[ObjectModel]) -> None:
        raise NotImplementedError

    def create(self, instance: ObjectModel, data: Mapping[str, Any]) -> ObjectModel:
        model = self.related_model(data, instance.uses_master_key)
        self.save(instance, model)
        return model

    def __repr__(self) -> str:
        return f"{type(self).__name__}({getattr(self._model, '__name__', self._model)!r}, key={self.key!r})"


class BoundRelation:
    """A relation bound to one model instance."""

    def __init__(self, relation: Relation, instance: ObjectModel) -> None:
        self.relation = relation
        self.instance = instance

    def query(self) -> Query:
        return self.relation.query(self.instance)

    def get_results(self) -> Any:
        return self.relation.get_results(self.instance)

    def save(self, models: ObjectModel | Iterable[ObjectModel]) -> None:
        self.relation.save(self.instance, models)
        self.instance.forget_relation(self.relation.name)

    def create(self, data: Mapping[str, Any]) -> ObjectModel:
        model = self.relation.create(self.instance, data)
        self.instance.forget_relation(self.relation.name)
        return model


def _as_models(models: ObjectModel | Iterable[ObjectModel]) -> list[ObjectModel]:
    if isinstance(models, ObjectModel):
        return [models]
    return list(models)


class BelongsTo(Relation):
    """This record holds a pointer (``key``, default: the attribute name) to the related record."""

    def query(self, instance: ObjectModel) -> Query:
        pointer = instance.get_parse_object().get(self.key)
        object_id = pointer.object_id if isinstance(pointer, ParseObject) else None
        return self._related_query(instance).where(OBJECT_ID, object_id)

    def get_results(self, instance: ObjectModel) -> ObjectModel | None:
        pointer = instance.get_parse_object().get(self.key)
        if not isinstance(pointer, ParseObject):
            return None
        pointer.fetch_if_needed(instance.uses_master_key)
        return self.related_model(pointer, instance.uses_master_key)

    def __set__(self, instance: ObjectModel, value: Any) -> None:
        parse_object = instance.get_parse_object()
        if value is None:
            parse_object.unset(self.key)
        else:
            parse_object.set(self.key, unwrap(value))
        instance.forget_relation(self.name)

    def save(self, instance: ObjectModel, models: ObjectModel | Iterable[ObjectModel]) -> None:
        """Associate ``models`` (a single model) with ``instance`` and save ``instance``."""
        (model,) = _as_models(models)
        if model.id is None:
            model.save()
        self.__set__(instance, model)
        instance.save()


class HasMany(Relation):
    """
    Related records hold a pointer back to this record.

    ``key`` is the pointer column on the related class; it defaults to the
    owner's class name with a lower-case first letter (``User`` → ``user``).
    """

    def default_key(self, owner: type[ObjectModel], name: str) -> str:
        return _lower_first(owner.__name__)

    def query(self, instance: ObjectModel) -> Query:
        return self._related_query(instance).where(self.key, instance)

    def save(self, instance: ObjectModel, models: ObjectModel | Iterable[ObjectModel]) -> None:
        for model in _as_models(models):
            setattr(model, self.key, instance)
            model.save()


class HasManyArray(Relation):
    """This record holds an array of pointers (``key``, default: the attribute name)."""

    def _pointers(self, instance: ObjectModel) -> list[ParseObject]:
        values = instance.get_parse_object().get(self.key) or []
        return [v for v in values if isinstance(v, ParseObject)]

    def query(self, instance: ObjectModel) -> Query:
        ids = [p.object_id for p in self._pointers(instance)]
        return self._related_query(instance).contained_in(OBJECT_ID, ids)

    def get_results(self, instance: ObjectModel) -> Collection[ObjectModel]:
        pointers = self._pointers(instance)
        missing = [p for p in pointers if not p.is_data_available]
        if missing:
            query = self._related_query(instance).contained_in(OBJECT_ID, [p.object_id for p in missing])
            fetched = {m.id: m.get_parse_object() for m in query.get()}
            pointers = [fetched.get(p.object_id, p) for p in pointers]
        return Collection(self.related_model(p, instance.uses_master_key) for p in pointers if p.is_data_available)

    def __set__(self, instance: ObjectModel, value: Any) -> None:
        instance.get_parse_object().set(self.key, unwrap(list(value or [])))
        instance.forget_relation(self.name)

    def save(self, instance: ObjectModel, models: ObjectModel | Iterable[ObjectModel]) -> None:
        models = _as_models(models)
        for model in models:
            if model.id is None:
                model.save()
        instance.add(self.key, models)
        instance.save()


class BelongsToMany(Relation):
    """
    Related records hold an array of pointers (``key``) that contains this record.

    ``key`` defaults to the owner's class name with a lower-case first letter
    followed by ``s`` (``Category`` → ``categorys``); pass it explicitly for
    irregular plurals.
    """

    def default_key(self, owner: type[ObjectModel], name: str) -> str:
        return _lower_first(owner.__name__) + "s"

    def query(self, instance: ObjectModel) -> Query:
        # Equality on an array column matches arrays containing the value.
        return self._related_query(instance).where(self.key, instance)

    def save(self, instance: ObjectModel, models: ObjectModel | Iterable[ObjectModel]) -> None:
        for model in _as_models(models):
            model.add(self.key, instance)
            model.save()


__all__ = ["Relation", "BoundRelation", "BelongsTo", "HasMany", "HasManyArray", "BelongsToMany"]
