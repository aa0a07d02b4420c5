from parse_sdk import ParseClient, ParseConfig, ParseObject, ParseQuery

from .collection import Collection
from .exceptions import InvalidOperator, InvalidOrderDirection, ModelNotFound, ModelNotRegistered, ParseOrmError
from .model import ObjectModel
from .pagination import LengthAwarePaginator, Paginator, pagination_context
from .query import Query
from .relations import BelongsTo, BelongsToMany, HasMany, HasManyArray

__all__ = [
    "ParseClient",
    "ParseConfig",
    "ParseObject",
    "ParseQuery",
    "ObjectModel",
    "Query",
    "Collection",
    "Paginator",
    "LengthAwarePaginator",
    "pagination_context",
    "BelongsTo",
    "HasMany",
    "HasManyArray",
    "BelongsToMany",
    "ParseOrmError",
    "InvalidOperator",
    "InvalidOrderDirection",
    "ModelNotFound",
    "ModelNotRegistered",
]
