"""
Parse SDK - A small synchronous Python client for the Parse Server REST API.

Supports:
- Class queries with constraints, ordering, projection and includes
- Counting and OR composition of queries
- Creating, updating, fetching and deleting records
- Request capture for profiling (``QueryLogger``)
"""

from .client import ParseClient
from .config import ParseConfig
from .debug import QueryLogger, RequestLog
from .exceptions import (
    AuthenticationError,
    ConnectionError,
    NotInitializedError,
    ObjectNotFoundError,
    ParseError,
    QueryError,
)
from .objects import ParseObject
from .query import ParseQuery

__version__ = "0.3.0"

__all__ = [
    "ParseClient",
    "ParseConfig",
    "ParseObject",
    "ParseQuery",
    "QueryLogger",
    "RequestLog",
    "ParseError",
    "ConnectionError",
    "AuthenticationError",
    "QueryError",
    "ObjectNotFoundError",
    "NotInitializedError",
]
