"""
Raw Parse records.

``ParseObject`` is the record handle returned by queries and sent back as a
pointer when a record is used inside a constraint.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Self

if TYPE_CHECKING:
    from .client import ParseClient

logger = logging.getLogger(__name__)

_RESERVED_KEYS = {"objectId", "createdAt", "updatedAt", "className", "__type", "ACL"}

# Built-in classes live under their own REST endpoints.
_SPECIAL_ENDPOINTS = {
    "_User": "/users",
    "_Role": "/roles",
    "_Installation": "/installations",
    "_Session": "/sessions",
}


def class_path(class_name: str) -> str:
    """Return the REST collection path for a Parse class."""
    return _SPECIAL_ENDPOINTS.get(class_name, f"/classes/{class_name}")


def parse_date(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp as sent by Parse Server (``2024-01-02T03:04:05.678Z``)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, dict):
        value = value.get("iso")
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return None


def format_date(value: datetime) -> str:
    """Format a datetime the way Parse Server expects it (UTC, millisecond precision)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def encode(value: Any) -> Any:
    """
    Encode a Python value into its Parse REST representation.

    ``ParseObject`` values become pointers, datetimes become ``Date`` objects.

    Raises:
        ValueError: If an unsaved ``ParseObject`` is encoded as a pointer.
    """
    if isinstance(value, ParseObject):
        return value.to_pointer()
    if isinstance(value, datetime):
        return {"__type": "Date", "iso": format_date(value)}
    if isinstance(value, dict):
        return {k: encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [encode(v) for v in value]
    return value


def decode(value: Any, client: ParseClient | None = None) -> Any:
    """Decode a Parse REST value into Python objects."""
    if isinstance(value, list):
        return [decode(v, client) for v in value]
    if not isinstance(value, dict):
        return value

    value_type = value.get("__type")
    if value_type == "Pointer":
        return ParseObject.create_without_data(value["className"], value["objectId"], client=client)
    if value_type == "Object":
        return ParseObject.from_json(value["className"], value, client=client)
    if value_type == "Date":
        return parse_date(value)
    return {k: decode(v, client) for k, v in value.items()}


class ParseObject:
    """
    A single record of a Parse class.

    A record is either fully fetched (its data is available) or a bare
    pointer carrying only its class name and object id. Local changes are
    tracked as pending operations and sent by ``save()``.

    Example:
        ```python
        post = ParseObject("Post")
        post.set("title", "Hello")
        post.save()
        post.object_id  # "xWMyZ4YEGZ"
        ```
    """

    def __init__(self, class_name: str, object_id: str | None = None, client: ParseClient | None = None):
        self.class_name = class_name
        self.object_id = object_id
        self.created_at: datetime | None = None
        self.updated_at: datetime | None = None
        self._data: dict[str, Any] = {}
        self._operations: dict[str, Any] = {}
        self._data_available = object_id is None
        self._client = client

    @classmethod
    def create_without_data(cls, class_name: str, object_id: str, client: ParseClient | None = None) -> ParseObject:
        """Create a pointer to an existing record without fetching it."""
        return cls(class_name, object_id, client=client)

    @classmethod
    def from_json(cls, class_name: str, payload: dict[str, Any], client: ParseClient | None = None) -> ParseObject:
        """Build a fetched record from a REST payload."""
        obj = cls(class_name, payload.get("objectId"), client=client)
        obj._merge_server_data(payload)
        return obj

    def _merge_server_data(self, payload: dict[str, Any]) -> None:
        if payload.get("objectId"):
            self.object_id = payload["objectId"]
        if "createdAt" in payload:
            self.created_at = parse_date(payload["createdAt"])
        if "updatedAt" in payload:
            self.updated_at = parse_date(payload["updatedAt"])
        for key, value in payload.items():
            if key in _RESERVED_KEYS:
                continue
            self._data[key] = decode(value, self._client)
        self._data_available = True

    @property
    def client(self) -> ParseClient:
        if self._client is not None:
            return self._client
        from .client import ParseClient

        return ParseClient.get_default()

    @property
    def is_data_available(self) -> bool:
        return self._data_available

    @property
    def is_dirty(self) -> bool:
        return bool(self._operations) or self.object_id is None

    # ==================== Attributes ====================

    def get(self, key: str, default: Any = None) -> Any:
        if key == "objectId":
            return self.object_id
        if key == "createdAt":
            return self.created_at
        if key == "updatedAt":
            return self.updated_at
        return self._data.get(key, default)

    def has(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> list[str]:
        return list(self._data)

    def set(self, key: str, value: Any) -> Self:
        if key in _RESERVED_KEYS:
            raise ValueError(f"Cannot set reserved key {key!r}.")
        self._data[key] = value
        self._operations[key] = value
        return self

    def unset(self, key: str) -> Self:
        self._data.pop(key, None)
        self._operations[key] = {"__op": "Delete"}
        return self

    def add(self, key: str, values: Any) -> Self:
        """Append one value (or a list of values) to an array field."""
        if not isinstance(values, (list, tuple)):
            values = [values]
        current = self._data.get(key) or []
        self._data[key] = list(current) + list(values)

        pending = self._operations.get(key)
        if isinstance(pending, dict) and pending.get("__op") == "Add":
            pending["objects"].extend(values)
        elif key in self._operations:
            self._operations[key] = self._data[key]
        else:
            self._operations[key] = {"__op": "Add", "objects": list(values)}
        return self

    def to_pointer(self) -> dict[str, str]:
        """
        Return the pointer representation of this record.

        Raises:
            ValueError: If the record has not been saved yet.
        """
        if not self.object_id:
            raise ValueError(f"Cannot create a pointer to an unsaved {self.class_name} object.")
        return {"__type": "Pointer", "className": self.class_name, "objectId": self.object_id}

    def to_dict(self) -> dict[str, Any]:
        """Return the record's attributes (REST encoded) including its metadata."""
        data: dict[str, Any] = {k: encode(v) for k, v in self._data.items()}
        if self.object_id:
            data["objectId"] = self.object_id
        if self.created_at:
            data["createdAt"] = format_date(self.created_at)
        if self.updated_at:
            data["updatedAt"] = format_date(self.updated_at)
        return data

    # ==================== Persistence ====================

    def fetch(self, use_master_key: bool = False) -> Self:
        """Load the record's data from the server."""
        if not self.object_id:
            raise ValueError(f"Cannot fetch an unsaved {self.class_name} object.")
        payload = self.client.get(f"{class_path(self.class_name)}/{self.object_id}", use_master_key=use_master_key)
        self._merge_server_data(payload)
        return self

    def fetch_if_needed(self, use_master_key: bool = False) -> Self:
        if not self._data_available:
            self.fetch(use_master_key)
        return self

    def save(self, use_master_key: bool = False) -> Self:
        """Create or update the record with its pending operations."""
        body = {key: encode(op) for key, op in self._operations.items()}
        path = class_path(self.class_name)

        if self.object_id is None:
            payload = self.client.post(path, body, use_master_key=use_master_key)
            self.object_id = payload["objectId"]
            self.created_at = parse_date(payload.get("createdAt"))
            self.updated_at = self.created_at
            logger.info(f"Record created -> {self.class_name}:{self.object_id}.")
        elif body:
            payload = self.client.put(f"{path}/{self.object_id}", body, use_master_key=use_master_key)
            self.updated_at = parse_date(payload.get("updatedAt")) or self.updated_at
            logger.info(f"Record updated -> {self.class_name}:{self.object_id}.")

        self._operations.clear()
        self._data_available = True
        return self

    def destroy(self, use_master_key: bool = False) -> None:
        """Delete the record on the server."""
        if not self.object_id:
            return
        self.client.delete(f"{class_path(self.class_name)}/{self.object_id}", use_master_key=use_master_key)
        logger.info(f"Record deleted -> {self.class_name}:{self.object_id}.")

    # ==================== Dunder ====================

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParseObject):
            return NotImplemented
        if self.object_id is None or other.object_id is None:
            return self is other
        return self.class_name == other.class_name and self.object_id == other.object_id

    def __hash__(self) -> int:
        if self.object_id is None:
            return id(self)
        return hash((self.class_name, self.object_id))

    def __repr__(self) -> str:
        return f"<ParseObject {self.class_name}:{self.object_id}>"


__all__ = ["ParseObject", "encode", "decode", "class_path", "parse_date", "format_date"]
