"""
In-memory Parse Server for tests.

Serves the subset of the REST API the SDK uses through ``httpx.MockTransport``:
class queries (``where``, ``order``, ``skip``, ``limit``, ``keys``,
``include``, ``count``) and object create / fetch / update / delete. Every
request is recorded so tests can assert on what was sent.
"""

from __future__ import annotations

import json
import re
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

APP_ID = "test-app"
REST_KEY = "test-rest-key"
MASTER_KEY = "test-master-key"
SERVER_URL = "http://parse.test"
MOUNT_PATH = "/parse"

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)
_DEFAULT_LIMIT = 100


def _iso(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _normalize(value: Any) -> Any:
    if isinstance(value, dict):
        value_type = value.get("__type")
        if value_type in ("Pointer", "Object"):
            return ("pointer", value.get("className"), value.get("objectId"))
        if value_type == "Date":
            return value.get("iso")
    return value


def _equals(value: Any, expected: Any) -> bool:
    if isinstance(value, list) and not isinstance(expected, list):
        return any(_normalize(v) == _normalize(expected) for v in value)
    return _normalize(value) == _normalize(expected)


def _sort_key(value: Any) -> tuple[bool, Any]:
    value = _normalize(value)
    if isinstance(value, tuple):
        value = value[2]
    return (value is None, value if value is not None else "")


def _regex(pattern: str) -> re.Pattern[str]:
    # Parse quotes literals as \Q...\E, which Python's re module doesn't support.
    return re.compile(re.sub(r"\\Q(.*?)\\E", lambda m: re.escape(m.group(1)), pattern))


class FakeParseServer:
    """Records live in ``classes[class_name][object_id]`` in their REST form."""

    def __init__(self) -> None:
        self.classes: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.requests: list[httpx.Request] = []
        self._next_id = 0

    # ==================== Test helpers ====================

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def seed(self, class_name: str, **fields: Any) -> str:
        """Insert a record directly and return its objectId."""
        return self._create(class_name, fields)["objectId"]

    def pointer(self, class_name: str, object_id: str) -> dict[str, str]:
        return {"__type": "Pointer", "className": class_name, "objectId": object_id}

    def find_requests(self, class_name: str | None = None) -> list[httpx.Request]:
        """GET requests against class collections (finds and counts)."""
        found = []
        for request in self.requests:
            parts = self._route(request)
            if request.method == "GET" and parts is not None and len(parts[1]) == 0:
                if class_name is None or parts[0] == class_name:
                    found.append(request)
        return found

    def count_requests(self, class_name: str | None = None) -> list[httpx.Request]:
        return [r for r in self.find_requests(class_name) if r.url.params.get("count") == "1"]

    def list_requests(self, class_name: str | None = None) -> list[httpx.Request]:
        return [r for r in self.find_requests(class_name) if r.url.params.get("count") != "1"]

    def reset_requests(self) -> None:
        self.requests.clear()

    # ==================== Dispatch ====================

    def _route(self, request: httpx.Request) -> tuple[str, list[str]] | None:
        parts = [p for p in request.url.path.split("/") if p]
        if not parts or parts[0] != MOUNT_PATH.strip("/"):
            return None
        parts = parts[1:]
        if parts and parts[0] == "classes" and len(parts) >= 2:
            return parts[1], parts[2:]
        if parts and parts[0] == "users":
            return "_User", parts[1:]
        return None

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.headers.get("X-Parse-Application-Id") != APP_ID:
            return httpx.Response(401, json={"error": "unauthorized"})
        master_key = request.headers.get("X-Parse-Master-Key")
        if master_key is not None and master_key != MASTER_KEY:
            return httpx.Response(403, json={"error": "unauthorized"})
        if master_key is None and request.headers.get("X-Parse-REST-API-Key") != REST_KEY:
            return httpx.Response(401, json={"error": "unauthorized"})

        route = self._route(request)
        if route is None:
            return httpx.Response(404, json={"code": 119, "error": "unknown route"})
        class_name, rest = route

        if request.method == "GET" and not rest:
            return httpx.Response(200, json=self._find(class_name, request.url.params))
        if request.method == "POST" and not rest:
            record = self._create(class_name, json.loads(request.content or b"{}"))
            return httpx.Response(201, json={"objectId": record["objectId"], "createdAt": record["createdAt"]})

        object_id = rest[0]
        record = self.classes[class_name].get(object_id)
        if record is None:
            return httpx.Response(404, json={"code": 101, "error": "Object not found."})

        if request.method == "GET":
            return httpx.Response(200, json=record)
        if request.method == "PUT":
            self._update(record, json.loads(request.content or b"{}"))
            return httpx.Response(200, json={"updatedAt": record["updatedAt"]})
        if request.method == "DELETE":
            del self.classes[class_name][object_id]
            return httpx.Response(200, json={})
        return httpx.Response(405, json={"error": "method not allowed"})

    # ==================== Writes ====================

    def _create(self, class_name: str, fields: dict[str, Any]) -> dict[str, Any]:
        self._next_id += 1
        object_id = f"obj{self._next_id:05d}"
        timestamp = _iso(_EPOCH + timedelta(seconds=self._next_id))
        record = {"objectId": object_id, "createdAt": timestamp, "updatedAt": timestamp}
        self._update(record, fields)
        record["updatedAt"] = timestamp
        self.classes[class_name][object_id] = record
        return record

    def _update(self, record: dict[str, Any], body: dict[str, Any]) -> None:
        for key, value in body.items():
            if isinstance(value, dict) and "__op" in value:
                op = value["__op"]
                if op == "Delete":
                    record.pop(key, None)
                elif op == "Add":
                    record[key] = list(record.get(key) or []) + list(value["objects"])
                elif op == "Increment":
                    record[key] = record.get(key, 0) + value["amount"]
            else:
                record[key] = value
        record["updatedAt"] = _iso(datetime.now(timezone.utc))

    # ==================== Queries ====================

    def _find(self, class_name: str, params: httpx.QueryParams) -> dict[str, Any]:
        where = json.loads(params.get("where", "{}"))
        matched = [r for r in self.classes[class_name].values() if self._matches(class_name, r, where)]

        response: dict[str, Any] = {}
        if params.get("count") == "1":
            response["count"] = len(matched)

        order = params.get("order")
        if order:
            for key in reversed(order.split(",")):
                descending = key.startswith("-")
                key = key.lstrip("-")
                matched.sort(key=lambda r: _sort_key(r.get(key)), reverse=descending)

        skip = int(params.get("skip", 0))
        limit = int(params.get("limit", _DEFAULT_LIMIT))
        matched = matched[skip : skip + limit]

        keys = params.get("keys")
        includes = [i for i in params.get("include", "").split(",") if i]
        results = []
        for record in matched:
            record = json.loads(json.dumps(record))
            if keys:
                allowed = set(keys.split(",")) | {"objectId", "createdAt", "updatedAt"}
                record = {k: v for k, v in record.items() if k in allowed}
            for path in includes:
                self._include(record, path.split("."))
            results.append(record)

        response["results"] = results
        return response

    def _include(self, record: dict[str, Any], path: list[str]) -> None:
        head, rest = path[0], path[1:]
        value = record.get(head)
        if isinstance(value, list):
            record[head] = [self._resolve(v, rest) for v in value]
        elif value is not None:
            record[head] = self._resolve(value, rest)

    def _resolve(self, value: Any, rest: list[str]) -> Any:
        if isinstance(value, dict) and value.get("__type") in ("Pointer", "Object"):
            target = self.classes[value["className"]].get(value["objectId"])
            if target is None:
                return value
            resolved = {**json.loads(json.dumps(target)), "__type": "Object", "className": value["className"]}
            if rest:
                self._include(resolved, rest)
            return resolved
        return value

    def _subquery_results(self, sub: dict[str, Any]) -> list[dict[str, Any]]:
        class_name = sub["className"]
        return [r for r in self.classes[class_name].values() if self._matches(class_name, r, sub.get("where", {}))]

    def _matches(self, class_name: str, record: dict[str, Any], where: dict[str, Any]) -> bool:
        for key, condition in where.items():
            if key == "$or":
                if not any(self._matches(class_name, record, sub) for sub in condition):
                    return False
                continue
            if key == "$and":
                if not all(self._matches(class_name, record, sub) for sub in condition):
                    return False
                continue

            value = record.get(key)
            if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
                for op, operand in condition.items():
                    if not self._check(record, key, value, op, operand):
                        return False
            elif not _equals(value, condition):
                return False
        return True

    def _check(self, record: dict[str, Any], key: str, value: Any, op: str, operand: Any) -> bool:
        if op == "$exists":
            return (key in record) == bool(operand)
        if op == "$ne":
            return not _equals(value, operand)
        if op == "$in":
            return any(_equals(value, o) for o in operand)
        if op == "$nin":
            return not any(_equals(value, o) for o in operand)
        if op == "$all":
            return isinstance(value, list) and all(_equals(value, o) for o in operand)
        if op == "$regex":
            return isinstance(value, str) and _regex(operand).search(value) is not None
        if op in ("$inQuery", "$notInQuery"):
            ids = {r["objectId"] for r in self._subquery_results(operand)}
            hit = isinstance(value, dict) and value.get("objectId") in ids
            return hit if op == "$inQuery" else not hit
        if op in ("$select", "$dontSelect"):
            selected = [r.get(operand["key"]) for r in self._subquery_results(operand["query"])]
            hit = any(_equals(value, s) for s in selected)
            return hit if op == "$select" else not hit

        if value is None:
            return False
        left, right = _normalize(value), _normalize(operand)
        if op == "$gt":
            return left > right
        if op == "$gte":
            return left >= right
        if op == "$lt":
            return left < right
        if op == "$lte":
            return left <= right
        raise ValueError(f"Unsupported operator {op}")
