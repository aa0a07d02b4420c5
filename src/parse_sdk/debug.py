"""
Request recording for the Parse SDK.

``QueryLogger`` collects one ``RequestLog`` per REST call made by any
``ParseClient`` while the ``with`` block is active, including calls that
failed. Useful to assert how many round trips an eager load costs::

    with QueryLogger() as log:
        Post.with_("author").get()

    assert log.total_requests == 1
    print(log.for_class("Post"), log.failed)
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Any, Self

_recorder: ContextVar[QueryLogger | None] = ContextVar("parse_request_recorder", default=None)


@dataclass(frozen=True)
class RequestLog:
    """One REST call: what was asked, how it was authenticated, and how the server answered."""

    method: str
    path: str
    params: dict[str, Any]
    status_code: int | None
    master_key: bool
    duration_ms: float

    @property
    def class_name(self) -> str | None:
        """Parse class addressed by the call (``_User`` for ``/users``), if any."""
        parts = self.path.strip("/").split("/")
        if parts[0] == "classes" and len(parts) > 1:
            return parts[1]
        if parts[0] == "users":
            return "_User"
        return None

    @property
    def failed(self) -> bool:
        return self.status_code is None or self.status_code >= 400


class QueryLogger:
    """Captures the requests issued inside a ``with`` block."""

    def __init__(self) -> None:
        self.requests: list[RequestLog] = []
        self._token: Token[QueryLogger | None] | None = None

    def __enter__(self) -> Self:
        self._token = _recorder.set(self)
        return self

    def __exit__(self, *exc: Any) -> None:
        if self._token is not None:
            _recorder.reset(self._token)
            self._token = None

    @property
    def total_requests(self) -> int:
        return len(self.requests)

    @property
    def total_ms(self) -> float:
        return sum(r.duration_ms for r in self.requests)

    @property
    def failed(self) -> list[RequestLog]:
        return [r for r in self.requests if r.failed]

    def for_class(self, class_name: str) -> list[RequestLog]:
        return [r for r in self.requests if r.class_name == class_name]

    def __repr__(self) -> str:
        return f"QueryLogger({self.total_requests} requests, {len(self.failed)} failed)"


def record_request(entry: RequestLog) -> None:
    """Hand ``entry`` to the logger active in the current context, if any."""
    recorder = _recorder.get()
    if recorder is not None:
        recorder.requests.append(entry)


__all__ = ["RequestLog", "QueryLogger", "record_request"]
