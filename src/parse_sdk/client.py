"""
HTTP client for the Parse Server REST API.

Synchronous, blocking client built on ``httpx.Client``. Every call blocks the
calling thread until the server answers; there is no retry.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Self

import httpx

from .config import ParseConfig
from .debug import RequestLog, record_request
from .exceptions import AuthenticationError, ConnectionError, NotInitializedError, ObjectNotFoundError, QueryError

logger = logging.getLogger(__name__)

OBJECT_NOT_FOUND = 101


class ParseClient:
    """
    Stateless REST connection to a Parse Server.

    Authentication is performed via headers on each request. When a request
    asks for elevated access, the master key header is added; the REST key is
    sent otherwise.

    A process-wide default client can be registered with ``initialize()`` so
    that queries and models don't have to carry a client around.

    Example:
        ```python
        ParseClient.initialize(ParseConfig(app_id="app", rest_key="rest", server_url="http://localhost:1337"))
        posts = Post.query().get()
        ```
    """

    _default: ParseClient | None = None

    def __init__(self, config: ParseConfig, transport: httpx.BaseTransport | None = None):
        """
        Initialize the client.

        Args:
            config: Connection settings.
            transport: Optional httpx transport (e.g. ``httpx.MockTransport`` in tests).
        """
        self.config = config
        self._transport = transport
        self._client: httpx.Client | None = None

    # ==================== Default client registry ====================

    @classmethod
    def initialize(cls, config: ParseConfig, transport: httpx.BaseTransport | None = None) -> ParseClient:
        """Create a client and register it as the process default."""
        if cls._default is not None:
            cls._default.close()
        cls._default = cls(config, transport=transport)
        return cls._default

    @classmethod
    def get_default(cls) -> ParseClient:
        """
        Return the default client.

        Raises:
            NotInitializedError: If ``initialize()`` was never called.
        """
        if cls._default is None:
            raise NotInitializedError("No default ParseClient. Call ParseClient.initialize() first.")
        return cls._default

    @classmethod
    def reset(cls) -> None:
        """Close and forget the default client."""
        if cls._default is not None:
            cls._default.close()
        cls._default = None

    # ==================== Connection ====================

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def connect(self) -> Self:
        """Open the underlying HTTP client. Returns self for fluent API."""
        self._http()
        return self

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> Self:
        return self.connect()

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def headers(self, use_master_key: bool = False) -> dict[str, str]:
        """
        Build request headers.

        Raises:
            AuthenticationError: If elevated access is requested without a configured master key.
        """
        h = {
            "X-Parse-Application-Id": self.config.app_id,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if use_master_key:
            if not self.config.master_key:
                raise AuthenticationError("Master key requested but none is configured.")
            h["X-Parse-Master-Key"] = self.config.master_key
        else:
            h["X-Parse-REST-API-Key"] = self.config.rest_key
        return h

    # ==================== Requests ====================

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        use_master_key: bool = False,
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: Path relative to the mount path (e.g. ``/classes/Post``).
            params: Query string parameters.
            json: JSON body for writes.
            use_master_key: Send the master key instead of the REST key.

        Raises:
            ObjectNotFoundError: Parse error 101.
            AuthenticationError: HTTP 401/403.
            QueryError: Any other non-2xx answer.
            ConnectionError: Transport-level failure.
        """
        client = self._http()
        headers = self.headers(use_master_key)

        logger.debug(f"{method} {path} params={params}")
        status_code: int | None = None
        start = time.perf_counter()
        try:
            response = client.request(method, path, params=params, json=json, headers=headers)
            status_code = response.status_code
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._translate_error(e.response, path) from e
        except httpx.RequestError as e:
            raise ConnectionError(f"Request failed: {e}") from e
        finally:
            record_request(
                RequestLog(
                    method=method,
                    path=path,
                    params=dict(params or {}),
                    status_code=status_code,
                    master_key=use_master_key,
                    duration_ms=(time.perf_counter() - start) * 1000.0,
                )
            )

        if not response.content:
            return {}
        return response.json()

    def get(self, path: str, params: dict[str, Any] | None = None, use_master_key: bool = False) -> Any:
        return self.request("GET", path, params=params, use_master_key=use_master_key)

    def post(self, path: str, data: dict[str, Any], use_master_key: bool = False) -> Any:
        return self.request("POST", path, json=data, use_master_key=use_master_key)

    def put(self, path: str, data: dict[str, Any], use_master_key: bool = False) -> Any:
        return self.request("PUT", path, json=data, use_master_key=use_master_key)

    def delete(self, path: str, use_master_key: bool = False) -> Any:
        return self.request("DELETE", path, use_master_key=use_master_key)

    @staticmethod
    def _translate_error(response: httpx.Response, path: str) -> Exception:
        try:
            body = response.json()
        except ValueError:
            body = {}
        code = body.get("code") if isinstance(body, dict) else None
        message = body.get("error") if isinstance(body, dict) else None
        message = message or f"HTTP error: {response.status_code} - {response.text}"

        if code == OBJECT_NOT_FOUND:
            return ObjectNotFoundError(message, path=path, code=code)
        if response.status_code in (401, 403):
            return AuthenticationError(message, code=code or response.status_code)
        return QueryError(message, path=path, code=code or response.status_code)


__all__ = ["ParseClient"]
