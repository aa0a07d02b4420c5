"""
Connection configuration for the Parse SDK.

Provides an immutable configuration container used by ``ParseClient``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ParseConfig:
    """
    Immutable configuration for a Parse Server connection.

    Attributes:
        app_id: The application ID (``X-Parse-Application-Id``).
        rest_key: The REST API key (``X-Parse-REST-API-Key``).
        server_url: Base URL of the Parse Server, without the mount path.
        mount_path: Path the server is mounted on (default ``/parse``).
        master_key: Optional master key, required for elevated access.
        timeout: Request timeout in seconds.
    """

    app_id: str
    rest_key: str
    server_url: str
    mount_path: str = "/parse"
    master_key: str | None = None
    timeout: float = 30.0

    @property
    def base_url(self) -> str:
        """Server URL joined with the mount path."""
        mount = self.mount_path.strip("/")
        url = self.server_url.rstrip("/")
        return f"{url}/{mount}" if mount else url

    @classmethod
    def from_env(cls, prefix: str = "PARSE_") -> ParseConfig:
        """
        Build a configuration from environment variables.

        Reads ``<prefix>APP_ID``, ``<prefix>REST_KEY``, ``<prefix>SERVER_URL``,
        ``<prefix>MOUNT_PATH``, ``<prefix>MASTER_KEY`` and ``<prefix>TIMEOUT``.

        Raises:
            KeyError: If one of the required variables is missing.
        """
        missing = [name for name in ("APP_ID", "REST_KEY", "SERVER_URL") if not os.getenv(prefix + name)]
        if missing:
            raise KeyError(f"Missing environment variables: {', '.join(prefix + m for m in missing)}")

        return cls(
            app_id=os.environ[prefix + "APP_ID"],
            rest_key=os.environ[prefix + "REST_KEY"],
            server_url=os.environ[prefix + "SERVER_URL"],
            mount_path=os.getenv(prefix + "MOUNT_PATH", "/parse"),
            master_key=os.getenv(prefix + "MASTER_KEY") or None,
            timeout=float(os.getenv(prefix + "TIMEOUT", "30")),
        )


__all__ = ["ParseConfig"]
