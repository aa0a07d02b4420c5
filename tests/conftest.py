"""
Pytest configuration for Parse-ORM tests.

Every test runs against an in-memory Parse Server (``tests/fake_server.py``)
mounted through ``httpx.MockTransport``, registered as the default client.

Shared connection constants live in ``tests.fake_server`` so every test file
can import them instead of hardcoding credentials.
"""

from collections.abc import Generator

import pytest

from parse_orm import Paginator
from parse_sdk import ParseClient, ParseConfig
from tests.fake_server import APP_ID, MASTER_KEY, MOUNT_PATH, REST_KEY, SERVER_URL, FakeParseServer


@pytest.fixture
def config() -> ParseConfig:
    return ParseConfig(
        app_id=APP_ID,
        rest_key=REST_KEY,
        server_url=SERVER_URL,
        mount_path=MOUNT_PATH,
        master_key=MASTER_KEY,
    )


@pytest.fixture
def server() -> FakeParseServer:
    return FakeParseServer()


@pytest.fixture(autouse=True)
def client(server: FakeParseServer, config: ParseConfig) -> Generator[ParseClient, None, None]:
    """Register a default client talking to the fake server, and clean up global state afterwards."""
    client = ParseClient.initialize(config, transport=server.transport())
    yield client
    ParseClient.reset()
    Paginator.reset_resolvers()
