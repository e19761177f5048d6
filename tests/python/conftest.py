"""Shared fixtures for the TesseraDB client tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import pytest_asyncio

TESTS_ROOT = Path(__file__).resolve().parent
CLIENT_ROOT = TESTS_ROOT.parent.parent / "clients" / "python"
for path in (TESTS_ROOT, CLIENT_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from fake_server import FakeTesseraServer, InMemoryTransport  # noqa: E402
from tesseradb import Session, SessionConfig  # noqa: E402


@pytest.fixture
def server() -> FakeTesseraServer:
    return FakeTesseraServer()


@pytest.fixture
def transport(server) -> InMemoryTransport:
    return InMemoryTransport(server)


@pytest.fixture
def unopened_session(transport) -> Session:
    return Session(SessionConfig(host="127.0.0.1", port=6667), transport=transport)


@pytest_asyncio.fixture
async def session(unopened_session):
    await unopened_session.open()
    yield unopened_session
    await unopened_session.close()
