"""Tests for SessionConfig loading and validation."""

import pytest
from pydantic import ValidationError

from tesseradb import Session, SessionConfig, StreamTransport


def test_defaults():
    config = SessionConfig()
    assert config.endpoint == ("127.0.0.1", 6667)
    assert config.username == "root"
    assert config.fetch_size == 10000
    assert config.request_timeout is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TESSERADB_HOST", "db.internal")
    monkeypatch.setenv("TESSERADB_PORT", "7000")
    monkeypatch.setenv("TESSERADB_FETCH_SIZE", "512")
    config = SessionConfig()
    assert config.endpoint == ("db.internal", 7000)
    assert config.fetch_size == 512


def test_explicit_values_beat_environment(monkeypatch):
    monkeypatch.setenv("TESSERADB_HOST", "db.internal")
    assert SessionConfig(host="localhost").host == "localhost"


def test_from_address():
    config = SessionConfig.from_address("10.1.2.3:6668", fetch_size=64)
    assert config.endpoint == ("10.1.2.3", 6668)
    assert config.fetch_size == 64


@pytest.mark.parametrize(
    "kwargs",
    [{"port": 0}, {"port": 70000}, {"fetch_size": 0}, {"connect_timeout": 0}, {"request_timeout": -1}],
)
def test_invalid_values(kwargs):
    with pytest.raises(ValidationError):
        SessionConfig(**kwargs)


def test_session_builds_stream_transport_from_config():
    session = Session(SessionConfig(connect_timeout=2.5, request_timeout=30))
    assert isinstance(session._transport, StreamTransport)
    assert session._transport.connect_timeout == 2.5
    assert session._transport.request_timeout == 30
