"""
Pytest Configuration and Shared Fixtures

Provides common test fixtures and configuration for the test suite.
"""

import json
import socket
from typing import Any, Callable, Dict, Iterable
from unittest.mock import Mock

import pytest

from udp_discovery.shared.config import ClientConfig, ServiceConfig


TEST_KEY = "SECRETKEY123"


@pytest.fixture
def service_config() -> ServiceConfig:
    """Provide a test service configuration."""
    return ServiceConfig(
        service_name="test-service",
        service_port=3000,
        shared_key=TEST_KEY,
        advertise_ip="10.0.0.5",
        interval_seconds=0.01,
        poll_interval=0.05
    )


@pytest.fixture
def client_config() -> ClientConfig:
    """Provide a test client configuration."""
    return ClientConfig(
        expected_key=TEST_KEY,
        timeout=5.0,
        poll_interval=0.05
    )


@pytest.fixture
def mock_socket() -> Mock:
    """Provide a mock UDP socket for testing."""
    mock_sock = Mock(spec=socket.socket)
    mock_sock.getsockname.return_value = ("0.0.0.0", 8888)
    mock_sock.sendto.return_value = None
    mock_sock.close.return_value = None
    mock_sock.bind.return_value = None
    return mock_sock


@pytest.fixture
def make_payload() -> Callable[..., bytes]:
    """Provide a factory for JSON announcement payloads."""
    def _make_payload(**overrides: Any) -> bytes:
        record: Dict[str, Any] = {
            "service": "test-service",
            "ip": "10.0.0.5",
            "port": 3000,
            "key": TEST_KEY,
        }
        for name, value in overrides.items():
            if value is None:
                record.pop(name, None)
            else:
                record[name] = value
        return json.dumps(record).encode("utf-8")
    return _make_payload


@pytest.fixture
def recv_sequence() -> Callable[..., Callable[..., Any]]:
    """
    Provide a recvfrom side effect that replays events, then stops the loop.

    Exceptions in the sequence are raised; anything else is returned. Once
    exhausted the stop event is set and a socket timeout is raised.
    """
    def _recv_sequence(events: Iterable[Any], stop_event) -> Callable[..., Any]:
        items = iter(events)

        def _recvfrom(*args, **kwargs):
            try:
                item = next(items)
            except StopIteration:
                stop_event.set()
                raise socket.timeout()
            if isinstance(item, BaseException):
                raise item
            return item

        return _recvfrom
    return _recv_sequence


@pytest.fixture(autouse=True)
def clean_discovery_env(monkeypatch):
    """Remove DISCOVERY_* environment variables so tests see defaults."""
    import os
    for name in list(os.environ):
        if name.startswith("DISCOVERY_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration between tests."""
    import logging
    root_logger = logging.getLogger()
    saved_level = root_logger.level
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    
    yield
    
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(saved_level)
