"""
Integration tests for discovery over real loopback sockets.

Broadcast delivery is replaced by unicast to 127.0.0.1 so the tests run
without network privileges; every role binds an ephemeral port.
"""

import socket
import time

import pytest

from udp_discovery.client.discovery_client import DiscoveryClient
from udp_discovery.client.listener import PassiveListener
from udp_discovery.server.announcer import AnnouncementEngine
from udp_discovery.server.responder import DiscoveryResponder
from udp_discovery.shared.config import ClientConfig, ServiceConfig
from udp_discovery.shared.models import Limited, RunState


KEY = "SECRETKEY123"
LOOPBACK = "127.0.0.1"


def wait_for(condition, timeout=2.0):
    """Poll condition until it holds or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


@pytest.fixture
def loopback_service_config():
    """Service configuration bound to an ephemeral loopback port."""
    return ServiceConfig(
        service_name="rustlm",
        service_port=3000,
        shared_key=KEY,
        advertise_ip="10.0.0.5",
        discovery_port=0,
        broadcast_address=LOOPBACK,
        bind_address=LOOPBACK,
        mode="on_request",
        poll_interval=0.05
    )


def loopback_client_config(port, key=KEY, timeout=0.5):
    return ClientConfig(
        expected_key=key,
        discovery_port=port,
        broadcast_address=LOOPBACK,
        bind_address=LOOPBACK,
        timeout=timeout,
        poll_interval=0.05
    )


@pytest.fixture
def responder(loopback_service_config):
    """A running responder on loopback."""
    responder = DiscoveryResponder(loopback_service_config)
    responder.start()
    yield responder
    responder.stop()


class TestRequestResponse:
    """Client discovery against a live responder."""
    
    def test_client_finds_responder(self, responder):
        """Test a discovery request is answered with the service record."""
        client = DiscoveryClient(loopback_client_config(responder.bound_port))
        
        result = client.discover()
        
        assert list(result.records) == ["10.0.0.5:3000"]
        record = result.records["10.0.0.5:3000"]
        assert record.service == "rustlm"
        assert record.source_address[0] == LOOPBACK
        assert client.state is RunState.TIMED_OUT
        assert wait_for(lambda: responder.responses_sent == 1)
    
    def test_wrong_key_is_rejected(self, responder):
        """Test a client with another key sees the response as invalid."""
        client = DiscoveryClient(loopback_client_config(responder.bound_port, key="WRONGKEY"))
        
        records, invalid, malformed = client.discover()
        
        assert records == {}
        assert invalid == 1
        assert malformed == 0
    
    def test_repeated_runs(self, responder):
        """Test the responder keeps answering across runs."""
        client = DiscoveryClient(loopback_client_config(responder.bound_port, timeout=0.3))
        
        assert len(client.discover().records) == 1
        assert len(client.discover().records) == 1
        assert wait_for(lambda: responder.responses_sent == 2)
    
    def test_on_request_engine(self, loopback_service_config):
        """Test an on-request engine answers through its responder."""
        engine = AnnouncementEngine(loopback_service_config)
        engine.start()
        try:
            client = DiscoveryClient(loopback_client_config(engine.responder.bound_port))
            
            result = client.discover()
        finally:
            engine.stop()
        
        assert list(result.records) == ["10.0.0.5:3000"]
        assert engine.sent_count == 0
    
    def test_no_responder(self):
        """Test silence yields an empty result after the timeout."""
        silent = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        silent.bind((LOOPBACK, 0))
        try:
            client = DiscoveryClient(loopback_client_config(silent.getsockname()[1], timeout=0.2))
            
            result = client.discover()
            
            assert result.records == {}
            assert result.elapsed_seconds >= 0.2
            assert client.state is RunState.TIMED_OUT
            data, _ = silent.recvfrom(1024)
            assert data == b"DISCOVER"
        finally:
            silent.close()


class TestAnnouncements:
    """Passive listening against a live announcer."""
    
    def test_limited_announcements_reach_listener(self, loopback_service_config):
        """Test every limited announcement arrives and dedups to one record."""
        seen = []
        listener = PassiveListener(loopback_client_config(0), on_record=seen.append)
        listener.start()
        try:
            loopback_service_config.discovery_port = listener.bound_port
            engine = AnnouncementEngine(loopback_service_config, mode=Limited(interval_seconds=0.01, max_count=3))
            
            engine.run()
            
            assert engine.sent_count == 3
            assert wait_for(lambda: listener.catalog.snapshot().duplicate_count == 2)
        finally:
            listener.stop()
        
        assert [record.endpoint for record in seen] == ["10.0.0.5:3000"]
    
    def test_listener_ignores_foreign_announcements(self, loopback_service_config):
        """Test announcements under another key are counted, not catalogued."""
        listener = PassiveListener(loopback_client_config(0, key="OTHERKEY"))
        listener.start()
        try:
            loopback_service_config.discovery_port = listener.bound_port
            AnnouncementEngine(loopback_service_config, mode=Limited(0, 2)).run()
            
            assert wait_for(lambda: listener.catalog.snapshot().invalid_count == 2)
            assert len(listener.catalog) == 0
        finally:
            listener.stop()
