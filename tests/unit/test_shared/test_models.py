"""
Unit tests for udp_discovery.shared.models module.
"""

from datetime import datetime

import pytest

from udp_discovery.shared.exceptions import MessageValidationError
from udp_discovery.shared.models import (
    Classification,
    DecodeResult,
    DiscoveryMessage,
    DiscoveryResult,
    Limited,
    OnRequest,
    Periodic,
    RunState,
    ServerRecord,
)


class TestDiscoveryMessage:
    """Test DiscoveryMessage dataclass."""
    
    def test_valid_message(self):
        """Test creating a valid message."""
        message = DiscoveryMessage(service="rustlm", ip="10.0.0.5", port=3000, key="SECRETKEY123")
        
        assert message.endpoint == "10.0.0.5:3000"
    
    def test_boundary_ports(self):
        """Test the full port range is accepted."""
        assert DiscoveryMessage("svc", "10.0.0.5", 0, "k").port == 0
        assert DiscoveryMessage("svc", "10.0.0.5", 65535, "k").port == 65535
    
    def test_empty_key_allowed(self):
        """Test an empty key is a valid string."""
        assert DiscoveryMessage("svc", "10.0.0.5", 80, "").key == ""
    
    @pytest.mark.parametrize("field, kwargs", [
        ("service", {"service": ""}),
        ("service", {"service": 42}),
        ("ip", {"ip": "not-an-ip"}),
        ("ip", {"ip": "10.0.0"}),
        ("ip", {"ip": "::1"}),
        ("ip", {"ip": 167772165}),
        ("port", {"port": 65536}),
        ("port", {"port": -1}),
        ("port", {"port": "3000"}),
        ("port", {"port": True}),
        ("key", {"key": None}),
    ])
    def test_invalid_fields(self, field, kwargs):
        """Test each invalid field is reported."""
        values = {"service": "svc", "ip": "10.0.0.5", "port": 3000, "key": "k"}
        values.update(kwargs)
        
        with pytest.raises(MessageValidationError) as exc_info:
            DiscoveryMessage(**values)
        
        assert exc_info.value.field == field
    
    def test_immutable(self):
        """Test messages cannot be modified."""
        message = DiscoveryMessage("svc", "10.0.0.5", 3000, "k")
        
        with pytest.raises(AttributeError):
            message.port = 4000


class TestAnnouncementModes:
    """Test announcement mode values."""
    
    def test_periodic(self):
        """Test a periodic mode."""
        assert Periodic(2.5).interval_seconds == 2.5
    
    def test_limited(self):
        """Test a limited mode."""
        mode = Limited(interval_seconds=1, max_count=3)
        
        assert mode.max_count == 3
    
    def test_zero_interval_allowed(self):
        """Test back-to-back announcements are allowed."""
        assert Limited(0, 1).interval_seconds == 0
    
    @pytest.mark.parametrize("factory", [
        lambda: Periodic(-1),
        lambda: Limited(-1, 3),
        lambda: Limited(1, 0),
    ])
    def test_invalid_values(self, factory):
        """Test invalid mode values are rejected."""
        with pytest.raises(ValueError):
            factory()
    
    def test_on_request_equality(self):
        """Test on-request modes carry no data."""
        assert OnRequest() == OnRequest()


class TestRunState:
    """Test RunState enum."""
    
    def test_terminal_states(self):
        """Test only timed out and fatal states are terminal."""
        terminal = {state for state in RunState if state.is_terminal}
        
        assert terminal == {RunState.TIMED_OUT, RunState.FATAL_ERROR}


class TestDecodeResult:
    """Test DecodeResult dataclass."""
    
    def test_is_valid(self):
        """Test only VALID results are usable."""
        message = DiscoveryMessage("svc", "10.0.0.5", 3000, "k")
        
        assert DecodeResult(Classification.VALID, message=message).is_valid
        assert not DecodeResult(Classification.INVALID_KEY, reason="mismatch").is_valid


class TestServerRecord:
    """Test ServerRecord dataclass."""
    
    def test_from_message(self):
        """Test creating a record from a message."""
        message = DiscoveryMessage("rustlm", "10.0.0.5", 3000, "k")
        
        record = ServerRecord.from_message(message, source_address=("10.0.0.5", 40000))
        
        assert record.endpoint == "10.0.0.5:3000"
        assert record.url == "http://10.0.0.5:3000"
        assert record.source_address == ("10.0.0.5", 40000)
        assert isinstance(record.first_seen, datetime)


class TestDiscoveryResult:
    """Test DiscoveryResult dataclass."""
    
    def test_defaults(self):
        """Test an empty result."""
        result = DiscoveryResult()
        
        assert result.records == {}
        assert not result.found_any
        assert result.duplicate_count == 0
    
    def test_unpacking(self):
        """Test a result unpacks into records and counters."""
        record = ServerRecord("rustlm", "10.0.0.5", 3000, "k")
        result = DiscoveryResult(records={record.endpoint: record}, invalid_count=2, malformed_count=1)
        
        records, invalid, malformed = result
        
        assert records == {"10.0.0.5:3000": record}
        assert (invalid, malformed) == (2, 1)
        assert result.found_any
