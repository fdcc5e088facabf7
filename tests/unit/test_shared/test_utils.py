"""
Unit tests for udp_discovery.shared.utils module.
"""

from unittest.mock import patch

import pytest

from udp_discovery.shared.utils import (
    endpoint_id,
    format_address,
    group_by,
    is_valid_ipv4,
    list_ipv4_interfaces,
    select_local_ip,
)


class TestAddressHelpers:
    """Test address formatting and validation."""
    
    def test_format_address(self):
        """Test formatting an address tuple."""
        assert format_address(("192.168.1.10", 8888)) == "192.168.1.10:8888"
    
    def test_endpoint_id(self):
        """Test the endpoint identity."""
        assert endpoint_id("10.0.0.5", 3000) == "10.0.0.5:3000"
    
    @pytest.mark.parametrize("value, expected", [
        ("10.0.0.5", True),
        ("255.255.255.255", True),
        ("256.0.0.1", False),
        ("10.0.0", False),
        ("fe80::1", False),
        ("", False),
        (None, False),
        (10, False),
    ])
    def test_is_valid_ipv4(self, value, expected):
        """Test IPv4 validation."""
        assert is_valid_ipv4(value) is expected


class TestSelectLocalIp:
    """Test local address selection."""
    
    def test_first_usable_address(self):
        """Test loopback and excluded interfaces are skipped."""
        interfaces = [
            ("lo", "127.0.0.1"),
            ("docker0", "172.17.0.1"),
            ("eth0", "192.168.1.20"),
            ("wlan0", "192.168.1.30"),
        ]
        
        assert select_local_ip(interfaces=lambda: interfaces) == "192.168.1.20"
    
    def test_custom_prefixes(self):
        """Test platform-specific interface names can be excluded."""
        interfaces = [("vEthernet", "172.20.0.1"), ("Ethernet", "10.0.0.9")]
        
        assert select_local_ip(("vEthernet",), interfaces=lambda: interfaces) == "10.0.0.9"
    
    def test_no_exclusions(self):
        """Test an empty prefix list only skips loopback addresses."""
        interfaces = [("lo", "127.0.0.1"), ("docker0", "172.17.0.1")]
        
        assert select_local_ip((), interfaces=lambda: interfaces) == "172.17.0.1"
    
    def test_multicast_and_invalid_skipped(self):
        """Test unusable addresses are skipped."""
        interfaces = [("eth0", "224.0.0.1"), ("eth1", "bogus"), ("eth2", "10.1.2.3")]
        
        assert select_local_ip(interfaces=lambda: interfaces) == "10.1.2.3"
    
    def test_fallback(self, caplog):
        """Test the loopback fallback when nothing qualifies."""
        assert select_local_ip(interfaces=lambda: [("lo", "127.0.0.1")]) == "127.0.0.1"
        assert "falling back" in caplog.text
    
    def test_provider_error(self):
        """Test an interface enumeration failure falls back."""
        def broken():
            raise OSError("netlink unavailable")
        
        assert select_local_ip(interfaces=broken) == "127.0.0.1"
    
    @patch('udp_discovery.shared.utils.netifaces')
    def test_default_provider(self, mock_netifaces):
        """Test netifaces is used by default."""
        mock_netifaces.AF_INET = 2
        mock_netifaces.interfaces.return_value = ["lo", "eth0"]
        mock_netifaces.ifaddresses.side_effect = lambda name: {
            "lo": {2: [{"addr": "127.0.0.1"}]},
            "eth0": {2: [{"addr": "192.168.1.20"}]},
        }[name]
        
        assert select_local_ip() == "192.168.1.20"


class TestListIpv4Interfaces:
    """Test interface enumeration."""
    
    @patch('udp_discovery.shared.utils.netifaces')
    def test_enumeration(self, mock_netifaces):
        """Test interfaces without IPv4 or with errors are skipped."""
        mock_netifaces.AF_INET = 2
        mock_netifaces.interfaces.return_value = ["eth0", "gone0", "ipv6only", "eth1"]
        
        def ifaddresses(name):
            if name == "gone0":
                raise ValueError("You must specify a valid interface name.")
            return {
                "eth0": {2: [{"addr": "10.0.0.2"}, {"addr": "10.0.0.3"}]},
                "ipv6only": {10: [{"addr": "fe80::1"}]},
                "eth1": {2: [{"netmask": "255.0.0.0"}]},
            }[name]
        
        mock_netifaces.ifaddresses.side_effect = ifaddresses
        
        assert list_ipv4_interfaces() == [("eth0", "10.0.0.2"), ("eth0", "10.0.0.3")]


class TestGroupBy:
    """Test grouping helper."""
    
    def test_group_by(self):
        """Test items are grouped preserving order."""
        groups = group_by(["apple", "avocado", "banana"], key=lambda word: word[0])
        
        assert groups == {"a": ["apple", "avocado"], "b": ["banana"]}
    
    def test_group_by_empty(self):
        """Test grouping nothing."""
        assert group_by([], key=str) == {}
