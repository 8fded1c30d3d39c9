"""Tests for hostname classification and interface discovery"""

import socket
import unittest
from collections import namedtuple
from unittest.mock import patch

from devlisten.addresses import format_host, get_network_interfaces, is_anyhost, is_localhost

snicaddr = namedtuple("snicaddr", "family address netmask broadcast ptp")


class TestHostClassification(unittest.TestCase):
    def test_loopback_hosts(self):
        for host in ("localhost", "127.0.0.1", "127.1.2.3", "::1"):
            with self.subTest(host=host):
                self.assertTrue(is_localhost(host))
                self.assertFalse(is_anyhost(host))

    def test_any_interface_hosts(self):
        for host in ("", "0.0.0.0", "::"):
            with self.subTest(host=host):
                self.assertTrue(is_anyhost(host))
                self.assertFalse(is_localhost(host))

    def test_other_hosts_are_neither(self):
        for host in ("192.168.1.10", "example.test", "localhost.localdomain", "127.0.0", "0.0.0.1"):
            with self.subTest(host=host):
                self.assertFalse(is_localhost(host))
                self.assertFalse(is_anyhost(host))

    def test_unset_host_is_neither(self):
        self.assertFalse(is_localhost(None))
        self.assertFalse(is_anyhost(None))

    def test_format_host_brackets_ipv6(self):
        self.assertEqual(format_host("::1"), "[::1]")
        self.assertEqual(format_host("[::1]"), "[::1]")
        self.assertEqual(format_host("127.0.0.1"), "127.0.0.1")
        self.assertEqual(format_host("localhost"), "localhost")


class TestNetworkInterfaces(unittest.TestCase):
    """Interface enumeration skips loopback and link-local addresses"""

    def setUp(self):
        self.interfaces = {
            "lo": [
                snicaddr(socket.AF_INET, "127.0.0.1", "255.0.0.0", None, None),
                snicaddr(socket.AF_INET6, "::1", None, None, None),
            ],
            "eth0": [
                snicaddr(socket.AF_INET, "192.168.1.20", "255.255.255.0", None, None),
                snicaddr(socket.AF_INET6, "fe80::1%eth0", None, None, None),
                snicaddr(socket.AF_INET6, "2001:db8::20", None, None, None),
            ],
            "wlan0": [
                snicaddr(socket.AF_INET, "10.0.0.5", "255.0.0.0", None, None),
                snicaddr(socket.AF_INET, "169.254.10.1", "255.255.0.0", None, None),
            ],
        }

    def test_ipv4_only_by_default(self):
        with patch("psutil.net_if_addrs", return_value=self.interfaces):
            addresses = get_network_interfaces()
        self.assertEqual(addresses, ["10.0.0.5", "192.168.1.20"])

    def test_ipv6_on_request(self):
        with patch("psutil.net_if_addrs", return_value=self.interfaces):
            addresses = get_network_interfaces(include_ipv6=True)
        self.assertIn("2001:db8::20", addresses)
        self.assertNotIn("::1", addresses)
        self.assertFalse(any(a.startswith("fe80") for a in addresses))

    def test_enumeration_failure_returns_empty(self):
        with patch("psutil.net_if_addrs", side_effect=OSError("denied")):
            self.assertEqual(get_network_interfaces(), [])


if __name__ == "__main__":
    unittest.main()
