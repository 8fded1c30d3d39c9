"""Hostname classification and network interface discovery"""

import ipaddress
import logging
import re
import socket

logger = logging.getLogger("devlisten.addresses")

_LOCALHOST_RE = re.compile(r"^127(\.\d{1,3}){3}$|^localhost$|^::1$")
_ANYHOST_RE = re.compile(r"^$|^0\.0\.0\.0$|^::$")


def is_localhost(host: str | None) -> bool:
    """Check if host is only reachable from this machine.

    An unset host (None) is neither loopback nor any-interface.
    """
    if host is None:
        return False
    return bool(_LOCALHOST_RE.match(host))


def is_anyhost(host: str | None) -> bool:
    """Check if host means "every interface" ("", 0.0.0.0 or ::)"""
    if host is None:
        return False
    return bool(_ANYHOST_RE.match(host))


def is_ipv6(host: str | None) -> bool:
    """Check if host is an IPv6 literal"""
    return bool(host) and ":" in host


def format_host(host: str) -> str:
    """Bracket IPv6 literals so they can be used inside a URL"""
    if is_ipv6(host) and not host.startswith("["):
        return f"[{host}]"
    return host


def get_network_interfaces(include_ipv6: bool = False) -> list[str]:
    """Get the addresses of every external network interface.

    Loopback and link-local (fe80::) addresses are skipped. IPv6 addresses
    are only included on request.

    Returns:
        Sorted list of unique address strings
    """
    import psutil

    addresses = set()
    try:
        interfaces = psutil.net_if_addrs()
    except OSError as e:
        logger.debug("Cannot enumerate network interfaces: %s", e)
        return []

    for details in interfaces.values():
        for detail in details:
            if detail.family == socket.AF_INET:
                address = detail.address
            elif detail.family == socket.AF_INET6 and include_ipv6:
                # Scoped addresses come back as "fe80::1%eth0"
                address = detail.address.split("%", 1)[0]
            else:
                continue

            try:
                ip = ipaddress.ip_address(address)
            except ValueError:
                continue
            if ip.is_loopback or ip.is_link_local or ip.is_unspecified:
                continue
            addresses.add(address)

    return sorted(addresses)
