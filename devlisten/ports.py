"""
Port allocation for devlisten listeners.

Finds a bindable TCP port for a host, trying the requested port first and
falling back to configured ranges. The returned port is authoritative: it may
differ from the request when the requested port is taken.
"""

import logging
import socket
from dataclasses import dataclass, field

from .errors import BindError
from .platform import is_posix_reuse_safe

logger = logging.getLogger("devlisten.ports")

DEFAULT_PORT = 3000
DEFAULT_ALTERNATIVE_PORT_RANGE = (3000, 3100)


@dataclass
class PortRequest:
    """
    What port a listener wants.

    Attributes:
        port: Preferred port (0 = let the OS choose at bind time)
        ports: Extra candidates tried after the preferred port
        port_range: Inclusive (start, end) range tried next
        alternative_port_range: Inclusive range tried when everything else is taken
        random: Fall back to an OS-assigned port when no candidate is free
    """

    port: int | None = None
    ports: list[int] = field(default_factory=list)
    port_range: tuple[int, int] | None = None
    alternative_port_range: tuple[int, int] | None = DEFAULT_ALTERNATIVE_PORT_RANGE
    random: bool = True

    @classmethod
    def coerce(cls, value) -> "PortRequest":
        """Build a request from an int, a numeric string, a request or None"""
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls(port=DEFAULT_PORT)
        try:
            return cls(port=int(value))
        except (TypeError, ValueError) as e:
            raise BindError(f"Invalid port: {value!r}") from e

    def candidates(self) -> list[int]:
        """Ports to try, in order, without duplicates"""
        ordered = []
        if self.port is not None:
            ordered.append(self.port)
        ordered.extend(self.ports)
        for span in (self.port_range, self.alternative_port_range):
            if span:
                start, end = span
                ordered.extend(range(start, end + 1))

        seen = set()
        result = []
        for port in ordered:
            if port not in seen and 0 < port <= 65535:
                seen.add(port)
                result.append(port)
        return result


def resolve_bind_address(host: str | None, port: int) -> tuple[int, tuple]:
    """Resolve host to the (family, sockaddr) a listener binds to.

    An empty host binds every IPv4 interface; names resolving to both
    families prefer IPv4.

    Raises:
        BindError: host cannot be resolved
    """
    bind_host = host or "0.0.0.0"
    try:
        infos = socket.getaddrinfo(bind_host, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE)
    except socket.gaierror as e:
        raise BindError(f"Invalid address {bind_host!r}: {e}") from e
    if not infos:
        raise BindError(f"Invalid address {bind_host!r}")

    infos.sort(key=lambda info: info[0] != socket.AF_INET)
    family, _, _, _, sockaddr = infos[0]
    return family, sockaddr


def create_tcp_socket(host: str | None, port: int) -> socket.socket:
    """Create a TCP socket bound to host:port (not yet listening).

    Raises:
        BindError: The address is in use, not permitted or invalid
    """
    family, sockaddr = resolve_bind_address(host, port)
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        if is_posix_reuse_safe():
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if family == socket.AF_INET6 and host == "::":
            # Dual-stack: "::" also accepts IPv4 clients
            sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
        sock.bind(sockaddr)
    except OSError as e:
        sock.close()
        raise BindError(f"Cannot bind {host or '*'}:{port}: {e.strerror or e}") from e
    return sock


def is_port_available(port: int, host: str | None = "localhost") -> bool:
    """Check if port can be bound on host"""
    try:
        sock = create_tcp_socket(host, port)
    except BindError:
        return False
    sock.close()
    return True


def find_free_port(host: str | None = "localhost") -> int:
    """Ask the OS for a free ephemeral port on host"""
    sock = create_tcp_socket(host, 0)
    try:
        return sock.getsockname()[1]
    finally:
        sock.close()


def get_port(request=None, host: str | None = "localhost", verbose: bool = True) -> int:
    """
    Pick the port a listener should bind.

    Args:
        request: PortRequest, int, numeric string or None (default 3000)
        host: Host the port must be free on
        verbose: Log when an alternative port is used

    Returns:
        A free port, or 0 when an ephemeral port was requested

    Raises:
        BindError: Nothing is free and random fallback is disabled, or the
            host is invalid
    """
    request = PortRequest.coerce(request)
    if request.port == 0:
        return 0

    # Surface a bad host instead of reporting every port as taken
    resolve_bind_address(host, 0)

    for port in request.candidates():
        if is_port_available(port, host):
            if verbose and request.port is not None and port != request.port:
                logger.warning("Port %s is not available on %s, using alternative port %s", request.port, host or "*", port)
            return port

    if not request.random:
        raise BindError(f"Unable to find an available port on {host or '*'} (tried {request.port})")

    port = find_free_port(host)
    if verbose:
        logger.warning("Unable to find an available port on %s, using random port %s", host or "*", port)
    return port
