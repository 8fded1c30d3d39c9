"""URL generation and the advertised URL catalog"""

from dataclasses import dataclass
from typing import Literal

from .addresses import format_host, get_network_interfaces, is_anyhost, is_ipv6, is_localhost

URLType = Literal["local", "network", "tunnel"]

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class ListenURL:
    """A URL the listener can be reached at"""

    url: str
    type: URLType


def generate_url(scheme: str, host: str, port: int | None, base_url: str = "/") -> str:
    """Build ``<scheme>://<host>[:<port>]<base_url>``.

    The port is left out when it is the scheme's default.
    """
    netloc = format_host(host)
    if port and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"
    return f"{scheme}://{netloc}{base_url or ''}"


def generate_socket_url(scheme: str, socket_path: str) -> str:
    """Build ``unix+<scheme>://<path>`` for IPC endpoints"""
    return f"unix+{scheme}://{socket_path}"


def get_url(config, endpoint, host: str | None = None, base_url: str | None = None) -> str:
    """Primary URL of a bound endpoint.

    Loopback and any-interface hostnames are advertised as ``localhost``.
    """
    if endpoint.is_ipc:
        return generate_socket_url(config.scheme, endpoint.socket_path)
    if host is None:
        hostname = config.hostname
        host = "localhost" if is_localhost(hostname) or is_anyhost(hostname) else hostname
    return generate_url(config.scheme, host, endpoint.port, base_url or config.base_url)


def get_public_url(config, endpoint, base_url: str | None = None) -> str | None:
    """URL of an explicitly network-visible hostname, if any"""
    if config.public_url:
        return config.public_url
    hostname = config.hostname
    if hostname and not is_localhost(hostname) and not is_anyhost(hostname):
        return generate_url(config.scheme, hostname, endpoint.port, base_url or config.base_url)
    return None


def build_catalog(
    config,
    endpoint,
    tunnel_url: str | None = None,
    base_url: str | None = None,
    public_url: str | None = None,
    interfaces: list[str] | None = None,
) -> list[ListenURL]:
    """
    Collect every URL worth showing for a listener.

    Order: explicit/public URL, localhost URL, tunnel URL, one URL per
    network interface (public listeners only). No literal URL appears twice.

    Args:
        config: ResolvedConfig of the listener
        endpoint: BoundEndpoint (provides port or socket path)
        tunnel_url: Public URL reported by an active tunnel
        base_url: Override of config.base_url
        public_url: Override of config.public_url
        interfaces: Interface addresses to use instead of enumerating the host
    """
    urls: list[ListenURL] = []

    def add(url_type: URLType, url: str) -> None:
        if not any(u.url == url for u in urls):
            urls.append(ListenURL(url=url, type=url_type))

    if endpoint.is_ipc:
        add("local", get_url(config, endpoint))
        return urls

    base_url = base_url or config.base_url
    public = public_url or get_public_url(config, endpoint, base_url)
    if public:
        add("network", public)

    hostname = config.hostname
    if is_localhost(hostname) or is_anyhost(hostname):
        add("local", get_url(config, endpoint, "localhost", base_url))

    if tunnel_url:
        add("tunnel", tunnel_url)

    if config.public:
        if interfaces is None:
            interfaces = get_network_interfaces(include_ipv6=is_ipv6(hostname))
        for address in interfaces:
            add("network", generate_url(config.scheme, address, endpoint.port, base_url))

    return urls
