"""
devlisten - Development listener bootstrapper
Serve an ASGI app on a resolved port or socket, with HTTPS, tunnels and
ready-to-share URLs
"""

__version__ = "0.1.0"

from .addresses import is_anyhost, is_localhost
from .certificates import Certificate, HTTPSOptions, resolve_certificate
from .errors import (
    BindError,
    CredentialReadError,
    InvalidPassphraseError,
    KeyDecryptionError,
    ListenError,
    TunnelStartError,
)
from .lifecycle import ListenerState, ShutdownRegistry
from .listen import Listener, listen
from .options import ListenOptions, ResolvedConfig, resolve_config
from .ports import PortRequest, get_port
from .sockets import resolve_socket_path
from .urls import ListenURL, build_catalog

__all__ = [
    "listen",
    "Listener",
    "ListenOptions",
    "ResolvedConfig",
    "resolve_config",
    "HTTPSOptions",
    "Certificate",
    "resolve_certificate",
    "ListenURL",
    "build_catalog",
    "resolve_socket_path",
    "is_localhost",
    "is_anyhost",
    "get_port",
    "PortRequest",
    "ShutdownRegistry",
    "ListenerState",
    "ListenError",
    "CredentialReadError",
    "InvalidPassphraseError",
    "KeyDecryptionError",
    "BindError",
    "TunnelStartError",
    "__version__",
]
