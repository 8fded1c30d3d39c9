"""
Endpoint binding for devlisten.

Binds the listening socket (TCP or unix domain socket), prepares TLS, and
runs an in-process uvicorn server on it until shutdown() is called.

The socket is bound here rather than by uvicorn so bind failures surface as
BindError instead of uvicorn's log-and-exit, and so the OS-assigned port can
be read back when an ephemeral port was requested.
"""

import asyncio
import contextlib
import logging
import os
import socket
import ssl
import stat
from dataclasses import dataclass, field
from typing import Any, Literal

import uvicorn

from .certificates import Certificate, CertificateFiles
from .errors import BindError, KeyDecryptionError
from .platform import PIPE_PREFIXES, supports_unix_sockets
from .ports import create_tcp_socket, get_port
from .sockets import resolve_socket_path

logger = logging.getLogger("devlisten.server")

EndpointKind = Literal["tcp", "unix-socket", "windows-pipe"]

UNIX_SOCKET_PERMISSIONS = 0o666


class ListenerServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to its owner"""

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    def install_signal_handlers(self) -> None:
        pass


@dataclass
class BoundEndpoint:
    """A live listening endpoint and the server running on it"""

    kind: EndpointKind
    host: str | None
    port: int | None
    socket_path: str | None
    certificate: Certificate | None
    server: ListenerServer
    sock: socket.socket
    task: "asyncio.Task | None" = None
    _closed: bool = field(default=False, repr=False)

    @property
    def is_ipc(self) -> bool:
        return self.kind != "tcp"

    @property
    def address(self) -> Any:
        """Socket address as reported by the OS (tuple, or path for IPC)"""
        if self.is_ipc:
            return self.socket_path
        return (self.host, self.port)

    async def shutdown(self) -> None:
        """Stop accepting connections and let in-flight requests finish"""
        if self._closed:
            return
        self._closed = True
        self.server.should_exit = True
        try:
            if self.task is not None:
                (result,) = await asyncio.gather(self.task, return_exceptions=True)
                if isinstance(result, BaseException):
                    logger.debug("Server task for %s ended with %r", self.address, result)
        finally:
            self.sock.close()
            self._remove_socket_file()
        logger.debug("Endpoint %s closed", self.address)

    def close_now(self) -> None:
        """Synchronously close the listening socket (process exit path)"""
        if self._closed:
            return
        self._closed = True
        self.server.should_exit = True
        for server in getattr(self.server, "servers", None) or []:
            try:
                server.close()
            except RuntimeError as e:
                logger.debug("Cannot close server on exit: %s", e)
        self.sock.close()
        self._remove_socket_file()

    def _remove_socket_file(self) -> None:
        if self.kind != "unix-socket" or not self.socket_path:
            return
        try:
            os.unlink(self.socket_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug("Cannot remove socket file %s: %s", self.socket_path, e)


def endpoint_kind(socket_path: str | None) -> EndpointKind:
    if socket_path is None:
        return "tcp"
    if socket_path.startswith(PIPE_PREFIXES):
        return "windows-pipe"
    return "unix-socket"


def _remove_stale_socket(path: str) -> None:
    """Remove a leftover socket file that no server answers on"""
    try:
        mode = os.stat(path).st_mode
    except FileNotFoundError:
        return
    if not stat.S_ISSOCK(mode):
        return

    client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        client.connect(path)
    except ConnectionRefusedError:
        logger.debug("Removing stale socket file %s", path)
        os.unlink(path)
    except OSError:
        pass
    finally:
        client.close()


def create_unix_socket(path: str) -> socket.socket:
    """Create a unix domain socket bound to path (not yet listening).

    Raises:
        BindError: The path is in use, not permitted or invalid
    """
    _remove_stale_socket(path)
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.bind(path)
        os.chmod(path, UNIX_SOCKET_PERMISSIONS)
    except OSError as e:
        sock.close()
        raise BindError(f"Cannot bind unix socket {path}: {e.strerror or e}") from e
    return sock


def load_server_config(app: Any, config, certificate: Certificate | None, uds: str | None = None) -> uvicorn.Config:
    """Build and load the uvicorn config, including the TLS context.

    Raises:
        KeyDecryptionError: The private key cannot be decrypted or loaded
    """
    kwargs = {
        "host": config.hostname or "0.0.0.0",
        "port": 0,
        "uds": uds,
        "log_config": None,
        "log_level": config.log_level,
        "lifespan": "auto",
    }

    if certificate is None:
        server_config = uvicorn.Config(app, **kwargs)
        server_config.load()
        return server_config

    if certificate.is_key_encrypted and not certificate.passphrase:
        raise KeyDecryptionError("Private key is encrypted but no passphrase was given")

    with CertificateFiles(certificate) as files:
        server_config = uvicorn.Config(
            app,
            ssl_certfile=str(files.cert_path),
            ssl_keyfile=str(files.key_path),
            ssl_keyfile_password=certificate.passphrase,
            **kwargs,
        )
        try:
            server_config.load()
        except ssl.SSLError as e:
            raise KeyDecryptionError(str(e)) from e
    return server_config


async def _wait_started(server: ListenerServer, task: asyncio.Task) -> None:
    while not server.started:
        if task.done():
            task.result()
            raise BindError("Server failed to start (application startup failed)")
        await asyncio.sleep(0.01)


async def bind_endpoint(app: Any, config, certificate: Certificate | None = None) -> BoundEndpoint:
    """
    Bind the endpoint described by config and start serving app on it.

    Args:
        app: ASGI application (or WSGI callable)
        config: ResolvedConfig
        certificate: TLS credential, None for plaintext

    Returns:
        BoundEndpoint with the port/path actually bound

    Raises:
        BindError: The socket cannot be bound or the server does not start
            (always for Windows named pipes, which uvicorn cannot serve on)
        KeyDecryptionError: The TLS key cannot be loaded
    """
    socket_path = resolve_socket_path(config.socket) if config.socket else None
    kind = endpoint_kind(socket_path)
    if kind == "windows-pipe" or (kind == "unix-socket" and not supports_unix_sockets()):
        raise BindError(f"IPC endpoint {socket_path} is not supported on this platform")

    # TLS is prepared before binding so a bad key never leaves a bound socket
    server_config = await asyncio.to_thread(load_server_config, app, config, certificate, socket_path)

    if kind == "unix-socket":
        sock = create_unix_socket(socket_path)
        host, port = None, None
    else:
        requested = await asyncio.to_thread(get_port, config.port, config.hostname, not config.is_test)
        sock = create_tcp_socket(config.hostname, requested)
        host = config.hostname
        port = sock.getsockname()[1]
        server_config.port = port

    server = ListenerServer(server_config)
    endpoint = BoundEndpoint(
        kind=kind,
        host=host,
        port=port,
        socket_path=socket_path,
        certificate=certificate,
        server=server,
        sock=sock,
    )
    endpoint.task = asyncio.create_task(server.serve(sockets=[sock]))

    try:
        await _wait_started(server, endpoint.task)
    except BaseException:
        await endpoint.shutdown()
        raise

    logger.debug("Listening on %s (%s)", endpoint.address, kind)
    return endpoint
