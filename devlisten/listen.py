"""
Unified listener entry point for devlisten.

Resolves options, binds an endpoint, optionally opens a tunnel, reports the
URLs, and hands back a Listener that owns everything it started.

Usage:
    from devlisten import listen

    listener = await listen(app, port=3000, https=True)
    print(listener.url)
    await listener.close()
"""

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from .certificates import resolve_certificate
from .errors import TunnelStartError
from .features import copy_to_clipboard, open_browser
from .lifecycle import Lifecycle, ListenerState, ShutdownRegistry, get_process_registry
from .options import ListenOptions, ResolvedConfig, resolve_config
from .output import print_url_banner
from .server import BoundEndpoint, bind_endpoint
from .tunnel import start_tunnel
from .urls import ListenURL, build_catalog, get_url

logger = logging.getLogger("devlisten.listen")


class Listener:
    """
    Handle of a running listener.

    Owns the bound endpoint and the tunnel (if any); close() tears both down
    and may be called any number of times.
    """

    def __init__(self, config: ResolvedConfig, endpoint: BoundEndpoint, lifecycle: Lifecycle):
        self.config = config
        self.endpoint = endpoint
        self.lifecycle = lifecycle
        self.copied = False
        self._open_task: asyncio.Task | None = None

    @property
    def url(self) -> str:
        """Primary URL (localhost for loopback and any-interface hosts)"""
        return get_url(self.config, self.endpoint)

    @property
    def https(self):
        """Certificate in use, or False for plaintext"""
        return self.endpoint.certificate or False

    @property
    def server(self):
        return self.endpoint.server

    @property
    def address(self) -> Any:
        return self.endpoint.address

    @property
    def tunnel(self):
        return self.lifecycle.tunnel

    @property
    def state(self) -> ListenerState:
        return self.lifecycle.state

    def get_url(self, host: str | None = None, base_url: str | None = None) -> str:
        return get_url(self.config, self.endpoint, host, base_url)

    async def get_urls(self, base_url: str | None = None, public_url: str | None = None) -> list[ListenURL]:
        """Every URL this listener is reachable at, without duplicates"""
        tunnel_url = await self.tunnel.get_url() if self.tunnel is not None else None
        return build_catalog(
            self.config,
            self.endpoint,
            tunnel_url=tunnel_url,
            base_url=base_url,
            public_url=public_url,
        )

    async def show_url(
        self,
        name: str | None = None,
        base_url: str | None = None,
        qr: bool | None = None,
        public_url: str | None = None,
    ) -> None:
        """Print the URL banner"""
        urls = await self.get_urls(base_url=base_url, public_url=public_url)
        show_qr = (qr if qr is not None else self.config.qr) is not False
        print_url_banner(
            urls,
            name=name or self.config.name,
            copied=self.copied,
            show_qr=show_qr,
        )

    async def open(self) -> None:
        """Open the primary URL in a browser (best-effort)"""
        try:
            await asyncio.to_thread(open_browser, self.url)
        except Exception as e:
            logger.debug("Cannot open %s: %s", self.url, e)

    async def close(self) -> None:
        """Close tunnel and endpoint; safe to call repeatedly and concurrently"""
        if self._open_task is not None and not self._open_task.done():
            self._open_task.cancel()
        await self.lifecycle.close()

    async def __aenter__(self) -> "Listener":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<Listener {self.url} {self.state.value}>"


async def _start_tunnel(listener: Listener, factory: Callable[[str], Awaitable]) -> None:
    if listener.endpoint.is_ipc:
        raise TunnelStartError("Tunnels need a TCP endpoint, not an IPC socket")
    tunnel = await listener.lifecycle.start_tunnel(factory, listener.url)
    # A tunnel that never reports its URL did not start
    await tunnel.get_url()


async def listen(
    app: Any,
    options: ListenOptions | None = None,
    *,
    env: Mapping[str, str] | None = None,
    argv: Sequence[str] | None = None,
    shutdown_registry: ShutdownRegistry | None = None,
    tunnel_factory: Callable[[str], Awaitable] | None = None,
    **kwargs,
) -> Listener:
    """
    Serve app on a resolved endpoint and return its Listener.

    Args:
        app: ASGI application (uvicorn also accepts WSGI callables)
        options: ListenOptions; keyword arguments override its fields
        env: Environment for PORT/HOST/NODE_ENV (default: os.environ)
        argv: Command line checked for --host (default: sys.argv)
        shutdown_registry: Exit hook registry (default: the process registry)
        tunnel_factory: Coroutine function url -> Tunnel (default: cloudflared)
        **kwargs: Any ListenOptions field, e.g. port=3000, https=True

    Raises:
        CredentialReadError, InvalidPassphraseError, KeyDecryptionError,
        BindError, TunnelStartError: Nothing is left listening

    Example:
        listener = await listen(app, hostname="localhost", https=True)
        listener.url  # "https://localhost:3000/"
    """
    if options is None:
        options = ListenOptions.from_kwargs(**kwargs)
    elif kwargs:
        options = dataclasses.replace(options, **kwargs)

    config = resolve_config(options, env=env, argv=argv)

    certificate = await resolve_certificate(config.https) if config.https else None
    endpoint = await bind_endpoint(app, config, certificate)

    registry = None
    if config.auto_close:
        registry = shutdown_registry if shutdown_registry is not None else get_process_registry()
    lifecycle = Lifecycle(endpoint, registry)
    lifecycle.mark_listening()
    lifecycle.register_exit_hook()

    listener = Listener(config, endpoint, lifecycle)

    try:
        if config.tunnel:
            try:
                await _start_tunnel(listener, tunnel_factory or start_tunnel)
            except TunnelStartError:
                raise
            except Exception as e:
                raise TunnelStartError(f"Failed to start tunnel: {e}") from e

        if config.clipboard:
            listener.copied = await asyncio.to_thread(copy_to_clipboard, listener.url)

        if config.show_url:
            try:
                await listener.show_url()
            except Exception as e:
                logger.warning("Cannot show URLs for %s: %s", listener.url, e)

        if config.open:
            listener._open_task = asyncio.create_task(listener.open())
    except BaseException:
        await lifecycle.close()
        raise

    return listener
