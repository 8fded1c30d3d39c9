"""
Listener lifecycle: idempotent shutdown and process-exit hooks.

State machine:

    CREATED -> LISTENING -> CLOSING -> CLOSED

close() may be called any number of times, concurrently or after CLOSED.
The first call starts the shutdown; every caller waits for that same
shutdown. Tunnel teardown and endpoint shutdown failures are logged and
never raised.
"""

import asyncio
import atexit
import enum
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger("devlisten.lifecycle")


class ListenerState(enum.Enum):
    CREATED = "created"
    LISTENING = "listening"
    CLOSING = "closing"
    CLOSED = "closed"


class ShutdownRegistry:
    """
    Callbacks to run when the process exits.

    Tests use a plain registry and call run() to simulate exit;
    ProcessShutdownRegistry hooks run() into atexit.
    """

    def __init__(self):
        self._callbacks: list[Callable[[], None]] = []

    def register(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def unregister(self, callback: Callable[[], None]) -> None:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            pass

    def __len__(self) -> int:
        return len(self._callbacks)

    def run(self) -> None:
        """Run every callback once, in registration order"""
        while self._callbacks:
            callback = self._callbacks.pop(0)
            try:
                callback()
            except Exception as e:
                logger.debug("Exit hook %r failed: %s", callback, e)


class ProcessShutdownRegistry(ShutdownRegistry):
    """ShutdownRegistry that runs at interpreter exit"""

    def __init__(self):
        super().__init__()
        self._installed = False

    def register(self, callback: Callable[[], None]) -> None:
        if not self._installed:
            atexit.register(self.run)
            self._installed = True
        super().register(callback)


_process_registry: ProcessShutdownRegistry | None = None


def get_process_registry() -> ProcessShutdownRegistry:
    """Process-wide registry shared by every listener"""
    global _process_registry
    if _process_registry is None:
        _process_registry = ProcessShutdownRegistry()
    return _process_registry


class Lifecycle:
    """Owns one bound endpoint and an optional tunnel."""

    def __init__(self, endpoint, shutdown_registry: ShutdownRegistry | None = None):
        self.endpoint = endpoint
        self.tunnel = None
        self.state = ListenerState.CREATED
        self._registry = shutdown_registry
        self._close_task: asyncio.Future | None = None
        self._tunnel_task: asyncio.Task | None = None

    @property
    def closed(self) -> bool:
        return self.state in (ListenerState.CLOSING, ListenerState.CLOSED)

    def mark_listening(self) -> None:
        if self.state is ListenerState.CREATED:
            self.state = ListenerState.LISTENING

    def register_exit_hook(self) -> None:
        """Close the endpoint on process exit unless closed before"""
        if self._registry is not None:
            self._registry.register(self.close_on_exit)

    async def start_tunnel(self, factory: Callable[[str], Awaitable], url: str):
        """Start a tunnel owned by this lifecycle.

        close() cancels a tunnel start that is still in flight.
        """
        self._tunnel_task = asyncio.ensure_future(factory(url))
        try:
            self.tunnel = await self._tunnel_task
        finally:
            self._tunnel_task = None
        return self.tunnel

    async def close(self) -> None:
        """Shut down tunnel then endpoint; safe to call repeatedly"""
        if self.state is ListenerState.CLOSED:
            return
        if self._close_task is None:
            self.state = ListenerState.CLOSING
            self._close_task = asyncio.ensure_future(self._shutdown())
        await asyncio.shield(self._close_task)

    async def _shutdown(self) -> None:
        try:
            if self._registry is not None:
                self._registry.unregister(self.close_on_exit)

            if self._tunnel_task is not None and not self._tunnel_task.done():
                self._tunnel_task.cancel()
                await asyncio.gather(self._tunnel_task, return_exceptions=True)

            if self.tunnel is not None:
                try:
                    await self.tunnel.close()
                except Exception as e:
                    logger.warning("Failed to close tunnel: %s", e)

            try:
                await self.endpoint.shutdown()
            except Exception as e:
                logger.warning("Failed to shut down endpoint %s: %s", self.endpoint.address, e)
        finally:
            self.state = ListenerState.CLOSED

    def close_on_exit(self) -> None:
        """Best-effort synchronous close used by exit hooks"""
        if self.closed:
            return
        self.state = ListenerState.CLOSED
        if self.tunnel is not None:
            try:
                self.tunnel.terminate()
            except Exception as e:
                logger.debug("Failed to terminate tunnel on exit: %s", e)
        self.endpoint.close_now()
