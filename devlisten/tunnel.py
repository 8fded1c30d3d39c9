"""
devlisten Tunnel Module

Exposes a local listener to the internet through a Cloudflare quick tunnel
(``cloudflared tunnel --url <local-url>``). The public URL is parsed from
cloudflared's output.

Usage:
    tunnel = await start_tunnel("http://localhost:3000/")
    print(await tunnel.get_url())
    await tunnel.close()
"""

import asyncio
import logging
import os
import re
import shutil
import subprocess
from pathlib import Path

from .errors import TunnelStartError

logger = logging.getLogger("devlisten.tunnel")

TUNNEL_URL_RE = re.compile(r"(https://[a-z0-9-]+\.trycloudflare\.com)")


def find_tunnel_executable() -> str | None:
    """Find the cloudflared executable."""
    candidates = ["cloudflared"]
    if os.name == "nt":
        candidates.extend(
            [
                r"C:\Program Files\cloudflared\cloudflared.exe",
                r"C:\Program Files (x86)\cloudflared\cloudflared.exe",
            ]
        )
    else:
        candidates.extend(
            [
                "/usr/local/bin/cloudflared",
                "/usr/bin/cloudflared",
                str(Path.home() / ".local" / "bin" / "cloudflared"),
            ]
        )

    for cmd in candidates:
        if os.path.isabs(cmd):
            if Path(cmd).exists():
                return cmd
        else:
            found = shutil.which(cmd)
            if found:
                return found

    return None


class Tunnel:
    """A running cloudflared quick tunnel."""

    def __init__(self, proc: asyncio.subprocess.Process, local_url: str):
        self.proc = proc
        self.local_url = local_url
        self._url: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._reader = asyncio.create_task(self._read_output())

    async def _read_output(self) -> None:
        async for raw in self.proc.stdout:
            line = raw.decode("utf-8", errors="replace")
            if not self._url.done():
                match = TUNNEL_URL_RE.search(line)
                if match:
                    self._url.set_result(match.group(1))
                    logger.info("Tunnel ready: %s -> %s", match.group(1), self.local_url)

        returncode = await self.proc.wait()
        if not self._url.done():
            self._url.set_exception(
                TunnelStartError(f"cloudflared exited with code {returncode} before reporting a tunnel URL")
            )

    async def get_url(self) -> str:
        """Public URL of the tunnel (waits until cloudflared reports it).

        Raises:
            TunnelStartError: cloudflared exited without a URL
        """
        return await asyncio.shield(self._url)

    async def close(self) -> None:
        """Stop cloudflared and wait for it to exit."""
        self.terminate()
        await self.proc.wait()
        self._reader.cancel()
        await asyncio.gather(self._reader, return_exceptions=True)
        if not self._url.done():
            self._url.cancel()
        elif not self._url.cancelled():
            # Marks a startup failure as retrieved
            self._url.exception()

    def terminate(self) -> None:
        """Send SIGTERM to cloudflared without waiting (process exit path)."""
        if self.proc.returncode is None:
            try:
                self.proc.terminate()
            except ProcessLookupError:
                pass


async def start_tunnel(url: str) -> Tunnel:
    """Start a cloudflared quick tunnel pointing at url.

    Raises:
        TunnelStartError: cloudflared is not installed or cannot be spawned
    """
    exe = find_tunnel_executable()
    if not exe:
        raise TunnelStartError(
            "cloudflared not found. Install it from "
            "https://developers.cloudflare.com/cloudflare-one/connections/connect-networks/downloads/"
        )

    logger.info("Starting cloudflared tunnel for %s...", url)
    try:
        proc = await asyncio.create_subprocess_exec(
            exe,
            "tunnel",
            "--url",
            url,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            stdin=asyncio.subprocess.DEVNULL,
            creationflags=subprocess.CREATE_NO_WINDOW if os.name == "nt" else 0,
        )
    except OSError as e:
        raise TunnelStartError(f"Failed to start cloudflared: {e}") from e

    return Tunnel(proc, url)
