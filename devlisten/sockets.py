"""IPC socket path resolution (unix domain sockets and Windows named pipes)"""

import ntpath
import posixpath

from .platform import PIPE_PREFIX, PIPE_PREFIXES, current_platform

DEFAULT_SOCKET_NAME = "listhen"
SOCKET_SUFFIX = ".sock"


def resolve_socket_path(name: str | None = None, platform: str | None = None) -> str:
    """
    Map a logical socket name (or explicit path) to a platform socket path.

    POSIX:
        ""/None           -> "listhen.sock"
        "api"             -> "api.sock"
        "api.socket"      -> "api.socket"
        "/tmp/api"        -> "/tmp/api" (paths are used verbatim)
        "./run/api.sock"  -> "./run/api.sock"

    Windows:
        ""/None           -> "\\\\?\\pipe\\listhen"
        "tmp\\api"        -> "\\\\?\\pipe\\tmp\\api"
        "\\\\?\\pipe\\api" -> unchanged

    Args:
        name: Logical name or path
        platform: "win32" or "posix" (default: the running platform)
    """
    platform = platform or current_platform()
    name = name or ""

    if platform == "win32":
        if name.startswith(PIPE_PREFIXES):
            return name
        relative = name.lstrip("\\/") or DEFAULT_SOCKET_NAME
        return PIPE_PREFIX + ntpath.normpath(relative)

    if not name:
        return DEFAULT_SOCKET_NAME + SOCKET_SUFFIX

    if "/" in name or name.startswith("."):
        return name

    if posixpath.splitext(name)[1]:
        return name
    return name + SOCKET_SUFFIX
