"""Platform detection and cross-platform utilities"""

import os
import platform

IS_WINDOWS = platform.system() == "Windows"
IS_MACOS = platform.system() == "Darwin"

# Prefix of the Windows named pipe namespace
PIPE_PREFIX = "\\\\?\\pipe\\"
PIPE_PREFIXES = (PIPE_PREFIX, "\\\\.\\pipe\\")


def current_platform() -> str:
    """Return "win32" on Windows and "posix" everywhere else"""
    return "win32" if IS_WINDOWS else "posix"


def supports_unix_sockets() -> bool:
    """Check if AF_UNIX sockets can be bound on this platform"""
    import socket

    return hasattr(socket, "AF_UNIX") and not IS_WINDOWS


def is_posix_reuse_safe() -> bool:
    """SO_REUSEADDR only keeps TIME_WAIT ports bindable on POSIX.

    On Windows the option allows two sockets to steal the same port.
    """
    return os.name != "nt"
