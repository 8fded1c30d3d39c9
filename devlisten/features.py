"""
Developer conveniences for devlisten listeners.

QR codes for the network URL, clipboard copy and browser opening. All of
these are best-effort: failures are logged and reported as False, never
raised.
"""

import io
import logging
import shutil
import subprocess
import webbrowser

from .platform import IS_MACOS, IS_WINDOWS

logger = logging.getLogger("devlisten.features")

CLIPBOARD_TIMEOUT = 5


def generate_qr_code(url: str) -> str:
    """
    Render a QR code for terminal display.

    Args:
        url: URL to encode

    Returns:
        QR code as a multi-line string of block characters
    """
    import segno

    qr = segno.make(url)
    buffer = io.StringIO()
    qr.terminal(out=buffer, compact=True)
    return buffer.getvalue()


def _clipboard_command() -> list[str] | None:
    """Find a command that writes stdin to the clipboard"""
    if IS_WINDOWS:
        return ["clip"]
    if IS_MACOS:
        return ["pbcopy"]
    for cmd in (["wl-copy"], ["xclip", "-selection", "clipboard"], ["xsel", "--clipboard", "--input"]):
        if shutil.which(cmd[0]):
            return cmd
    return None


def copy_to_clipboard(text: str) -> bool:
    """Copy text to the system clipboard.

    Returns:
        True if a clipboard tool accepted the text
    """
    cmd = _clipboard_command()
    if not cmd:
        logger.debug("No clipboard tool found (wl-copy, xclip, xsel)")
        return False

    try:
        result = subprocess.run(
            cmd,
            input=text.encode("utf-8"),
            capture_output=True,
            timeout=CLIPBOARD_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("Clipboard write failed: %s", e)
        return False

    if result.returncode != 0:
        logger.debug("Clipboard write failed: %s", result.stderr.decode("utf-8", errors="replace").strip())
        return False
    return True


def open_browser(url: str) -> bool:
    """Open url in the default browser"""
    try:
        return webbrowser.open(url)
    except webbrowser.Error as e:
        logger.debug("Cannot open browser: %s", e)
        return False
