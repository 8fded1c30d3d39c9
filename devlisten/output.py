"""
Rich-powered console output for devlisten

Provides the URL banner shown when a listener starts and the status
message helpers used by the command line.
"""

import sys

from rich.console import Console
from rich.text import Text

from .features import generate_qr_code

# Global console instance with force_terminal=None to respect TTY detection
# and legacy_windows=True for better Windows compatibility
console = Console(force_terminal=None, legacy_windows=True, highlight=False)

# Check if we should use ASCII-safe characters (non-TTY or Windows legacy console)
_USE_ASCII = not sys.stdout.isatty()

ARROW = "->" if _USE_ASCII else "➜"

URL_STYLES = {
    "local": ("Local", "green"),
    "tunnel": ("Tunnel", "yellow"),
    "network": ("Network", "magenta"),
}


def print_error(message: str):
    """Print an error message"""
    icon = "x" if _USE_ASCII else "✗"
    console.print(f"[red]{icon}[/red] {message}", style="red")


def print_info(message: str):
    """Print an info message"""
    icon = "i" if _USE_ASCII else "ℹ"
    console.print(f"[blue]{icon}[/blue] {message}")


def url_banner(urls, name: str = "", copied: bool = False, show_qr: bool = True) -> list[Text]:
    """
    Build the lines of the URL banner.

    Args:
        urls: ListenURL entries in display order
        name: Listener name, shown after each label
        copied: Mark the first local URL as copied to the clipboard
        show_qr: Append a QR code of the first non-local URL
    """
    lines: list[Text] = []
    name_suffix = f" ({name})" if name else ""

    first_local = next((u for u in urls if u.type == "local"), None)
    first_public = next((u for u in urls if u.type != "local"), None)

    for url in urls:
        label, style = URL_STYLES[url.type]
        line = Text(f"  {ARROW} {(label + ':').ljust(8)}{name_suffix} ", style=style)
        line.append(url.url, style="bold cyan underline")
        if url is first_local and copied:
            line.append(" [copied to clipboard]", style="dim")
        if url is first_public and show_qr:
            line.append(" [QR code below]", style="dim")
        lines.append(line)

    if first_public is None:
        hint = Text(f"  {ARROW} Network:  use ", style="dim")
        hint.append("--host", style="white")
        hint.append(" to expose", style="dim")
        lines.append(hint)

    if first_public is not None and show_qr:
        lines.append(Text(" "))
        indent = " " * 14
        for qr_line in generate_qr_code(first_public.url).splitlines():
            lines.append(Text(indent + qr_line))

    return lines


def print_url_banner(urls, name: str = "", copied: bool = False, show_qr: bool = True):
    """Print the URL banner"""
    console.print()
    for line in url_banner(urls, name=name, copied=copied, show_qr=show_qr):
        console.print(line)
    console.print()
