"""Main entry point for devlisten CLI"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from uvicorn.importer import ImportFromStringError, import_from_string

from . import __version__
from .certificates import HTTPSOptions
from .config import ProjectConfig
from .errors import ListenError
from .listen import listen
from .output import print_error, print_info
from .structured_logging import setup_logging

logger = logging.getLogger("devlisten.main")

LOG_LEVELS = ("critical", "error", "warning", "info", "debug", "trace")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devlisten",
        description="devlisten - Serve an ASGI app on a ready-to-use development listener",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Example: devlisten main:app --https --open",
    )

    parser.add_argument("--version", action="version", version=f"devlisten {__version__}")
    parser.add_argument("app", help="Application import string (module:attribute)")

    parser.add_argument("--port", "-p", help="Preferred port (default: PORT env or 3000)")
    parser.add_argument(
        "--host",
        nargs="?",
        const="",
        dest="hostname",
        help="Hostname to bind; without a value listens on all interfaces",
    )
    parser.add_argument("--cwd", help="Directory to import the app and find devlisten.yml from (default: current)")
    parser.add_argument("--socket", help="Listen on a unix socket (or Windows pipe) instead of TCP")
    parser.add_argument("--base-url", help="Path appended to every URL (default: /)")
    parser.add_argument("--name", help="Name shown in the URL banner")
    parser.add_argument(
        "--public",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Listen on all interfaces (default: only in production)",
    )
    parser.add_argument("--public-url", help="URL shown instead of the network URL")

    https = parser.add_argument_group("https")
    https.add_argument("--https", action="store_true", default=None, help="Serve over HTTPS (self-signed if no cert)")
    https.add_argument("--https-cert", help="PEM certificate file")
    https.add_argument("--https-key", help="PEM private key file")
    https.add_argument("--https-pfx", help="PKCS#12 keystore file")
    https.add_argument("--https-passphrase", help="Passphrase of the keystore or key")
    https.add_argument("--https-validity-days", type=int, help="Validity of a self-signed certificate")
    https.add_argument("--https-domains", help="Comma separated names for a self-signed certificate")

    parser.add_argument("--tunnel", action="store_true", default=None, help="Open a cloudflared quick tunnel")
    parser.add_argument("--open", action="store_true", default=None, help="Open the URL in a browser")
    parser.add_argument("--clipboard", action="store_true", default=None, help="Copy the URL to the clipboard")
    parser.add_argument(
        "--qr",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Show a QR code of the network URL (default: on)",
    )
    parser.add_argument("--log-level", choices=LOG_LEVELS, help="Log level (default: DEVLISTEN_LOG_LEVEL or info)")
    return parser


def parse_https_args(args: argparse.Namespace) -> "HTTPSOptions | bool | None":
    """
    Collect the --https-* flags.

    Any certificate flag implies --https. Returns None when nothing HTTPS
    related was passed so the project file can decide.
    """
    domains = [d.strip() for d in (args.https_domains or "").split(",") if d.strip()]
    material = {
        "cert": args.https_cert,
        "key": args.https_key,
        "pfx": args.https_pfx,
        "passphrase": args.https_passphrase,
        "validity_days": args.https_validity_days,
    }
    if any(value is not None for value in material.values()) or domains:
        return HTTPSOptions(domains=domains, **material)
    return args.https


def collect_options(args: argparse.Namespace, project: ProjectConfig) -> dict:
    """Merge project file options with command-line flags (flags win)"""
    options = project.options()
    flags = {
        "name": args.name,
        "port": args.port,
        "hostname": args.hostname,
        "socket": args.socket,
        "base_url": args.base_url,
        "public": args.public,
        "public_url": args.public_url,
        "https": parse_https_args(args),
        "tunnel": args.tunnel,
        "open": args.open,
        "clipboard": args.clipboard,
        "qr": args.qr,
        "log_level": args.log_level,
    }
    options.update({key: value for key, value in flags.items() if value is not None})
    return options


async def serve(app, options: dict) -> None:
    """Listen until SIGINT/SIGTERM, then close"""
    listener = await listen(app, **options)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Windows: Ctrl+C arrives as KeyboardInterrupt instead
            pass

    stop_task = asyncio.create_task(stop.wait())
    try:
        await asyncio.wait([stop_task, listener.endpoint.task], return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop_task.cancel()
        print_info("Shutting down...")
        await listener.close()


def load_app(import_string: str, cwd: Path):
    """Import module:attribute with cwd first on sys.path, like uvicorn --app-dir"""
    app_dir = str(cwd)
    if app_dir not in sys.path:
        sys.path.insert(0, app_dir)
    return import_from_string(import_string)


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level.upper() if args.log_level and args.log_level != "trace" else None)

    cwd = Path(args.cwd).resolve() if args.cwd else Path.cwd()
    if not cwd.is_dir():
        print_error(f"Working directory does not exist: {cwd}")
        sys.exit(1)

    project = ProjectConfig(cwd)
    if project.exists():
        logger.debug("Using project config %s", project.config_file)

    try:
        app = load_app(args.app, cwd)
    except ImportFromStringError as e:
        print_error(str(e))
        sys.exit(1)

    try:
        asyncio.run(serve(app, collect_options(args, project)))
    except ListenError as e:
        print_error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
