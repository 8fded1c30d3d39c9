"""
Listen option resolution.

Turns loose, possibly conflicting options into one fully specified
ResolvedConfig. Precedence, field by field:

    caller input > environment (PORT, HOST, NODE_ENV) > exposure policy > defaults

Exposure is never upgraded silently: a conflict between ``public`` and the
hostname is repaired towards the private side and logged as a warning.
"""

import logging
import os
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields

from .addresses import is_anyhost, is_localhost
from .certificates import HTTPSOptions
from .ports import DEFAULT_PORT, PortRequest

logger = logging.getLogger("devlisten.options")


@dataclass
class ListenOptions:
    """Caller supplied options. None means "not set"."""

    name: str | None = None
    port: "int | str | PortRequest | None" = None
    hostname: str | None = None
    public: bool | None = None
    https: "bool | HTTPSOptions | Mapping | None" = None
    socket: str | None = None
    base_url: str | None = None
    public_url: str | None = None
    tunnel: bool | None = None
    clipboard: bool | None = None
    open: bool | None = None
    show_url: bool | None = None
    qr: bool | None = None
    is_test: bool | None = None
    is_prod: bool | None = None
    auto_close: bool | None = None
    log_level: str | None = None

    @classmethod
    def from_kwargs(cls, **kwargs) -> "ListenOptions":
        """Build options from keyword arguments, rejecting unknown names"""
        known = {f.name for f in fields(cls)}
        unknown = set(kwargs) - known
        if unknown:
            raise TypeError(f"Unknown listen option(s): {', '.join(sorted(unknown))}")
        return cls(**kwargs)


@dataclass(frozen=True)
class ResolvedConfig:
    """Fully defaulted options with the effective exposure decision"""

    name: str
    port: "int | str | PortRequest"
    hostname: str
    public: bool
    https: "bool | HTTPSOptions"
    socket: str | None
    base_url: str
    public_url: str | None
    tunnel: bool
    clipboard: bool
    open: bool
    show_url: bool
    qr: bool
    is_test: bool
    is_prod: bool
    auto_close: bool
    log_level: str | None = None

    @property
    def scheme(self) -> str:
        return "https" if self.https else "http"


def normalize_https(value) -> "bool | HTTPSOptions":
    """Collapse the https option into False or HTTPSOptions"""
    if not value:
        return False
    if isinstance(value, HTTPSOptions):
        return value
    if isinstance(value, Mapping):
        data = dict(value)
        if "validityDays" in data:
            data["validity_days"] = data.pop("validityDays")
        return HTTPSOptions(**data)
    return HTTPSOptions()


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def host_flag_passed(argv: Sequence[str]) -> bool:
    """Check if the invoking command line asked to expose the host"""
    return any(arg == "--host" or arg.startswith("--host=") for arg in argv[1:])


def resolve_config(
    options: ListenOptions | None = None,
    env: Mapping[str, str] | None = None,
    argv: Sequence[str] | None = None,
) -> ResolvedConfig:
    """
    Resolve listen options into a ResolvedConfig.

    Args:
        options: Caller input (default: nothing set)
        env: Environment to read PORT/HOST/NODE_ENV from (default: os.environ)
        argv: Invoking command line (default: sys.argv)

    Returns:
        ResolvedConfig where ``public`` never contradicts the hostname class
    """
    options = options or ListenOptions()
    env = os.environ if env is None else env
    argv = sys.argv if argv is None else argv

    node_env = env.get("NODE_ENV", "")
    is_prod = _first(options.is_prod, node_env == "production")
    is_test = _first(options.is_test, node_env == "test")

    hostname = _first(options.hostname, env.get("HOST"))
    port = _first(options.port, env.get("PORT") or None, DEFAULT_PORT)

    if options.public is not None:
        public = options.public
    elif is_localhost(hostname):
        public = False
    elif is_anyhost(hostname):
        public = True
    elif host_flag_passed(argv):
        public = True
    else:
        public = is_prod

    if hostname is None:
        hostname = "" if public else "localhost"

    if public and is_localhost(hostname):
        logger.warning("Trying to listen on private host %r with public option enabled.", hostname)
        public = False
    elif not public and is_anyhost(hostname):
        logger.warning('Trying to listen on public host %r with public option disabled. Using "localhost".', hostname)
        public = False
        hostname = "localhost"

    show_url = _first(options.show_url, True)
    open_browser = _first(options.open, False)
    clipboard = _first(options.clipboard, False)

    if is_test:
        show_url = False
    if is_prod or is_test:
        open_browser = False
        clipboard = False

    return ResolvedConfig(
        name=_first(options.name, ""),
        port=port,
        hostname=hostname,
        public=bool(public),
        https=normalize_https(options.https),
        socket=options.socket or None,
        base_url=_first(options.base_url, "/"),
        public_url=options.public_url or None,
        tunnel=bool(options.tunnel),
        clipboard=clipboard,
        open=open_browser,
        show_url=show_url,
        qr=_first(options.qr, True),
        is_test=is_test,
        is_prod=is_prod,
        auto_close=_first(options.auto_close, True),
        log_level=options.log_level,
    )
