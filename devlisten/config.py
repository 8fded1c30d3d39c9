"""
Project configuration for devlisten

Reads devlisten.yml / devlisten.yaml from the current directory or one of its
parents. Keys mirror the command line options; command-line flags win over
the file.
"""

import logging
import os
from pathlib import Path

import yaml

from .output import print_error

logger = logging.getLogger("devlisten.config")

CONFIG_FILENAMES = ("devlisten.yml", "devlisten.yaml")

# Search up to 10 levels (prevent infinite loop)
MAX_SEARCH_DEPTH = 10


class ProjectConfig:
    """
    Manages per-project devlisten.yml configuration.

    Schema:
        name: str           # Listener name shown in the banner
        port: int|str       # Preferred port (default: PORT env or 3000)
        host: str           # Hostname to bind ("" or 0.0.0.0 exposes)
        socket: str         # Unix socket name or Windows pipe name
        base_url: str       # Path appended to every URL (default: /)
        public: bool        # Listen on all interfaces
        https: bool|dict    # true for self-signed, or cert/key/pfx options
        tunnel: bool        # Open a cloudflared quick tunnel
        open: bool          # Open the browser
        clipboard: bool     # Copy the URL to the clipboard
        qr: bool            # Show a QR code of the network URL
        public_url: str     # URL shown instead of the network URL
    """

    DEFAULT_CONFIG = {
        "name": None,
        "port": None,
        "host": None,
        "socket": None,
        "base_url": None,
        "public": None,
        "https": None,
        "tunnel": None,
        "open": None,
        "clipboard": None,
        "qr": None,
        "public_url": None,
    }

    def __init__(self, start_path: Path | None = None):
        self.start_path = Path(start_path or os.getcwd()).resolve()
        self.config_file: Path | None = None
        self.config: dict = self.DEFAULT_CONFIG.copy()
        self._find_and_load()

    def _find_and_load(self):
        """Search for devlisten.yml in current and parent directories"""
        current = self.start_path

        for _ in range(MAX_SEARCH_DEPTH):
            for filename in CONFIG_FILENAMES:
                config_path = current / filename
                if config_path.exists():
                    self.config_file = config_path
                    self._load_yaml()
                    return

            parent = current.parent
            if parent == current:
                break
            current = parent

    def _load_yaml(self):
        """Load config from YAML file"""
        try:
            with open(self.config_file, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            print_error(f"Failed to load {self.config_file}: {e}")
            return

        if not isinstance(data, dict):
            print_error(f"Failed to load {self.config_file}: expected a mapping")
            return

        unknown = sorted(set(data) - set(self.DEFAULT_CONFIG))
        if unknown:
            logger.warning("Ignoring unknown keys in %s: %s", self.config_file, ", ".join(unknown))

        self.config = {**self.DEFAULT_CONFIG, **{k: v for k, v in data.items() if k in self.DEFAULT_CONFIG}}

    def options(self) -> dict:
        """Keys that are set, named as listen() options"""
        renamed = {"host": "hostname"}
        return {renamed.get(key, key): value for key, value in self.config.items() if value is not None}

    @property
    def name(self) -> str | None:
        return self.config.get("name")

    @property
    def port(self):
        return self.config.get("port")

    @property
    def https(self):
        return self.config.get("https")

    def exists(self) -> bool:
        """Check if a project config file was found"""
        return self.config_file is not None
