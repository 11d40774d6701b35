"""
Configuration loader.

Settings come from an optional YAML file (config.yaml next to the
project root by default) and are then overridden by command-line flags.
Falls back to built-in defaults if the config file is missing.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional, Tuple

import yaml

from backendstatus.models import ServerSettings

# Default path: config.yaml next to the project root
_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"

_LOG_LEVELS = ("INFO", "DEBUG")


class ConfigError(ValueError):
    """Raised for an unusable configuration value."""


def parse_address(address: str) -> Tuple[str, int]:
    """
    Split an "ip:port" string into host and port.

    IPv6 hosts are written in brackets ("[::1]:9463"). An empty host
    (":9463") means all interfaces.
    """
    host, sep, port_str = address.rpartition(":")
    if not sep:
        raise ConfigError(f"address {address!r} is not in ip:port form")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ConfigError(f"IPv6 address {address!r} must be bracketed")

    try:
        port = int(port_str)
    except ValueError:
        raise ConfigError(f"invalid port in address {address!r}") from None
    if not 0 <= port <= 65535:
        raise ConfigError(f"port out of range in address {address!r}")

    return host or "0.0.0.0", port


def load_config(path: str | Path | None = None) -> ServerSettings:
    """
    Load and parse the YAML configuration file.

    Returns:
        ServerSettings built from the file's "settings" section.
    """
    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH
    defaults = ServerSettings()

    if not config_path.exists():
        if path:
            print(f"⚠  Config file not found at {config_path}, using defaults.")
        return defaults

    with open(config_path, "r") as fh:
        try:
            raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    raw_settings = raw.get("settings") or {}
    settings = ServerSettings(
        listen=str(raw_settings.get("listen", defaults.listen)),
        serve=str(raw_settings.get("serve", defaults.serve)),
        log_level=str(raw_settings.get("log_level", defaults.log_level)).upper(),
    )
    validate(settings)
    return settings


def validate(settings: ServerSettings) -> None:
    """Check a settings object, raising ConfigError on the first problem."""
    parse_address(settings.listen)
    parse_address(settings.serve)
    if settings.log_level not in _LOG_LEVELS:
        raise ConfigError(
            f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {settings.log_level!r}"
        )


def parse_args(argv: Optional[List[str]] = None) -> ServerSettings:
    """
    Build settings from the command line.

    Flags override whatever the config file says.
    """
    parser = argparse.ArgumentParser(
        prog="backend-status-server",
        description="Collect backend status datagrams and serve them as JSON.",
    )
    parser.add_argument("--listen", help="IP:port to listen for traffic on")
    parser.add_argument("--serve", help="IP:port to serve the JSON object on")
    parser.add_argument("--config", help="path to a YAML config file")
    parser.add_argument(
        "--debug", action="store_true", help="trace every applied update"
    )
    args = parser.parse_args(argv)

    settings = load_config(args.config)
    if args.listen:
        settings.listen = args.listen
    if args.serve:
        settings.serve = args.serve
    if args.debug:
        settings.log_level = "DEBUG"
    validate(settings)
    return settings
