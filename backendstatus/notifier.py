"""
Console Notifier — timestamped, colored console output.

Every line the server prints goes through here: startup and shutdown
messages, dropped datagrams, protocol violations and, at DEBUG level,
a trace of each applied update.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone

from backendstatus.models import KIND_STARTED, Update

# ANSI color codes for terminal styling
_RESET = "\033[0m"
_BOLD = "\033[1m"
_DIM = "\033[2m"
_RED = "\033[91m"
_GREEN = "\033[92m"
_YELLOW = "\033[93m"
_BLUE = "\033[94m"
_MAGENTA = "\033[95m"
_CYAN = "\033[96m"
_WHITE = "\033[97m"
_GRAY = "\033[90m"

_debug = False


def set_level(log_level: str) -> None:
    """Enable per-update traces when log_level is DEBUG."""
    global _debug
    _debug = log_level.upper() == "DEBUG"


def _ts() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _line(color: str, tag: str, message: str) -> None:
    print(f"  {_GRAY}[{_ts()}]{_RESET} {color}{tag}{_RESET} {message}")
    sys.stdout.flush()


def print_banner() -> None:
    """Print the startup banner."""
    banner = f"""
{_BOLD}{_CYAN}+------------------------------------------------------------------+
|          Backend Status Server                                   |
|          UDP in * JSON out                                       |
+------------------------------------------------------------------+{_RESET}
"""
    print(banner)


def print_listening(address: str) -> None:
    print(f"  {_BOLD}{_BLUE}> Listening:{_RESET} {_WHITE}udp://{address}{_RESET}")


def print_serving(address: str) -> None:
    print(
        f"  {_BOLD}{_BLUE}> Serving:{_RESET} {_WHITE}http://{address}/world.json{_RESET}"
    )


def print_running() -> None:
    print(
        f"\n  {_BOLD}{_GREEN}Okay, we're up and running.{_RESET}"
        f"  {_DIM}(Press Ctrl+C to stop){_RESET}\n"
    )


def print_decode_error(sender: str, message: str) -> None:
    """A datagram was dropped because it could not be decoded."""
    _line(_YELLOW, "DROPPED", f"{_BOLD}{sender}:{_RESET} {message}")


def print_violation(sender: str, update: Update) -> None:
    """A started update reused an id that was still open."""
    _line(
        _RED,
        "VIOLATION",
        f"{_BOLD}{sender}:{_RESET} duplicate id {update.request_id} "
        f"used on backend {update.backend}, discarding both",
    )


def print_unknown_id(sender: str, update: Update) -> None:
    _line(
        _RED,
        "ERROR",
        f"{_BOLD}{sender}:{_RESET} request id {update.request_id} "
        f"unknown on backend {update.backend}",
    )


def print_unknown_kind(sender: str, update: Update) -> None:
    _line(
        _MAGENTA,
        "ERROR",
        f"{_BOLD}{sender}:{_RESET} unknown update type: C = {update.kind}",
    )


def print_update(sender: str, update: Update) -> None:
    """Trace an applied update (DEBUG only)."""
    if not _debug:
        return
    if update.kind == KIND_STARTED:
        detail = f"uri={update.uri}"
    else:
        detail = f"code={update.status} time={update.elapsed:f}"
    print(
        f"  {_DIM}[{_ts()}] {update.backend} addr={sender} "
        f"id={update.request_id} {detail}{_RESET}"
    )


def print_error(source: str, message: str) -> None:
    """Print an error message."""
    _line(_RED, "ERROR", f"{_BOLD}{source}:{_RESET} {message}")


def print_fatal(message: str) -> None:
    print(f"\n  {_BOLD}{_RED}FATAL{_RESET} {message}\n", file=sys.stderr)


def print_shutdown() -> None:
    """Print shutdown message."""
    print(f"\n{_BOLD}{_CYAN}Server stopped. Goodbye!{_RESET}\n")
