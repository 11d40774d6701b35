"""
Main entry point — the BackendStatusServer orchestrator.

Creates the registry, binds the UDP ingestor and the HTTP publisher on
one asyncio event loop, and handles graceful shutdown on Ctrl+C.

Usage:
    python -m backendstatus --listen 127.0.0.1:9463 --serve 127.0.0.1:9464
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import List, Optional

from aiohttp import web

from backendstatus import notifier
from backendstatus.config import ConfigError, parse_address, parse_args
from backendstatus.ingestor import IngestError, Ingestor, format_address
from backendstatus.models import ServerSettings
from backendstatus.publisher import create_app
from backendstatus.registry import Registry


class BackendStatusServer:
    """
    Top-level orchestrator.

    Owns the registry for the life of the process, along with the UDP
    ingestor that writes to it and the HTTP runner that reads from it.
    """

    def __init__(self, settings: ServerSettings) -> None:
        self.settings = settings
        self.registry = Registry()
        self.ingestor = Ingestor(self.registry, settings)
        self._runner: Optional[web.AppRunner] = None

    async def start(self) -> None:
        """
        Bind both listeners.

        Raises:
            OSError: if either address cannot be bound.
        """
        notifier.set_level(self.settings.log_level)
        notifier.print_banner()

        await self.ingestor.start()

        host, port = parse_address(self.settings.serve)
        self._runner = web.AppRunner(create_app(self.registry))
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        try:
            await site.start()
        except OSError:
            await self.stop()
            raise
        notifier.print_serving(self.http_address)

    @property
    def http_address(self) -> str:
        """The bound HTTP "ip:port", useful when serving on port 0."""
        if self._runner is None or not self._runner.addresses:
            raise RuntimeError("server is not started")
        return format_address(self._runner.addresses[0])

    async def run(self) -> None:
        """
        Start, then wait until ingestion stops.

        Raises:
            IngestError: if the UDP socket fails while running.
        """
        await self.start()
        notifier.print_running()
        try:
            await self.ingestor.wait_closed()
        finally:
            await self.stop()

    def shutdown(self) -> None:
        """Stop ingesting; run() returns once the socket is closed."""
        self.ingestor.close()

    async def stop(self) -> None:
        self.ingestor.close()
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None


def _handle_signals(server: BackendStatusServer, loop: asyncio.AbstractEventLoop) -> None:
    """Register signal handlers for graceful shutdown."""
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, server.shutdown)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass


async def async_main(settings: ServerSettings) -> None:
    """Async entry point."""
    server = BackendStatusServer(settings)
    _handle_signals(server, asyncio.get_running_loop())
    await server.run()
    notifier.print_shutdown()


def main(argv: Optional[List[str]] = None) -> None:
    """Sync entry point."""
    try:
        settings = parse_args(argv)
    except ConfigError as exc:
        notifier.print_fatal(str(exc))
        sys.exit(2)

    try:
        asyncio.run(async_main(settings))
    except OSError as exc:
        notifier.print_fatal(f"Listen failed: {exc}")
        sys.exit(1)
    except IngestError as exc:
        notifier.print_fatal(str(exc))
        sys.exit(1)
    except KeyboardInterrupt:
        notifier.print_shutdown()
        sys.exit(0)


if __name__ == "__main__":
    main()
