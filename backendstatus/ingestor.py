"""
UDP Ingestor — receives status datagrams and applies them.

Runs as an asyncio datagram endpoint on the server's event loop. Each
datagram is decoded and applied to the registry in the order the socket
delivers it. Nothing a sender puts in a datagram can stop the listener:
bad payloads, reused ids and unknown finishes are reported and dropped.
Only a socket-level failure ends ingestion, since there is nothing
useful left to listen on.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Tuple

from backendstatus import notifier
from backendstatus.config import parse_address
from backendstatus.decoder import DecodeError, decode_update
from backendstatus.models import MAX_DATAGRAM, ServerSettings
from backendstatus.registry import ApplyResult, Registry


class IngestError(RuntimeError):
    """The UDP socket failed and can no longer be read."""


def format_address(addr: Tuple) -> str:
    """Render a socket address as "ip:port" ("[ip]:port" for IPv6)."""
    host, port = addr[0], addr[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class _UpdateProtocol(asyncio.DatagramProtocol):
    def __init__(self, ingestor: Ingestor) -> None:
        self._ingestor = ingestor

    def datagram_received(self, data: bytes, addr: Tuple) -> None:
        self._ingestor.handle_datagram(data, addr)

    def error_received(self, exc: Exception) -> None:
        self._ingestor._fail(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if exc is not None:
            self._ingestor._fail(exc)
        else:
            self._ingestor._finish()


class Ingestor:
    """
    Owns the UDP endpoint and is the registry's only writer.

    Attributes:
        registry: The registry updates are applied to.
        settings: Server settings (listen address).
        max_datagram: Datagrams larger than this many bytes are dropped.
    """

    def __init__(
        self,
        registry: Registry,
        settings: ServerSettings,
        max_datagram: int = MAX_DATAGRAM,
    ) -> None:
        self.registry = registry
        self.settings = settings
        self.max_datagram = max_datagram

        self._transport: Optional[asyncio.DatagramTransport] = None
        self._closed: Optional[asyncio.Future] = None

    @property
    def address(self) -> str:
        """The bound "ip:port", useful when listening on port 0."""
        if self._transport is None:
            raise RuntimeError("ingestor is not started")
        return format_address(self._transport.get_extra_info("sockname"))

    async def start(self) -> None:
        """
        Bind the UDP socket.

        Raises:
            OSError: if the address cannot be bound.
        """
        host, port = parse_address(self.settings.listen)
        loop = asyncio.get_running_loop()
        self._closed = loop.create_future()
        self._transport, _ = await loop.create_datagram_endpoint(
            lambda: _UpdateProtocol(self),
            local_addr=(host, port),
        )
        notifier.print_listening(self.address)

    async def wait_closed(self) -> None:
        """
        Wait until ingestion stops.

        Returns normally after close(); raises IngestError if the socket
        failed.
        """
        if self._closed is None:
            raise RuntimeError("ingestor is not started")
        await self._closed

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()

    def handle_datagram(self, data: bytes, addr: Tuple) -> Optional[ApplyResult]:
        """
        Decode and apply one datagram.

        Returns the apply outcome, or None if the datagram was dropped
        before reaching the registry.
        """
        sender = format_address(addr)

        if len(data) > self.max_datagram:
            notifier.print_decode_error(
                sender,
                f"datagram of {len(data)} bytes exceeds {self.max_datagram}",
            )
            return None

        try:
            update = decode_update(data)
        except DecodeError as exc:
            notifier.print_decode_error(sender, str(exc))
            return None

        result = self.registry.apply(update, sender)

        if result.accepted:
            notifier.print_update(sender, update)
        elif result is ApplyResult.DUPLICATE:
            notifier.print_violation(sender, update)
        elif result is ApplyResult.UNKNOWN_ID:
            notifier.print_unknown_id(sender, update)
        else:
            notifier.print_unknown_kind(sender, update)

        return result

    def _fail(self, exc: Exception) -> None:
        if self._closed is not None and not self._closed.done():
            self._closed.set_exception(IngestError(f"Error in read: {exc}"))
        self.close()

    def _finish(self) -> None:
        if self._closed is not None and not self._closed.done():
            self._closed.set_result(None)
