"""UDP listener feeding raw datagrams into the ingest queue."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from f1relay.errors import TransportBindError

if TYPE_CHECKING:
    from f1relay.telemetry.stats import PipelineStats

logger = logging.getLogger(__name__)


class _UdpProtocol(asyncio.DatagramProtocol):
    def __init__(self, queue: asyncio.Queue[bytes], stats: PipelineStats | None) -> None:
        self._queue = queue
        self._stats = stats

    def datagram_received(self, data: bytes, addr: Any) -> None:
        if self._stats is not None:
            self._stats.received += 1
        try:
            self._queue.put_nowait(data)
        except asyncio.QueueFull:
            # Newest datagram loses; the loop is behind and older frames are
            # already queued.
            if self._stats is not None:
                self._stats.dropped_queue_full += 1

    def error_received(self, exc: Exception) -> None:
        if self._stats is not None:
            self._stats.transport_errors += 1
        logger.warning("UDP receive error (continuing): %s", exc)


class UdpListener:
    """Bind a UDP socket and push every datagram into *queue*.

    A full queue drops the incoming datagram.  Receive errors are logged and
    counted; the socket stays open.
    """

    def __init__(
        self,
        host: str,
        port: int,
        queue: asyncio.Queue[bytes],
        stats: PipelineStats | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._queue = queue
        self._stats = stats
        self._transport: asyncio.DatagramTransport | None = None

    async def start(self) -> None:
        """Bind the socket.

        Raises:
            TransportBindError: If the address cannot be bound.
        """
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _UdpProtocol(self._queue, self._stats),
                local_addr=(self._host, self._port),
            )
        except OSError as exc:
            raise TransportBindError(
                f"Cannot listen for UDP on {self._host}:{self._port}: {exc}",
                host=self._host,
                port=self._port,
            ) from exc
        self._transport = transport
        logger.info("Listening for UDP telemetry on %s:%d", *self.local_address)

    def stop(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            logger.info("UDP listener stopped")

    @property
    def local_address(self) -> tuple[str, int]:
        """The bound ``(host, port)``; the configured one before :meth:`start`."""
        if self._transport is None:
            return self._host, self._port
        sockname = self._transport.get_extra_info("sockname")
        return sockname[0], sockname[1]

    @property
    def running(self) -> bool:
        return self._transport is not None
