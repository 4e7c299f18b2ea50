"""Relay session lifecycle.

Wires the listener, pipeline, hub and (optionally) the WebSocket server
together and guarantees orderly teardown:

    hub → websocket server → UDP listener → pipeline task → yield → cleanup

Usage::

    async with relay_session(settings) as session:
        await session.wait_closed()
    # listener, pipeline, server and hub are all stopped
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from f1relay.telemetry.hub import BroadcastHub
from f1relay.telemetry.listener import UdpListener
from f1relay.telemetry.pipeline import TelemetryPipeline
from f1relay.telemetry.sampler import FrameSampler
from f1relay.telemetry.server import SubscriptionServer, encode_record
from f1relay.telemetry.stats import PipelineStats, StatsReporter

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from f1relay.models.config import RelaySettings

logger = logging.getLogger(__name__)


@dataclass
class RelaySession:
    """Running relay components exposed to callers."""

    hub: BroadcastHub
    pipeline: TelemetryPipeline
    listener: UdpListener
    server: SubscriptionServer | None
    stats: PipelineStats
    _stopped: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @property
    def ws_address(self) -> tuple[str, int]:
        """Bound address of the WebSocket server.

        Raises:
            RuntimeError: If the session was started without one.
        """
        if self.server is None:
            raise RuntimeError("Relay session has no WebSocket server")
        return self.server.local_address

    def request_stop(self) -> None:
        """Ask :meth:`wait_closed` to return (safe from signal handlers)."""
        self._stopped.set()

    async def wait_closed(self) -> None:
        await self._stopped.wait()


@asynccontextmanager
async def relay_session(
    settings: RelaySettings,
    *,
    hub: BroadcastHub | None = None,
    websocket: bool = True,
) -> AsyncIterator[RelaySession]:
    """Start the relay described by *settings* and tear it down on exit.

    Pass *hub* to supply a custom hub (e.g. with a different encoder);
    ``websocket=False`` runs ingest only, with subscribers registered on the
    hub directly by the caller.

    Raises:
        TransportBindError: If the UDP or WebSocket port cannot be bound.
    """
    if hub is None:
        hub = BroadcastHub(send_timeout=settings.send_timeout, encode=encode_record)
    stats = PipelineStats()
    queue: asyncio.Queue[bytes] = asyncio.Queue(maxsize=settings.queue_size)
    sampler = FrameSampler(
        settings.sample_every_n_frames,
        reset_on_new_session=settings.reset_on_new_session,
    )
    pipeline = TelemetryPipeline(hub, sampler, stats)
    listener = UdpListener(settings.udp_host, settings.udp_port, queue, stats)
    server: SubscriptionServer | None = None
    reporter: StatsReporter | None = None
    tasks: list[asyncio.Task[None]] = []

    try:
        if websocket:
            server = SubscriptionServer(
                hub,
                host=settings.ws_host,
                port=settings.ws_port,
                path=settings.ws_path,
            )
            await server.start()
        await listener.start()

        tasks.append(asyncio.create_task(pipeline.run(queue), name="telemetry-pipeline"))
        if settings.stats_interval > 0:
            reporter = StatsReporter(stats, settings.stats_interval, hub=hub, queue=queue)
            tasks.append(asyncio.create_task(reporter.run(), name="stats-reporter"))

        yield RelaySession(
            hub=hub,
            pipeline=pipeline,
            listener=listener,
            server=server,
            stats=stats,
        )
    finally:
        # Stop intake first so the pipeline finishes its current broadcast,
        # then release subscribers.
        listener.stop()
        pipeline.stop()
        if reporter is not None:
            reporter.stop()
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=2.0)
            for task in pending:
                task.cancel()
            for task in pending:
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        await hub.close()
        if server is not None:
            await server.stop()
        logger.info("Relay stopped")
