"""Ingest loop: datagram -> header -> sampler -> telemetry record -> hub.

Every rejection path is a plain ``return None``; malformed or unwanted
datagrams are expected noise on a UDP link and never raise.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from f1relay.telemetry.decoder import CarTelemetry, decode_header, decode_telemetry
from f1relay.telemetry.layout import (
    CAR_TELEMETRY_SIZE,
    HEADER_SIZE,
    PID_CAR_TELEMETRY,
    car_offset,
)
from f1relay.telemetry.stats import PipelineStats

if TYPE_CHECKING:
    from f1relay.telemetry.hub import BroadcastHub
    from f1relay.telemetry.sampler import FrameSampler

logger = logging.getLogger(__name__)


class TelemetryPipeline:
    """Turns raw datagrams into broadcast car telemetry records.

    Parameters:
        hub: Destination for decoded records.
        sampler: Dedup / down-sampling gate; owned by this pipeline.
        stats: Shared counters (a fresh instance if omitted).
    """

    def __init__(
        self,
        hub: BroadcastHub,
        sampler: FrameSampler,
        stats: PipelineStats | None = None,
    ) -> None:
        self._hub = hub
        self._sampler = sampler
        self.stats = stats if stats is not None else PipelineStats()
        self._stop = asyncio.Event()

    def process(self, datagram: bytes) -> CarTelemetry | None:
        """Run one datagram through the decode/sample steps.

        Returns the player's car telemetry record when the datagram should be
        broadcast, otherwise ``None``.
        """
        stats = self.stats
        if len(datagram) < HEADER_SIZE:
            stats.dropped_short_header += 1
            logger.debug("Dropping %d-byte datagram (shorter than header)", len(datagram))
            return None

        header = decode_header(datagram)
        if header is None:  # pragma: no cover - length checked above
            stats.dropped_short_header += 1
            return None

        pid = header.packet_id
        stats.by_packet_id[pid] = stats.by_packet_id.get(pid, 0) + 1
        if pid != PID_CAR_TELEMETRY:
            stats.ignored_packet_kind += 1
            return None

        if not self._sampler.should_accept(header.overall_frame_identifier, header.session_uid):
            stats.sampled_out += 1
            return None

        offset = car_offset(header.player_car_index)
        if len(datagram) < offset + CAR_TELEMETRY_SIZE:
            stats.dropped_truncated += 1
            logger.debug(
                "Dropping truncated telemetry packet: %d bytes, car index %d needs %d",
                len(datagram),
                header.player_car_index,
                offset + CAR_TELEMETRY_SIZE,
            )
            return None

        record = decode_telemetry(datagram, offset)
        if record is None:  # pragma: no cover - length checked above
            stats.dropped_truncated += 1
            return None

        stats.decoded += 1
        stats.last_session_uid = header.session_uid
        stats.last_frame = header.overall_frame_identifier
        return record

    async def handle(self, datagram: bytes) -> CarTelemetry | None:
        """Process *datagram* and broadcast the record if one was produced."""
        record = self.process(datagram)
        if record is None:
            return None
        try:
            await self._hub.broadcast(record)
        except Exception:
            self.stats.broadcast_errors += 1
            logger.warning("Broadcast failed", exc_info=True)
        return record

    def stop(self) -> None:
        self._stop.set()

    async def run(self, queue: asyncio.Queue[bytes]) -> None:
        """Consume datagrams from *queue* until :meth:`stop` is called."""
        logger.info("Telemetry pipeline running (sample every %d frames)", self._sampler.every_n)
        stopped = asyncio.create_task(self._stop.wait())
        try:
            while not self._stop.is_set():
                getter = asyncio.create_task(queue.get())
                try:
                    done, _ = await asyncio.wait(
                        {getter, stopped}, return_when=asyncio.FIRST_COMPLETED
                    )
                except asyncio.CancelledError:
                    getter.cancel()
                    raise
                if getter not in done:
                    getter.cancel()
                    break
                datagram = getter.result()
                try:
                    await self.handle(datagram)
                except Exception:
                    logger.exception("Unexpected error handling datagram (%d bytes)", len(datagram))
        finally:
            stopped.cancel()
        logger.info("Telemetry pipeline stopped")
