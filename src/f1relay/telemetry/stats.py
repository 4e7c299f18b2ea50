"""Runtime counters for the ingest path and a periodic log reporter."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from f1relay.telemetry.hub import BroadcastHub

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PipelineStats:
    """Counters for every outcome of a received datagram."""

    # UDP layer
    received: int = 0
    dropped_queue_full: int = 0
    transport_errors: int = 0

    # Pipeline outcomes
    dropped_short_header: int = 0
    ignored_packet_kind: int = 0
    sampled_out: int = 0
    dropped_truncated: int = 0
    decoded: int = 0
    broadcast_errors: int = 0

    by_packet_id: dict[int, int] = field(default_factory=dict)
    last_session_uid: int | None = None
    last_frame: int | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class StatsReporter:
    """Log a one-line summary of :class:`PipelineStats` every *interval* seconds."""

    def __init__(
        self,
        stats: PipelineStats,
        interval: float,
        *,
        hub: BroadcastHub | None = None,
        queue: asyncio.Queue[bytes] | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self._stats = stats
        self._interval = interval
        self._hub = hub
        self._queue = queue
        self._stop = asyncio.Event()
        self._last_ts = time.monotonic()
        self._last_received = 0
        self._last_decoded = 0

    def stop(self) -> None:
        self._stop.set()

    def summary(self) -> str:
        """Build the summary line and advance the rate baselines."""
        now = time.monotonic()
        dt = max(1e-6, now - self._last_ts)
        s = self._stats
        rx_rate = (s.received - self._last_received) / dt
        out_rate = (s.decoded - self._last_decoded) / dt
        self._last_ts = now
        self._last_received = s.received
        self._last_decoded = s.decoded

        parts = [
            f"rx={s.received} ({rx_rate:.1f}/s)",
            f"out={s.decoded} ({out_rate:.1f}/s)",
            f"sampled_out={s.sampled_out}",
            f"short={s.dropped_short_header}",
            f"truncated={s.dropped_truncated}",
            f"other_kind={s.ignored_packet_kind}",
            f"queue_drop={s.dropped_queue_full}",
        ]
        if self._queue is not None:
            parts.append(f"queue={self._queue.qsize()}/{self._queue.maxsize}")
        if self._hub is not None:
            parts.append(f"subscribers={self._hub.subscriber_count}")
            parts.append(f"evicted={self._hub.evicted_count}")
        return " ".join(parts)

    async def run(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except TimeoutError:
                logger.info(self.summary())
