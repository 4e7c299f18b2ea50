"""Tests for TelemetryPipeline datagram handling."""

from __future__ import annotations

import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from f1relay.telemetry.hub import BroadcastHub
from f1relay.telemetry.pipeline import TelemetryPipeline
from f1relay.telemetry.sampler import FrameSampler
from tests.telemetry.packets import build_header, build_packet


def _pipeline(every_n: int = 1) -> tuple[TelemetryPipeline, MagicMock]:
    hub = MagicMock(spec=BroadcastHub)
    hub.broadcast = AsyncMock(return_value=1)
    return TelemetryPipeline(hub, FrameSampler(every_n)), hub


class TestProcess:
    def test_decodes_player_record(self) -> None:
        pipeline, _ = _pipeline()
        rec = pipeline.process(build_packet(frame=2, player={"speed": 250, "gear": 6}))
        assert rec is not None
        assert rec.speed == 250
        assert rec.gear == 6
        assert pipeline.stats.decoded == 1
        assert pipeline.stats.last_frame == 2

    def test_selects_block_by_player_index(self) -> None:
        pipeline, _ = _pipeline()
        packet = build_packet(player_car_index=3, num_cars=22, player={"speed": 199})
        rec = pipeline.process(packet)
        assert rec is not None
        assert rec.speed == 199

    @pytest.mark.parametrize("size", [0, 10, 28])
    def test_short_datagram_dropped(self, size: int) -> None:
        pipeline, _ = _pipeline()
        assert pipeline.process(build_packet()[:size]) is None
        assert pipeline.stats.dropped_short_header == 1

    @pytest.mark.parametrize("packet_id", [0, 1, 2, 5, 7, 15])
    def test_other_packet_kinds_ignored(self, packet_id: int) -> None:
        pipeline, _ = _pipeline()
        assert pipeline.process(build_packet(packet_id=packet_id)) is None
        assert pipeline.stats.ignored_packet_kind == 1
        assert pipeline.stats.by_packet_id == {packet_id: 1}

    def test_other_kind_does_not_touch_sampler(self) -> None:
        pipeline, _ = _pipeline(every_n=2)
        assert pipeline.process(build_packet(frame=4, packet_id=2)) is None
        # Frame 4 was never accepted, so a telemetry packet for it passes.
        assert pipeline.process(build_packet(frame=4)) is not None

    def test_sampled_out(self) -> None:
        pipeline, _ = _pipeline(every_n=2)
        assert pipeline.process(build_packet(frame=3)) is None
        assert pipeline.stats.sampled_out == 1

    def test_duplicate_frame_sampled_out(self) -> None:
        pipeline, _ = _pipeline()
        assert pipeline.process(build_packet(frame=8)) is not None
        assert pipeline.process(build_packet(frame=8)) is None
        assert pipeline.stats.sampled_out == 1

    def test_header_only_datagram_truncated(self) -> None:
        pipeline, _ = _pipeline()
        assert pipeline.process(build_header(packet_id=6)) is None
        assert pipeline.stats.dropped_truncated == 1

    @pytest.mark.parametrize("car_index", [0, 1, 5, 21])
    def test_truncated_at_player_index(self, car_index: int) -> None:
        # One byte short of 29 + (car_index + 1) * 60
        packet = build_packet(player_car_index=car_index)[:-1]
        pipeline, _ = _pipeline()
        assert pipeline.process(packet) is None
        assert pipeline.stats.dropped_truncated == 1

    def test_out_of_range_car_index_truncated(self) -> None:
        header = build_header(player_car_index=255, overall_frame_identifier=0)
        packet = header + b"\x00" * (22 * 60)
        pipeline, _ = _pipeline()
        assert pipeline.process(packet) is None
        assert pipeline.stats.dropped_truncated == 1

    def test_garbage_never_raises(self) -> None:
        pipeline, _ = _pipeline()
        for size in (29, 60, 89, 1000):
            pipeline.process(b"\xff" * size)
            pipeline.process(bytes(size))


class TestHandle:
    async def test_broadcasts_decoded_record(self) -> None:
        pipeline, hub = _pipeline()
        rec = await pipeline.handle(build_packet(frame=2))
        hub.broadcast.assert_awaited_once_with(rec)

    async def test_rejected_datagram_not_broadcast(self) -> None:
        pipeline, hub = _pipeline()
        assert await pipeline.handle(b"short") is None
        hub.broadcast.assert_not_awaited()

    async def test_broadcast_error_is_contained(self) -> None:
        pipeline, hub = _pipeline()
        hub.broadcast.side_effect = RuntimeError("boom")
        rec = await pipeline.handle(build_packet(frame=2))
        assert rec is not None
        assert pipeline.stats.broadcast_errors == 1


class TestRun:
    async def test_run_consumes_queue_until_stopped(self) -> None:
        hub = BroadcastHub()
        received: list[object] = []

        class _Sink:
            async def send(self, message: object) -> None:
                received.append(message)

            async def close(self) -> None:
                pass

        await hub.register(_Sink())
        pipeline = TelemetryPipeline(hub, FrameSampler(2))
        queue: asyncio.Queue[bytes] = asyncio.Queue()
        for frame in [0, 1, 2, 2, 3, 4]:
            queue.put_nowait(build_packet(frame=frame, player={"speed": frame}))
        queue.put_nowait(b"junk")

        task = asyncio.create_task(pipeline.run(queue))
        for _ in range(100):
            if queue.empty():
                break
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.01)
        pipeline.stop()
        await asyncio.wait_for(task, timeout=2.0)

        assert [r.speed for r in received] == [0, 2, 4]  # type: ignore[attr-defined]
        assert pipeline.stats.dropped_short_header == 1
        assert pipeline.stats.sampled_out == 3

    async def test_stop_wakes_idle_loop_immediately(self) -> None:
        pipeline, _ = _pipeline()
        queue: asyncio.Queue[bytes] = asyncio.Queue()
        task = asyncio.create_task(pipeline.run(queue))
        await asyncio.sleep(0.01)

        start = time.monotonic()
        pipeline.stop()
        await asyncio.wait_for(task, timeout=1.0)
        assert time.monotonic() - start < 0.1

    async def test_stopped_loop_leaves_queue_untouched(self) -> None:
        pipeline, hub = _pipeline()
        queue: asyncio.Queue[bytes] = asyncio.Queue()
        task = asyncio.create_task(pipeline.run(queue))
        await asyncio.sleep(0.01)
        pipeline.stop()
        await asyncio.wait_for(task, timeout=1.0)

        queue.put_nowait(build_packet(frame=2))
        await asyncio.sleep(0.01)
        assert queue.qsize() == 1
        hub.broadcast.assert_not_awaited()

    async def test_cancel_while_idle(self) -> None:
        pipeline, _ = _pipeline()
        queue: asyncio.Queue[bytes] = asyncio.Queue()
        task = asyncio.create_task(pipeline.run(queue))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        queue.put_nowait(b"x")
        assert queue.get_nowait() == b"x"
