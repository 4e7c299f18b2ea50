"""Tests for the ``serve`` and ``listen`` command bodies."""

from __future__ import annotations

import asyncio
import json
import socket
from io import StringIO
from typing import Any

import pytest

from f1relay.cli import serve as serve_mod
from f1relay.cli.main import AppContext
from f1relay.models.config import RelaySettings
from f1relay.output.formatter import OutputFormatter
from f1relay.telemetry.setup import RelaySession
from tests.telemetry.packets import build_packet


def _app_ctx(fmt: str) -> tuple[AppContext, StringIO]:
    buf = StringIO()
    ctx = AppContext(
        output_format=fmt,
        quiet=False,
        verbose=False,
        _formatter=OutputFormatter(stream=buf, force_format=fmt),
    )
    return ctx, buf


def _settings(**overrides: Any) -> RelaySettings:
    values: dict[str, Any] = {
        "udp_host": "127.0.0.1",
        "udp_port": 0,
        "ws_host": "127.0.0.1",
        "ws_port": 0,
        "sample_every_n_frames": 1,
    }
    values.update(overrides)
    return RelaySettings(**values)


def _stop_after(monkeypatch: pytest.MonkeyPatch, delay: float) -> list[RelaySession]:
    """Replace the SIGTERM hook with one that stops the session after *delay*."""
    sessions: list[RelaySession] = []

    def _install(session: RelaySession) -> None:
        sessions.append(session)
        asyncio.get_running_loop().call_later(delay, session.request_stop)

    monkeypatch.setattr(serve_mod, "_install_stop_handler", _install)
    return sessions


class TestServe:
    async def test_json_announces_addresses(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _stop_after(monkeypatch, 0.05)
        app_ctx, buf = _app_ctx("json")

        await serve_mod._cmd_serve(app_ctx, _settings(ws_path="/live"))

        parsed = json.loads(buf.getvalue())
        assert parsed["command"] == "serve"
        assert parsed["data"]["websocket"]["path"] == "/live"
        assert parsed["data"]["websocket"]["port"] != 0
        assert parsed["data"]["udp"]["host"] == "127.0.0.1"
        assert parsed["data"]["sample_every_n_frames"] == 1

    async def test_rich_prints_panel_and_stats(self, monkeypatch: pytest.MonkeyPatch) -> None:
        sessions = _stop_after(monkeypatch, 0.05)
        app_ctx, buf = _app_ctx("rich")

        await serve_mod._cmd_serve(app_ctx, _settings())

        output = buf.getvalue()
        assert "/healthz" in output
        assert "Relay Statistics" in output
        assert sessions[0].hub.closed


class TestListen:
    async def test_prints_json_lines(self, monkeypatch: pytest.MonkeyPatch) -> None:
        sessions: list[RelaySession] = []

        def _install(session: RelaySession) -> None:
            sessions.append(session)

        monkeypatch.setattr(serve_mod, "_install_stop_handler", _install)
        app_ctx, buf = _app_ctx("json")

        async def _drive() -> None:
            while not sessions or sessions[0].hub.subscriber_count == 0:
                await asyncio.sleep(0.01)
            port = sessions[0].listener.local_address[1]
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
                for frame in (1, 2, 2):
                    s.sendto(build_packet(frame=frame, player={"speed": frame}), ("127.0.0.1", port))
            for _ in range(200):
                if buf.getvalue().count("\n") >= 2:
                    break
                await asyncio.sleep(0.01)
            sessions[0].request_stop()

        await asyncio.wait_for(
            asyncio.gather(serve_mod._cmd_listen(app_ctx, _settings()), _drive()),
            timeout=5.0,
        )

        lines = buf.getvalue().splitlines()
        assert [json.loads(line)["speed"] for line in lines] == [1, 2]


class TestOutputSubscriber:
    async def test_quiet_writes_nothing(self) -> None:
        app_ctx, buf = _app_ctx("quiet")
        from f1relay.telemetry.decoder import CarTelemetry
        from tests.telemetry.packets import TELEMETRY_DEFAULTS

        sub = serve_mod._OutputSubscriber(app_ctx.formatter)
        await sub.send(CarTelemetry(**TELEMETRY_DEFAULTS))
        await sub.close()
        assert buf.getvalue() == ""
