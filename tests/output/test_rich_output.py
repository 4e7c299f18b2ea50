from __future__ import annotations

from dataclasses import replace
from io import StringIO

from rich.console import Console

from f1relay.output.rich_output import RichOutput
from f1relay.telemetry.decoder import CarTelemetry, decode_header
from f1relay.telemetry.stats import PipelineStats
from tests.telemetry.packets import TELEMETRY_DEFAULTS, build_header


def _make_console() -> tuple[Console, StringIO]:
    """Return a ``(Console, buffer)`` pair for capturing Rich output."""
    buf = StringIO()
    console = Console(file=buf, force_terminal=True, width=120)
    return console, buf


def _record(**overrides: object) -> CarTelemetry:
    return replace(CarTelemetry(**TELEMETRY_DEFAULTS), **overrides)


class TestPacketHeader:
    def test_renders_header_fields(self) -> None:
        console, buf = _make_console()
        header = decode_header(build_header(overall_frame_identifier=4242, player_car_index=3))
        assert header is not None

        RichOutput(console).packet_header(header)
        output = buf.getvalue()

        assert "Packet Header" in output
        assert "4242" in output
        assert "id 6" in output

    def test_secondary_player_hidden_when_absent(self) -> None:
        console, buf = _make_console()
        header = decode_header(build_header(secondary_player_car_index=-1))
        assert header is not None
        RichOutput(console).packet_header(header)
        assert "Secondary car" not in buf.getvalue()


class TestCarTelemetry:
    def test_renders_table(self) -> None:
        console, buf = _make_console()
        RichOutput(console).car_telemetry(_record(), title="Car 0 Telemetry")
        output = buf.getvalue()

        assert "Car 0 Telemetry" in output
        assert "287 km/h" in output
        assert "11250" in output
        assert "RL" in output
        assert "FR" in output

    def test_gear_labels(self) -> None:
        buf = StringIO()
        ro = RichOutput(Console(file=buf, width=120))
        ro.telemetry_line(_record(gear=-1))
        ro.telemetry_line(_record(gear=0))
        ro.telemetry_line(_record(gear=3))
        lines = buf.getvalue().splitlines()
        assert "gear R" in lines[0]
        assert "gear N" in lines[1]
        assert "gear 3" in lines[2]

    def test_drs_flag_in_line(self) -> None:
        buf = StringIO()
        ro = RichOutput(Console(file=buf, width=120))
        ro.telemetry_line(_record(drs=1))
        ro.telemetry_line(_record(drs=0))
        lines = buf.getvalue().splitlines()
        assert "DRS" in lines[0]
        assert "DRS" not in lines[1]


class TestRelayStatus:
    def test_relay_started_panel(self) -> None:
        console, buf = _make_console()
        RichOutput(console).relay_started(
            udp_address=("0.0.0.0", 20777),
            ws_address=("0.0.0.0", 8080),
            ws_path="/telemetry",
            sample_every=2,
        )
        output = buf.getvalue()
        assert "20777" in output
        assert "/telemetry" in output
        assert "/healthz" in output

    def test_relay_started_without_websocket(self) -> None:
        console, buf = _make_console()
        RichOutput(console).relay_started(
            udp_address=("127.0.0.1", 20777), ws_address=None, ws_path="/telemetry", sample_every=1
        )
        assert "WebSocket" not in buf.getvalue()

    def test_relay_stats(self) -> None:
        console, buf = _make_console()
        RichOutput(console).relay_stats(PipelineStats(received=123, decoded=45))
        output = buf.getvalue()
        assert "123" in output
        assert "45" in output


class TestMessages:
    def test_error(self) -> None:
        console, buf = _make_console()
        RichOutput(console).error("boom")
        assert "Error:" in buf.getvalue()
        assert "boom" in buf.getvalue()
