from __future__ import annotations

from typing import TYPE_CHECKING

from rich.panel import Panel
from rich.table import Table

if TYPE_CHECKING:
    from rich.console import Console

    from f1relay.telemetry.decoder import CarTelemetry, PacketHeader
    from f1relay.telemetry.stats import PipelineStats

_WHEELS = ("RL", "RR", "FL", "FR")


def _gear_label(gear: int) -> str:
    if gear == -1:
        return "R"
    if gear == 0:
        return "N"
    return str(gear)


def _wheels(values: tuple[float, ...] | tuple[int, ...], fmt: str = "{}") -> str:
    return "  ".join(f"{w} {fmt.format(v)}" for w, v in zip(_WHEELS, values, strict=True))


class RichOutput:
    """Rich-based terminal output helpers for *f1relay*."""

    def __init__(self, console: Console) -> None:
        self._con = console

    # ------------------------------------------------------------------
    # Packet header
    # ------------------------------------------------------------------

    def packet_header(self, hdr: PacketHeader) -> None:
        """Print a table of header fields."""
        table = Table(title="Packet Header")
        table.add_column("Field", style="bold")
        table.add_column("Value")

        table.add_row("Format", str(hdr.packet_format))
        table.add_row(
            "Game",
            f"{hdr.game_year} v{hdr.game_major_version}.{hdr.game_minor_version}",
        )
        table.add_row("Packet", f"id {hdr.packet_id} (v{hdr.packet_version})")
        table.add_row("Session", f"{hdr.session_uid:#018x}")
        table.add_row("Session time", f"{hdr.session_time:.3f}s")
        table.add_row("Frame", f"{hdr.frame_identifier} (overall {hdr.overall_frame_identifier})")
        table.add_row("Player car", str(hdr.player_car_index))
        if hdr.secondary_player_car_index >= 0:
            table.add_row("Secondary car", str(hdr.secondary_player_car_index))

        self._con.print(table)

    # ------------------------------------------------------------------
    # Car telemetry
    # ------------------------------------------------------------------

    def car_telemetry(self, tel: CarTelemetry, *, title: str = "Car Telemetry") -> None:
        """Print a table of one car's telemetry."""
        table = Table(title=title)
        table.add_column("Field", style="bold")
        table.add_column("Value")

        drs = "[green]open[/green]" if tel.drs else "closed"
        table.add_row("Speed", f"{tel.speed} km/h")
        table.add_row("Gear", _gear_label(tel.gear))
        table.add_row("RPM", f"{tel.engine_rpm} ({tel.rev_lights_percent}% lights)")
        table.add_row("Throttle", f"{tel.throttle:.2f}")
        table.add_row("Brake", f"{tel.brake:.2f}")
        table.add_row("Steer", f"{tel.steer:+.2f}")
        table.add_row("Clutch", f"{tel.clutch}%")
        table.add_row("DRS", drs)
        table.add_row("Engine temp", f"{tel.engine_temperature} °C")
        table.add_row("Brake temp", _wheels(tel.brakes_temperature, "{} °C"))
        table.add_row("Tyre surface", _wheels(tel.tyres_surface_temperature, "{} °C"))
        table.add_row("Tyre inner", _wheels(tel.tyres_inner_temperature, "{} °C"))
        table.add_row("Tyre pressure", _wheels(tel.tyres_pressure, "{:.1f} psi"))
        table.add_row("Surface", _wheels(tel.surface_type))

        self._con.print(table)

    def telemetry_line(self, tel: CarTelemetry) -> None:
        """Print a compact one-line summary (for streaming)."""
        self._con.print(
            f"[cyan]{tel.speed:>3} km/h[/cyan]  gear [bold]{_gear_label(tel.gear)}[/bold]"
            f"  rpm {tel.engine_rpm:>5}  thr {tel.throttle:.2f}  brk {tel.brake:.2f}"
            f"  steer {tel.steer:+.2f}" + ("  [green]DRS[/green]" if tel.drs else "")
        )

    # ------------------------------------------------------------------
    # Relay status
    # ------------------------------------------------------------------

    def relay_started(
        self,
        *,
        udp_address: tuple[str, int],
        ws_address: tuple[str, int] | None,
        ws_path: str,
        sample_every: int,
    ) -> None:
        """Print a panel describing the running relay."""
        lines = [
            f"UDP in:     [cyan]{udp_address[0]}:{udp_address[1]}[/cyan]",
        ]
        if ws_address is not None:
            host, port = ws_address
            lines.append(f"WebSocket:  [cyan]ws://{host}:{port}{ws_path}[/cyan]")
            lines.append(f"Health:     [cyan]http://{host}:{port}/healthz[/cyan]")
        lines.append(f"Sampling:   every {sample_every} frame(s)")
        self._con.print(Panel("\n".join(lines), title="f1relay", expand=False))

    def relay_stats(self, stats: PipelineStats) -> None:
        """Print final pipeline counters."""
        table = Table(title="Relay Statistics")
        table.add_column("Counter", style="bold")
        table.add_column("Value", justify="right")

        table.add_row("Datagrams received", str(stats.received))
        table.add_row("Records forwarded", str(stats.decoded))
        table.add_row("Sampled out", str(stats.sampled_out))
        table.add_row("Other packet kinds", str(stats.ignored_packet_kind))
        table.add_row("Too short", str(stats.dropped_short_header))
        table.add_row("Truncated", str(stats.dropped_truncated))
        table.add_row("Queue overflow", str(stats.dropped_queue_full))

        self._con.print(table)

    # ------------------------------------------------------------------
    # Generic messages
    # ------------------------------------------------------------------

    def error(self, message: str) -> None:
        """Print a bold red error line."""
        self._con.print(f"[bold red]Error:[/bold red] {message}")

    def info(self, message: str) -> None:
        """Print an informational message (plain)."""
        self._con.print(message)
