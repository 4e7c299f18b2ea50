"""``f1relay decode``: inspect a captured datagram."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from f1relay.cli._options import global_options
from f1relay.telemetry.decoder import decode_header, decode_telemetry
from f1relay.telemetry.layout import CAR_TELEMETRY_SIZE, HEADER_SIZE, PID_CAR_TELEMETRY, car_offset

if TYPE_CHECKING:
    from f1relay.cli.main import AppContext


@click.command("decode")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--car",
    "car_index",
    type=click.IntRange(min=0),
    default=None,
    help="Car index to decode (default: the header's player car)",
)
@global_options
def decode_cmd(app_ctx: AppContext, path: Path, car_index: int | None) -> None:
    """Decode the header and car telemetry of a raw datagram file.

    PATH holds the bytes of one UDP datagram exactly as received.  Packets
    other than car telemetry (id 6) show the header only.
    """
    formatter = app_ctx.formatter
    raw = path.read_bytes()

    header = decode_header(raw)
    if header is None:
        raise click.ClickException(
            f"{path} is {len(raw)} bytes; a packet header needs {HEADER_SIZE}."
        )

    result: dict[str, Any] = {"size": len(raw), "header": header, "telemetry": None}
    note: str | None = None

    if header.packet_id != PID_CAR_TELEMETRY:
        note = f"Packet id {header.packet_id} is not car telemetry ({PID_CAR_TELEMETRY})."
    else:
        index = header.player_car_index if car_index is None else car_index
        offset = car_offset(index)
        record = decode_telemetry(raw, offset)
        if record is None:
            note = (
                f"Packet is truncated: car {index} needs {offset + CAR_TELEMETRY_SIZE} bytes,"
                f" got {len(raw)}."
            )
        else:
            result["car_index"] = index
            result["telemetry"] = record

    if note is not None:
        result["note"] = note

    if formatter.format == "json":
        formatter.output(result, command="decode")
        return

    formatter.rich.packet_header(header)
    if result["telemetry"] is not None:
        formatter.rich.car_telemetry(result["telemetry"], title=f"Car {result['car_index']} Telemetry")
    if note is not None:
        formatter.rich.info(f"[yellow]{note}[/yellow]")
