"""Binary layouts of the F1 UDP packets consumed by the relay.

Each structure is declared as an ordered list of :class:`LayoutField`
entries.  The layout compiles them into a single little-endian, packed
:class:`struct.Struct` and knows how to regroup the flat tuple returned by
``unpack_from`` into named values, collapsing array fields into tuples.

Sizes are checked against the documented packet sizes at import time so a
typo in a field table fails loudly instead of shifting every offset.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any

# Car telemetry packet kind in the header ``packet_id`` byte.
PID_CAR_TELEMETRY = 6

HEADER_SIZE = 29
CAR_TELEMETRY_SIZE = 60

# Number of per-car blocks the game writes after the header.
MAX_CARS = 22


@dataclass(frozen=True, slots=True)
class LayoutField:
    """One field of a binary layout.

    ``code`` is a :mod:`struct` format character; ``count`` > 1 declares a
    fixed-size array of that element type.
    """

    name: str
    code: str
    count: int = 1

    @property
    def width(self) -> int:
        return struct.calcsize("<" + self.code) * self.count


class BinaryLayout:
    """A packed little-endian structure built from an ordered field list."""

    def __init__(self, name: str, fields: tuple[LayoutField, ...]) -> None:
        self.name = name
        self.fields = fields
        fmt = "<" + "".join(f"{f.count}{f.code}" if f.count > 1 else f.code for f in fields)
        self._struct = struct.Struct(fmt)

    @property
    def size(self) -> int:
        return self._struct.size

    @property
    def format(self) -> str:  # noqa: A003
        return self._struct.format

    def unpack(self, buf: bytes | bytearray | memoryview, offset: int = 0) -> dict[str, Any] | None:
        """Unpack the structure at *offset*.

        Returns ``None`` when fewer than :attr:`size` bytes are available
        from *offset*; never raises for short input.
        """
        if offset < 0 or len(buf) - offset < self.size:
            return None
        flat = self._struct.unpack_from(buf, offset)
        values: dict[str, Any] = {}
        pos = 0
        for f in self.fields:
            if f.count > 1:
                values[f.name] = tuple(flat[pos : pos + f.count])
            else:
                values[f.name] = flat[pos]
            pos += f.count
        return values

    def pack(self, values: dict[str, Any]) -> bytes:
        """Pack *values* (keyed by field name) into bytes."""
        flat: list[Any] = []
        for f in self.fields:
            v = values[f.name]
            if f.count > 1:
                if len(v) != f.count:
                    raise ValueError(f"{self.name}.{f.name} expects {f.count} values, got {len(v)}")
                flat.extend(v)
            else:
                flat.append(v)
        return self._struct.pack(*flat)


# ---------------------------------------------------------------------------
# PacketHeader, 29 bytes
# ---------------------------------------------------------------------------

HEADER_LAYOUT = BinaryLayout(
    "PacketHeader",
    (
        LayoutField("packet_format", "H"),
        LayoutField("game_year", "B"),
        LayoutField("game_major_version", "B"),
        LayoutField("game_minor_version", "B"),
        LayoutField("packet_version", "B"),
        LayoutField("packet_id", "B"),
        LayoutField("session_uid", "Q"),
        LayoutField("session_time", "f"),
        LayoutField("frame_identifier", "I"),
        LayoutField("overall_frame_identifier", "I"),
        LayoutField("player_car_index", "B"),
        LayoutField("secondary_player_car_index", "b"),
    ),
)

# ---------------------------------------------------------------------------
# CarTelemetry, 60 bytes per car
#
# Wheel arrays are ordered rear-left, rear-right, front-left, front-right.
# ---------------------------------------------------------------------------

CAR_TELEMETRY_LAYOUT = BinaryLayout(
    "CarTelemetry",
    (
        LayoutField("speed", "H"),
        LayoutField("throttle", "f"),
        LayoutField("steer", "f"),
        LayoutField("brake", "f"),
        LayoutField("clutch", "B"),
        LayoutField("gear", "b"),
        LayoutField("engine_rpm", "H"),
        LayoutField("drs", "B"),
        LayoutField("rev_lights_percent", "B"),
        LayoutField("rev_lights_bit_value", "H"),
        LayoutField("brakes_temperature", "H", 4),
        LayoutField("tyres_surface_temperature", "B", 4),
        LayoutField("tyres_inner_temperature", "B", 4),
        LayoutField("engine_temperature", "H"),
        LayoutField("tyres_pressure", "f", 4),
        LayoutField("surface_type", "B", 4),
    ),
)

if HEADER_LAYOUT.size != HEADER_SIZE:  # pragma: no cover
    raise RuntimeError(f"PacketHeader layout is {HEADER_LAYOUT.size} bytes, expected {HEADER_SIZE}")
if CAR_TELEMETRY_LAYOUT.size != CAR_TELEMETRY_SIZE:  # pragma: no cover
    raise RuntimeError(
        f"CarTelemetry layout is {CAR_TELEMETRY_LAYOUT.size} bytes, expected {CAR_TELEMETRY_SIZE}"
    )


def car_offset(car_index: int) -> int:
    """Byte offset of the telemetry block for *car_index* in a packet."""
    return HEADER_SIZE + car_index * CAR_TELEMETRY_SIZE
