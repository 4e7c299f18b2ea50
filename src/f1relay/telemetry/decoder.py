"""Decode F1 UDP packet headers and car telemetry records.

Wire format (little-endian, no padding)::

    offset  0   PacketHeader               29 bytes
    offset 29   CarTelemetry[0]            60 bytes
    offset 89   CarTelemetry[1]            60 bytes
    ...
    offset 29 + i * 60   CarTelemetry[i]

Decoding is a pure function of the input bytes.  Short input yields
``None`` rather than an exception so a long-running ingest loop can skip
the datagram and carry on.  Field values are passed through unvalidated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from f1relay.telemetry.layout import CAR_TELEMETRY_LAYOUT, HEADER_LAYOUT

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PacketHeader:
    """Header common to every packet the game sends."""

    packet_format: int
    game_year: int
    game_major_version: int
    game_minor_version: int
    packet_version: int
    packet_id: int
    session_uid: int
    session_time: float
    frame_identifier: int
    overall_frame_identifier: int
    player_car_index: int
    secondary_player_car_index: int


@dataclass(frozen=True, slots=True)
class CarTelemetry:
    """Telemetry for one car.

    Wheel tuples are ordered rear-left, rear-right, front-left, front-right.
    """

    speed: int
    throttle: float
    steer: float
    brake: float
    clutch: int
    gear: int
    engine_rpm: int
    drs: int
    rev_lights_percent: int
    rev_lights_bit_value: int
    brakes_temperature: tuple[int, int, int, int]
    tyres_surface_temperature: tuple[int, int, int, int]
    tyres_inner_temperature: tuple[int, int, int, int]
    engine_temperature: int
    tyres_pressure: tuple[float, float, float, float]
    surface_type: tuple[int, int, int, int]

    def as_dict(self) -> dict[str, Any]:
        """Return the record in the JSON shape pushed to subscribers."""
        return {
            "speed": self.speed,
            "throttle": self.throttle,
            "steer": self.steer,
            "brake": self.brake,
            "clutch": self.clutch,
            "gear": self.gear,
            "rpm": self.engine_rpm,
            "drs": self.drs,
            "rev_lights": self.rev_lights_percent,
            "rev_lights_bit": self.rev_lights_bit_value,
            "brakes_temp": list(self.brakes_temperature),
            "tyres_surface_temp": list(self.tyres_surface_temperature),
            "tyres_inner_temp": list(self.tyres_inner_temperature),
            "engine_temp": self.engine_temperature,
            "tyres_pressure": list(self.tyres_pressure),
            "surface_type": list(self.surface_type),
        }


def decode_header(buf: bytes | bytearray | memoryview) -> PacketHeader | None:
    """Decode the 29-byte header at the start of *buf*.

    Returns ``None`` if *buf* is shorter than the header.
    """
    values = HEADER_LAYOUT.unpack(buf)
    if values is None:
        return None
    return PacketHeader(**values)


def decode_telemetry(buf: bytes | bytearray | memoryview, offset: int = 0) -> CarTelemetry | None:
    """Decode the 60-byte car telemetry block at *offset*.

    Returns ``None`` if the block does not lie entirely within *buf*.
    """
    values = CAR_TELEMETRY_LAYOUT.unpack(buf, offset)
    if values is None:
        return None
    return CarTelemetry(**values)
