"""Car telemetry ingest: UDP listener, decoder, sampler, hub and WebSocket server."""

from __future__ import annotations

from f1relay.telemetry.decoder import CarTelemetry, PacketHeader, decode_header, decode_telemetry
from f1relay.telemetry.hub import BroadcastHub, Subscriber, SubscriberState, Subscription
from f1relay.telemetry.listener import UdpListener
from f1relay.telemetry.pipeline import TelemetryPipeline
from f1relay.telemetry.sampler import FrameSampler
from f1relay.telemetry.server import SubscriptionServer, WebSocketSubscriber, encode_record
from f1relay.telemetry.setup import RelaySession, relay_session
from f1relay.telemetry.stats import PipelineStats, StatsReporter

__all__ = [
    "BroadcastHub",
    "CarTelemetry",
    "FrameSampler",
    "PacketHeader",
    "PipelineStats",
    "RelaySession",
    "StatsReporter",
    "Subscriber",
    "SubscriberState",
    "Subscription",
    "SubscriptionServer",
    "TelemetryPipeline",
    "UdpListener",
    "WebSocketSubscriber",
    "decode_header",
    "decode_telemetry",
    "encode_record",
    "relay_session",
]
