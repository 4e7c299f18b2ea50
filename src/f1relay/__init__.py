"""f1relay: relay F1 car telemetry from UDP to WebSocket subscribers."""

from __future__ import annotations

__version__ = "0.1.0"
