from __future__ import annotations

from f1relay.models.config import RelaySettings

__all__ = ["RelaySettings"]
