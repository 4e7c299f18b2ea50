"""Exception hierarchy for f1relay.

Only startup problems are fatal: a bad configuration or a port that cannot
be bound.  Everything on the packet path is recovered locally.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all f1relay errors."""


class ConfigError(RelayError):
    """Invalid or inconsistent configuration."""


class TransportBindError(RelayError):
    """The UDP or WebSocket listener could not bind its address."""

    def __init__(self, message: str, *, host: str, port: int) -> None:
        super().__init__(message)
        self.host = host
        self.port = port


class HubClosedError(RelayError):
    """A subscriber tried to register after the hub was closed."""
