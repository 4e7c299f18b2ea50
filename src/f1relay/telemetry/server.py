"""WebSocket subscription server.

Clients connect to ``ws://host:port/telemetry`` and receive one JSON text
message per broadcast record.  The same port answers ``GET /healthz`` with
``200`` so container health checks do not need a WebSocket client.
"""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from websockets.exceptions import ConnectionClosed

from f1relay.errors import HubClosedError, TransportBindError

if TYPE_CHECKING:
    import websockets.asyncio.server as ws_server
    from websockets.http11 import Request, Response

    from f1relay.telemetry.decoder import CarTelemetry
    from f1relay.telemetry.hub import BroadcastHub

logger = logging.getLogger(__name__)

HEALTH_PATH = "/healthz"


def encode_record(record: CarTelemetry) -> str:
    """Serialize a record to the compact JSON text pushed to clients."""
    return json.dumps(record.as_dict(), separators=(",", ":"))


class WebSocketSubscriber:
    """Adapts a WebSocket connection to the hub's subscriber interface."""

    def __init__(self, connection: Any) -> None:
        self._connection = connection

    @property
    def remote_address(self) -> Any:
        return getattr(self._connection, "remote_address", None)

    async def send(self, message: Any) -> None:
        await self._connection.send(message)

    async def close(self) -> None:
        await self._connection.close()

    def __repr__(self) -> str:
        return f"WebSocketSubscriber({self.remote_address!r})"


class SubscriptionServer:
    """Accepts WebSocket subscribers and registers them with the hub."""

    def __init__(
        self,
        hub: BroadcastHub,
        *,
        host: str = "0.0.0.0",
        port: int = 8080,
        path: str = "/telemetry",
    ) -> None:
        self._hub = hub
        self._host = host
        self._port = port
        self._path = path
        self._server: ws_server.Server | None = None
        self._connection_count = 0

    async def start(self) -> None:
        """Start listening.

        Raises:
            TransportBindError: If the address cannot be bound.
        """
        import websockets.asyncio.server as ws_server_mod

        try:
            self._server = await ws_server_mod.serve(
                self._handler,
                host=self._host,
                port=self._port,
                process_request=self._process_request,
            )
        except OSError as exc:
            raise TransportBindError(
                f"Cannot listen for WebSocket clients on {self._host}:{self._port}: {exc}",
                host=self._host,
                port=self._port,
            ) from exc
        host, port = self.local_address
        logger.info("WebSocket server listening on ws://%s:%d%s", host, port, self._path)

    async def stop(self) -> None:
        """Stop accepting clients and close open connections."""
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
            logger.info("WebSocket server stopped")

    @property
    def local_address(self) -> tuple[str, int]:
        """The bound ``(host, port)``; the configured one before :meth:`start`."""
        if self._server is None:
            return self._host, self._port
        for sock in self._server.sockets:
            name = sock.getsockname()
            return name[0], name[1]
        return self._host, self._port

    @property
    def connection_count(self) -> int:
        """Number of currently open WebSocket connections."""
        return self._connection_count

    def _process_request(self, connection: Any, request: Request) -> Response | None:
        path = urlsplit(request.path).path
        if path == HEALTH_PATH:
            response: Response = connection.respond(HTTPStatus.OK, "{}\n")
            del response.headers["Content-Type"]
            response.headers["Content-Type"] = "application/json"
            return response
        if path != self._path:
            return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
        return None

    async def _handler(self, connection: Any) -> None:
        subscriber = WebSocketSubscriber(connection)
        try:
            await self._hub.register(subscriber)
        except HubClosedError:
            await connection.close(1001, "server shutting down")
            return

        self._connection_count += 1
        logger.info("Client connected: %s (open: %d)", subscriber.remote_address, self._connection_count)
        try:
            # Subscribers only listen; anything they send is discarded.
            async for message in connection:
                logger.debug("Ignoring %d-char message from client", len(message))
        except ConnectionClosed:
            logger.debug("Connection closed: %s", subscriber.remote_address, exc_info=True)
        finally:
            self._connection_count -= 1
            await self._hub.unregister(subscriber)
            logger.info(
                "Client disconnected: %s (open: %d)", subscriber.remote_address, self._connection_count
            )
