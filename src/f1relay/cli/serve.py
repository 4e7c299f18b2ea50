"""``f1relay serve`` and ``f1relay listen``: run the relay."""

from __future__ import annotations

import contextlib
import logging
import signal
from typing import TYPE_CHECKING, Any

import click

from f1relay._internal.async_utils import run_async
from f1relay.cli._options import global_options
from f1relay.models.config import RelaySettings

if TYPE_CHECKING:
    from f1relay.cli.main import AppContext
    from f1relay.output.formatter import OutputFormatter
    from f1relay.telemetry.decoder import CarTelemetry
    from f1relay.telemetry.setup import RelaySession

logger = logging.getLogger(__name__)


def _ingest_options(f: Any) -> Any:
    """UDP and sampling options shared by ``serve`` and ``listen``."""
    f = click.option(
        "--stats-interval",
        type=float,
        default=None,
        help="Log pipeline counters every N seconds (env: STATS_INTERVAL, 0 = off)",
    )(f)
    f = click.option(
        "--sample-every",
        "sample_every",
        type=int,
        default=None,
        help="Forward every Nth frame (env: SAMPLE_EVERY_N_FRAMES, default: 2)",
    )(f)
    f = click.option(
        "--udp-port",
        type=int,
        default=None,
        help="UDP port the game sends to (env: UDP_PORT, default: 20777)",
    )(f)
    f = click.option(
        "--udp-host",
        default=None,
        help="UDP bind address (env: UDP_HOST, default: 0.0.0.0)",
    )(f)
    return f


def _install_stop_handler(session: RelaySession) -> None:
    """Stop the session on SIGTERM (Ctrl-C is handled by the runner)."""
    import asyncio

    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGTERM, session.request_stop)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@click.command("serve")
@_ingest_options
@click.option("--ws-host", default=None, help="WebSocket bind address (env: WS_HOST)")
@click.option("--ws-port", type=int, default=None, help="WebSocket port (env: WS_PORT, default: 8080)")
@click.option("--ws-path", default=None, help="WebSocket path (env: WS_PATH, default: /telemetry)")
@click.option(
    "--send-timeout",
    type=float,
    default=None,
    help="Seconds before a stalled client is dropped (env: SEND_TIMEOUT, default: 1.0)",
)
@global_options
def serve_cmd(
    app_ctx: AppContext,
    udp_host: str | None,
    udp_port: int | None,
    sample_every: int | None,
    stats_interval: float | None,
    ws_host: str | None,
    ws_port: int | None,
    ws_path: str | None,
    send_timeout: float | None,
) -> None:
    """Relay car telemetry from UDP to WebSocket subscribers.

    Each accepted packet is pushed to every client connected to the
    WebSocket path as one JSON message.  ``GET /healthz`` on the same port
    answers 200.  Runs until interrupted.

    \b
    Examples:
      f1relay serve
      f1relay serve --udp-port 20778 --ws-port 9000
      f1relay serve --sample-every 1 --stats-interval 5
    """
    settings = RelaySettings.load(
        udp_host=udp_host,
        udp_port=udp_port,
        sample_every_n_frames=sample_every,
        stats_interval=stats_interval,
        ws_host=ws_host,
        ws_port=ws_port,
        ws_path=ws_path,
        send_timeout=send_timeout,
    )
    run_async(_cmd_serve(app_ctx, settings))


async def _cmd_serve(app_ctx: AppContext, settings: RelaySettings) -> None:
    from f1relay.telemetry.setup import relay_session

    formatter = app_ctx.formatter

    async with relay_session(settings) as session:
        _install_stop_handler(session)
        udp_address = session.listener.local_address
        ws_address = session.ws_address

        if formatter.format == "json":
            formatter.output(
                {
                    "udp": {"host": udp_address[0], "port": udp_address[1]},
                    "websocket": {
                        "host": ws_address[0],
                        "port": ws_address[1],
                        "path": settings.ws_path,
                    },
                    "sample_every_n_frames": settings.sample_every_n_frames,
                },
                command="serve",
            )
        elif formatter.format == "rich":
            formatter.rich.relay_started(
                udp_address=udp_address,
                ws_address=ws_address,
                ws_path=settings.ws_path,
                sample_every=settings.sample_every_n_frames,
            )
            formatter.rich.info("[dim]Press Ctrl-C to stop.[/dim]")

        try:
            await session.wait_closed()
        finally:
            if formatter.format == "rich":
                formatter.rich.relay_stats(session.stats)


# ---------------------------------------------------------------------------
# listen
# ---------------------------------------------------------------------------


class _OutputSubscriber:
    """Hub subscriber that writes each record to the terminal."""

    def __init__(self, formatter: OutputFormatter) -> None:
        self._formatter = formatter

    async def send(self, message: CarTelemetry) -> None:
        if self._formatter.format == "json":
            self._formatter.output_line(message)
        elif self._formatter.format == "rich":
            self._formatter.rich.telemetry_line(message)

    async def close(self) -> None:
        return None


@click.command("listen")
@_ingest_options
@global_options
def listen_cmd(
    app_ctx: AppContext,
    udp_host: str | None,
    udp_port: int | None,
    sample_every: int | None,
    stats_interval: float | None,
) -> None:
    """Print sampled car telemetry from UDP without serving WebSockets.

    Writes one JSON line per record when piped, or a compact live line per
    record on a terminal.  Useful for checking the game's UDP settings.

    \b
    Examples:
      f1relay listen
      f1relay listen --sample-every 10
      f1relay listen --format json | jq .speed
    """
    settings = RelaySettings.load(
        udp_host=udp_host,
        udp_port=udp_port,
        sample_every_n_frames=sample_every,
        stats_interval=stats_interval,
    )
    run_async(_cmd_listen(app_ctx, settings))


async def _cmd_listen(app_ctx: AppContext, settings: RelaySettings) -> None:
    from f1relay.telemetry.hub import BroadcastHub
    from f1relay.telemetry.setup import relay_session

    formatter = app_ctx.formatter
    hub = BroadcastHub(send_timeout=settings.send_timeout)

    async with relay_session(settings, hub=hub, websocket=False) as session:
        _install_stop_handler(session)
        await hub.register(_OutputSubscriber(formatter))
        if formatter.format == "rich":
            host, port = session.listener.local_address
            formatter.rich.info(f"Listening for car telemetry on [cyan]{host}:{port}[/cyan]")
            formatter.rich.info("[dim]Press Ctrl-C to stop.[/dim]")
        await session.wait_closed()
