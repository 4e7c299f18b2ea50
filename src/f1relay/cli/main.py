"""CLI entry-point: Click command group and dispatch."""

from __future__ import annotations

import dataclasses

import click

from f1relay._internal.log_setup import configure_logging
from f1relay.errors import ConfigError, TransportBindError
from f1relay.output.formatter import OutputFormatter

# ---------------------------------------------------------------------------
# Application context (stored in ctx.obj)
# ---------------------------------------------------------------------------


@dataclasses.dataclass
class AppContext:
    """Shared state passed to every Click command via ``@click.pass_obj``."""

    output_format: str | None
    quiet: bool
    verbose: bool
    _formatter: OutputFormatter | None = dataclasses.field(default=None, repr=False)

    @property
    def formatter(self) -> OutputFormatter:
        if self._formatter is None:
            force = "quiet" if self.quiet else self.output_format
            self._formatter = OutputFormatter(force_format=force)
        return self._formatter

    def setup_logging(self) -> None:
        """Configure the root logger for this invocation."""
        configure_logging(verbose=self.verbose)


# ---------------------------------------------------------------------------
# Root Click group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="f1relay")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["rich", "json", "quiet"]),
    default=None,
    help="Output format (default: auto-detect)",
)
@click.option("--quiet", is_flag=True, default=False, help="Suppress normal output")
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose logging")
@click.pass_context
def cli(
    ctx: click.Context,
    output_format: str | None,
    quiet: bool,
    verbose: bool,
) -> None:
    """Relay F1 car telemetry from the game's UDP feed to WebSocket clients."""
    ctx.ensure_object(dict)
    ctx.obj = AppContext(
        output_format=output_format,
        quiet=quiet,
        verbose=verbose,
    )


# ---------------------------------------------------------------------------
# Register subcommands
# ---------------------------------------------------------------------------


def _register_commands() -> None:
    """Import and attach all subcommands to the root CLI."""
    from f1relay.cli.decode import decode_cmd
    from f1relay.cli.serve import listen_cmd, serve_cmd

    cli.add_command(serve_cmd)
    cli.add_command(listen_cmd)
    cli.add_command(decode_cmd)


_register_commands()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """Parse arguments and dispatch to the appropriate command handler."""
    try:
        cli(args=argv, standalone_mode=False)
    except click.exceptions.Exit as exc:
        raise SystemExit(exc.exit_code) from None
    except click.exceptions.Abort:
        raise SystemExit(1) from None
    except click.ClickException as exc:
        exc.show()
        raise SystemExit(exc.exit_code) from None
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except SystemExit:
        raise
    except Exception as exc:
        app_ctx = _extract_app_ctx()
        formatter = app_ctx.formatter if app_ctx else OutputFormatter()
        cmd_name = _get_command_name()

        if _handle_known_error(exc, formatter, cmd_name):
            raise SystemExit(1) from exc

        formatter.output_error(
            code=type(exc).__name__,
            message=str(exc),
            command=cmd_name,
        )
        raise SystemExit(1) from exc


# ---------------------------------------------------------------------------
# Helpers for error handling
# ---------------------------------------------------------------------------


def _extract_app_ctx() -> AppContext | None:
    """Try to extract AppContext from the current Click context."""
    ctx = click.get_current_context(silent=True)
    while ctx is not None:
        if isinstance(ctx.obj, AppContext):
            return ctx.obj
        ctx = ctx.parent
    return None


def _get_command_name() -> str:
    """Reconstruct a dotted command name from the Click context chain."""
    ctx = click.get_current_context(silent=True)
    parts: list[str] = []
    while ctx is not None:
        if ctx.info_name and ctx.info_name != "cli":
            parts.append(ctx.info_name)
        ctx = ctx.parent
    return ".".join(reversed(parts)) or "unknown"


def _handle_known_error(
    exc: Exception,
    formatter: OutputFormatter,
    cmd_name: str,
) -> bool:
    """Handle well-known errors with friendly output.

    Returns ``True`` if the error was handled and the caller should exit.
    """
    if isinstance(exc, TransportBindError):
        _handle_bind_error(exc, formatter, cmd_name)
        return True
    if isinstance(exc, ConfigError):
        _handle_config_error(exc, formatter, cmd_name)
        return True
    return False


def _handle_bind_error(
    exc: TransportBindError,
    formatter: OutputFormatter,
    cmd_name: str,
) -> None:
    """Explain a port that could not be bound and how to pick another."""
    hint = "Another process may be using the port; choose a different one."
    if formatter.format == "json":
        formatter.output_error(
            code="bind_failed",
            message=f"{exc} {hint}",
            command=cmd_name,
        )
        return

    formatter.rich.error(str(exc))
    formatter.rich.info("")
    formatter.rich.info(f"[yellow]{hint}[/yellow]")
    formatter.rich.info("  [cyan]f1relay serve --udp-port 20778 --ws-port 8081[/cyan]")


def _handle_config_error(
    exc: ConfigError,
    formatter: OutputFormatter,
    cmd_name: str,
) -> None:
    if formatter.format == "json":
        formatter.output_error(code="config_error", message=str(exc), command=cmd_name)
        return
    formatter.rich.error(str(exc))
    formatter.rich.info(
        "[dim]Settings come from environment variables (UDP_PORT, WS_PORT,"
        " SAMPLE_EVERY_N_FRAMES, ...), a .env file, or command-line flags.[/dim]"
    )
