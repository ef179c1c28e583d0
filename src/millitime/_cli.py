"""Command line for millitime (Typer-based).

Provides :func:`build_cli`, which constructs a Typer app with global
options (``--version``, ``--log-level``, ``--log-format``,
``--env-file``) and four commands:

- ``now``    — print the current estimate in Unix ms
- ``status`` — print a :class:`ClockStatus` JSON snapshot
- ``sync``   — lift network suppression, wait for the dispatched
  attempt, print the status
- ``watch``  — lift network suppression and poll for network changes
  until the clock synchronises or the timeout elapses

The clock is built through an injectable factory so tests can wire
fakes without touching the network.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import Callable, Coroutine
from typing import Annotated, Any, TypeVar, get_args

import typer
from pydantic import ValidationError

from millitime import __version__
from millitime._context import Clock
from millitime._dispatch import BackgroundDispatcher, Dispatcher
from millitime._events import SyncEvent
from millitime._logging import configure_logging
from millitime._network import PollableNetworkMonitor
from millitime._settings import LoggingSettings, Settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_NOT_SYNCHRONIZED = 2
EXIT_RUNTIME_ERROR = 3

SERVICE_NAME = "millitime"

_T = TypeVar("_T")

# ---------------------------------------------------------------------------
# Allowed values (extracted from LoggingSettings Literal types)
# ---------------------------------------------------------------------------

_VALID_LOG_LEVELS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["level"].annotation,
)
_VALID_LOG_FORMATS: tuple[str, ...] = get_args(
    LoggingSettings.model_fields["format"].annotation,
)

ClockFactory = Callable[[Settings, Dispatcher], Clock]
"""Builds the clock for one command from settings and a dispatcher."""


def _system_clock(settings: Settings, dispatcher: Dispatcher) -> Clock:
    return Clock(settings=settings, dispatcher=dispatcher)


# ---------------------------------------------------------------------------
# Async command bodies
# ---------------------------------------------------------------------------


async def _sync(
    make_clock: ClockFactory,
    settings: Settings,
    server: str | None,
) -> Clock:
    dispatcher = BackgroundDispatcher()
    clock = make_clock(settings, dispatcher)
    if server:
        clock.default_server = server
    clock.suppress_network_calls = False
    await dispatcher.drain()
    return clock


async def _watch(
    make_clock: ClockFactory,
    settings: Settings,
    server: str | None,
    *,
    timeout: float,
    interval: float,
) -> tuple[Clock, SyncEvent | None]:
    loop = asyncio.get_running_loop()
    dispatcher = BackgroundDispatcher()
    arrived = asyncio.Event()
    events: list[SyncEvent] = []

    def on_event(event: SyncEvent) -> None:
        events.append(event)
        loop.call_soon_threadsafe(arrived.set)

    clock = make_clock(settings, dispatcher)
    if server:
        clock.default_server = server
    clock.on_synchronized(on_event)
    clock.suppress_network_calls = False

    monitor = clock.network
    deadline = loop.time() + timeout
    while not arrived.is_set():
        remaining = deadline - loop.time()
        if remaining <= 0:
            break
        if isinstance(monitor, PollableNetworkMonitor):
            monitor.poll()
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(arrived.wait(), timeout=min(interval, remaining))

    await dispatcher.drain()
    return clock, events[0] if events else None


def _run(body: Callable[[], Coroutine[Any, Any, _T]]) -> _T:
    """Run an async command body, mapping crashes to ``EXIT_RUNTIME_ERROR``."""
    try:
        return asyncio.run(body())
    except KeyboardInterrupt:
        raise typer.Exit(code=EXIT_NOT_SYNCHRONIZED) from None
    except Exception as exc:
        logger.error("Runtime error: %s", exc)
        sys.exit(EXIT_RUNTIME_ERROR)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def build_cli(clock_factory: ClockFactory | None = None) -> typer.Typer:
    """Construct the Typer CLI.

    Args:
        clock_factory: Builds the :class:`Clock` used by each command.
            Defaults to a clock on the real system clocks and network.

    Returns:
        A configured :class:`typer.Typer` ready to invoke.
    """
    make_clock = clock_factory or _system_clock

    cli = typer.Typer(
        help=f"{SERVICE_NAME} v{__version__}: UTC millisecond clock, NTP-corrected",
    )

    # -- global options -----------------------------------------------------

    @cli.callback(invoke_without_command=True)
    def main(
        ctx: typer.Context,
        version_flag: Annotated[
            bool | None,
            typer.Option(
                "--version",
                is_eager=True,
                help="Show version and exit.",
            ),
        ] = None,
        log_level: Annotated[
            str | None,
            typer.Option("--log-level", help="Override log level."),
        ] = None,
        log_format: Annotated[
            str | None,
            typer.Option("--log-format", help="Override log format."),
        ] = None,
        env_file: Annotated[
            str,
            typer.Option("--env-file", help="Path to .env file."),
        ] = ".env",
    ) -> None:
        if version_flag:
            typer.echo(f"{SERVICE_NAME} v{__version__}")
            raise typer.Exit()

        if log_level is not None and log_level.upper() not in _VALID_LOG_LEVELS:
            raise typer.BadParameter(
                f"Invalid log level '{log_level}'. "
                f"Choose from: {', '.join(_VALID_LOG_LEVELS)}",
                param_hint="'--log-level'",
            )

        if log_format is not None and log_format.lower() not in _VALID_LOG_FORMATS:
            raise typer.BadParameter(
                f"Invalid log format '{log_format}'. "
                f"Choose from: {', '.join(_VALID_LOG_FORMATS)}",
                param_hint="'--log-format'",
            )

        try:
            settings = Settings(_env_file=env_file)  # type: ignore[call-arg]
        except ValidationError as exc:
            logger.error("Configuration error: %s", exc)
            raise SystemExit(EXIT_CONFIG_ERROR) from exc

        if log_level is not None:
            settings.logging = settings.logging.model_copy(
                update={"level": log_level.upper()},
            )

        if log_format is not None:
            settings.logging = settings.logging.model_copy(
                update={"format": log_format.lower()},
            )

        configure_logging(settings.logging, service=SERVICE_NAME, version=__version__)
        ctx.obj = settings

        if ctx.invoked_subcommand is None:
            typer.echo(ctx.get_help())
            raise typer.Exit()

    # -- commands -----------------------------------------------------------

    @cli.command()
    def now(ctx: typer.Context) -> None:
        """Print the current time estimate in Unix milliseconds."""
        clock = make_clock(ctx.obj, BackgroundDispatcher())
        typer.echo(str(clock.now))

    @cli.command()
    def status(ctx: typer.Context) -> None:
        """Print a JSON snapshot of the clock state."""
        clock = make_clock(ctx.obj, BackgroundDispatcher())
        typer.echo(clock.status().to_json())

    @cli.command()
    def sync(
        ctx: typer.Context,
        server: Annotated[
            str | None,
            typer.Option("--server", help="NTP server hostname."),
        ] = None,
    ) -> None:
        """Synchronise once against an NTP server and print the status."""
        clock = _run(lambda: _sync(make_clock, ctx.obj, server))
        typer.echo(clock.status().to_json())
        if not clock.synchronized:
            raise typer.Exit(code=EXIT_NOT_SYNCHRONIZED)

    @cli.command()
    def watch(
        ctx: typer.Context,
        server: Annotated[
            str | None,
            typer.Option("--server", help="NTP server hostname."),
        ] = None,
        timeout: Annotated[
            float,
            typer.Option("--timeout", min=0.0, help="Seconds to wait for sync."),
        ] = 60.0,
        interval: Annotated[
            float,
            typer.Option("--interval", min=0.01, help="Network poll interval."),
        ] = 1.0,
    ) -> None:
        """Wait for the clock to synchronise, printing the sync event."""
        clock, event = _run(
            lambda: _watch(
                make_clock,
                ctx.obj,
                server,
                timeout=timeout,
                interval=interval,
            )
        )
        if event is None:
            typer.echo(clock.status().to_json())
            raise typer.Exit(code=EXIT_NOT_SYNCHRONIZED)
        typer.echo(event.to_json())

    return cli


def main() -> None:
    """Console-script entry point."""
    build_cli()()
