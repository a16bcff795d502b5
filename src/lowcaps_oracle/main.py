"""CLI entrypoint for the LOWCAPS price oracle."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Annotated, Any

import typer

from .logger import setup_logging
from .orchestrator import DashboardStatus, RefreshPhase
from .report.publisher import publish_to_stdout
from .service import build_client, build_orchestrator
from .settings import CONFIG_ENV_VAR, DashboardSettings, OutputFormat
from .state import AppState

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="LOWCAPS token price, market cap and supply from Dexlyn pools on Supra.",
)


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("lowcaps_oracle")


def _state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):
        raise typer.BadParameter("CLI state was not initialised")
    return state


def _log_to_stderr(settings: DashboardSettings) -> None:
    """Move log output off stdout so printed JSON stays parseable."""
    setup_logging(settings.log_level, stream=sys.stderr)


def _publish(
    settings: DashboardSettings,
    status: DashboardStatus,
    output_format: OutputFormat,
) -> None:
    publish_to_stdout(
        status.token_data,
        status,
        output_format,
        symbol=settings.target_token.symbol,
        base_symbol=settings.base_token.symbol,
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [lowcaps_oracle] table).",
        ),
    ] = None,
    rpc_url: Annotated[
        str | None,
        typer.Option(
            "--rpc-url",
            help="Supra RPC endpoint; overrides the configured node.",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config and exit.",
        ),
    ] = False,
):
    """Load configuration and set up logging for every command.

    Without a subcommand a single snapshot is printed.
    """
    if config_path:
        os.environ[CONFIG_ENV_VAR] = str(config_path)

    init_kwargs: dict[str, str] = {}
    if rpc_url is not None:
        init_kwargs["rpc_url"] = rpc_url
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    settings = DashboardSettings(**init_kwargs)

    if show_config:
        typer.echo(json.dumps(settings.as_safe_dict(), indent=2))
        raise typer.Exit(code=0)

    if settings.output_format == OutputFormat.JSON:
        _log_to_stderr(settings)
    else:
        setup_logging(settings.log_level)
    ctx.obj = AppState(settings=settings, logger=_build_logger())

    if ctx.invoked_subcommand is None:
        snapshot(ctx, as_json=False)


async def _snapshot(settings: DashboardSettings) -> DashboardStatus:
    orchestrator = build_orchestrator(settings)
    try:
        await orchestrator.refresh(full=True)
        return orchestrator.status
    finally:
        await orchestrator.aclose()


@app.command()
def snapshot(
    ctx: typer.Context,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print raw JSON instead of a table."),
    ] = False,
):
    """Fetch prices and supply once and print them."""
    state = _state(ctx)
    settings = state.settings
    output_format = OutputFormat.JSON if as_json else settings.output_format
    if output_format == OutputFormat.JSON:
        _log_to_stderr(settings)

    status = asyncio.run(_snapshot(settings))
    if status.message:
        state.logger.warning(status.message)
    _publish(settings, status, output_format)


async def _watch(
    state: AppState, duration: float, output_format: OutputFormat
) -> None:
    settings = state.settings
    orchestrator = build_orchestrator(settings)

    def _on_status(status: DashboardStatus) -> None:
        if status.phase in (RefreshPhase.CONNECTED, RefreshPhase.ERROR):
            _publish(settings, status, output_format)

    orchestrator.subscribe(_on_status)
    orchestrator.start()
    try:
        if duration > 0:
            await asyncio.sleep(duration)
        else:
            await asyncio.Event().wait()
    finally:
        await orchestrator.aclose()
        state.logger.info("Stopped watching")


@app.command()
def watch(
    ctx: typer.Context,
    duration: Annotated[
        float,
        typer.Option(
            "--duration",
            min=0,
            help="Seconds to run before exiting; 0 runs until interrupted.",
        ),
    ] = 0,
    interval: Annotated[
        float | None,
        typer.Option(
            "--interval",
            min=0,
            help="Refresh interval in seconds; overrides the configured value.",
        ),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print raw JSON instead of a table."),
    ] = False,
):
    """Keep refreshing and print every completed refresh."""
    state = _state(ctx)
    if interval is not None:
        state.settings = state.settings.model_copy(
            update={"refresh_interval_seconds": interval}
        )
    output_format = OutputFormat.JSON if as_json else state.settings.output_format
    if output_format == OutputFormat.JSON:
        _log_to_stderr(state.settings)

    try:
        asyncio.run(_watch(state, duration, output_format))
    except KeyboardInterrupt:
        raise typer.Exit(code=0)


async def _status(settings: DashboardSettings) -> dict[str, Any]:
    orchestrator = build_orchestrator(settings)
    try:
        await orchestrator.refresh(full=True)
        report = orchestrator.service_status()
        report["gateway_ready"] = orchestrator.client.is_ready
        report["quotes"] = {
            "base_price_usd": await orchestrator.pricing.base_price_usd(),
            "target_price_in_base": await orchestrator.pricing.target_price_in_base(),
        }
        return report
    finally:
        await orchestrator.aclose()


@app.command()
def status(ctx: typer.Context):
    """Refresh once and print service health, cache ages and pool quotes."""
    state = _state(ctx)
    _log_to_stderr(state.settings)
    report = asyncio.run(_status(state.settings))
    typer.echo(json.dumps(report, indent=2))


async def _health(settings: DashboardSettings) -> dict[str, object]:
    client = build_client(settings)
    try:
        healthy = await client.health_check()
        chain_id = await client.chain_id() if healthy else None
    finally:
        client.reset()
    return {
        "rpc_url": settings.rpc_url,
        "healthy": healthy,
        "chain_id": chain_id,
        "expected_chain_id": settings.expected_chain_id,
    }


@app.command()
def health(ctx: typer.Context):
    """Check that the Supra RPC node is reachable."""
    state = _state(ctx)
    _log_to_stderr(state.settings)
    result = asyncio.run(_health(state.settings))
    typer.echo(json.dumps(result, indent=2))
    if not result["healthy"]:
        raise typer.Exit(code=1)


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
