"""Render dashboard snapshots to the terminal."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..settings import OutputFormat
from .generator import TokenData

if TYPE_CHECKING:
    from ..orchestrator import DashboardStatus

_STATUS_STYLES = {
    "connected": "bold green",
    "connecting": "bold yellow",
    "disconnected": "dim",
    "error": "bold red",
}


def _format_timestamp(timestamp_ms: int) -> str:
    if timestamp_ms <= 0:
        return "never"
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M:%S UTC")


def status_to_dict(status: DashboardStatus) -> dict[str, Any]:
    """JSON-serialisable view of a ``DashboardStatus``."""
    return {
        "connection_status": status.connection_status.value,
        "phase": status.phase.value,
        "last_updated_ms": status.last_updated_ms,
        "consecutive_errors": status.consecutive_errors,
        "message": status.message,
        "is_loading": {
            "price": status.is_loading.price,
            "supply": status.is_loading.supply,
            "market_cap": status.is_loading.market_cap,
        },
        "token_data": status.token_data.to_dict(),
    }


def build_dashboard_panel(
    token_data: TokenData,
    status: DashboardStatus | None = None,
    *,
    symbol: str = "LOWCAPS",
    base_symbol: str = "SUPRA",
) -> Panel:
    """Build the rich panel shown by ``snapshot`` and ``watch``."""
    figures = Table(show_header=False, box=None, padding=(0, 1))
    figures.add_column("Key", style="dim")
    figures.add_column("Value", style="cyan", justify="right")
    figures.add_row("Price", token_data.price)
    figures.add_row(f"{symbol} per {base_symbol}", token_data.tokens_per_base)
    figures.add_row("Market Cap", token_data.market_cap)
    figures.add_row("Total Supply", token_data.total_supply)
    figures.add_row("Circulating Supply", token_data.circulating_supply)

    parts: list[Any] = [figures]
    border_style = "blue"
    if status is not None:
        style = _STATUS_STYLES.get(status.connection_status.value, "white")
        border_style = style.replace("bold ", "")
        footer = Text()
        footer.append("Status: ", style="dim")
        footer.append(status.connection_status.value, style=style)
        footer.append("  Updated: ", style="dim")
        footer.append(_format_timestamp(status.last_updated_ms))
        if status.consecutive_errors:
            footer.append(f"  Errors: {status.consecutive_errors}", style="red")
        parts.append(Text(""))
        parts.append(footer)
        if status.message:
            parts.append(Text(status.message, style="yellow"))

    return Panel(
        Group(*parts),
        title=f"[bold]{symbol} Token[/]",
        border_style=border_style,
    )


def publish_to_stdout(
    token_data: TokenData,
    status: DashboardStatus | None = None,
    output_format: OutputFormat = OutputFormat.TABLE,
    *,
    symbol: str = "LOWCAPS",
    base_symbol: str = "SUPRA",
    console: Console | None = None,
) -> None:
    """Print a snapshot as a rich panel or as raw JSON.

    Args:
        token_data: Display-ready figures to print
        status: Optional connection status shown beneath the figures
        output_format: TABLE for the rich panel, JSON for machine output
        symbol: Display symbol of the tracked token
        base_symbol: Display symbol of the base asset
        console: Console to print to; a fresh stdout console by default
    """
    if output_format == OutputFormat.JSON:
        data: dict[str, Any] = {"token_data": token_data.to_dict()}
        if status is not None:
            data["status"] = status_to_dict(status)
        print(json.dumps(data, indent=2))
        return

    console = console or Console()
    console.print(
        build_dashboard_panel(
            token_data, status, symbol=symbol, base_symbol=base_symbol
        )
    )
