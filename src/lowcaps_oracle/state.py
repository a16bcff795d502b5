"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .settings import DashboardSettings


@dataclass
class AppState:
    """Settings and logger shared by the CLI commands.

    Stored on the typer context instead of module globals so commands stay
    testable.
    """

    settings: DashboardSettings
    logger: logging.Logger
