from __future__ import annotations

from .oracle import FeeConfig, FeeLookupError, PoolOracle, PoolReserves, ReserveError

__all__ = ["FeeConfig", "FeeLookupError", "PoolOracle", "PoolReserves", "ReserveError"]
