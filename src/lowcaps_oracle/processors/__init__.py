from __future__ import annotations

from .swap_quote import get_amount_out

__all__ = ["get_amount_out"]
