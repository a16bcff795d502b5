from __future__ import annotations

from .generator import TokenData, generate_token_data
from .publisher import publish_to_stdout

__all__ = [
    "TokenData",
    "generate_token_data",
    "publish_to_stdout",
]
