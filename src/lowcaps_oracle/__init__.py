"""On-chain price, market cap and supply feed for the LOWCAPS dashboard."""

__version__ = "0.1.0"
