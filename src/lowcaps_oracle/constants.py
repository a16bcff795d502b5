"""Supra network, Dexlyn router and token constants."""

from typing import TypedDict


class TokenInfo(TypedDict):
    symbol: str
    name: str
    type_tag: str
    decimals: int


DEFAULT_SUPRA_RPC_URL = "https://rpc-mainnet.supra.com"
SUPRA_MAINNET_CHAIN_ID = 8

DEXLYN_ROUTER_ADDRESS = (
    "0xdc694898dff98a1b0447e0992d0413e123ea80da1021d464a4fbaf0265870d8"
)
UNCORRELATED_CURVE_TYPE = f"{DEXLYN_ROUTER_ADDRESS}::curves::Uncorrelated"

# Framework view functions
CHAIN_ID_FUNCTION = "0x1::chain_id::get"
COIN_BALANCE_FUNCTION = "0x1::coin::balance"
COIN_SUPPLY_FUNCTION = "0x1::coin::supply"

# Router view functions (relative to the router module address)
GET_RESERVES_SIZE = "router::get_reserves_size"
GET_FEES_CONFIG = "router::get_fees_config"

# Dexlyn platform fee: 25 / 10000 = 0.25%
DEFAULT_FEE_NUMERATOR = 25
DEFAULT_FEE_SCALE = 10_000

SUPRA_TOKEN: TokenInfo = {
    "symbol": "SUPRA",
    "name": "SUPRA",
    "type_tag": "0x1::supra_coin::SupraCoin",
    "decimals": 8,
}

DEXUSDC_TOKEN: TokenInfo = {
    "symbol": "dexUSDC",
    "name": "dexUSDC",
    "type_tag": (
        "0x8f7d16ade319b0fce368ca6cdb98589c4527ce7f5b51e544a9e68e719934458b"
        "::hyper_coin::DexlynUSDC"
    ),
    "decimals": 6,
}

LOWCAPS_TOKEN: TokenInfo = {
    "symbol": "LOWCAPS",
    "name": "Low Cap Gems",
    "type_tag": (
        "0x35e70dea5a275dda4bdba9c5903d489891a10712dfbfa2bf04cc009f77026b94"
        "::lowCapGems::LOWCAPS"
    ),
    "decimals": 6,
}

LOWCAPS_TOTAL_SUPPLY = 1_000_000_000
