"""Dashboard configuration: CLI flags over environment over a TOML file."""

from __future__ import annotations

import os
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    DEFAULT_FEE_NUMERATOR,
    DEFAULT_FEE_SCALE,
    DEFAULT_SUPRA_RPC_URL,
    DEXLYN_ROUTER_ADDRESS,
    DEXUSDC_TOKEN,
    LOWCAPS_TOKEN,
    LOWCAPS_TOTAL_SUPPLY,
    SUPRA_MAINNET_CHAIN_ID,
    SUPRA_TOKEN,
    UNCORRELATED_CURVE_TYPE,
)

load_dotenv()

CONFIG_ENV_VAR = "LOWCAPS_ORACLE_CONFIG"
CONFIG_TABLE = "lowcaps_oracle"
LOCAL_CONFIG_FILE = "lowcaps-oracle.toml"


class SupplySource(str, Enum):
    STATIC = "static"
    ONCHAIN = "onchain"


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"


def find_config_file() -> Path | None:
    """Locate the TOML config.

    An explicit ``LOWCAPS_ORACLE_CONFIG`` path is returned as-is, even when it
    does not exist. Otherwise the working directory is searched, then the
    user config directory.
    """
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        return Path(explicit)
    for candidate in (
        Path(LOCAL_CONFIG_FILE),
        Path.home() / ".config" / "lowcaps-oracle" / "config.toml",
    ):
        if candidate.is_file():
            return candidate
    return None


class TomlFileSource(PydanticBaseSettingsSource):
    """Settings read from a TOML file, top-level or under ``[lowcaps_oracle]``."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
        super().__init__(settings_cls)
        self.path = path

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        # Unused: __call__ returns the whole mapping at once.
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        if self.path is None or not self.path.is_file():
            return {}
        data = tomllib.loads(self.path.read_text(encoding="utf-8"))
        section = data.get(CONFIG_TABLE, data)
        return section if isinstance(section, dict) else {}


class TokenSpec(BaseModel):
    """A coin as the router sees it: its Move type tag and decimal precision."""

    symbol: str
    name: str = ""
    type_tag: str
    decimals: int = Field(ge=0, le=36)

    model_config = ConfigDict(extra="ignore", frozen=True)


class DashboardSettings(BaseSettings):
    """Every tunable of the oracle and its refresh loop.

    Environment variables use the ``LOWCAPS_ORACLE_`` prefix; nested token
    fields use ``__`` (``LOWCAPS_ORACLE_BASE_TOKEN__DECIMALS=8``). Nothing else
    in the package reads the environment or config files.
    """

    # --- node / router ---
    rpc_url: str = DEFAULT_SUPRA_RPC_URL
    rpc_timeout: float = Field(default=15.0, gt=0)
    expected_chain_id: int = SUPRA_MAINNET_CHAIN_ID
    router_address: str = DEXLYN_ROUTER_ADDRESS
    curve_type: str = UNCORRELATED_CURVE_TYPE

    # --- tokens ---
    target_token: TokenSpec = TokenSpec(**LOWCAPS_TOKEN)
    base_token: TokenSpec = TokenSpec(**SUPRA_TOKEN)
    stable_token: TokenSpec = TokenSpec(**DEXUSDC_TOKEN)

    # --- supply ---
    total_supply: int = Field(default=LOWCAPS_TOTAL_SUPPLY, gt=0)
    circulating_supply_source: SupplySource = SupplySource.STATIC
    locked_supply_accounts: list[str] = Field(default_factory=list)

    # --- fees ---
    default_fee_numerator: int = Field(default=DEFAULT_FEE_NUMERATOR, ge=0)
    default_fee_scale: int = Field(default=DEFAULT_FEE_SCALE, gt=0)

    # --- caching / refresh ---
    cache_ttl_seconds: float = Field(default=30.0, gt=0)
    refresh_interval_seconds: float = Field(default=60.0, ge=0)
    retry_enabled: bool = True
    retry_delay_seconds: float = Field(default=5.0, ge=0)
    retry_max_attempts: int = Field(default=3, ge=1)
    rpc_max_tries: int = Field(default=3, ge=1)
    rpc_retry_base_delay: float = Field(default=1.0, ge=0)
    max_consecutive_errors: int = Field(default=5, ge=1)
    force_refresh_settle_seconds: float = Field(default=1.0, ge=0)

    # --- output ---
    output_format: OutputFormat = OutputFormat.TABLE

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="LOWCAPS_ORACLE_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_default_fee(self) -> "DashboardSettings":
        """The fallback fee must be a proper fraction of its scale."""
        if self.default_fee_numerator >= self.default_fee_scale:
            raise ValueError(
                f"default_fee_numerator ({self.default_fee_numerator}) "
                f"must be less than default_fee_scale ({self.default_fee_scale})"
            )
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Precedence, highest first: CLI kwargs, ENV, .env, TOML file."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlFileSource(settings_cls, find_config_file()),
            file_secret_settings,
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a JSON-serialisable dict."""
        return self.model_dump(mode="json")
