"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
import re
import tomllib
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Annotated, Any
from urllib.parse import urlsplit, urlunsplit

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    DEFAULT_ADDITIONAL_COST_GOALS,
    DEFAULT_ORDER_API_URL,
    DEFAULT_SOLANA_RPC_URL,
    DEFAULT_SPL_POOL_THRESHOLD,
    EVM_CHAIN_CONFIGS,
)
from .errors import UnsupportedChainError

load_dotenv()

CONFIG_ENV_VAR = "SWIFT_TRACKER_CONFIG"

# Path segments that look like provider API keys (e.g. quicknode / alchemy tokens)
_API_KEY_SEGMENT = re.compile(r"^[A-Za-z0-9_-]{24,}$")


class Commitment(str, Enum):
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"


def redact_url(url: str) -> str:
    """Hide credentials embedded in an RPC URL (userinfo, query, key-like path segments)."""
    parts = urlsplit(url)
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    if parts.username or parts.password:
        netloc = f"***@{netloc}"
    segments = [
        "***" if _API_KEY_SEGMENT.match(segment) else segment
        for segment in parts.path.split("/")
    ]
    query = "***" if parts.query else ""
    return urlunsplit((parts.scheme, netloc, "/".join(segments), query, ""))


class TrackerSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with SWIFT_TRACKER_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- endpoints ---
    solana_rpc: str | None = DEFAULT_SOLANA_RPC_URL
    solana_commitment: Commitment = Commitment.CONFIRMED
    evm_rpc_overrides: dict[int, str] = Field(default_factory=dict)
    order_api_url: str = DEFAULT_ORDER_API_URL
    request_timeout: float = Field(default=15.0, gt=0)

    # --- analysis ---
    additional_cost_goals: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_ADDITIONAL_COST_GOALS)
    )
    spl_pool_threshold: Decimal = Field(
        default=DEFAULT_SPL_POOL_THRESHOLD,
        gt=0,
        description="Token changes at or above this decimal-adjusted size are treated as pool operations.",
    )
    max_concurrent_metadata_calls: int = Field(default=8, ge=1)
    global_timeout_seconds: float | None = None

    # --- retries ---
    rpc_max_retry_seconds: float = Field(default=30.0, ge=0)

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="SWIFT_TRACKER_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("additional_cost_goals", mode="before")
    @classmethod
    def split_goals(cls, v: Any) -> Any:
        """Accept a comma separated string (env friendly) as well as a list."""
        if isinstance(v, str):
            return [goal.strip().upper() for goal in v.split(",") if goal.strip()]
        if isinstance(v, list):
            return [str(goal).strip().upper() for goal in v]
        return v

    @field_validator("evm_rpc_overrides")
    @classmethod
    def known_chain_ids(cls, v: dict[int, str]) -> dict[int, str]:
        unknown = sorted(set(v) - set(EVM_CHAIN_CONFIGS))
        if unknown:
            raise ValueError(
                f"evm_rpc_overrides contains unsupported chain ids {unknown}. "
                f"Supported: {sorted(EVM_CHAIN_CONFIGS)}"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get(CONFIG_ENV_VAR)
        cfg_path = Path(env_cfg) if env_cfg else None

        class TomlConfigSource(PydanticBaseSettingsSource):
            def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
                super().__init__(settings_cls)
                self._path = path

            def get_field_value(
                self, field: Any, field_name: str
            ) -> tuple[Any, str, bool]:
                return None, "", False

            def __call__(self) -> dict[str, Any]:
                if not self._path:
                    local_config = Path("swift-tracker.toml")
                    user_config = (
                        Path.home() / ".config" / "swift-tracker" / "config.toml"
                    )
                    if local_config.exists():
                        self._path = local_config
                    elif user_config.exists():
                        self._path = user_config
                    else:
                        return {}

                if not self._path.exists():
                    return {}

                with self._path.open("rb") as f:
                    data = tomllib.load(f)  # supports top-level or [swift_tracker]
                body = data.get("swift_tracker", data)
                if not isinstance(body, dict):
                    return {}

                # TOML tables only allow string keys
                overrides = body.get("evm_rpc_overrides")
                if isinstance(overrides, dict):
                    body["evm_rpc_overrides"] = {
                        int(chain_id): url for chain_id, url in overrides.items()
                    }
                return body

        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a JSON-friendly dict with RPC credentials redacted."""
        data = self.model_dump(mode="json")
        if self.solana_rpc:
            data["solana_rpc"] = redact_url(self.solana_rpc)
        data["evm_rpc_overrides"] = {
            str(chain_id): redact_url(url)
            for chain_id, url in self.evm_rpc_overrides.items()
        }
        return data

    @property
    def solana_rpc_required(self) -> str:
        """Get solana_rpc, raising ValueError if not set."""
        if not self.solana_rpc:
            raise ValueError("solana_rpc must be configured")
        return self.solana_rpc

    def evm_rpc_for(self, chain_id: int) -> str:
        """RPC URL for an EVM chain: configured override, else the chain default.

        Raises:
            UnsupportedChainError: If the chain id is unknown.
        """
        override = self.evm_rpc_overrides.get(chain_id)
        if override:
            return override
        config = EVM_CHAIN_CONFIGS.get(chain_id)
        if config is None:
            raise UnsupportedChainError(f"Unsupported chain ID: {chain_id}")
        return config["rpc_url"]
