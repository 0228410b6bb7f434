"""taskchain.core.config

Three config surfaces only:
1) `config/default.yaml` + `config/presets/*.yaml` (one preset per network)
2) `config/user.yaml` (optional local override)
3) Environment variables (secrets only: signer key, API token)

Everything else is derived.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from eth_utils import is_address, to_checksum_address
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from taskchain.core.exceptions import ConfigError


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


class NetworkConfig(BaseModel):
    name: str = "Lisk Sepolia Testnet"
    chain_id: int = 4202
    rpc_url: str = "https://rpc.sepolia-api.lisk.com"
    explorer_url: str = "https://sepolia-blockscout.lisk.com"
    currency_symbol: str = "ETH"

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        return f"{self.explorer_url.rstrip('/')}/address/{address}"


class ContractConfig(BaseModel):
    address: str = "0x389c7aF690CaD99f2FB604B2fe4c5b4bff9EFF2e"
    from_block: int = 0
    # 0 = one eth_getLogs call for the whole range
    max_block_range: int = 0

    @field_validator("address")
    @classmethod
    def address_must_be_valid(cls, v: str) -> str:
        if not is_address(v):
            raise ValueError(f"invalid contract address: {v}")
        return to_checksum_address(v)

    @field_validator("from_block", "max_block_range")
    @classmethod
    def must_not_be_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("block numbers must be >= 0")
        return v


class TimeoutConfig(BaseModel):
    rpc_timeout_s: float = 20.0
    read_timeout_s: float = 15.0
    confirmation_timeout_s: float = 120.0
    poll_interval_s: float = 2.0

    @field_validator("rpc_timeout_s", "read_timeout_s", "confirmation_timeout_s", "poll_interval_s")
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be > 0")
        return v


class SignerConfig(BaseModel):
    mode: Literal["local", "node", "none"] = "local"
    private_key: str = ""  # env only: TASKCHAIN_SIGNER__PRIVATE_KEY
    account: str = ""  # node mode: preferred account, else the first one the node reports


class ReconcileConfig(BaseModel):
    partial_results_allowed: bool = True
    event_feed_limit: int = 20


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False


class ApiConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 5060
    auth_token: str = ""
    cors_origins: list[str] = Field(default_factory=list)


class Config(BaseSettings):
    """Root configuration. Single source of truth."""

    config_dir: Path = Path("config")

    # Network preset selection
    preset: Literal["lisk-sepolia", "local", "custom"] = "lisk-sepolia"

    network: NetworkConfig = Field(default_factory=NetworkConfig)
    contract: ContractConfig = Field(default_factory=ContractConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    signer: SignerConfig = Field(default_factory=SignerConfig)
    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    model_config = {"env_prefix": "TASKCHAIN_", "env_nested_delimiter": "__"}

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        raw = yaml.safe_load(path.read_text()) or {}
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file must contain a mapping: {path}")

        preset_name = raw.get("preset", "lisk-sepolia")
        preset_path = path.parent / "presets" / f"{preset_name}.yaml"
        if preset_path.exists():
            preset_data = yaml.safe_load(preset_path.read_text()) or {}
            raw = _deep_merge(preset_data, raw)

        raw.setdefault("config_dir", path.parent)
        return cls(**raw)

    @classmethod
    def from_repo_defaults(cls, repo_root: Path | None = None) -> Config:
        root = repo_root or Path.cwd()
        return cls.from_yaml(root / "config" / "default.yaml")

    @classmethod
    def load(cls, repo_root: Path | None = None) -> Config:
        """`config/user.yaml` when present, repo defaults otherwise."""

        root = repo_root or Path.cwd()
        user_path = root / "config" / "user.yaml"
        if user_path.exists():
            return cls.from_yaml(user_path)
        return cls.from_repo_defaults(root)
