"""Configuration system for Node Wallet AI.

Loads the app config from `.node-wallet-ai/config.yaml` and supports
environment variable expansion so secrets (API keys, wallet secrets) can stay
out of the file.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is so that
    validation can catch it later.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


def is_unresolved(value: str) -> bool:
    """Return True if *value* still contains an unexpanded ``${VAR}`` placeholder."""
    return bool(_ENV_VAR_RE.search(value))


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class LLMProviderConfig(BaseModel):
    """Configuration for a single LLM provider (Anthropic, OpenAI, etc.)."""

    api_key: str = ""
    model: str = ""
    base_url: Optional[str] = None  # For OpenAI-compatible endpoints
    max_tokens: int = 4096


class LLMConfig(BaseModel):
    """Top-level LLM configuration that can hold multiple providers."""

    default_provider: str = "anthropic"
    anthropic: Optional[LLMProviderConfig] = None
    openai: Optional[LLMProviderConfig] = None


class WalletConfig(BaseModel):
    """Solana wallet settings."""

    cluster: str = "devnet"
    rpc_url: Optional[str] = None     # overrides the cluster default, or ${SOLANA_RPC_URL}
    backend: str = "keypair"          # "keypair", "extension" or "mobile"
    bridge_url: str = "http://127.0.0.1:8765"
    secret_key: str = ""              # ${SOLANA_SECRET_KEY}, keypair backend only
    keypair_file: str = "wallet.json"  # JSON keypair in the app directory, used when no secret_key is set
    app_identity_name: str = "Node Wallet AI"
    app_identity_uri: str = "https://github.com/node-wallet-ai"
    request_timeout: float = 30.0


class SessionConfig(BaseModel):
    """AI session settings."""

    provider: Optional[str] = None    # Override LLMConfig.default_provider
    model: Optional[str] = None
    max_tool_rounds: int = 8
    system_instruction: str = ""      # Extra text appended to the built-in instruction


class StorageConfig(BaseModel):
    """Where the node graph is persisted."""

    backend: str = "sqlite"           # "sqlite" or "memory"
    path: str = "state.db"            # relative to the app directory


class LimitsConfig(BaseModel):
    """Guard rails for AI-initiated wallet operations."""

    transfers_per_hour: int = 5
    max_history: int = 50


class AppConfig(BaseModel):
    """Root configuration object."""

    name: str = "My Node Wallet"
    llm: LLMConfig = Field(default_factory=LLMConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def get_app_dir(base: Path | None = None, *, create: bool = True) -> Path:
    """Return the ``.node-wallet-ai/`` directory.

    Parameters
    ----------
    base:
        Parent directory that contains (or will contain) the app folder.
        Defaults to the current working directory.
    create:
        If *True* (default), create the directory if it doesn't exist.
    """
    if base is None:
        base = Path.cwd()
    app_dir = base / ".node-wallet-ai"
    if create:
        app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def load_config(path: Path) -> AppConfig:
    """Load and validate an app configuration from a YAML file.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation. A missing file yields the default configuration.
    """
    if not path.exists():
        return AppConfig()
    raw_text = path.read_text(encoding="utf-8")
    raw_data = yaml.safe_load(raw_text) or {}
    expanded = _expand_env_recursive(raw_data)
    return AppConfig.model_validate(expanded)


def save_config(config: AppConfig, path: Path) -> None:
    """Serialize an :class:`AppConfig` to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="python", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)
