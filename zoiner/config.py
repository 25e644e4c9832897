"""Configuration management for the Zoiner bot."""

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr


class FarcasterConfig(BaseModel):
    """Farcaster/Neynar connection settings."""

    api_key: SecretStr = Field(..., description="Neynar API key")
    signer_uuid: str = Field(..., description="Neynar signer UUID used to publish replies")
    bot_fid: int = Field(..., ge=1, description="Bot's Farcaster ID")
    bot_name: str = Field(default="zoiner", description="Bot's username (without @)")
    api_base_url: str = "https://api.neynar.com/v2/farcaster"
    webhook_secret: Optional[SecretStr] = Field(
        default=None, description="Neynar webhook secret for signature verification"
    )


class LLMConfig(BaseModel):
    """Advisory model settings."""

    enabled: bool = Field(default=True, description="Disable to run in rule-only mode")
    provider: Literal["anthropic", "openai"] = "anthropic"
    api_key: Optional[SecretStr] = Field(default=None, description="API key for LLM provider")
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = Field(default=1000, ge=1, le=4096)
    temperature: float = Field(default=0.7, ge=0.0, le=1.0)
    timeout: float = Field(default=30.0, gt=0, description="Seconds before an advisory call times out")


class PinataConfig(BaseModel):
    """IPFS pinning settings."""

    jwt: SecretStr = Field(..., description="Pinata JWT")
    api_url: str = "https://api.pinata.cloud"
    gateway_url: str = Field(
        default="gateway.pinata.cloud", description="Dedicated gateway host (no scheme)"
    )
    public_gateways: list[str] = Field(
        default_factory=lambda: ["https://gateway.pinata.cloud/ipfs", "https://ipfs.io/ipfs"]
    )
    validation_timeout: float = Field(default=5.0, gt=0)


class ZoraConfig(BaseModel):
    """Zora coin factory settings."""

    rpc_url: str = "https://mainnet.base.org"
    chain_id: int = 8453
    private_key: SecretStr = Field(..., description="Hot wallet key that submits deployments")
    factory_address: str = Field(
        default="0x777777751622c0d3258f214F9DF38E35BF45baF3",
        pattern=r"^0x[0-9a-fA-F]{40}$",
    )
    platform_referrer: str = Field(..., pattern=r"^0x[0-9a-fA-F]{40}$")
    pool_config: str = Field(default="0x", description="Hex-encoded pool config passed to deploy")
    gas_multiplier: float = Field(default=1.2, ge=1.0, le=3.0)
    receipt_timeout: int = Field(default=120, ge=10)
    viewer_base_url: str = "https://zora.co/coin/base:"


class BotConfig(BaseModel):
    """Bot behavior settings."""

    dry_run: bool = Field(default=False, description="Reply with simulated results, never mint")
    cooldown_seconds: int = Field(default=30, ge=1)
    cooldown_eviction_seconds: int = Field(default=3600, ge=60)
    loop_guard_seconds: int = Field(default=10, ge=0)
    conversation_retention: int = Field(default=5, ge=1)
    service_timeout: float = Field(default=15.0, gt=0, description="Timeout for non-advisory calls")
    shutdown_drain_seconds: float = Field(default=30.0, ge=0)

    # Database settings
    database_path: str = Field(
        default="~/.zoiner/zoiner.db", description="Path to SQLite database file"
    )


class ServerConfig(BaseModel):
    """Webhook server settings."""

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    public_url: Optional[str] = Field(
        default=None, description="Public base URL, enables the /metadata fallback"
    )


class Config(BaseModel):
    """Root configuration model."""

    farcaster: FarcasterConfig
    llm: LLMConfig = LLMConfig()
    pinata: PinataConfig
    zora: ZoraConfig
    bot: BotConfig = BotConfig()
    server: ServerConfig = ServerConfig()


def load_config(config_path: str | Path = "config.yaml") -> Config:
    """Load and validate configuration from YAML file.

    Supports ${VAR_NAME} syntax for environment variable expansion.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValidationError: If config is invalid.
        ValueError: If referenced environment variable is not set.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\n"
            "Copy config.example.yaml to config.yaml and fill in your values."
        )

    with path.open() as f:
        raw_config = yaml.safe_load(f)

    # Expand environment variables in the format ${VAR_NAME}
    def expand_env_vars(obj):
        if isinstance(obj, dict):
            return {k: expand_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [expand_env_vars(item) for item in obj]
        elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
            env_var = obj[2:-1]
            value = os.getenv(env_var)
            if value is None:
                raise ValueError(f"Environment variable '{env_var}' is not set")
            return value
        return obj

    raw_config = expand_env_vars(raw_config or {})

    return Config(**raw_config)
