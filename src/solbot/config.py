"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Telegram
    # ======================
    telegram_bot_token: str = Field(default="", description="Telegram bot token from BotFather")

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/solbot.db",
        description="Database connection URL",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug mode")

    # ======================
    # Admin
    # ======================
    admin_user_ids: str = Field(
        default="",
        description="Comma-separated Telegram user IDs allowed to run /addtrader (empty = anyone)",
    )

    # ======================
    # Solana
    # ======================
    solana_rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com", description="Solana RPC URL"
    )
    confirm_timeout_seconds: float = Field(
        default=60.0, description="Max wait for a submitted transaction to reach 'confirmed'"
    )
    explorer_tx_url: str = Field(
        default="https://explorer.solana.com/tx", description="Explorer base URL for signatures"
    )

    # ======================
    # Encryption
    # ======================
    encryption_key: Optional[str] = Field(
        default=None, description="Process-wide secret used to seal imported wallet secrets"
    )

    # ======================
    # Jupiter / Prices
    # ======================
    jupiter_api_url: str = Field(
        default="https://quote-api.jup.ag/v6", description="Jupiter quote/swap API"
    )
    jupiter_api_key: Optional[str] = Field(default=None, description="Optional Jupiter API key")
    token_list_url: str = Field(
        default="https://token.jup.ag/strict", description="Jupiter token list"
    )
    swap_slippage_bps: int = Field(default=50, description="Swap slippage in basis points (0.5%)")
    coingecko_api_url: str = Field(
        default="https://api.coingecko.com/api/v3", description="CoinGecko API base URL"
    )
    http_timeout_seconds: float = Field(default=30.0, description="Timeout for HTTP API calls")

    # ======================
    # Sessions
    # ======================
    session_ttl_seconds: int = Field(
        default=900, description="Idle lifetime of an in-progress chat flow"
    )
    chat_lock_timeout_seconds: float = Field(
        default=180.0, description="Max wait for the previous event of the same chat"
    )

    @property
    def admin_ids(self) -> list[int]:
        """Parse admin user IDs into a list of integers."""
        if not self.admin_user_ids:
            return []
        return [int(uid.strip()) for uid in self.admin_user_ids.split(",") if uid.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "database_url": self._redact_url(self.database_url),
            "telegram_bot_token": "***" if self.telegram_bot_token else "(not set)",
            "encryption_key": "***" if self.encryption_key else "(not set)",
            "admin_user_ids": self.admin_user_ids or "(none)",
            "solana": {
                "rpc": self.solana_rpc_url,
                "confirm_timeout": self.confirm_timeout_seconds,
            },
            "jupiter": {
                "api": self.jupiter_api_url,
                "api_key": "***" if self.jupiter_api_key else "(not set)",
                "slippage_bps": self.swap_slippage_bps,
            },
            "session_ttl": self.session_ttl_seconds,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
