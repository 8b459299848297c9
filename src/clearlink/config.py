"""Application configuration using pydantic-settings.

Values are read from ``CLEARLINK_*`` environment variables or a ``.env`` file.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CLEARLINK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Clearnode
    # ======================
    clearnode_url: str = Field(
        default="http://127.0.0.1:7824/rpc", description="Clearnode JSON-RPC endpoint"
    )

    # ======================
    # Chain
    # ======================
    rpc_url: str = Field(default="http://127.0.0.1:8545", description="EVM JSON-RPC endpoint")
    chain_id: int = Field(default=31337, description="Chain id the client deposits on")
    private_key: Optional[str] = Field(
        default=None, description="Owner private key (hex) used to sign transactions and requests"
    )
    gas_limit: int = Field(default=500_000, description="Gas limit for custody transactions")

    # ======================
    # Timeouts
    # ======================
    http_timeout: float = Field(default=30.0, description="Per-request HTTP timeout in seconds")
    receipt_timeout: float = Field(
        default=60.0, description="Seconds to wait for a transaction receipt"
    )
    receipt_poll_interval: float = Field(
        default=1.0, description="Seconds between receipt polls"
    )
    convergence_timeout: float = Field(
        default=20.0, description="Seconds to wait for the clearnode to index a channel"
    )
    convergence_poll_interval: float = Field(
        default=0.25, description="Seconds between home channel polls"
    )

    # ======================
    # Safety
    # ======================
    dry_run: bool = Field(
        default=False, description="Use the in-memory chain and clearnode (no real transactions)"
    )

    @property
    def has_key(self) -> bool:
        """Check if an owner private key is configured."""
        return bool(self.private_key and self.private_key.strip())

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "clearnode_url": self.clearnode_url,
            "rpc_url": self.rpc_url,
            "chain_id": self.chain_id,
            "private_key": "***" if self.has_key else "(not set)",
            "gas_limit": self.gas_limit,
            "timeouts": {
                "http": self.http_timeout,
                "receipt": self.receipt_timeout,
                "convergence": self.convergence_timeout,
                "convergence_poll": self.convergence_poll_interval,
            },
            "dry_run": self.dry_run,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
