"""
Configuration management for privstore
Quota ceilings, retention horizons, crypto capability and backend settings
"""

from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field

from .constants import DEFAULT_SENSITIVE_KEYS, EncryptionDefaults, QuotaDefaults


class StoreConfig(BaseSettings):
    """Storage, quota and encryption settings"""

    # Schema
    schema_version: int = Field(default=QuotaDefaults.SCHEMA_VERSION)

    # Quota settings
    max_total_kb: int = Field(default=QuotaDefaults.MAX_TOTAL_KB, description="Soft aggregate ceiling")
    max_value_kb: int = Field(default=QuotaDefaults.MAX_VALUE_KB, description="Per-entry ceiling")
    storage_warn_percent: int = Field(default=QuotaDefaults.STORAGE_WARN_PERCENT)

    # Retention settings
    init_prune_days: int = Field(default=QuotaDefaults.INIT_PRUNE_DAYS)
    pressure_prune_days: int = Field(default=QuotaDefaults.PRESSURE_PRUNE_DAYS)

    # Crypto settings
    kdf_iterations: int = Field(default=EncryptionDefaults.ITERATIONS)
    key_size_bits: int = Field(default=EncryptionDefaults.KEY_SIZE_BITS, description="AES key size in bits")
    crypto_available: bool = Field(
        default=True,
        description="Whether the host can perform authenticated encryption"
    )
    sensitive_keys: List[str] = Field(default_factory=lambda: list(DEFAULT_SENSITIVE_KEYS))

    # Backend settings
    database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy URL for the persisted medium; in-memory when unset"
    )

    # Logging
    log_level: str = Field(default="INFO")

    model_config = {"env_prefix": "PRIVSTORE_", "case_sensitive": False}

    @property
    def max_total_bytes(self) -> int:
        return self.max_total_kb * 1024

    @property
    def max_value_bytes(self) -> int:
        return self.max_value_kb * 1024


# Global configuration instance
store_config = StoreConfig()


def get_store_config() -> StoreConfig:
    """Get the global store configuration instance"""
    return store_config
