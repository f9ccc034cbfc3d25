"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - get_settings() is cached (lru_cache): single instance per process
    - gc_policies keys must name registered type keys (checked when the RootStore is built)
    - policy_table() always carries a default entry built from gc_default_ttl_ms / gc_default_max

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for every setting: a local SQLite file works out-of-the-box
    - GC_POLICIES is a JSON object env var: {"post": {"ttl": 60000, "max": 200}}
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from entigraph.core.domain_types import (
    DEFAULT_GC_MAX,
    DEFAULT_GC_TTL_MS,
    DEFAULT_PERSIST_THROTTLE_MS,
)
from entigraph.core.gc_policy import GCPolicyTable


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = "sqlite+aiosqlite:///./entigraph.db"

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Persistence
    storage_namespace: str = "entigraph"
    persistence_version: int = 1
    persist_throttle_ms: int = DEFAULT_PERSIST_THROTTLE_MS

    # Garbage collection
    gc_default_ttl_ms: int = DEFAULT_GC_TTL_MS
    gc_default_max: int = DEFAULT_GC_MAX
    gc_policies: dict[str, dict[str, int]] = {}
    gc_interval_seconds: float = 300.0
    gc_reclaim_orphan_cycles: bool = False

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    def policy_table(self) -> GCPolicyTable:
        return GCPolicyTable.from_config(
            self.gc_policies,
            {"ttl": self.gc_default_ttl_ms, "max": self.gc_default_max},
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
