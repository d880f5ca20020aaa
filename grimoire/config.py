from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="GRIMOIRE_")

    app_name: str = "Grimoire"
    debug: bool = False

    api_base_url: str = "https://www.dnd5eapi.co/api/2014"
    request_timeout: float = 30.0

    database_url: str = "sqlite+aiosqlite:///./grimoire.db"

    # Per-spell detail fetches
    spell_batch_size: int = 10
    spell_batch_delay_ms: int = 500

    # Class probes ("does this class have any spells?")
    class_probe_batch_size: int = 5
    class_probe_delay_ms: int = 300

    # Per-class spell index lists
    class_index_batch_size: int = 3
    class_index_delay_ms: int = 400

    # Retry for class discovery calls only (never per-spell)
    discovery_retry_attempts: int = 3
    discovery_retry_max_wait: float = 30.0

    partition_index_ttl_seconds: int = 7 * 24 * 60 * 60
    catalog_ttl_seconds: int = 24 * 60 * 60

    daily_sample_size: int = 12

    search_max_results: int = 100
    search_max_distance: float = 0.6


settings = Settings()


# =============================================================================
# SPELL RECORD BOUNDS
# =============================================================================

# Level 0 is a cantrip (unlimited use)
MIN_SPELL_LEVEL = 0
MAX_SPELL_LEVEL = 9
