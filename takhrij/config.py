"""
Centralized Configuration for the Takhrij Backend
=================================================

Single source of truth for all environment variables and settings.
Uses Pydantic for validation and type safety.
"""

from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PACKAGE_DIR = Path(__file__).parent


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and .env file.

    Environment variables take precedence over .env file values.
    """

    # ==========================================
    #  APPLICATION SETTINGS
    # ==========================================

    app_name: str = "Takhrij"
    app_version: str = "1.0.0"
    environment: str = Field("production", description="development, staging, production or test")

    # ==========================================
    #  SERVER SETTINGS
    # ==========================================

    host: str = "0.0.0.0"
    port: int = 3000

    # CORS origins (comma-separated, "*" allowed)
    cors_origins: Union[List[str], str] = "*"

    # ==========================================
    #  GENERATIVE MODEL
    # ==========================================

    llm_provider: str = Field("openrouter", description="openrouter or anthropic")

    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"

    anthropic_api_key: str = ""

    llm_timeout_seconds: float = 60.0

    # Free-text fallback for unmatched queries.
    # Temperature left unset means the provider default is used.
    fallback_model: str = "deepseek/deepseek-chat-v3-0324:free"
    fallback_max_tokens: int = 1200
    fallback_temperature: Optional[float] = None

    # Structured commentary
    commentary_model: str = "openai/gpt-4o-mini"
    commentary_max_tokens: int = 600
    commentary_temperature: Optional[float] = 0.0
    commentary_coalesce_inflight: bool = True

    # Narrator biographies
    bio_model: str = "deepseek/deepseek-chat-v3-0324:free"
    bio_max_tokens: int = 800
    bio_temperature: Optional[float] = 0.0

    # ==========================================
    #  SEARCH
    # ==========================================

    # Maximum fuzzy distance (0 = exact, 1 = anything)
    search_threshold: float = 0.2
    search_max_results: int = 10

    # ==========================================
    #  RATE LIMITING
    # ==========================================

    ai_rate_limit_max_calls: int = 15
    ai_rate_limit_window_seconds: float = 24 * 60 * 60

    # ==========================================
    #  CORPUS
    # ==========================================

    # If set, collections are read from <corpus_dir>/<key>.json instead of the network
    corpus_dir: Optional[Path] = None
    collection_url_template: str = (
        "https://firebasestorage.googleapis.com/v0/b/takhrij-json.firebasestorage.app"
        "/o/{key}.json?alt=media"
    )
    # Per-collection overrides, e.g. COLLECTION_URLS='{"bukhari": "https://..."}'
    collection_urls: Dict[str, str] = {}
    collection_timeout_seconds: float = 60.0

    mutawatir_file: Path = PACKAGE_DIR / "data" / "mutawatir.json"

    # ==========================================
    #  LOGGING
    # ==========================================

    log_level: str = "INFO"
    log_dir: Path = Path("logs")
    log_to_file: bool = True

    # ==========================================
    #  VALIDATORS
    # ==========================================

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Convert comma-separated string to list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f'log_level must be one of {valid_levels}')
        return v_upper

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        """Ensure environment is valid."""
        valid_envs = ['development', 'staging', 'production', 'test']
        v_lower = v.lower()
        if v_lower not in valid_envs:
            raise ValueError(f'environment must be one of {valid_envs}')
        return v_lower

    @field_validator('llm_provider')
    @classmethod
    def validate_llm_provider(cls, v):
        valid_providers = ['openrouter', 'anthropic']
        v_lower = v.lower()
        if v_lower not in valid_providers:
            raise ValueError(f'llm_provider must be one of {valid_providers}')
        return v_lower

    @field_validator('search_threshold')
    @classmethod
    def validate_search_threshold(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError('search_threshold must be between 0 and 1')
        return v

    @model_validator(mode='after')
    def validate_api_key(self):
        """Ensure the active provider's API key is present and looks valid."""
        if self.llm_provider == 'anthropic':
            key, env_name = self.anthropic_api_key, 'ANTHROPIC_API_KEY'
        else:
            key, env_name = self.openrouter_api_key, 'OPENROUTER_API_KEY'

        if not key or len(key) < 10:
            raise ValueError(
                f'{env_name} is required and must be valid '
                f'when LLM_PROVIDER={self.llm_provider}'
            )
        return self

    # ==========================================
    #  COMPUTED PROPERTIES
    # ==========================================

    @property
    def llm_api_key(self) -> str:
        """API key of the configured provider."""
        if self.llm_provider == 'anthropic':
            return self.anthropic_api_key
        return self.openrouter_api_key

    def collection_url(self, key: str) -> str:
        """Remote URL for one collection."""
        return self.collection_urls.get(key) or self.collection_url_template.format(key=key)

    def ensure_directories(self):
        """Ensure all required directories exist."""
        if self.log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    # ==========================================
    #  PYDANTIC CONFIG
    # ==========================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        # Allow extra fields for forward compatibility
        extra="ignore",
    )


# ==========================================
#  GLOBAL SETTINGS INSTANCE
# ==========================================

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get global settings instance (singleton pattern).

    This ensures we only load the .env file once and validate once.
    """
    global _settings

    if _settings is None:
        _settings = Settings()
        _settings.ensure_directories()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).
    """
    global _settings
    _settings = None
    return get_settings()
