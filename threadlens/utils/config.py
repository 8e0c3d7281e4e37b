"""
Settings for ThreadLens.

Values come from the environment and an optional .env file. Flat
variables (MODEL_API_KEY, DEFAULT_MODE, LOG_LEVEL, ...) are folded into
one section model per component after loading.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from threadlens.models.conversation import ParsingMode


class ModelProvider(str, Enum):
    """Supported language model providers."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"


class LogLevel(str, Enum):
    """Logging level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


DEFAULT_API_URLS = {
    ModelProvider.ANTHROPIC: "https://api.anthropic.com/v1",
    ModelProvider.OPENAI: "https://api.openai.com/v1",
}

DEFAULT_MODEL_NAMES = {
    ModelProvider.ANTHROPIC: "claude-sonnet-4-20250514",
    ModelProvider.OPENAI: "gpt-4o-mini",
}


class ModelSettings(BaseSettings):
    """Language model backend configuration."""

    model_config = SettingsConfigDict(env_prefix="MODEL_", protected_namespaces=())

    provider: ModelProvider = Field(
        default=ModelProvider.ANTHROPIC, description="Backend provider"
    )
    api_key: str = Field(default="", description="Provider API key")
    api_url: str = Field(default="", description="Provider base URL override")
    model_name: str = Field(default="", description="Model identifier override")
    max_tokens: int = Field(default=4000, ge=1, description="Completion token limit")
    request_timeout: float = Field(
        default=60.0, gt=0, description="HTTP request timeout in seconds"
    )
    dimension_timeout: float = Field(
        default=90.0, gt=0, description="Deadline for a single analysis call"
    )

    @property
    def resolved_api_url(self) -> str:
        """Base URL, falling back to the provider default."""
        return (self.api_url or DEFAULT_API_URLS[self.provider]).rstrip("/")

    @property
    def resolved_model_name(self) -> str:
        """Model name, falling back to the provider default."""
        return self.model_name or DEFAULT_MODEL_NAMES[self.provider]


class ParsingSettings(BaseSettings):
    """Parsing and mode selection configuration."""

    default_mode: ParsingMode = Field(
        default=ParsingMode.AUTO, description="Mode used when a request names none"
    )
    advanced_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Complexity score above which Auto resolves to Advanced",
    )
    short_text_length: int = Field(
        default=200, ge=0, description="Texts shorter than this lower the complexity"
    )
    max_conversation_length: int = Field(
        default=200000, ge=100, description="Maximum conversation length in characters"
    )


class PatternSettings(BaseSettings):
    """Pattern catalog configuration."""

    model_config = SettingsConfigDict(env_prefix="PATTERNS_")

    file: Optional[Path] = Field(
        default=None, description="Pattern resource overriding the packaged one"
    )
    cache_ttl_seconds: float = Field(
        default=300.0, gt=0, description="Catalog cache lifetime"
    )


class TaxonomySettings(BaseSettings):
    """Taxonomy configuration."""

    model_config = SettingsConfigDict(env_prefix="TAXONOMY_")

    default_industry: str = Field(
        default="default", description="Industry template used without an override"
    )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    dir: Path = Field(default=Path("./logs"), description="Log directory")
    json_format: bool = Field(default=False, description="Use JSON log format")

    @field_validator("dir", mode="before")
    @classmethod
    def ensure_path(cls, v: str | Path) -> Path:
        """Ensure log directory is a Path object."""
        return Path(v) if isinstance(v, str) else v


class Settings(BaseSettings):
    """
    All ThreadLens settings.

    Components read the section models (settings.model, settings.parsing,
    ...); the flat fields only exist to pick up unprefixed variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=(),
    )

    # Component settings
    model: ModelSettings = Field(default_factory=ModelSettings)
    parsing: ParsingSettings = Field(default_factory=ParsingSettings)
    patterns: PatternSettings = Field(default_factory=PatternSettings)
    taxonomy: TaxonomySettings = Field(default_factory=TaxonomySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    # Direct access fields (loaded from env)
    model_provider: str = Field(default="anthropic")
    model_api_key: str = Field(default="")
    model_api_url: str = Field(default="")
    model_name: str = Field(default="")
    model_max_tokens: int = Field(default=4000)
    model_request_timeout: float = Field(default=60.0)
    model_dimension_timeout: float = Field(default=90.0)
    default_mode: str = Field(default="Auto")
    advanced_threshold: float = Field(default=0.6)
    short_text_length: int = Field(default=200)
    max_conversation_length: int = Field(default=200000)
    patterns_file: str = Field(default="")
    patterns_cache_ttl_seconds: float = Field(default=300.0)
    default_industry: str = Field(default="default")
    log_level: str = Field(default="INFO")
    log_dir: str = Field(default="./logs")
    log_json_format: bool = Field(default=False)

    def model_post_init(self, __context) -> None:
        """Fold the flat variables into the section models."""
        # Model backend settings
        self.model = ModelSettings(
            provider=ModelProvider(self.model_provider.lower()),
            api_key=self.model_api_key or self.model.api_key,
            api_url=self.model_api_url or self.model.api_url,
            model_name=self.model_name or self.model.model_name,
            max_tokens=self.model_max_tokens,
            request_timeout=self.model_request_timeout,
            dimension_timeout=self.model_dimension_timeout,
        )

        # Parsing settings
        self.parsing = ParsingSettings(
            default_mode=ParsingMode.from_value(self.default_mode),
            advanced_threshold=self.advanced_threshold,
            short_text_length=self.short_text_length,
            max_conversation_length=self.max_conversation_length,
        )

        # Pattern catalog settings
        self.patterns = PatternSettings(
            file=Path(self.patterns_file) if self.patterns_file else self.patterns.file,
            cache_ttl_seconds=self.patterns_cache_ttl_seconds,
        )

        self.taxonomy = TaxonomySettings(default_industry=self.default_industry)

        # Logging settings
        self.logging = LoggingSettings(
            level=LogLevel(self.log_level.upper()),
            dir=Path(self.log_dir),
            json_format=self.log_json_format,
        )

    @property
    def has_model_backend(self) -> bool:
        """Check whether a language model backend is configured."""
        return bool(self.model.api_key)

    def validate_required(self, require_model: bool = False) -> list[str]:
        """
        Validate that required configuration is present.

        Args:
            require_model: Treat the model backend credentials as required

        Returns:
            List of missing required configuration keys.
        """
        missing = []

        if require_model and not self.model.api_key:
            missing.append("MODEL_API_KEY")
        if self.patterns.file is not None and not self.patterns.file.exists():
            missing.append("PATTERNS_FILE")

        return missing


@lru_cache
def get_settings() -> Settings:
    """Settings loaded once per process; see reload_settings()."""
    return Settings()


def reload_settings() -> Settings:
    """
    Reload settings, clearing the cache.

    Returns:
        Fresh Settings instance.
    """
    get_settings.cache_clear()
    return get_settings()
