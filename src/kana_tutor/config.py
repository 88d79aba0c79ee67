"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

BYTES_PER_MB = 1024 * 1024


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        if 'server' in data:
            flattened['host'] = data['server'].get('host')
            flattened['port'] = data['server'].get('port')
        if 'storage' in data:
            storage = data['storage']
            flattened['storage_key'] = storage.get('key')
            flattened['advisory_threshold_mb'] = storage.get('advisory_threshold_mb')
            flattened['proactive_prune_threshold_mb'] = (
                storage.get('proactive_prune_threshold_mb')
            )
            flattened['quota_threshold_mb'] = storage.get('quota_threshold_mb')
            flattened['size_check_interval_seconds'] = (
                storage.get('size_check_interval_seconds')
            )
            caps = storage.get('retention', {}) or {}
            flattened['max_quiz_results'] = caps.get('quiz_results')
            flattened['max_practice_sessions'] = caps.get('practice_sessions')
            flattened['max_daily_stats'] = caps.get('daily_stats')
            flattened['max_recommendations'] = caps.get('recommendations')
            flattened['max_achievements'] = caps.get('achievements')
        if 'analysis' in data:
            analysis = data['analysis']
            flattened['analysis_interval_seconds'] = analysis.get('interval_seconds')
            flattened['analysis_timeout_seconds'] = analysis.get('timeout_seconds')
            flattened['performance_window'] = analysis.get('performance_window')
        if 'mastery' in data:
            flattened['mastery_min_attempts'] = data['mastery'].get('min_attempts')
            flattened['mastery_accuracy'] = data['mastery'].get('accuracy')
        if 'catalog' in data:
            flattened['catalog_sizes'] = data['catalog']

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Storage
    storage_key: str = Field(default="japjap-storage")
    advisory_threshold_mb: float = Field(default=3.0)
    proactive_prune_threshold_mb: float = Field(default=4.0)
    quota_threshold_mb: float = Field(default=4.5)
    size_check_interval_seconds: float = Field(default=300.0)

    # Retention caps (most recent N kept)
    max_quiz_results: int = Field(default=100)
    max_practice_sessions: int = Field(default=50)
    max_daily_stats: int = Field(default=30)
    max_recommendations: int = Field(default=20)
    max_achievements: int = Field(default=50)

    # Analysis
    analysis_interval_seconds: float = Field(default=300.0)
    analysis_timeout_seconds: float = Field(default=15.0)
    performance_window: int = Field(default=10)

    # Mastery
    mastery_min_attempts: int = Field(default=3)
    mastery_accuracy: float = Field(default=80.0)

    # Static content sizes per category
    catalog_sizes: dict[str, int] = Field(
        default_factory=lambda: {
            "hiragana": 104,
            "katakana": 104,
            "kanji": 360,
            "grammar": 20,
        }
    )

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)
    data_dir_override: Path | None = Field(default=None, alias="data_dir")

    @property
    def data_dir(self) -> Path:
        d = self.data_dir_override or self.project_root / "data"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @property
    def total_catalog_size(self) -> int:
        return sum(self.catalog_sizes.values())

    @property
    def advisory_threshold_bytes(self) -> int:
        return int(self.advisory_threshold_mb * BYTES_PER_MB)

    @property
    def proactive_prune_threshold_bytes(self) -> int:
        return int(self.proactive_prune_threshold_mb * BYTES_PER_MB)

    @property
    def quota_threshold_bytes(self) -> int:
        return int(self.quota_threshold_mb * BYTES_PER_MB)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()
