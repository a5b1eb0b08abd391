"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


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
        if 'backend' in data:
            # An empty url in YAML means "use local JSON files"
            flattened['backend_url'] = data['backend'].get('url') or None
            flattened['recordings_bucket'] = data['backend'].get('recordings_bucket')
        if 'gate' in data:
            gate = data['gate']
            flattened['tick_interval_seconds'] = gate.get('tick_interval_seconds')
            flattened['require_override_after_cycles'] = (
                gate.get('require_override_after_cycles')
            )
            flattened['default_allowance_minutes'] = gate.get('default_allowance_minutes')
            flattened['default_break_minutes'] = gate.get('default_break_minutes')
        if 'alert' in data:
            flattened['alert_delay_seconds'] = data['alert'].get('delay_seconds')
            flattened['alert_duration_seconds'] = data['alert'].get('duration_seconds')

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Hosted record store (None keeps records in local JSON files)
    backend_url: str | None = Field(default=None)
    backend_key: str | None = Field(default=None)
    recordings_bucket: str = Field(default="lectures")
    backend_timeout_seconds: float = Field(default=10.0)

    # Authentication for the REST API (optional: None disables auth)
    app_secret: str | None = Field(default=None)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Gate
    tick_interval_seconds: float = Field(default=1.0)
    require_override_after_cycles: bool = Field(default=False)
    default_allowance_minutes: int = Field(default=20)
    default_break_minutes: int = Field(default=10)

    # Attention alert
    alert_delay_seconds: float = Field(default=0.4)
    alert_duration_seconds: float = Field(default=5.0)

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)

    @property
    def data_dir(self) -> Path:
        d = self.project_root / "data" / "records"
        d.mkdir(parents=True, exist_ok=True)
        return d

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
