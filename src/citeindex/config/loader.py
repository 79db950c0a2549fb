"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs (highest priority)
2. Environment variables (CITEINDEX__SECTION__KEY)
3. Library config (<library dir>/.citeindex.yaml)
4. Global config (~/.config/citeindex/config.yaml)
5. Built-in defaults (lowest priority)
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from citeindex.config.models import (
    CiteIndexConfig,
    ExtractionConfig,
    IndexConfig,
    LoggingConfig,
    SweepConfig,
)
from citeindex.core.errors import ConfigError

GLOBAL_CONFIG_PATH = Path("~/.config/citeindex/config.yaml").expanduser()
LIBRARY_CONFIG_NAME = ".citeindex.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top level must be a mapping")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class _YamlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded YAML config."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._yaml_config = yaml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._yaml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._yaml_config


def _make_settings_class(yaml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class with instance-based YAML source (thread-safe)."""

    class CiteIndexSettings(BaseSettings):
        """Root config. Env vars: CITEINDEX__LOGGING__LEVEL, CITEINDEX__SWEEP__INTERVAL_SEC, etc."""

        model_config = SettingsConfigDict(
            env_prefix="CITEINDEX__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        index: IndexConfig = IndexConfig()
        sweep: SweepConfig = SweepConfig()
        extraction: ExtractionConfig = ExtractionConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > yaml files
            return (init_settings, env_settings, _YamlSource(settings_cls, yaml_config))

    return CiteIndexSettings


def load_config(library_path: Path | None = None, **kwargs: Any) -> CiteIndexConfig:
    """Load config: defaults < global yaml < library yaml < env vars < kwargs.

    Args:
        library_path: Library file whose directory may hold a .citeindex.yaml.
        **kwargs: Override values (highest precedence).

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: On invalid YAML syntax or validation errors.
    """
    yaml_config = _load_yaml(GLOBAL_CONFIG_PATH)
    if library_path is not None:
        library_yaml = _load_yaml(Path(library_path).parent / LIBRARY_CONFIG_NAME)
        yaml_config = _deep_merge(yaml_config, library_yaml)

    settings_cls = _make_settings_class(yaml_config)
    try:
        settings = settings_cls(**kwargs)
        return CiteIndexConfig.model_validate(settings.model_dump())
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e


def index_path_for(library_path: Path, config: CiteIndexConfig | None = None) -> Path:
    """Derive the index directory for a library file.

    ``refs.bib`` maps to ``refs.bib.tantivy`` beside it, or inside
    ``index.index_dir`` when that is configured.
    """
    index_config = config.index if config is not None else IndexConfig()
    library_path = Path(library_path)
    name = library_path.name + index_config.suffix
    if index_config.index_dir:
        return Path(index_config.index_dir).expanduser() / name
    return library_path.parent / name
