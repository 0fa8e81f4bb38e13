"""Settings loading for stm32-bindings-gen.

Loads an optional TOML settings file, layers ``STM32_BINDINGS_`` environment
variables on top, and validates the result with strict Pydantic models.

Environment overrides use double underscore nesting:
    STM32_BINDINGS_REVISION__COMMIT=0123abcd
    STM32_BINDINGS_TRANSLATOR__TARGET_TRIPLE=thumbv8m.main-none-eabi

Example:
--------
>>> from stm32_bindings_gen.config import load_settings
>>> settings = load_settings("bindings.toml")
>>> settings.translator.target_triple
'thumbv8m.main-none-eabihf'
"""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type, Union

try:
    import tomllib
except ImportError:
    import tomli as tomllib

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .domain import LoggingConfig, PathsConfig, RevisionConfig, TranslatorConfig
from .exceptions import ConfigError
from .utils import compute_hash

ENV_PREFIX = "STM32_BINDINGS_"


class Settings(BaseSettings):
    """Complete generator settings.

    Sources, highest priority first: environment, TOML file, defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="forbid",
        frozen=True,
    )

    revision: RevisionConfig = Field(default_factory=RevisionConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    translator: TranslatorConfig = Field(default_factory=TranslatorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Let environment variables override values read from TOML."""
        return (env_settings, init_settings)


def load_settings(toml_path: Optional[Union[str, Path]] = None) -> Settings:
    """Load and validate settings from TOML and environment.

    Args:
        toml_path: Path to TOML settings file (optional)

    Returns:
        Validated Settings object

    Raises:
        ConfigError: If the file is missing, unparsable, or violates the schema
    """
    data: Dict[str, Any] = {}

    if toml_path is not None:
        toml_path = Path(toml_path)
        if not toml_path.exists():
            raise ConfigError(f"Settings file not found: {toml_path}")

        try:
            with open(toml_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {toml_path}: {e}") from e

    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}") from e


def compute_settings_hash(settings: Settings) -> str:
    """Compute deterministic hash of settings content."""
    return compute_hash(settings.model_dump(mode="json"))
