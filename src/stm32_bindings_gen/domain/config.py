"""Configuration section models for stm32-bindings-gen.

This module defines the Pydantic models that make up the settings tree loaded
from a TOML file (see ``stm32_bindings_gen.config``). All sections are
immutable (frozen=True) and use strict validation (extra="forbid") to catch
typos early.

Model Hierarchy:
---------------
- Settings (stm32_bindings_gen.config)
  ├── RevisionConfig
  ├── PathsConfig
  ├── TranslatorConfig
  └── LoggingConfig
"""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_VENDOR_URL = "https://github.com/STMicroelectronics/STM32CubeWBA.git"
DEFAULT_TARGET_TRIPLE = "thumbv8m.main-none-eabihf"
NEWLIB_SHARED_OPAQUES = ["_reent", "__sFILE", "__sFILE64"]
VALID_LOGGING_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class RevisionConfig(BaseModel):
    """Pinned vendor source revision.

    Attributes:
        url: Repository URL of the vendor SDK
        commit: Commit identifier; empty means "use the checked-out HEAD"
    """

    model_config = {"frozen": True, "extra": "forbid"}

    url: str = DEFAULT_VENDOR_URL
    commit: str = ""


class PathsConfig(BaseModel):
    """Optional overrides for packaged data files."""

    model_config = {"frozen": True, "extra": "forbid"}

    registry_file: Optional[Path] = None
    stub_header: Optional[Path] = None


class TranslatorConfig(BaseModel):
    """Header translator (bindgen) invocation settings.

    Attributes:
        executable: bindgen executable name or path
        target_triple: Clang target passed as --target
        extra_clang_args: Appended verbatim after generated clang arguments
        opaque_types: Types emitted as opaque blobs
        timeout_s: Upper bound on a single translator run
        discover_toolchain: Probe arm-none-eabi-gcc for system include paths
    """

    model_config = {"frozen": True, "extra": "forbid"}

    executable: str = "bindgen"
    target_triple: str = DEFAULT_TARGET_TRIPLE
    extra_clang_args: List[str] = Field(default_factory=list)
    opaque_types: List[str] = Field(default_factory=lambda: list(NEWLIB_SHARED_OPAQUES))
    timeout_s: float = Field(default=600.0, gt=0)
    discover_toolchain: bool = True


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: str = "INFO"
    structured: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        v_upper = v.upper()
        if v_upper not in VALID_LOGGING_LEVELS:
            raise ValueError(f"level must be one of {sorted(VALID_LOGGING_LEVELS)}, got '{v}'")
        return v_upper
