"""Feature registry domain models.

A FeatureFlag selects exactly one vendor static archive and the header sets
needed to describe its API. Models are frozen so that a loaded registry cannot
be mutated while a plan is being resolved.
"""

import re
from typing import Dict, Tuple

from pydantic import BaseModel, Field, field_validator

FEATURE_NAME_PATTERN = re.compile(r"^lib_[a-z0-9_]+$")


class SourceRevision(BaseModel):
    """Repository URL and commit the vendor tree was checked out at."""

    model_config = {"frozen": True, "extra": "forbid"}

    url: str
    commit: str = Field(min_length=1)


class HeaderSet(BaseModel):
    """Ordered headers plus the macro overrides that make them self-contained.

    Attributes:
        name: Declaration module name emitted for this set
        headers: Header paths relative to the vendor source tree
        include_dirs: Include directories relative to the vendor source tree
        macros: Macro name -> value passed to the translator
    """

    model_config = {"frozen": True, "extra": "forbid"}

    name: str
    headers: Tuple[str, ...]
    include_dirs: Tuple[str, ...] = ()
    macros: Dict[str, str] = Field(default_factory=dict)

    @field_validator("macros", mode="before")
    @classmethod
    def stringify_macros(cls, v):
        """Normalise TOML booleans and integers to preprocessor text."""
        if not isinstance(v, dict):
            return v
        normalised = {}
        for key, value in v.items():
            if isinstance(value, bool):
                normalised[key] = "1" if value else "0"
            else:
                normalised[key] = str(value)
        return normalised

    @field_validator("headers")
    @classmethod
    def require_headers(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("header set must list at least one header")
        return v


class LibraryArchive(BaseModel):
    """Precompiled static library selected by one feature.

    Attributes:
        feature: Owning feature flag
        path: Archive path relative to the vendor source tree
        target: Target ABI tag the archive was built for
        destination: Directory below ``lib/`` in the published package
    """

    model_config = {"frozen": True, "extra": "forbid"}

    feature: str
    path: str
    target: str
    destination: str = ""


class FeatureFlag(BaseModel):
    """Registry entry for one ``lib_<variant>`` flag."""

    model_config = {"frozen": True, "extra": "forbid"}

    name: str
    description: str = ""
    header_sets: Tuple[str, ...]
    archive: LibraryArchive
    conflicts: Tuple[str, ...] = ()

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not FEATURE_NAME_PATTERN.match(v):
            raise ValueError(f"feature name must match 'lib_<variant>', got '{v}'")
        return v
