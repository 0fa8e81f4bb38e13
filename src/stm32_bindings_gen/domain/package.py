"""Published package manifest models.

The manifest is written as ``package.json`` at the root of every published
package. It deliberately carries no timestamps: regenerating a package from
the same revision and feature set yields a byte-identical manifest.
"""

from typing import Dict, List

from pydantic import BaseModel, Field

from .features import SourceRevision


class ModuleEntry(BaseModel):
    """One generated declaration module."""

    model_config = {"frozen": True, "extra": "forbid"}

    name: str
    file: str
    headers: List[str]
    sha256: str


class ArchiveEntry(BaseModel):
    """One packaged static archive."""

    model_config = {"frozen": True, "extra": "forbid"}

    feature: str
    source: str
    path: str
    library_name: str
    sha256: str


class PackageManifest(BaseModel):
    """Provenance and content listing of a published package."""

    model_config = {"frozen": True, "extra": "forbid"}

    generator: str
    generator_version: str
    revision: SourceRevision
    target: str
    features: List[str]
    macro_overrides: Dict[str, str] = Field(default_factory=dict)
    modules: List[ModuleEntry]
    archives: List[ArchiveEntry]
    link_metadata: str
    link_directives: str
