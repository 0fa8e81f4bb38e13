"""Resolved plan and emitter output models.

ResolvedPlan is the hand-off between the resolver and the emitters. Every
collection in it has a defined order (registry declaration order, or first
occurrence for merged lists) so that two resolutions of the same request
compare equal and drive byte-identical output.
"""

import hashlib
from pathlib import Path
from typing import Dict, Tuple

from pydantic import BaseModel, Field

from .features import HeaderSet, LibraryArchive


class ResolvedPlan(BaseModel):
    """Validated, conflict-free union of header sets and archives.

    Attributes:
        source_dir: Root of the acquired vendor tree
        features: Enabled features in registry order
        header_sets: Header sets in registry order
        headers: Merged header list, first occurrence wins
        include_dirs: Merged include directories, first occurrence wins
        macro_overrides: Merged overrides sorted by macro name
        archives: One archive per feature, in registry order
        target: Target ABI tag shared by all archives
    """

    model_config = {"frozen": True, "extra": "forbid"}

    source_dir: Path
    features: Tuple[str, ...]
    header_sets: Tuple[HeaderSet, ...]
    headers: Tuple[str, ...]
    include_dirs: Tuple[str, ...]
    macro_overrides: Dict[str, str] = Field(default_factory=dict)
    archives: Tuple[LibraryArchive, ...]
    target: str

    def header_origins(self) -> Dict[str, str]:
        """Map each merged header to the first header set that lists it."""
        origins: Dict[str, str] = {}
        for header_set in self.header_sets:
            for header in header_set.headers:
                origins.setdefault(header, header_set.name)
        return origins


class DeclarationModule(BaseModel):
    """Raw foreign declarations generated for one header set."""

    model_config = {"frozen": True, "extra": "forbid"}

    name: str
    file_name: str
    headers: Tuple[str, ...]
    text: str

    @property
    def sha256(self) -> str:
        return hashlib.sha256(self.text.encode("utf-8")).hexdigest()


class LinkDirective(BaseModel):
    """Linker search path and static library name for one archive."""

    model_config = {"frozen": True, "extra": "forbid"}

    feature: str
    search_path: str
    library_name: str
