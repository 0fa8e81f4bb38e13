"""Domain models for stm32-bindings-gen.

Pydantic-based models shared by every pipeline stage. Models are organised by
responsibility and re-exported here.

Package Structure:
-----------------
- config: Settings sections (RevisionConfig, PathsConfig, TranslatorConfig, LoggingConfig)
- features: Registry entries (SourceRevision, HeaderSet, LibraryArchive, FeatureFlag)
- plan: Resolver and emitter outputs (ResolvedPlan, DeclarationModule, LinkDirective)
- package: Published manifest (PackageManifest, ModuleEntry, ArchiveEntry)

Design Principles:
------------------
1. **Immutability**: All models use frozen=True
2. **Strict Validation**: All models use extra="forbid"
3. **Deterministic Order**: Collections are tuples with a defined order

Example:
--------
>>> from stm32_bindings_gen.domain import FeatureFlag, ResolvedPlan
>>> plan.model_dump_json()
"""

from stm32_bindings_gen.domain.config import LoggingConfig, PathsConfig, RevisionConfig, TranslatorConfig
from stm32_bindings_gen.domain.features import FeatureFlag, HeaderSet, LibraryArchive, SourceRevision
from stm32_bindings_gen.domain.package import ArchiveEntry, ModuleEntry, PackageManifest
from stm32_bindings_gen.domain.plan import DeclarationModule, LinkDirective, ResolvedPlan

__all__ = [
    # Configuration models
    "RevisionConfig",
    "PathsConfig",
    "TranslatorConfig",
    "LoggingConfig",
    # Registry models
    "SourceRevision",
    "HeaderSet",
    "LibraryArchive",
    "FeatureFlag",
    # Plan models
    "ResolvedPlan",
    "DeclarationModule",
    "LinkDirective",
    # Package models
    "PackageManifest",
    "ModuleEntry",
    "ArchiveEntry",
]
