"""Generation pipeline orchestration for stm32-bindings-gen.

This module owns Settings and the Registry and coordinates every stage of a
generation run. Lower-level modules receive plain values (plans, paths,
revisions) derived here.

Stages:
-------
0. Restore a package left aside by a killed run, load settings and registry
1. Determine and verify the vendor source revision
2. Resolve the requested feature set into a plan
3. Translate headers into declaration modules
4. Derive link directives
5. Stage and publish the package

Every failure surfaces as a BindingsGenError before stage 5 publishes, so a
failed run leaves the previously published package as it was.

Example:
--------
>>> from stm32_bindings_gen.pipeline import generate
>>> result = generate(
...     source_dir="vendor/STM32CubeWBA",
...     features=["lib_stm32wba_ble_stack_full", "lib_linklayer_ble_full_lib"],
...     output_dir="out/ble",
... )
>>> result["manifest"].features
['lib_stm32wba_ble_stack_full', 'lib_linklayer_ble_full_lib']
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, TypedDict, Union

from . import __version__
from .acquire import commit_matches, read_head
from .assembler import assemble_package, recover_interrupted_publish
from .config import Settings, compute_settings_hash, load_settings
from .domain import DeclarationModule, LinkDirective, PackageManifest, ResolvedPlan, RevisionConfig, SourceRevision, TranslatorConfig
from .emitter import emit_bindings
from .exceptions import AssemblyFailedError, ConfigError, SourceRevisionMismatchError
from .linkmeta import derive_link_directives
from .registry import FeatureRegistry, load_registry
from .resolver import resolve
from .translator import BindgenTranslator, Translator, default_stub_header
from .utils import time_block

logger = logging.getLogger(__name__)


class GenerateResult(TypedDict):
    """Result of a generate run.

    Attributes:
        plan: Resolved plan
        modules: Generated declaration modules
        directives: Link directives
        package_path: Published package location
        manifest: Manifest written as package.json
        provenance: Run metadata (generator version, settings hash, revision)
    """

    plan: ResolvedPlan
    modules: List[DeclarationModule]
    directives: List[LinkDirective]
    package_path: Path
    manifest: PackageManifest
    provenance: Dict[str, Any]


def build_translator(config: TranslatorConfig) -> Translator:
    """Default translator for a run."""
    return BindgenTranslator(config)


def determine_revision(source_dir: Path, config: RevisionConfig) -> SourceRevision:
    """Revision of the source tree, checked against the configured commit.

    Raises:
        SourceRevisionMismatchError: If the checkout is at a different commit
        ConfigError: If no commit is configured and the tree is not a git checkout
    """
    head = read_head(source_dir)

    if config.commit:
        if head is not None and not commit_matches(config.commit, head):
            raise SourceRevisionMismatchError(config.commit, head)
        return SourceRevision(url=config.url, commit=head or config.commit)

    if head is None:
        raise ConfigError(f"No revision commit configured and {source_dir} is not a git checkout")
    return SourceRevision(url=config.url, commit=head)


def generate(
    source_dir: Union[str, Path],
    features: Iterable[str],
    output_dir: Union[str, Path],
    settings: Optional[Settings] = None,
    registry: Optional[FeatureRegistry] = None,
    translator: Optional[Translator] = None,
) -> GenerateResult:
    """Generate and publish a binding package.

    Args:
        source_dir: Acquired vendor source tree (read-only)
        features: Requested ``lib_*`` feature flags
        output_dir: Published package location
        settings: Settings (loaded from environment when omitted)
        registry: Feature registry (loaded from settings when omitted)
        translator: Header translator (bindgen when omitted)

    Returns:
        GenerateResult with plan, modules, directives and the manifest

    Raises:
        ConfigError: Settings invalid or revision undeterminable
        RegistryError: Registry definition malformed
        SourceRevisionMismatchError: Source tree at the wrong commit
        ResolutionError: Feature set invalid (unknown, conflicting, ...)
        TranslationFailedError: Translator failed
        AssemblyFailedError: Staging or publication failed
    """
    source_dir = Path(source_dir)
    output_dir = Path(output_dir)
    features = list(features)

    logger.info("=" * 70)
    logger.info("stm32-bindings-gen - Package Generation")
    logger.info("=" * 70)
    logger.info(f"Source: {source_dir}")
    logger.info(f"Features: {', '.join(features)}")
    logger.info(f"Output: {output_dir}")
    logger.info("=" * 70)

    # -------------------------------------------------------------------------
    # Phase 0: Settings and registry
    # -------------------------------------------------------------------------
    logger.info("[Phase 0] Loading settings and registry...")
    try:
        if recover_interrupted_publish(output_dir.absolute()):
            logger.info(f"  ✓ Restored {output_dir} from an interrupted run")
    except OSError as e:
        raise AssemblyFailedError(f"cannot restore {output_dir}: {e}") from e
    if settings is None:
        settings = load_settings()
    if registry is None:
        registry = load_registry(settings.paths.registry_file)
    logger.info(f"  ✓ Registry loaded: {len(registry)} features")

    # -------------------------------------------------------------------------
    # Phase 1: Source revision
    # -------------------------------------------------------------------------
    logger.info("[Phase 1] Checking source revision...")
    if not source_dir.is_dir():
        raise ConfigError(f"Source tree not found: {source_dir}")
    revision = determine_revision(source_dir, settings.revision)
    logger.info(f"  ✓ Revision: {revision.commit}")

    # -------------------------------------------------------------------------
    # Phase 2: Resolution
    # -------------------------------------------------------------------------
    logger.info("[Phase 2] Resolving features...")
    plan = resolve(registry, features, source_dir)
    logger.info(f"  ✓ {len(plan.header_sets)} header sets, {len(plan.headers)} headers")
    logger.info(f"  ✓ {len(plan.macro_overrides)} macro overrides")
    logger.info(f"  ✓ {len(plan.archives)} archives for target {plan.target}")

    # -------------------------------------------------------------------------
    # Phase 3: Translation
    # -------------------------------------------------------------------------
    logger.info("[Phase 3] Translating headers...")
    if translator is None:
        translator = build_translator(settings.translator)
    stub_header = settings.paths.stub_header or default_stub_header()
    with time_block("Translation", logger):
        modules = emit_bindings(plan, translator, stub_header=stub_header)
    logger.info(f"  ✓ {len(modules)} declaration modules")

    # -------------------------------------------------------------------------
    # Phase 4: Link metadata
    # -------------------------------------------------------------------------
    logger.info("[Phase 4] Deriving link directives...")
    directives = derive_link_directives(plan)
    for directive in directives:
        logger.info(f"  ✓ {directive.search_path} -> {directive.library_name}")

    # -------------------------------------------------------------------------
    # Phase 5: Assembly
    # -------------------------------------------------------------------------
    logger.info("[Phase 5] Assembling package...")
    manifest = assemble_package(output_dir, plan=plan, modules=modules, directives=directives, revision=revision)
    logger.info(f"  ✓ Published {output_dir}")

    provenance = {
        "generator_version": __version__,
        "settings_hash": compute_settings_hash(settings),
        "revision": revision.model_dump(),
        "translator": translator.name,
    }

    return {
        "plan": plan,
        "modules": modules,
        "directives": directives,
        "package_path": output_dir,
        "manifest": manifest,
        "provenance": provenance,
    }
