"""Configuration resolver (feature set -> ResolvedPlan).

Validates a requested feature set against the registry and expands it into a
concrete plan: header list, merged macro overrides, and archive list.

Algorithm:
----------
1. Look up every requested identifier (UnknownFeatureError)
2. Check every pair of enabled features for conflicts (ConflictingFeaturesError).
   Archives built for different targets, or two flags selecting the same archive
   file, are treated as conflicting too.
3. Union header sets in registry order, merging macro tables
   (MacroOverrideConflictError on differing values)
4. Union archives and check they exist on disk (MissingArchiveError)

The resolver performs no writes; its only filesystem access is the archive
existence check in step 4. Resolving the same request twice yields equal plans.

Example:
--------
>>> from stm32_bindings_gen.registry import load_registry
>>> from stm32_bindings_gen.resolver import resolve
>>> plan = resolve(load_registry(), ["lib_wba_mac_lib"], Path("vendor/STM32CubeWBA"))
>>> plan.features
('lib_wba_mac_lib',)
"""

from itertools import combinations
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

from .domain import FeatureFlag, HeaderSet, LibraryArchive, ResolvedPlan
from .exceptions import ConflictingFeaturesError, MacroOverrideConflictError, MissingArchiveError, ResolutionError
from .registry import FeatureRegistry

logger = logging.getLogger(__name__)


def resolve(registry: FeatureRegistry, features: Iterable[str], source_dir: Path) -> ResolvedPlan:
    """Resolve a requested feature set into a validated plan.

    Args:
        registry: Loaded feature registry
        features: Requested feature identifiers (duplicates ignored)
        source_dir: Root of the acquired vendor source tree

    Returns:
        ResolvedPlan with everything ordered by registry declaration

    Raises:
        ResolutionError: If no feature is requested
        UnknownFeatureError: If a feature is not registered
        ConflictingFeaturesError: If two enabled features cannot coexist
        MacroOverrideConflictError: If header sets disagree on a macro value
        MissingArchiveError: If a selected archive is absent from source_dir
    """
    requested = list(dict.fromkeys(features))
    if not requested:
        raise ResolutionError("At least one feature must be requested")

    # Step 1: lookup, then fix the order independently of the request order
    enabled = [registry.get(name) for name in requested]
    enabled.sort(key=lambda flag: registry.index(flag.name))

    # Step 2: pairwise conflicts
    _check_conflicts(registry, enabled)

    # Step 3: header sets and macro overrides
    header_sets = _collect_header_sets(registry, enabled)
    macro_overrides = _merge_macros(header_sets)
    headers = _unique(h for header_set in header_sets for h in header_set.headers)
    include_dirs = _unique(d for header_set in header_sets for d in header_set.include_dirs)

    # Step 4: archives
    archives = _collect_archives(enabled, source_dir)

    plan = ResolvedPlan(
        source_dir=source_dir,
        features=tuple(flag.name for flag in enabled),
        header_sets=header_sets,
        headers=headers,
        include_dirs=include_dirs,
        macro_overrides=macro_overrides,
        archives=archives,
        target=archives[0].target,
    )

    logger.debug(f"Resolved {len(plan.features)} features into {len(plan.headers)} headers and {len(plan.archives)} archives")
    return plan


def _check_conflicts(registry: FeatureRegistry, enabled: List[FeatureFlag]) -> None:
    for first, second in combinations(enabled, 2):
        if registry.conflicts_between(first.name, second.name):
            raise ConflictingFeaturesError(first.name, second.name)

        if first.archive.target != second.archive.target:
            raise ConflictingFeaturesError(
                first.name,
                second.name,
                reason=f"archives target '{first.archive.target}' and '{second.archive.target}'",
            )

        if first.archive.path == second.archive.path:
            raise ConflictingFeaturesError(first.name, second.name, reason=f"both select archive '{first.archive.path}'")


def _collect_header_sets(registry: FeatureRegistry, enabled: List[FeatureFlag]) -> Tuple[HeaderSet, ...]:
    names = {name for flag in enabled for name in flag.header_sets}
    ordered = sorted(names, key=registry.header_set_index)
    return tuple(registry.header_set(name) for name in ordered)


def _merge_macros(header_sets: Tuple[HeaderSet, ...]) -> Dict[str, str]:
    merged: Dict[str, str] = {}
    defined_by: Dict[str, str] = {}

    for header_set in header_sets:
        for name, value in header_set.macros.items():
            if name in merged and merged[name] != value:
                raise MacroOverrideConflictError(name, {defined_by[name]: merged[name], header_set.name: value})
            if name not in merged:
                merged[name] = value
                defined_by[name] = header_set.name

    return {name: merged[name] for name in sorted(merged)}


def _collect_archives(enabled: List[FeatureFlag], source_dir: Path) -> Tuple[LibraryArchive, ...]:
    archives = []
    for flag in enabled:
        archive_path = Path(source_dir) / flag.archive.path
        if not archive_path.is_file():
            raise MissingArchiveError(flag.name, str(archive_path))
        archives.append(flag.archive)
    return tuple(archives)


def _unique(items: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(items))
