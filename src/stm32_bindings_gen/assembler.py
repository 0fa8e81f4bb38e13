"""Package assembler: stage outputs, then publish them all-or-nothing.

Package layout:
---------------
    <output>/
      bindings/<module>.rs          one per header set
      bindings/mod.rs               module index
      lib/<destination>/lib<name>.a selected archives
      link.json                     link directives and target
      link-directives.txt           cargo build-script lines
      package.json                  PackageManifest

Publication:
------------
Everything is written into a fresh staging directory created beside the
output (``.<name>.staging-*``), so the final renames never cross a
filesystem. Staged files are fsync'd before publishing, which then

1. renames the current package aside (``.<name>.previous-*``),
2. renames staging into place,
3. deletes the set-aside package.

If step 2 fails the set-aside package is renamed back. Until step 2 succeeds
the published location holds either the old package or nothing being written
to. A run killed between steps 1 and 2 leaves only the set-aside copy; the next
run renames it back before doing anything else. Staging directories left by
killed runs are deleted at the next run.
"""

import glob
import logging
import os
from pathlib import Path
import shutil
import tempfile
from typing import List, Optional, Union
import uuid

from . import __version__
from .domain import ArchiveEntry, DeclarationModule, LinkDirective, ModuleEntry, PackageManifest, ResolvedPlan, SourceRevision
from .emitter import BINDINGS_DIR, index_file_name, render_bindings_index
from .exceptions import AssemblyFailedError
from .linkmeta import link_metadata_document, packaged_archive_path, render_cargo_directives
from .utils import file_hash, write_json, write_text

logger = logging.getLogger(__name__)

GENERATOR_NAME = "stm32-bindings-gen"
MANIFEST_FILE = "package.json"
LINK_METADATA_FILE = "link.json"
LINK_DIRECTIVES_FILE = "link-directives.txt"


def staging_prefix(output_dir: Path) -> str:
    return f".{output_dir.name}.staging-"


def previous_prefix(output_dir: Path) -> str:
    return f".{output_dir.name}.previous-"


def assemble_package(
    output_dir: Union[str, Path],
    *,
    plan: ResolvedPlan,
    modules: List[DeclarationModule],
    directives: List[LinkDirective],
    revision: SourceRevision,
    generator_version: Optional[str] = None,
) -> PackageManifest:
    """Build the package in staging and publish it at output_dir.

    Args:
        output_dir: Published package location
        plan: Resolved plan (archives are copied from plan.source_dir)
        modules: Declaration modules from the binding emitter
        directives: Link directives, one per plan archive
        revision: Vendor source revision recorded in the manifest
        generator_version: Recorded generator version (defaults to package version)

    Returns:
        Manifest of the published package

    Raises:
        AssemblyFailedError: On any I/O failure; the previously published
            package is left as it was
    """
    output_dir = Path(output_dir).absolute()
    parent = output_dir.parent

    try:
        parent.mkdir(parents=True, exist_ok=True)
        recover_interrupted_publish(output_dir)
        discard_stale_staging(output_dir)
        staging = Path(tempfile.mkdtemp(prefix=staging_prefix(output_dir), dir=parent))
    except OSError as e:
        raise AssemblyFailedError(f"cannot prepare staging beside {output_dir}: {e}") from e

    try:
        logger.debug(f"Staging package in {staging}")
        manifest = stage_package(
            staging,
            plan=plan,
            modules=modules,
            directives=directives,
            revision=revision,
            generator_version=generator_version or __version__,
        )
        publish_directory(staging, output_dir)
    except OSError as e:
        raise AssemblyFailedError(f"{type(e).__name__}: {e}") from e
    finally:
        if staging.exists():
            _remove_tree(staging)

    logger.info(f"Published package to {output_dir}")
    return manifest


def stage_package(
    staging: Path,
    *,
    plan: ResolvedPlan,
    modules: List[DeclarationModule],
    directives: List[LinkDirective],
    revision: SourceRevision,
    generator_version: str,
) -> PackageManifest:
    """Write the complete package layout into staging.

    Raises:
        AssemblyFailedError: If directives do not line up with plan archives
        OSError: On write or copy failure
    """
    if len(directives) != len(plan.archives):
        raise AssemblyFailedError(f"{len(directives)} link directives for {len(plan.archives)} archives")

    bindings_dir = staging / BINDINGS_DIR
    bindings_dir.mkdir(parents=True, exist_ok=True)

    module_entries = []
    for module in modules:
        write_text(bindings_dir / module.file_name, module.text)
        module_entries.append(
            ModuleEntry(
                name=module.name,
                file=f"{BINDINGS_DIR}/{module.file_name}",
                headers=list(module.headers),
                sha256=module.sha256,
            )
        )
    write_text(bindings_dir / index_file_name(modules), render_bindings_index(modules))

    archive_entries = []
    for archive, directive in zip(plan.archives, directives):
        if archive.feature != directive.feature:
            raise AssemblyFailedError(f"link directive for '{directive.feature}' does not match archive of '{archive.feature}'")

        source = Path(plan.source_dir) / archive.path
        packaged = packaged_archive_path(directive)
        destination = staging / packaged
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)

        archive_entries.append(
            ArchiveEntry(
                feature=archive.feature,
                source=archive.path,
                path=packaged,
                library_name=directive.library_name,
                sha256=file_hash(destination),
            )
        )

    write_json(link_metadata_document(directives, plan.target), staging / LINK_METADATA_FILE)
    write_text(staging / LINK_DIRECTIVES_FILE, render_cargo_directives(directives))

    manifest = PackageManifest(
        generator=GENERATOR_NAME,
        generator_version=generator_version,
        revision=revision,
        target=plan.target,
        features=list(plan.features),
        macro_overrides=dict(plan.macro_overrides),
        modules=module_entries,
        archives=archive_entries,
        link_metadata=LINK_METADATA_FILE,
        link_directives=LINK_DIRECTIVES_FILE,
    )
    write_json(manifest.model_dump(mode="json"), staging / MANIFEST_FILE)
    sync_tree(staging)

    logger.debug(f"Staged {len(module_entries)} modules and {len(archive_entries)} archives")
    return manifest


def publish_directory(staging: Path, output_dir: Path) -> None:
    """Replace output_dir with staging using renames only.

    Both paths must share a parent directory.

    Raises:
        OSError: If the swap fails (the previous content is restored first)
    """
    previous = None

    if output_dir.exists() or output_dir.is_symlink():
        if not output_dir.is_dir():
            raise NotADirectoryError(f"Refusing to replace non-directory {output_dir}")
        previous = output_dir.with_name(f"{previous_prefix(output_dir)}{uuid.uuid4().hex}")
        os.replace(output_dir, previous)

    try:
        os.replace(staging, output_dir)
    except OSError:
        if previous is not None:
            os.replace(previous, output_dir)
        raise

    _sync_directory(output_dir.parent)

    if previous is not None:
        _remove_tree(previous)


def recover_interrupted_publish(output_dir: Path) -> bool:
    """Undo a publish that was killed between its two renames.

    Returns:
        True if a set-aside package was moved back into place
    """
    leftovers = sorted(output_dir.parent.glob(glob.escape(previous_prefix(output_dir)) + "*"), key=lambda p: p.stat().st_mtime)
    if not leftovers:
        return False

    restored = False
    if not output_dir.exists():
        logger.warning(f"Restoring {output_dir} from interrupted publish {leftovers[-1].name}")
        os.replace(leftovers.pop(), output_dir)
        restored = True

    for leftover in leftovers:
        _remove_tree(leftover)
    return restored


def discard_stale_staging(output_dir: Path) -> int:
    """Delete staging directories left behind by killed runs."""
    stale = sorted(output_dir.parent.glob(glob.escape(staging_prefix(output_dir)) + "*"))
    for path in stale:
        logger.debug(f"Removing stale staging directory {path}")
        _remove_tree(path)
    return len(stale)


def sync_tree(root: Path) -> None:
    """Flush every file and directory under root to disk."""
    for directory, _, files in os.walk(root):
        for name in files:
            with open(os.path.join(directory, name), "rb") as f:
                os.fsync(f.fileno())
        _sync_directory(Path(directory))


def _sync_directory(path: Path) -> None:
    # POSIX only
    if os.name != "posix":
        return
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")
