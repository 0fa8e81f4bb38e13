"""Link metadata emitter (ResolvedPlan -> LinkDirectives).

Each selected archive is packaged as ``lib/<destination>/lib<name>.a`` so a
linker finds it with ``-L lib/<destination> -l<name>``. This module computes
those pairs and renders them for consumers; it performs no I/O.
"""

import logging
from pathlib import PurePosixPath
from typing import Any, Dict, List

from .domain import LibraryArchive, LinkDirective, ResolvedPlan
from .registry import library_name_for

logger = logging.getLogger(__name__)

LIB_ROOT = "lib"


def search_path_for(archive: LibraryArchive) -> str:
    """Package-relative POSIX directory holding the packaged archive."""
    path = PurePosixPath(LIB_ROOT)
    if archive.destination:
        path = path / PurePosixPath(archive.destination)
    return path.as_posix()


def packaged_archive_path(directive: LinkDirective) -> str:
    """Package-relative path of the archive a directive refers to."""
    return (PurePosixPath(directive.search_path) / f"lib{directive.library_name}.a").as_posix()


def derive_link_directives(plan: ResolvedPlan) -> List[LinkDirective]:
    """One directive per archive of the plan, in registry order."""
    directives = [
        LinkDirective(
            feature=archive.feature,
            search_path=search_path_for(archive),
            library_name=library_name_for(archive.path),
        )
        for archive in plan.archives
    ]
    logger.debug(f"Derived {len(directives)} link directives")
    return directives


def render_cargo_directives(directives: List[LinkDirective]) -> str:
    """Build-script lines for cargo, search paths listed once each.

    Search paths are relative to the package root; the consuming build script
    prefixes them with the package location.
    """
    lines = []
    seen = set()
    for directive in directives:
        if directive.search_path not in seen:
            seen.add(directive.search_path)
            lines.append(f"cargo:rustc-link-search=native={directive.search_path}")
    for directive in directives:
        lines.append(f"cargo:rustc-link-lib=static={directive.library_name}")
    return "\n".join(lines) + "\n"


def link_metadata_document(directives: List[LinkDirective], target: str) -> Dict[str, Any]:
    """Content of ``link.json``."""
    return {
        "target": target,
        "search_paths": list(dict.fromkeys(d.search_path for d in directives)),
        "libraries": [
            {
                "feature": d.feature,
                "search_path": d.search_path,
                "library_name": d.library_name,
                "archive": packaged_archive_path(d),
            }
            for d in directives
        ],
    }
