"""Cross-toolchain discovery for the header translator.

The vendor headers include newlib and CMSIS system headers that clang cannot
find on its own when targeting bare-metal ARM. These helpers ask the host
``arm-none-eabi-gcc`` (and, on macOS, ``xcrun``) where those headers live and
turn the answers into clang arguments.

Every probe is best-effort: a missing tool or a failing query contributes no
arguments. Paths are collected in sorted order so the generated command line
is stable between runs on the same machine.
"""

import logging
import os
from pathlib import Path
import subprocess
import sys
from typing import List, Optional, Set

logger = logging.getLogger(__name__)

GCC = "arm-none-eabi-gcc"
QUERY_TIMEOUT_S = 30


def host_isystem_args() -> List[str]:
    """System include path of the macOS SDK (empty elsewhere)."""
    if sys.platform != "darwin":
        return []

    output = _run_query(["xcrun", "--show-sdk-path"])
    if output and output.strip():
        return [f"-isystem{output.strip()}/usr/include"]
    return []


def arm_sysroot_args() -> List[str]:
    """--sysroot and -isystem arguments for the arm-none-eabi toolchain."""
    args: List[str] = []
    include_paths: Set[Path] = set()

    def push_sysroot(path: Path) -> None:
        for sub in ("include", "include-fixed", "usr/include", "usr/include/newlib", "arm-none-eabi/include"):
            include_paths.add(path / sub)
        arg = f"--sysroot={path}"
        if arg not in args:
            args.append(arg)

    env_sysroot = os.environ.get("ARM_NONE_EABI_SYSROOT")
    if env_sysroot and Path(env_sysroot).exists():
        push_sysroot(Path(env_sysroot))

    sysroot = (gcc_query(["-print-sysroot"]) or "").strip()
    if sysroot:
        push_sysroot(Path(sysroot))

    include_dir = (gcc_query(["-print-file-name=include"]) or "").strip()
    if include_dir and include_dir != "include":
        include_paths.add(Path(include_dir))

    libgcc = (gcc_query(["-print-libgcc-file-name"]) or "").strip()
    if libgcc:
        version_dir = Path(libgcc).parent
        include_paths.add(version_dir / "include")
        include_paths.add(version_dir / "include-fixed")
        toolchain_root = version_dir.parent
        version = version_dir.name
        if version:
            include_paths.add(toolchain_root / "include" / "c++" / version)
            include_paths.add(toolchain_root / "include" / "c++" / version / "arm-none-eabi")

    include_paths.update(gcc_include_search_paths())

    extra = os.environ.get("ARM_NONE_EABI_INCLUDE")
    if extra:
        include_paths.update(Path(p) for p in extra.split(os.pathsep) if p)

    for path in sorted(include_paths):
        if path.exists():
            flag = f"-isystem{path}"
            if flag not in args:
                args.append(flag)

    return args


def gcc_include_search_paths() -> List[Path]:
    """Parse the ``#include <...>`` search list printed by ``gcc -E -Wp,-v``."""
    try:
        result = subprocess.run(
            [GCC, "-xc", "-E", "-Wp,-v", "-"],
            input="\n",
            capture_output=True,
            text=True,
            timeout=QUERY_TIMEOUT_S,
            check=False,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
        return []

    if result.returncode != 0:
        return []

    paths: List[Path] = []
    capture = False
    for line in result.stderr.splitlines():
        if "#include <...> search starts here:" in line:
            capture = True
            continue
        if not capture:
            continue
        if "End of search list." in line:
            break

        entry = line.strip()
        entry = entry.removeprefix("(framework directory) ").removesuffix(" (framework directory)")
        if not entry:
            continue
        candidate = Path(entry)
        if candidate.is_absolute():
            paths.append(candidate)

    return paths


def gcc_query(args: List[str]) -> Optional[str]:
    """Run ``arm-none-eabi-gcc <args>`` and return stdout, or None on failure."""
    return _run_query([GCC, *args])


def _run_query(command: List[str]) -> Optional[str]:
    try:
        result = subprocess.run(command, capture_output=True, text=True, timeout=QUERY_TIMEOUT_S, check=False)
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
        logger.debug(f"Toolchain query unavailable: {command[0]}")
        return None

    if result.returncode != 0:
        return None
    return result.stdout
