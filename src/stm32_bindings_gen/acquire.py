"""Vendor source acquisition at a pinned revision.

The mirror is never modified in place: a fresh clone is checked out in a
staging directory beside it, verified, and then swapped in with the same
rename discipline the package assembler uses. A failed clone leaves the
existing mirror untouched.

Example:
--------
>>> from stm32_bindings_gen.acquire import acquire_sources
>>> from stm32_bindings_gen.domain import SourceRevision
>>> acquire_sources(SourceRevision(url=URL, commit="a1b2c3d"), Path("vendor/STM32CubeWBA"))
"""

import logging
from pathlib import Path
import shutil
import subprocess
import tempfile
from typing import List, Optional, Union

from .assembler import discard_stale_staging, publish_directory, recover_interrupted_publish, staging_prefix
from .domain import SourceRevision
from .exceptions import AcquisitionError

logger = logging.getLogger(__name__)

GIT_TIMEOUT_S = 3600


def read_head(source_dir: Union[str, Path], git: str = "git") -> Optional[str]:
    """Commit checked out in source_dir, or None if it is not a git checkout."""
    source_dir = Path(source_dir)
    if not (source_dir / ".git").exists():
        return None

    try:
        result = subprocess.run([git, "-C", str(source_dir), "rev-parse", "HEAD"], capture_output=True, text=True, timeout=60, check=False)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"Cannot read HEAD of {source_dir}: {e}")
        return None

    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def commit_matches(expected: str, actual: str) -> bool:
    """True if actual is the full hash of expected (which may be abbreviated)."""
    expected = expected.strip().lower()
    return bool(expected) and actual.strip().lower().startswith(expected)


def acquire_sources(revision: SourceRevision, mirror_dir: Union[str, Path], git: str = "git") -> Path:
    """Make mirror_dir a checkout of revision.

    A mirror already at the pinned commit is kept as is.

    Args:
        revision: Repository URL and commit to check out
        mirror_dir: Published mirror location
        git: git executable

    Returns:
        Path of the mirror

    Raises:
        AcquisitionError: If cloning, checkout, verification or the swap fails
    """
    mirror_dir = Path(mirror_dir).absolute()

    head = read_head(mirror_dir, git)
    if head is not None and commit_matches(revision.commit, head):
        logger.info(f"Mirror {mirror_dir} already at {head}")
        return mirror_dir

    try:
        mirror_dir.parent.mkdir(parents=True, exist_ok=True)
        recover_interrupted_publish(mirror_dir)
        discard_stale_staging(mirror_dir)
        staging = Path(tempfile.mkdtemp(prefix=staging_prefix(mirror_dir), dir=mirror_dir.parent))
    except OSError as e:
        raise AcquisitionError(f"Cannot prepare staging beside {mirror_dir}: {e}") from e

    try:
        logger.info(f"Cloning {revision.url} into {staging}")
        _git(git, ["clone", "--no-checkout", revision.url, str(staging)])
        _git(git, ["-C", str(staging), "checkout", "--detach", revision.commit])

        checked_out = read_head(staging, git)
        if checked_out is None or not commit_matches(revision.commit, checked_out):
            raise AcquisitionError(f"Checkout of '{revision.commit}' produced HEAD '{checked_out}'")

        publish_directory(staging, mirror_dir)
    except OSError as e:
        raise AcquisitionError(f"Cannot publish mirror {mirror_dir}: {e}") from e
    finally:
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)

    logger.info(f"Mirror {mirror_dir} now at {checked_out}")
    return mirror_dir


def _git(git: str, args: List[str]) -> None:
    command = [git, *args]
    logger.debug(f"Running: {' '.join(command)}")

    try:
        result = subprocess.run(command, capture_output=True, text=True, timeout=GIT_TIMEOUT_S, check=False)
    except subprocess.TimeoutExpired:
        raise AcquisitionError(f"git {args[0]} timed out after {GIT_TIMEOUT_S}s") from None
    except OSError as e:
        raise AcquisitionError(f"Cannot run git: {e}") from e

    if result.returncode != 0:
        raise AcquisitionError(f"git {' '.join(args[:2])} failed: {result.stderr.strip()}")
