"""Utility functions for stm32-bindings-gen (foundation layer).

This module provides core utilities used throughout the pipeline:
- Deterministic SHA256 hashing for files and data structures
- Path sanitization for registry paths resolved inside the vendor tree
- JSON and text output with stable formatting
- Logger configuration and stage timing

As the foundation layer, this module must not import any other project module.

Example:
--------
>>> from stm32_bindings_gen.utils import compute_hash, sanitize_path
>>>
>>> compute_hash({"features": ["lib_wba_mac_lib"]})  # Consistent across runs
>>> sanitize_path("Middlewares/ST/STM32_WPAN/mac_802_15_4/lib/wba_mac_lib.a")
>>> # Raises ValueError for paths like "../../etc/passwd"
"""

from contextlib import contextmanager
import hashlib
import json
import logging
from pathlib import Path
import time
from typing import Any, Dict, Iterator, Optional, Union


def compute_hash(data: Union[str, Dict[str, Any]]) -> str:
    """Compute deterministic SHA256 hash of input data.

    For dictionaries, canonicalizes by sorting keys before hashing.

    Args:
        data: String or dictionary to hash

    Returns:
        SHA256 hex digest (64 characters)
    """
    if isinstance(data, dict):
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
        data_bytes = canonical.encode("utf-8")
    else:
        data_bytes = data.encode("utf-8")

    return hashlib.sha256(data_bytes).hexdigest()


def file_hash(path: Union[str, Path], chunk_size: int = 65536) -> str:
    """Compute SHA256 digest of a file's content.

    Args:
        path: File to hash
        chunk_size: Read chunk size in bytes

    Returns:
        SHA256 hex digest

    Raises:
        FileNotFoundError: If file does not exist
    """
    path = Path(path)
    hasher = hashlib.sha256()

    with open(path, "rb") as f:
        while chunk := f.read(chunk_size):
            hasher.update(chunk)

    return hasher.hexdigest()


def sanitize_path(path: Union[str, Path], base: Optional[Path] = None) -> Path:
    """Sanitize path to prevent directory traversal.

    Args:
        path: Path to sanitize
        base: Optional base directory to restrict path to

    Returns:
        Sanitized Path object (resolved under base when base is given)

    Raises:
        ValueError: If path attempts directory traversal or is absolute
    """
    path_obj = Path(path)

    if ".." in path_obj.parts:
        raise ValueError(f"Directory traversal not allowed: {path}")

    if path_obj.is_absolute():
        raise ValueError(f"Absolute path not allowed: {path}")

    if base is not None:
        base = Path(base).resolve()
        resolved = (base / path_obj).resolve()
        if resolved != base and base not in resolved.parents:
            raise ValueError(f"Path {path} outside allowed base {base}")
        return resolved

    return path_obj


def write_json(data: Dict[str, Any], path: Union[str, Path], indent: int = 2) -> None:
    """Write data to JSON file with custom encoder for Path objects.

    Output always ends with a newline and uses "\\n" line endings.

    Args:
        data: Dictionary to write
        path: Output file path
        indent: JSON indentation (default: 2 spaces)
    """

    class PathEncoder(json.JSONEncoder):
        """Custom JSON encoder that handles Path objects."""

        def default(self, obj):
            if isinstance(obj, Path):
                return obj.as_posix()
            return super().default(obj)

    text = json.dumps(data, indent=indent, cls=PathEncoder, ensure_ascii=False) + "\n"
    write_text(path, text)


def read_json(path: Union[str, Path]) -> Dict[str, Any]:
    """Read JSON file into dictionary.

    Args:
        path: Input file path

    Returns:
        Dictionary with parsed JSON data
    """
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_text(path: Union[str, Path], contents: str) -> None:
    """Write UTF-8 text with "\\n" line endings, creating parent directories."""
    path_obj = Path(path)
    path_obj.parent.mkdir(parents=True, exist_ok=True)

    if contents and not contents.endswith("\n"):
        contents += "\n"

    with open(path_obj, "w", encoding="utf-8", newline="\n") as f:
        f.write(contents)


def configure_logger(name: str, level: str = "INFO", structured: bool = False) -> logging.Logger:
    """Configure logger with specified settings.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: If True, use structured (JSON) logging

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler()

    if structured:
        formatter = logging.Formatter('{"timestamp":"%(asctime)s","level":"%(levelname)s","name":"%(name)s","message":"%(message)s"}')
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


@contextmanager
def time_block(label: str, logger: logging.Logger) -> Iterator[None]:
    """Log how long the wrapped block took.

    Example:
        with time_block("Translation", logger):
            translator.translate(request)
        # Logs: "Translation completed in 12.34s"
    """
    start_time = time.monotonic()

    try:
        yield
    finally:
        elapsed = time.monotonic() - start_time
        logger.info(f"{label} completed in {elapsed:.2f}s")
