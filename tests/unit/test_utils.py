"""Unit tests for utility functions.

Tests hashing, path sanitization, text/JSON output and logger configuration.
"""

import json
import logging
from pathlib import Path

import pytest

pytestmark = pytest.mark.unit


class TestHashingUtils:
    """Test deterministic hashing utilities."""

    def test_Should_ProduceSHA256Hash_When_StringProvided(self):
        """Should produce deterministic SHA256 hash for string input."""
        from stm32_bindings_gen.utils import compute_hash

        hash1 = compute_hash("lib_wba_mac_lib")
        hash2 = compute_hash("lib_wba_mac_lib")

        assert hash1 == hash2
        assert len(hash1) == 64

    def test_Should_ProduceSameHash_When_DictKeyOrderDiffers(self):
        """Should produce same hash regardless of dict key order."""
        from stm32_bindings_gen.utils import compute_hash

        assert compute_hash({"a": 1, "b": [2, 3]}) == compute_hash({"b": [2, 3], "a": 1})

    def test_Should_HashFileContent_When_FileHashed(self, tmp_path: Path):
        """file_hash should match the digest of the bytes."""
        import hashlib

        from stm32_bindings_gen.utils import file_hash

        path = tmp_path / "lib.a"
        path.write_bytes(b"!<arch>\n" * 10000)

        assert file_hash(path, chunk_size=1024) == hashlib.sha256(b"!<arch>\n" * 10000).hexdigest()


class TestPathSanitization:
    """Test path sanitization."""

    def test_Should_AcceptRelativePath_When_InsideTree(self):
        from stm32_bindings_gen.utils import sanitize_path

        assert sanitize_path("Middlewares/ST/lib/x.a") == Path("Middlewares/ST/lib/x.a")

    def test_Should_RejectTraversal_When_PathContainsDotDot(self):
        from stm32_bindings_gen.utils import sanitize_path

        with pytest.raises(ValueError, match="traversal"):
            sanitize_path("../../etc/passwd")

    def test_Should_RejectAbsolutePath_When_Given(self):
        from stm32_bindings_gen.utils import sanitize_path

        with pytest.raises(ValueError, match="Absolute"):
            sanitize_path("/etc/passwd")

    def test_Should_ResolveUnderBase_When_BaseGiven(self, tmp_path: Path):
        from stm32_bindings_gen.utils import sanitize_path

        assert sanitize_path("inc/a.h", base=tmp_path) == (tmp_path / "inc" / "a.h").resolve()


class TestFileOutput:
    """Test text and JSON writers."""

    def test_Should_TerminateWithNewline_When_TextWritten(self, tmp_path: Path):
        """Output should always end with exactly one newline and use LF."""
        from stm32_bindings_gen.utils import write_text

        path = tmp_path / "nested" / "mod.rs"
        write_text(path, "pub mod a;")

        assert path.read_bytes() == b"pub mod a;\n"

    def test_Should_WriteEmptyFile_When_TextEmpty(self, tmp_path: Path):
        from stm32_bindings_gen.utils import write_text

        path = tmp_path / "empty.rs"
        write_text(path, "")

        assert path.read_bytes() == b""

    def test_Should_SerializePaths_When_JSONWritten(self, tmp_path: Path):
        """Path values should be written as POSIX strings."""
        from stm32_bindings_gen.utils import read_json, write_json

        path = tmp_path / "out.json"
        write_json({"archive": Path("lib") / "ble" / "libble_full.a"}, path)

        assert read_json(path) == {"archive": "lib/ble/libble_full.a"}
        assert path.read_text().endswith("}\n")


class TestLogging:
    """Test logger configuration."""

    def test_Should_InstallSingleHandler_When_ConfiguredTwice(self):
        from stm32_bindings_gen.utils import configure_logger

        configure_logger("stm32_bindings_gen.test", "DEBUG")
        logger = configure_logger("stm32_bindings_gen.test", "warning")

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING

    def test_Should_FormatAsJSON_When_Structured(self):
        from stm32_bindings_gen.utils import configure_logger

        logger = configure_logger("stm32_bindings_gen.test_structured", "INFO", structured=True)
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)

        payload = json.loads(logger.handlers[0].formatter.format(record))

        assert payload["level"] == "INFO"
        assert payload["message"] == "hello"
