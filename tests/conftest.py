"""Pytest configuration and shared fixtures for stm32_bindings_gen tests.

Provides:
- A fake vendor source tree with headers and static archives
- An in-memory registry for the lib_ble_full / lib_ble_minimal scenario
- Deterministic and failing translators
- Settings that do not depend on git or the host toolchain
"""

import os
from pathlib import Path
from typing import Any, Dict, List

import pytest

from stm32_bindings_gen.config import Settings
from stm32_bindings_gen.domain import RevisionConfig, SourceRevision, TranslatorConfig
from stm32_bindings_gen.exceptions import TranslationFailedError
from stm32_bindings_gen.registry import FeatureRegistry
from stm32_bindings_gen.translator import TranslatedHeader, TranslationRequest

TEST_COMMIT = "4f1c2b9e0d8a7c6b5a4f3e2d1c0b9a8f7e6d5c4b"
TEST_URL = "https://example.invalid/STM32CubeWBA.git"

# ============================================================================
# Vendor Tree
# ============================================================================

HEADERS = {
    "inc/a.h": "#pragma once\nint a_init(void);\n",
    "inc/b.h": '#pragma once\n#include "a.h"\nint b_start(int);\n',
    "inc/mac.h": "#pragma once\nint mac_reset(void);\n",
}

ARCHIVES = {
    "lib/ble_full.a": b"!<arch>\nble_full\n",
    "lib/ble_minimal.a": b"!<arch>\nble_minimal\n",
    "lib/wpan/Mac_Core.a": b"!<arch>\nmac_core\n",
}


@pytest.fixture
def vendor_tree(tmp_path: Path) -> Path:
    """Fake vendor source tree.

    Structure:
        vendor/
        ├── inc/{a,b,mac}.h
        └── lib/{ble_full,ble_minimal}.a, lib/wpan/Mac_Core.a
    """
    root = tmp_path / "vendor"
    for relative, text in HEADERS.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
    for relative, data in ARCHIVES.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    return root


# ============================================================================
# Registry
# ============================================================================


def scenario_registry_data() -> Dict[str, Any]:
    """Registry definition for the BLE full/minimal scenario plus a MAC flag."""
    return {
        "registry": {"target": "thumbv8m.main-none-eabihf"},
        "header_sets": {
            "ble_core": {"headers": ["inc/a.h"], "include_dirs": ["inc"], "macros": {"BLE": 1}},
            "ble_ext": {"headers": ["inc/b.h", "inc/a.h"], "include_dirs": ["inc"], "macros": {"BLE": 1, "SUPPORT_EXT": True}},
            "mac": {"headers": ["inc/mac.h"], "include_dirs": ["inc"], "macros": {"MAC": 1}},
        },
        "features": {
            "lib_ble_full": {
                "description": "BLE full",
                "header_sets": ["ble_core", "ble_ext"],
                "archive": "lib/ble_full.a",
                "destination": "ble",
                "conflicts": ["lib_ble_minimal"],
            },
            "lib_ble_minimal": {
                "description": "BLE minimal",
                "header_sets": ["ble_core"],
                "archive": "lib/ble_minimal.a",
                "destination": "ble",
            },
            "lib_mac_core": {
                "description": "802.15.4 MAC",
                "header_sets": ["mac"],
                "archive": "lib/wpan/Mac_Core.a",
                "destination": "mac",
            },
        },
    }


@pytest.fixture
def registry_data() -> Dict[str, Any]:
    return scenario_registry_data()


@pytest.fixture
def registry(registry_data: Dict[str, Any]) -> FeatureRegistry:
    return FeatureRegistry.from_dict(registry_data)


# ============================================================================
# Translators
# ============================================================================


class FakeTranslator:
    """Deterministic translator emitting one constant per header."""

    name = "fake"
    module_suffix = "rs"

    def __init__(self):
        self.requests: List[TranslationRequest] = []

    def translate(self, request: TranslationRequest) -> List[TranslatedHeader]:
        self.requests.append(request)
        chunks = []
        for header in request.headers:
            stem = Path(header).stem.upper()
            chunks.append(TranslatedHeader(header=header, text=f"// {header}\npub const {stem}_PRESENT: u32 = 1;"))
        return chunks


class FailingTranslator:
    """Translator that always fails."""

    name = "failing"
    module_suffix = "rs"

    def __init__(self, error: Exception = None):
        self.error = error or TranslationFailedError("simulated translator failure")

    def translate(self, request: TranslationRequest) -> List[TranslatedHeader]:
        raise self.error


@pytest.fixture
def fake_translator() -> FakeTranslator:
    return FakeTranslator()


# ============================================================================
# Settings
# ============================================================================


@pytest.fixture
def revision() -> SourceRevision:
    return SourceRevision(url=TEST_URL, commit=TEST_COMMIT)


@pytest.fixture
def settings(monkeypatch) -> Settings:
    """Settings pinned to TEST_COMMIT with toolchain discovery off."""
    for key in list(os.environ):
        if key.upper().startswith("STM32_BINDINGS_"):
            monkeypatch.delenv(key, raising=False)
    return Settings(
        revision=RevisionConfig(url=TEST_URL, commit=TEST_COMMIT),
        translator=TranslatorConfig(discover_toolchain=False),
    )


@pytest.fixture
def failing_translator() -> FailingTranslator:
    return FailingTranslator()


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: marks tests as fast unit tests")
    config.addinivalue_line("markers", "integration: marks tests as end-to-end generation runs")
    config.addinivalue_line("markers", "property: marks tests that check invariants across many inputs")
    config.addinivalue_line("markers", "cli: marks command-line interface tests")
