"""Unit tests for the feature registry.

Tests loading of the packaged definition, conflict symmetry, exclusive groups,
naming convention checks and malformed definitions.
"""

from pathlib import Path

import pytest

pytestmark = pytest.mark.unit


class TestPackagedRegistry:
    """Test the registry shipped with the package."""

    def test_Should_LoadAllFeatures_When_PackagedDefinitionUsed(self):
        """Packaged registry should list every WBA middleware variant in file order."""
        from stm32_bindings_gen.registry import load_registry

        registry = load_registry()

        assert registry.names() == (
            "lib_stm32wba_ble_stack_full",
            "lib_stm32wba_ble_stack_basic",
            "lib_stm32wba_ble_stack_po",
            "lib_stm32wba_ble_stack_llo",
            "lib_linklayer_ble_full_lib",
            "lib_linklayer_ble_basic_lib",
            "lib_linklayer_ble_peripheral_only_lib",
            "lib_linklayer15_4",
            "lib_wba_mac_lib",
            "lib_audio_stm32wba",
            "lib_codec_mngr_stm32wba",
            "lib_lc3_stm32wba",
        )

    def test_Should_NameEveryFlagAfterItsArchive_When_PackagedDefinitionUsed(self):
        """Every flag should be lib_ plus the lower-cased archive stem."""
        from stm32_bindings_gen.registry import library_name_for, load_registry

        registry = load_registry()

        for name in registry.names():
            assert name == f"lib_{library_name_for(registry.get(name).archive.path)}"

    def test_Should_MakeStackVariantsConflict_When_SameExclusiveGroup(self):
        """BLE stack variants should conflict pairwise."""
        from stm32_bindings_gen.registry import load_registry

        registry = load_registry()

        assert registry.conflicts_between("lib_stm32wba_ble_stack_full", "lib_stm32wba_ble_stack_basic")
        assert registry.conflicts_between("lib_stm32wba_ble_stack_po", "lib_stm32wba_ble_stack_llo")
        assert registry.conflicts_between("lib_linklayer_ble_full_lib", "lib_linklayer15_4")

    def test_Should_AllowMacWithFullLinkLayer_When_Combined(self):
        """MAC should combine with the full link layer and a BLE stack."""
        from stm32_bindings_gen.registry import load_registry

        registry = load_registry()

        assert not registry.conflicts_between("lib_wba_mac_lib", "lib_linklayer_ble_full_lib")
        assert not registry.conflicts_between("lib_wba_mac_lib", "lib_stm32wba_ble_stack_full")
        assert registry.conflicts_between("lib_wba_mac_lib", "lib_linklayer_ble_basic_lib")

    def test_Should_RestrictAudioToFullStack_When_Combined(self):
        """LE Audio and the codec manager need the full BLE stack and link layer."""
        from stm32_bindings_gen.registry import load_registry

        registry = load_registry()

        for name in ("lib_audio_stm32wba", "lib_codec_mngr_stm32wba"):
            assert not registry.conflicts_between(name, "lib_stm32wba_ble_stack_full")
            assert not registry.conflicts_between(name, "lib_linklayer_ble_full_lib")
            assert registry.conflicts_between(name, "lib_stm32wba_ble_stack_basic")
            assert registry.conflicts_between(name, "lib_linklayer15_4")
        assert registry.get("lib_lc3_stm32wba").conflicts == ()
        assert registry.get("lib_audio_stm32wba").archive.destination == "ble/audio"

    def test_Should_MakeConflictsSymmetric_When_DeclaredOnOneSide(self):
        """Conflicts declared by the 802.15.4 link layer should appear on the BLE stacks."""
        from stm32_bindings_gen.registry import load_registry

        registry = load_registry()

        assert "lib_linklayer15_4" in registry.get("lib_stm32wba_ble_stack_full").conflicts
        assert "lib_wba_mac_lib" in registry.get("lib_linklayer_ble_basic_lib").conflicts

    def test_Should_UseRegistryTarget_When_FeatureOmitsIt(self):
        """Archives should inherit the [registry] target."""
        from stm32_bindings_gen.registry import load_registry

        registry = load_registry()

        targets = {registry.get(name).archive.target for name in registry.names()}
        assert targets == {"thumbv8m.main-none-eabihf"}


class TestRegistryLookup:
    """Test lookups against an in-memory registry."""

    def test_Should_RaiseUnknownFeature_When_NameNotRegistered(self, registry):
        """get() should name the missing identifier."""
        from stm32_bindings_gen.exceptions import UnknownFeatureError

        with pytest.raises(UnknownFeatureError) as exc_info:
            registry.get("lib_ble_turbo")

        assert exc_info.value.feature == "lib_ble_turbo"

    def test_Should_ReportDeclarationOrder_When_IndexRequested(self, registry):
        """index() should follow the definition order."""
        assert registry.index("lib_ble_full") == 0
        assert registry.index("lib_mac_core") == 2
        assert "lib_ble_minimal" in registry
        assert len(registry) == 3

    def test_Should_NormaliseMacroValues_When_LoadedFromData(self, registry):
        """Integer and boolean macro values should become preprocessor text."""
        header_set = registry.header_set("ble_ext")

        assert header_set.macros == {"BLE": "1", "SUPPORT_EXT": "1"}


class TestMalformedRegistry:
    """Test definitions that must be rejected."""

    def test_Should_RejectDefinition_When_HeaderSetUnknown(self, registry_data):
        """A feature referencing a missing header set should fail to load."""
        from stm32_bindings_gen.exceptions import RegistryError
        from stm32_bindings_gen.registry import FeatureRegistry

        registry_data["features"]["lib_ble_full"]["header_sets"] = ["ble_core", "ble_missing"]

        with pytest.raises(RegistryError, match="ble_missing"):
            FeatureRegistry.from_dict(registry_data)

    def test_Should_RejectDefinition_When_ConflictNamesUnknownFeature(self, registry_data):
        """Conflicts must refer to registered features."""
        from stm32_bindings_gen.exceptions import RegistryError
        from stm32_bindings_gen.registry import FeatureRegistry

        registry_data["features"]["lib_mac_core"]["conflicts"] = ["lib_ghost"]

        with pytest.raises(RegistryError, match="lib_ghost"):
            FeatureRegistry.from_dict(registry_data)

    def test_Should_RejectDefinition_When_NameDoesNotMatchArchive(self, registry_data):
        """Flag name must be derived from the archive's link name."""
        from stm32_bindings_gen.exceptions import RegistryError
        from stm32_bindings_gen.registry import FeatureRegistry

        registry_data["features"]["lib_mac_core"]["archive"] = "lib/wpan/mac_other.a"

        with pytest.raises(RegistryError, match="lib_mac_other"):
            FeatureRegistry.from_dict(registry_data)

    def test_Should_RejectDefinition_When_PathEscapesSourceTree(self, registry_data):
        """Header paths must stay inside the vendor tree."""
        from stm32_bindings_gen.exceptions import RegistryError
        from stm32_bindings_gen.registry import FeatureRegistry

        registry_data["header_sets"]["mac"]["headers"] = ["../outside.h"]

        with pytest.raises(RegistryError, match="traversal"):
            FeatureRegistry.from_dict(registry_data)

    def test_Should_RejectDefinition_When_FeatureHasUnknownKey(self, registry_data):
        """Typos in feature tables should be caught."""
        from stm32_bindings_gen.exceptions import RegistryError
        from stm32_bindings_gen.registry import FeatureRegistry

        registry_data["features"]["lib_mac_core"]["conflict"] = ["lib_ble_full"]

        with pytest.raises(RegistryError, match="unknown keys"):
            FeatureRegistry.from_dict(registry_data)

    def test_Should_RejectDefinition_When_FeatureNameMalformed(self, registry_data):
        """Names outside the lib_<variant> convention should fail validation."""
        from stm32_bindings_gen.exceptions import RegistryError
        from stm32_bindings_gen.registry import FeatureRegistry

        registry_data["features"]["BLE-Full"] = registry_data["features"].pop("lib_ble_full")
        registry_data["features"]["lib_ble_minimal"]["conflicts"] = []

        with pytest.raises(RegistryError):
            FeatureRegistry.from_dict(registry_data)

    def test_Should_RaiseRegistryError_When_FileMissing(self, tmp_path: Path):
        """Missing registry file should be a RegistryError."""
        from stm32_bindings_gen.exceptions import RegistryError
        from stm32_bindings_gen.registry import load_registry

        with pytest.raises(RegistryError, match="Cannot read"):
            load_registry(tmp_path / "missing.toml")

    def test_Should_RaiseRegistryError_When_TOMLInvalid(self, tmp_path: Path):
        """Unparsable TOML should be a RegistryError."""
        from stm32_bindings_gen.exceptions import RegistryError
        from stm32_bindings_gen.registry import load_registry

        path = tmp_path / "features.toml"
        path.write_text("[features.lib_x\narchive = ")

        with pytest.raises(RegistryError, match="Invalid TOML"):
            load_registry(path)

    def test_Should_LoadCustomFile_When_PathGiven(self, tmp_path: Path):
        """A registry file on disk should be loadable."""
        from stm32_bindings_gen.registry import load_registry

        path = tmp_path / "features.toml"
        path.write_text(
            "[header_sets.core]\n"
            'headers = ["inc/a.h"]\n'
            "\n"
            "[features.lib_core]\n"
            'header_sets = ["core"]\n'
            'archive = "lib/core.a"\n'
            'target = "thumbv7em-none-eabihf"\n'
        )

        registry = load_registry(path)

        assert registry.names() == ("lib_core",)
        assert registry.get("lib_core").archive.target == "thumbv7em-none-eabihf"

    def test_Should_RaiseRegistryError_When_FeatureIsNotATable(self):
        """A scalar feature entry should be reported, not crash the loader."""
        from stm32_bindings_gen.exceptions import RegistryError
        from stm32_bindings_gen.registry import FeatureRegistry

        with pytest.raises(RegistryError, match="Feature 'lib_x' must be a table"):
            FeatureRegistry.from_dict({"header_sets": {}, "features": {"lib_x": "oops"}})

    def test_Should_RaiseRegistryError_When_HeaderSetIsNotATable(self, registry_data):
        from stm32_bindings_gen.exceptions import RegistryError
        from stm32_bindings_gen.registry import FeatureRegistry

        registry_data["header_sets"]["mac"] = ["inc/mac.h"]

        with pytest.raises(RegistryError, match="Header set 'mac' must be a table"):
            FeatureRegistry.from_dict(registry_data)

    @pytest.mark.parametrize("key,value", [("conflicts", "lib_ble_minimal"), ("header_sets", "ble_core"), ("conflicts", [1])])
    def test_Should_RejectDefinition_When_ListFieldIsNotStrings(self, registry_data, key: str, value):
        """A bare string must not be split into characters."""
        from stm32_bindings_gen.exceptions import RegistryError
        from stm32_bindings_gen.registry import FeatureRegistry

        registry_data["features"]["lib_ble_full"][key] = value

        with pytest.raises(RegistryError, match=f"'lib_ble_full' {key} must be a list of strings"):
            FeatureRegistry.from_dict(registry_data)

    def test_Should_RejectDefinition_When_FeaturesSectionIsNotATable(self):
        from stm32_bindings_gen.exceptions import RegistryError
        from stm32_bindings_gen.registry import FeatureRegistry

        with pytest.raises(RegistryError, match=r"\[features\] must be a table"):
            FeatureRegistry.from_dict({"features": ["lib_x"]})
