"""Feature registry for stm32-bindings-gen.

The registry is a static table of ``lib_<variant>`` feature flags. Each entry
names the header sets describing its API, the single vendor archive it links,
and the flags it cannot be combined with. It is loaded once per run from a TOML
definition and never mutated afterwards.

Definition Format:
------------------
    [registry]
    target = "thumbv8m.main-none-eabihf"

    [header_sets.wba_ble_stack]
    headers = ["Middlewares/ST/STM32_WPAN/ble/stack/include/ble_core.h"]
    include_dirs = ["Middlewares/ST/STM32_WPAN/ble/stack/include"]
    macros = { BLE = 1 }

    [features.lib_stm32wba_ble_stack_full]
    header_sets = ["wba_link_layer", "wba_ble_stack"]
    archive = "Middlewares/ST/STM32_WPAN/ble/stack/lib/stm32wba_ble_stack_full.a"
    destination = "ble/stack"
    exclusive_group = "ble_stack"
    conflicts = []

Table order in the file is the registry order used for every ordered output.
Members of the same ``exclusive_group`` conflict pairwise; explicit
``conflicts`` are made symmetric at load time.

Example:
--------
>>> from stm32_bindings_gen.registry import load_registry
>>> registry = load_registry()
>>> registry.get("lib_wba_mac_lib").archive.path
'Middlewares/ST/STM32_WPAN/mac_802_15_4/lib/wba_mac_lib.a'
"""

from importlib import resources
import logging
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Tuple, Union

try:
    import tomllib
except ImportError:
    import tomli as tomllib

from pydantic import ValidationError

from .domain import FeatureFlag, HeaderSet, LibraryArchive
from .domain.config import DEFAULT_TARGET_TRIPLE
from .exceptions import RegistryError, UnknownFeatureError
from .utils import sanitize_path

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_RESOURCE = "features.toml"
FEATURE_KEYS = {"description", "header_sets", "archive", "destination", "target", "exclusive_group", "conflicts"}


def library_name_for(archive_path: str) -> str:
    """Link name of an archive: its file stem, lower-cased."""
    return PurePosixPath(archive_path).stem.lower()


class FeatureRegistry:
    """Read-only lookup from feature identifier to its descriptor."""

    def __init__(self, features: List[FeatureFlag], header_sets: List[HeaderSet]):
        self._features: Dict[str, FeatureFlag] = {}
        self._header_sets: Dict[str, HeaderSet] = {}
        self._order: Dict[str, int] = {}

        for header_set in header_sets:
            if header_set.name in self._header_sets:
                raise RegistryError(f"Duplicate header set: '{header_set.name}'")
            self._header_sets[header_set.name] = header_set

        for index, feature in enumerate(features):
            if feature.name in self._features:
                raise RegistryError(f"Duplicate feature: '{feature.name}'")
            self._features[feature.name] = feature
            self._order[feature.name] = index

        self._validate()

    def _validate(self) -> None:
        for feature in self._features.values():
            for name in feature.header_sets:
                if name not in self._header_sets:
                    raise RegistryError(f"Feature '{feature.name}' references unknown header set '{name}'")
            for other in feature.conflicts:
                if other not in self._features:
                    raise RegistryError(f"Feature '{feature.name}' conflicts with unknown feature '{other}'")
                if other == feature.name:
                    raise RegistryError(f"Feature '{feature.name}' cannot conflict with itself")

            expected = f"lib_{library_name_for(feature.archive.path)}"
            if feature.name != expected:
                raise RegistryError(f"Feature '{feature.name}' selects archive '{feature.archive.path}' " f"whose link name requires the flag to be named '{expected}'")

            _check_relative(feature.archive.path, f"archive of '{feature.name}'")
            _check_relative(feature.archive.destination or ".", f"destination of '{feature.name}'")

        for header_set in self._header_sets.values():
            for path in header_set.headers + header_set.include_dirs:
                _check_relative(path, f"header set '{header_set.name}'")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeatureRegistry":
        """Build a registry from a parsed definition mapping.

        Raises:
            RegistryError: If the definition is malformed
        """
        registry_table = _table(data.get("registry", {}), "[registry]")
        target = registry_table.get("target", DEFAULT_TARGET_TRIPLE)

        header_sets = []
        for name, body in _table(data.get("header_sets", {}), "[header_sets]").items():
            body = _table(body, f"Header set '{name}'")
            try:
                header_sets.append(HeaderSet(name=name, **body))
            except (TypeError, ValidationError) as e:
                raise RegistryError(f"Invalid header set definition: {e}") from e

        raw_features: Dict[str, Dict[str, Any]] = {name: _table(body, f"Feature '{name}'") for name, body in _table(data.get("features", {}), "[features]").items()}
        if not raw_features:
            raise RegistryError("Registry defines no features")

        groups: Dict[str, List[str]] = {}
        for name, body in raw_features.items():
            group = body.get("exclusive_group")
            if group is not None and not isinstance(group, str):
                raise RegistryError(f"Feature '{name}' exclusive_group must be a string")
            if group:
                groups.setdefault(group, []).append(name)

        conflicts: Dict[str, set] = {name: set(_string_list(body.get("conflicts", []), f"Feature '{name}' conflicts")) for name, body in raw_features.items()}
        for members in groups.values():
            for name in members:
                conflicts[name].update(m for m in members if m != name)
        for name in list(conflicts):
            for other in list(conflicts[name]):
                if other in conflicts:
                    conflicts[other].add(name)

        order = list(raw_features)
        features = []
        for name, body in raw_features.items():
            unknown = set(body) - FEATURE_KEYS
            if unknown:
                raise RegistryError(f"Feature '{name}' has unknown keys: {sorted(unknown)}")
            if "archive" not in body:
                raise RegistryError(f"Feature '{name}' does not select an archive")

            ordered_conflicts = sorted(conflicts[name], key=lambda other: (order.index(other) if other in order else len(order), other))
            try:
                features.append(
                    FeatureFlag(
                        name=name,
                        description=body.get("description", ""),
                        header_sets=tuple(_string_list(body.get("header_sets", []), f"Feature '{name}' header_sets")),
                        archive=LibraryArchive(
                            feature=name,
                            path=body["archive"],
                            target=body.get("target", target),
                            destination=body.get("destination", ""),
                        ),
                        conflicts=tuple(ordered_conflicts),
                    )
                )
            except ValidationError as e:
                raise RegistryError(f"Invalid feature '{name}': {e}") from e

        return cls(features, header_sets)

    def get(self, name: str) -> FeatureFlag:
        """Look up a feature.

        Raises:
            UnknownFeatureError: If the identifier is not registered
        """
        try:
            return self._features[name]
        except KeyError:
            raise UnknownFeatureError(name) from None

    def header_set(self, name: str) -> HeaderSet:
        return self._header_sets[name]

    def names(self) -> Tuple[str, ...]:
        """Feature names in declaration order."""
        return tuple(self._features)

    def index(self, name: str) -> int:
        """Declaration position of a feature."""
        self.get(name)
        return self._order[name]

    def header_set_index(self, name: str) -> int:
        return list(self._header_sets).index(name)

    def conflicts_between(self, first: str, second: str) -> bool:
        """True if either feature declares the other as conflicting."""
        a = self.get(first)
        b = self.get(second)
        return b.name in a.conflicts or a.name in b.conflicts

    def __contains__(self, name: object) -> bool:
        return name in self._features

    def __len__(self) -> int:
        return len(self._features)


def _table(value: Any, where: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise RegistryError(f"{where} must be a table, got {type(value).__name__}")
    return value


def _string_list(value: Any, where: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise RegistryError(f"{where} must be a list of strings")
    return value


def _check_relative(path: str, where: str) -> None:
    try:
        sanitize_path(path)
    except ValueError as e:
        raise RegistryError(f"Invalid path in {where}: {e}") from e


def load_registry(path: Optional[Union[str, Path]] = None) -> FeatureRegistry:
    """Load the feature registry.

    Args:
        path: Registry TOML file; the packaged definition is used when omitted

    Returns:
        Loaded FeatureRegistry

    Raises:
        RegistryError: If the file is missing, unparsable or malformed
    """
    try:
        if path is None:
            text = resources.files("stm32_bindings_gen").joinpath("data").joinpath(DEFAULT_REGISTRY_RESOURCE).read_text(encoding="utf-8")
            source = f"<packaged {DEFAULT_REGISTRY_RESOURCE}>"
        else:
            path = Path(path)
            text = path.read_text(encoding="utf-8")
            source = str(path)
        data = tomllib.loads(text)
    except OSError as e:
        raise RegistryError(f"Cannot read registry definition: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise RegistryError(f"Invalid TOML in registry definition: {e}") from e

    registry = FeatureRegistry.from_dict(data)
    logger.debug(f"Loaded {len(registry)} features from {source}")
    return registry
