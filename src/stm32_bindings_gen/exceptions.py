"""Exception hierarchy for stm32-bindings-gen.

Every failure of a generation run is fatal and is detected before the package
is published, so the only user-visible effect of an error is an unchanged
published package plus one of these diagnostics.

Hierarchy:
----------
- BindingsGenError
  ├── ConfigError
  ├── RegistryError
  ├── ResolutionError
  │   ├── UnknownFeatureError
  │   ├── ConflictingFeaturesError
  │   ├── MacroOverrideConflictError
  │   └── MissingArchiveError
  ├── TranslationFailedError
  ├── AssemblyFailedError
  ├── AcquisitionError
  └── SourceRevisionMismatchError

Example:
--------
>>> from stm32_bindings_gen.exceptions import BindingsGenError
>>> try:
...     generate(...)
... except BindingsGenError as e:
...     print(f"Generation failed: {e.message}")
"""

from typing import Dict, Optional


class BindingsGenError(Exception):
    """Base exception for all generation errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(BindingsGenError):
    """Settings file missing or invalid."""

    pass


class RegistryError(BindingsGenError):
    """Feature registry definition is malformed."""

    pass


class ResolutionError(BindingsGenError):
    """Requested feature set cannot be turned into a resolved plan."""

    pass


class UnknownFeatureError(ResolutionError):
    """Feature identifier is not present in the registry."""

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(f"Unknown feature flag: '{feature}'")


class ConflictingFeaturesError(ResolutionError):
    """Two enabled features cannot be combined.

    Attributes:
        first: Feature declared earlier in the registry
        second: Feature declared later in the registry
        reason: Why the pair is incompatible
    """

    def __init__(self, first: str, second: str, reason: str = "declared as conflicting"):
        self.first = first
        self.second = second
        self.reason = reason
        super().__init__(f"Conflicting features '{first}' and '{second}': {reason}")


class MacroOverrideConflictError(ResolutionError):
    """Two header sets define the same macro with different values."""

    def __init__(self, name: str, values: Optional[Dict[str, str]] = None):
        self.name = name
        self.values = dict(values or {})
        detail = ", ".join(f"{header_set}={value!r}" for header_set, value in self.values.items())
        suffix = f" ({detail})" if detail else ""
        super().__init__(f"Macro override conflict for '{name}'{suffix}")


class MissingArchiveError(ResolutionError):
    """Archive selected by a feature is not present in the source tree."""

    def __init__(self, feature: str, path: str = ""):
        self.feature = feature
        self.path = path
        where = f": {path}" if path else ""
        super().__init__(f"Archive for feature '{feature}' not found{where}")


class TranslationFailedError(BindingsGenError):
    """Header translator failed or produced unusable output."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Translation failed: {detail}")


class AssemblyFailedError(BindingsGenError):
    """I/O failure while staging or publishing the package."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Package assembly failed: {detail}")


class AcquisitionError(BindingsGenError):
    """Vendor source tree could not be fetched at the pinned revision."""

    pass


class SourceRevisionMismatchError(BindingsGenError):
    """Checked-out source tree is not at the configured revision."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Source tree is at '{actual}' but revision '{expected}' was requested")


__all__ = [
    "BindingsGenError",
    "ConfigError",
    "RegistryError",
    "ResolutionError",
    "UnknownFeatureError",
    "ConflictingFeaturesError",
    "MacroOverrideConflictError",
    "MissingArchiveError",
    "TranslationFailedError",
    "AssemblyFailedError",
    "AcquisitionError",
    "SourceRevisionMismatchError",
]
