"""stm32-bindings-gen: feature-gated raw binding packages for the STM32WBA SDK.

Modules:
--------
- registry: Feature flag table loaded from TOML
- resolver: Feature set -> ResolvedPlan
- translator / emitter: Header translation into declaration modules
- linkmeta: Linker search paths and library names
- assembler: Staging and all-or-nothing publication
- acquire: Vendor mirror acquisition at a pinned revision
- pipeline: End-to-end ``generate`` orchestration
- cli: Typer command-line interface
"""

__version__ = "0.1.0"
