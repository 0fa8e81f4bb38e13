"""Command-line interface for stm32-bindings-gen.

Commands:
---------
- generate: Resolve a feature set and publish a binding package
- features: List the registered feature flags
- fetch: Acquire the vendor source tree at the pinned revision

Any BindingsGenError is reported as a single line on stderr with exit code 1.

Example:
--------
    $ stm32-bindings-gen fetch vendor/STM32CubeWBA --commit 8a2f1c4
    $ stm32-bindings-gen generate vendor/STM32CubeWBA \\
        -f lib_stm32wba_ble_stack_full -f lib_linklayer_ble_full_lib -o out/ble
"""

from pathlib import Path
from typing import List, Optional

import typer

from .acquire import acquire_sources
from .config import Settings, load_settings
from .domain import SourceRevision
from .exceptions import BindingsGenError, ConfigError
from .pipeline import generate as run_generate
from .registry import load_registry
from .utils import configure_logger

app = typer.Typer(
    name="stm32-bindings-gen",
    help="Generate feature-gated raw binding packages for the STM32WBA wireless SDK.",
    add_completion=False,
    no_args_is_help=True,
)

SettingsOption = typer.Option(None, "--config", "-c", help="Settings TOML file", exists=True, dir_okay=False)


def _load(config: Optional[Path]) -> Settings:
    settings = load_settings(config)
    configure_logger("stm32_bindings_gen", settings.logging.level, settings.logging.structured)
    return settings


def _fail(error: BindingsGenError) -> None:
    typer.echo(f"error: {error.message}", err=True)
    raise typer.Exit(code=1)


@app.command()
def generate(
    source_dir: Path = typer.Argument(..., help="Acquired vendor source tree", file_okay=False),
    features: List[str] = typer.Option(..., "--feature", "-f", help="Feature flag to enable (repeatable)"),
    output: Path = typer.Option(..., "--output", "-o", help="Published package directory"),
    config: Optional[Path] = SettingsOption,
):
    """Resolve FEATURES against the registry and publish a package."""
    try:
        settings = _load(config)
        result = run_generate(source_dir, features, output, settings=settings)
    except BindingsGenError as e:
        _fail(e)
        return

    manifest = result["manifest"]
    typer.echo(f"Published {result['package_path']} ({len(manifest.modules)} modules, {len(manifest.archives)} archives)")


@app.command()
def features(config: Optional[Path] = SettingsOption):
    """List registered feature flags in registry order."""
    try:
        settings = _load(config)
        registry = load_registry(settings.paths.registry_file)
    except BindingsGenError as e:
        _fail(e)
        return

    for name in registry.names():
        flag = registry.get(name)
        conflicts = f"  (conflicts: {', '.join(flag.conflicts)})" if flag.conflicts else ""
        typer.echo(f"{name}: {flag.description}{conflicts}")


@app.command()
def fetch(
    mirror_dir: Path = typer.Argument(..., help="Mirror directory to create or update"),
    commit: Optional[str] = typer.Option(None, "--commit", help="Commit to check out (overrides settings)"),
    url: Optional[str] = typer.Option(None, "--url", help="Repository URL (overrides settings)"),
    config: Optional[Path] = SettingsOption,
):
    """Clone the vendor SDK at the pinned revision into MIRROR_DIR."""
    try:
        settings = _load(config)
        pinned = commit or settings.revision.commit
        if not pinned:
            raise ConfigError("No commit given; pass --commit or set revision.commit")
        revision = SourceRevision(url=url or settings.revision.url, commit=pinned)
        path = acquire_sources(revision, mirror_dir)
    except BindingsGenError as e:
        _fail(e)
        return

    typer.echo(f"Mirror ready at {path}")


def main():
    app()


if __name__ == "__main__":
    main()
