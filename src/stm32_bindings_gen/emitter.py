"""Binding emitter (ResolvedPlan -> DeclarationModules).

Runs the header translator once over the plan's merged header list and groups
the per-header output into one declaration module per header set.

Grouping:
---------
A header listed by several header sets belongs to the first of them in plan
order. Modules follow plan order; headers inside a module follow the header
set's own order. Header sets whose headers were all claimed by an earlier set
still get a module (with empty text) so that the package layout depends only
on the feature set.

Example:
--------
>>> from stm32_bindings_gen.emitter import emit_bindings
>>> from stm32_bindings_gen.translator import BindgenTranslator
>>> modules = emit_bindings(plan, BindgenTranslator())
>>> [m.file_name for m in modules]
['wba_link_layer.rs', 'wba_ble_stack.rs']
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .domain import DeclarationModule, ResolvedPlan
from .exceptions import TranslationFailedError
from .translator import TranslatedHeader, TranslationRequest, Translator

logger = logging.getLogger(__name__)

BINDINGS_DIR = "bindings"
INDEX_STEM = "mod"


def build_request(plan: ResolvedPlan, stub_header: Optional[Path] = None) -> TranslationRequest:
    """Translation request covering every header of the plan."""
    return TranslationRequest(
        source_dir=plan.source_dir,
        headers=plan.headers,
        include_dirs=plan.include_dirs,
        macro_overrides=plan.macro_overrides,
        stub_header=stub_header,
    )


def emit_bindings(plan: ResolvedPlan, translator: Translator, stub_header: Optional[Path] = None) -> List[DeclarationModule]:
    """Generate declaration modules for a resolved plan.

    Args:
        plan: Resolved plan
        translator: Header translator, invoked exactly once
        stub_header: Macro stub header passed to the translator

    Returns:
        One DeclarationModule per header set, in plan order

    Raises:
        TranslationFailedError: If the translator fails or returns output that
            does not match the requested headers
    """
    request = build_request(plan, stub_header)
    logger.debug(f"Translating {len(request.headers)} headers with {translator.name}")

    try:
        translated = translator.translate(request)
    except TranslationFailedError:
        raise
    except Exception as e:
        raise TranslationFailedError(f"{type(e).__name__}: {e}") from e

    by_header = _index_output(translated, plan.headers)
    origins = plan.header_origins()

    modules = []
    for header_set in plan.header_sets:
        owned = tuple(h for h in header_set.headers if origins[h] == header_set.name)
        text = "\n\n".join(by_header[h] for h in owned if by_header[h])
        modules.append(
            DeclarationModule(
                name=header_set.name,
                file_name=f"{header_set.name}.{translator.module_suffix}",
                headers=owned,
                text=text,
            )
        )
        logger.debug(f"Module {header_set.name}: {len(owned)} headers, {len(text)} chars")

    return modules


def render_bindings_index(modules: List[DeclarationModule]) -> str:
    """Index file declaring every generated module, in module order."""
    lines = ["// Generated by stm32-bindings-gen. Do not edit."]
    lines.extend(f"pub mod {module.name};" for module in modules)
    return "\n".join(lines) + "\n"


def index_file_name(modules: List[DeclarationModule]) -> str:
    suffix = Path(modules[0].file_name).suffix if modules else ".rs"
    return f"{INDEX_STEM}{suffix}"


def _index_output(translated: List[TranslatedHeader], headers) -> Dict[str, str]:
    expected = set(headers)
    by_header: Dict[str, str] = {}

    for chunk in translated:
        if chunk.header not in expected:
            raise TranslationFailedError(f"translator returned output for unrequested header '{chunk.header}'")
        if chunk.header in by_header:
            raise TranslationFailedError(f"translator returned header '{chunk.header}' twice")
        by_header[chunk.header] = chunk.text

    missing = [h for h in headers if h not in by_header]
    if missing:
        raise TranslationFailedError(f"translator returned no output for '{missing[0]}'")

    return by_header
