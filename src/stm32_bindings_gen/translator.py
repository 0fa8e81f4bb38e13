"""Header-to-declaration translator interface and bindgen driver.

The translator is an external capability: given a compilable header set and
macro overrides it produces raw foreign declarations. The pipeline only relies
on the ``Translator`` protocol; ``BindgenTranslator`` is the default
implementation and shells out to the rust-bindgen CLI.

Attributing output to headers:
------------------------------
bindgen is run once on a generated umbrella header. Before each ``#include``
the umbrella defines an origin marker macro::

    #define BINDINGS_GEN_ORIGIN_0 0
    #include "/vendor/.../ll_intf.h"
    #define BINDINGS_GEN_ORIGIN_1 1
    #include "/vendor/.../ll_sys.h"

bindgen emits declarations in source order, each marker becoming a
``pub const BINDINGS_GEN_ORIGIN_<n>`` item, so the output can be cut at the
markers into one chunk per header. Declarations a header pulls in through an
already-included file stay with the header that included it first.
"""

from importlib import resources
import logging
from pathlib import Path
import re
import shutil
import subprocess
import tempfile
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel, Field

from .domain import TranslatorConfig
from .exceptions import TranslationFailedError
from .toolchain import arm_sysroot_args, host_isystem_args

logger = logging.getLogger(__name__)

ORIGIN_MARKER = "BINDINGS_GEN_ORIGIN_"
ORIGIN_LINE = re.compile(r"^pub const " + ORIGIN_MARKER + r"(\d+)\s*:")
UMBRELLA_HEADER = "bindings_gen_umbrella.h"
DEFAULT_STUB_RESOURCE = "app_conf.h"

STD_TO_CORE_REPLACEMENTS = [
    ("::std::mem::", "::core::mem::"),
    ("::std::os::raw::", "::core::ffi::"),
    ("::std::option::", "::core::option::"),
    ("::std::ptr::", "::core::ptr::"),
    (":: std :: mem ::", ":: core :: mem ::"),
    (":: std :: os :: raw ::", ":: core :: ffi ::"),
    (":: std :: option ::", ":: core :: option ::"),
    (":: std :: ptr ::", ":: core :: ptr ::"),
]


class TranslationRequest(BaseModel):
    """Everything the translator needs for one run.

    Attributes:
        source_dir: Root of the vendor tree; relative paths resolve against it
        headers: Merged header list in plan order
        include_dirs: Merged include directories in plan order
        macro_overrides: Explicit -D overrides, sorted by name
        stub_header: Macro stub supplying defaults for undefined macros
    """

    model_config = {"frozen": True, "extra": "forbid"}

    source_dir: Path
    headers: Tuple[str, ...]
    include_dirs: Tuple[str, ...] = ()
    macro_overrides: Dict[str, str] = Field(default_factory=dict)
    stub_header: Optional[Path] = None


class TranslatedHeader(BaseModel):
    """Declarations attributed to one requested header."""

    model_config = {"frozen": True, "extra": "forbid"}

    header: str
    text: str


class Translator(Protocol):
    """Structural interface of a header translator.

    Implementations must be deterministic: the same request yields the same
    chunks. They must not write outside temporary locations they own.
    """

    name: str
    module_suffix: str

    def translate(self, request: TranslationRequest) -> List[TranslatedHeader]:
        """Translate all headers of the request in a single run.

        Raises:
            TranslationFailedError: If translation fails
        """
        ...


class BindgenTranslator:
    """Drive the rust-bindgen CLI."""

    name = "bindgen"
    module_suffix = "rs"

    def __init__(self, config: Optional[TranslatorConfig] = None):
        self.config = config or TranslatorConfig()

    def translate(self, request: TranslationRequest) -> List[TranslatedHeader]:
        executable = shutil.which(self.config.executable)
        if executable is None:
            raise TranslationFailedError(f"translator executable '{self.config.executable}' not found on PATH")

        with tempfile.TemporaryDirectory(prefix="stm32-bindings-gen-") as tmp:
            umbrella = Path(tmp) / UMBRELLA_HEADER
            umbrella.write_text(render_umbrella_header(request), encoding="utf-8")

            command = [executable, str(umbrella), *self.bindgen_args(), "--", *self.clang_args(request)]
            logger.debug(f"Running translator: {' '.join(command)}")

            try:
                result = subprocess.run(command, capture_output=True, text=True, timeout=self.config.timeout_s, check=False)
            except subprocess.TimeoutExpired:
                raise TranslationFailedError(f"bindgen timed out after {self.config.timeout_s}s") from None
            except OSError as e:
                raise TranslationFailedError(f"cannot run bindgen: {e}") from e

        if result.returncode != 0:
            raise TranslationFailedError(f"bindgen exited with status {result.returncode}: {_tail(result.stderr)}")

        return split_by_origin(normalize_bindings(result.stdout), request.headers)

    def bindgen_args(self) -> List[str]:
        args = ["--no-layout-tests"]
        for opaque in self.config.opaque_types:
            args.extend(["--opaque-type", opaque])
        return args

    def clang_args(self, request: TranslationRequest) -> List[str]:
        """Clang arguments in a fixed order so runs are reproducible."""
        args = [f"--target={self.config.target_triple}"]

        if is_thumb_target(self.config.target_triple):
            args.append("-mthumb")

        args.extend(host_isystem_args())

        if request.stub_header is not None:
            stub_dir = request.stub_header.parent
            args.extend([f"-iquote{stub_dir}", f"-I{stub_dir}", "-include", str(request.stub_header)])

        for include_dir in request.include_dirs:
            args.append(f"-I{_resolve(request.source_dir, include_dir)}")

        for name, value in sorted(request.macro_overrides.items()):
            args.append(f"-D{name}={value}")

        args.extend(self.config.extra_clang_args)

        if self.config.discover_toolchain:
            args.extend(arm_sysroot_args())

        return args


def render_umbrella_header(request: TranslationRequest) -> str:
    """Umbrella header including every requested header after its origin marker."""
    lines = ["/* Generated by stm32-bindings-gen. */"]
    for index, header in enumerate(request.headers):
        lines.append(f"#define {ORIGIN_MARKER}{index} {index}")
        lines.append(f'#include "{_resolve(request.source_dir, header)}"')
    return "\n".join(lines) + "\n"


def normalize_bindings(contents: str) -> str:
    """Make bindgen output ``no_std`` friendly and upper-case constant names."""
    for old, new in STD_TO_CORE_REPLACEMENTS:
        contents = contents.replace(old, new)

    lines = []
    for line in contents.splitlines():
        if line.startswith("pub const "):
            rest = line[len("pub const ") :]
            name, sep, tail = rest.partition(":")
            if sep:
                line = f"pub const {name.strip().upper()}:{tail}"
        lines.append(line)
    return "\n".join(lines)


def split_by_origin(contents: str, headers: Sequence[str]) -> List[TranslatedHeader]:
    """Cut translator output at origin markers into one chunk per header.

    Text before the first marker (tool banner, stub macros) is dropped.

    Raises:
        TranslationFailedError: If a marker is missing, repeated, or out of order
    """
    chunks: List[List[str]] = [[] for _ in headers]
    current = -1

    for line in contents.splitlines():
        match = ORIGIN_LINE.match(line)
        if match:
            index = int(match.group(1))
            if index != current + 1 or index >= len(headers):
                raise TranslationFailedError(f"unexpected origin marker {index} in translator output")
            current = index
            continue
        if current >= 0:
            chunks[current].append(line)

    if current != len(headers) - 1:
        missing = headers[current + 1]
        raise TranslationFailedError(f"translator output lost the origin marker for '{missing}'")

    return [TranslatedHeader(header=header, text=_trim_blank_lines(chunk)) for header, chunk in zip(headers, chunks)]


def is_thumb_target(triple: str) -> bool:
    return triple.strip().lower().startswith("thumb")


def _resolve(source_dir: Path, path: str) -> Path:
    candidate = Path(path)
    return candidate if candidate.is_absolute() else Path(source_dir) / candidate


def _trim_blank_lines(lines: List[str]) -> str:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return "\n".join(lines[start:end])


def _tail(text: str, limit: int = 20) -> str:
    lines = [line for line in text.strip().splitlines() if line.strip()]
    return "\n".join(lines[-limit:]) if lines else "no diagnostic output"


def default_stub_header() -> Path:
    """Packaged macro stub header."""
    return Path(str(resources.files("stm32_bindings_gen").joinpath("data").joinpath(DEFAULT_STUB_RESOURCE)))
