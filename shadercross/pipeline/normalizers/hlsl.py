"""Readable HLSL export."""

import re

from shadercross.pipeline.models import ExecutionMode
from shadercross.pipeline.normalizers.symbols import slang_rename_table, symbols_for_mode
from shadercross.pipeline.normalizers.text import (
    finish,
    normalize_newlines,
    rename_symbols,
    rename_temporaries,
    strip_preprocessor_noise,
)

# Blocks Slang emits around vendor and compiler specific intrinsics
GUARDED_MACROS = ("SLANG_HLSL_ENABLE_NVAPI", "__DXC_VERSION_MAJOR")


def spirv_cross_rename_table(code: str, execution_mode: ExecutionMode) -> dict[str, str]:
    """Map spirv-cross flattened block members (``_20_uTime``) to their names."""
    names = [symbol.name for symbol in symbols_for_mode(execution_mode)]
    table = {}
    for name in names:
        for flattened in re.findall(rf"\b_\d+_{re.escape(name)}\b", code):
            table[flattened] = name
    return table


def normalize_hlsl(code: str, execution_mode: ExecutionMode) -> str:
    """Clean Slang or spirv-cross HLSL output for export.

    Args:
        code: Compiler output
        execution_mode: Mode the module was wrapped in

    Returns:
        HLSL with wrapper symbols restored to their declared names
    """
    code = normalize_newlines(code)
    code = strip_preprocessor_noise(code, GUARDED_MACROS)
    code = rename_symbols(code, slang_rename_table(execution_mode))
    code = rename_symbols(code, spirv_cross_rename_table(code, execution_mode))
    code = rename_temporaries(code)
    return finish(code)
