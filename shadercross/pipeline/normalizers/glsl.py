"""
ShaderToy-style GLSL export.

Two kinds of GLSL artifacts reach this normalizer. A GLSL source validated
directly still carries the wrapper's user-code markers; the user section is
cut out and returned. GLSL produced by spirv-cross from a Slang module is
rewritten into a ``mainImage`` function that can be pasted into ShaderToy.
"""

import re

from shadercross.pipeline.models import ExecutionMode
from shadercross.pipeline.normalizers.symbols import slang_rename_table, uniforms, varyings
from shadercross.pipeline.normalizers.text import (
    bound_unbounded_loops,
    dedent_body,
    find_function,
    finish,
    indent,
    normalize_newlines,
    rename_symbols,
    rename_temporaries,
)
from shadercross.pipeline.wrapper import (
    GLSL_ENTRY_POINT,
    OUTPUT_VARIABLE,
    USER_CODE_END_MARKER,
    USER_CODE_START_MARKER,
    USER_ENTRY_POINT,
)


def extract_user_section(code: str) -> str | None:
    """Get the text between the user-code markers, or None if absent."""
    start = code.find(USER_CODE_START_MARKER)
    if start == -1:
        return None
    start += len(USER_CODE_START_MARKER)
    end = code.find(USER_CODE_END_MARKER, start)
    if end == -1:
        return None
    return code[start:end]


def _uniform_expression(alias: str, components: int) -> str:
    if alias == "iResolution" and components == 2:
        return "iResolution.xy"
    if alias == "iFrame":
        return "float(iFrame)"
    return alias


def _strip_declarations(code: str, execution_mode: ExecutionMode) -> str:
    code = re.sub(r"^\s*#version\b.*$", "", code, flags=re.MULTILINE)
    code = re.sub(r"^\s*precision\s+\w+\s+\w+\s*;\s*$", "", code, flags=re.MULTILINE)
    code = re.sub(r"\bstruct\s+GlobalParams\w*\s*\{[^{}]*\}\s*;", "", code)
    code = re.sub(
        r"^\s*(?:layout\([^)]*\)\s*)?uniform\s+GlobalParams\w*\s+\w+\s*;\s*$",
        "",
        code,
        flags=re.MULTILINE,
    )
    for symbol in varyings(execution_mode):
        code = re.sub(
            rf"^\s*(?:layout\([^)]*\)\s*)?(?:varying|in)\s+(?:\w+\s+)?\w+\s+"
            rf"input_{re.escape(symbol.name)}\s*;\s*$",
            "",
            code,
            flags=re.MULTILINE,
        )
    return code


def _map_inputs(code: str, execution_mode: ExecutionMode) -> str:
    table: dict[str, str] = {}
    for symbol in uniforms(execution_mode):
        expression = _uniform_expression(symbol.alias, symbol.components)
        for block in ("globalParams", "globalParams_0"):
            for member in (symbol.name, f"{symbol.name}_0"):
                table[f"{block}.{member}"] = expression
    for symbol in varyings(execution_mode):
        table[f"input_{symbol.name}"] = symbol.name
    code = rename_symbols(code, table)
    return re.sub(r"\bgl_FragData\s*\[\s*0\s*\]", OUTPUT_VARIABLE, code)


def _entry_setup(execution_mode: ExecutionMode) -> str:
    lines = ["vec2 uv = fragCoord / iResolution.xy;"]
    if execution_mode is ExecutionMode.MATERIAL_LIBRARY:
        lines += ["vec3 normal = vec3(0.0, 0.0, 1.0);", "vec3 position = vec3(uv, 0.0);"]
    return "\n".join(lines)


def _wrap_main(code: str, execution_mode: ExecutionMode) -> str:
    span = find_function(code, (GLSL_ENTRY_POINT,))
    if span is None:
        return code

    preamble = code[: span.start].strip()
    if re.search(rf"\bvoid\s+{USER_ENTRY_POINT}\s*\(", preamble):
        return preamble

    body = dedent_body(code[span.body_start : span.body_end])
    parts = [
        "// Uniforms: iResolution, iTime, iTimeDelta, iFrame, iFrameRate",
        f"// Output: {OUTPUT_VARIABLE} (vec4)",
        "",
    ]
    if preamble:
        parts += [preamble, ""]
    parts += [
        f"void {USER_ENTRY_POINT}(out vec4 {OUTPUT_VARIABLE}, in vec2 fragCoord)",
        "{",
        indent(_entry_setup(execution_mode)),
        "",
        indent(body),
        "}",
    ]
    return "\n".join(parts)


def _is_spirv_cross_output(code: str) -> bool:
    if not re.search(r"^\s*#version\b", code, flags=re.MULTILINE):
        return False
    return find_function(code, (GLSL_ENTRY_POINT,)) is not None


def normalize_glsl(code: str, execution_mode: ExecutionMode) -> str:
    """Clean a GLSL artifact for export.

    Text that is neither a marked module nor spirv-cross output, such as an
    artifact that was already normalized, is only tidied.

    Args:
        code: Validated wrapped module or spirv-cross output
        execution_mode: Mode the module was wrapped in

    Returns:
        The user section, or a ShaderToy ``mainImage`` rendition
    """
    code = normalize_newlines(code)

    section = extract_user_section(code)
    if section is not None:
        return finish(bound_unbounded_loops(dedent_body(section)))
    if not _is_spirv_cross_output(code):
        return finish(code)

    code = _strip_declarations(code, execution_mode)
    code = _map_inputs(code, execution_mode)
    code = rename_symbols(code, slang_rename_table(execution_mode))
    code = rename_temporaries(code)
    code = re.sub(r"\bhighp\s+", "", code)
    code = bound_unbounded_loops(code)
    return finish(_wrap_main(code, execution_mode))
