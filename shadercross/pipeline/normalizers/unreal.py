"""
Unreal Engine Custom material node export.

A Custom node holds a function body, not a module: it reads material inputs
by name and returns the node's value. The entry function body of the
compiler output is extracted, wrapper inputs are mapped to Unreal inputs and
the final write of the output color becomes a ``return`` of its RGB part.
"""

import re

from shadercross.pipeline.models import ExecutionMode
from shadercross.pipeline.normalizers.hlsl import GUARDED_MACROS
from shadercross.pipeline.normalizers.symbols import (
    ENTRY_FUNCTIONS,
    OUTPUT_NAMES,
    UNREAL_INPUTS,
    uniforms,
    varyings,
)
from shadercross.pipeline.normalizers.text import (
    Statement,
    bound_unbounded_loops,
    declared_vectors,
    dedent_body,
    expand_vector_shorthand,
    find_function,
    find_matching,
    finish,
    normalize_newlines,
    rename_symbols,
    rename_temporaries,
    split_arguments,
    split_statements,
    strip_preprocessor_noise,
)

HLSL_VECTOR_SIZES = {
    f"{scalar}{size}": size
    for scalar in ("float", "half", "int", "uint", "bool")
    for size in (2, 3, 4)
}

_OUTPUT = "|".join(re.escape(name) for name in OUTPUT_NAMES)
_WRITE_OUT = re.compile(rf"^(?:return\s+(?:{_OUTPUT})|(?:{_OUTPUT})\s*=\s*(?:{_OUTPUT}))\s*;$")
_ASSIGNMENT = re.compile(
    rf"^(?:(?:const\s+)?[A-Za-z_]\w*\s+)?(?P<name>{_OUTPUT})\s*=(?!=)\s*(?P<expr>.+);$",
    re.DOTALL,
)
_RETURN = re.compile(r"^return\s+(?P<expr>.+);$", re.DOTALL)
_ACCESS = re.compile(r"^[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*$")


def _header(execution_mode: ExecutionMode) -> str:
    if execution_mode is ExecutionMode.SHADERTOY:
        resolution = "float3 Resolution = float3(View.ViewSizeAndInvSize.xy, 1.0);"
    else:
        resolution = "float2 Resolution = View.ViewSizeAndInvSize.xy;"
    return f"""// Unreal Engine Custom Material Node
// Connect these inputs in the Material Editor:
//   - Time: Use "Time" node
//   - UV: Use "TexCoord[0]" node
//   - Normal: Use "VertexNormalWS" node
//   - Position: Use "WorldPosition" node
//   - Resolution: Use "ViewSize" node or create a parameter

// Input variables (connect via Material Editor)
float Time = View.RealTime;
float2 UV = TexCoords[0].xy;
float3 Normal = Parameters.TangentToWorld[2];
float3 Position = GetWorldPosition(Parameters);
{resolution}

// Additional variables (if needed)
float DeltaTime = View.DeltaTime;
float Frame = View.FrameNumber;
float FrameRate = 1.0 / max(View.DeltaTime, 0.001);
"""


def _input_table(preamble: str, execution_mode: ExecutionMode) -> dict[str, str]:
    """Build the wrapper input -> Unreal input renames.

    Covers Slang's mangled accesses (``globalParams_0.uTime_0``,
    ``input_0.uv_0``), spirv-cross flattened block members (``_20_uTime``)
    and spirv-cross private varying globals (``vUv``).
    """
    table: dict[str, str] = {}
    for symbol in uniforms(execution_mode):
        unreal = UNREAL_INPUTS.get(symbol.alias)
        if unreal is None:
            continue
        table[f"globalParams_0.{symbol.name}_0"] = unreal
        table[f"globalParams.{symbol.name}"] = unreal
        table[f"{symbol.name}_0"] = unreal
        for flattened in re.findall(rf"\b_\d+_{re.escape(symbol.name)}\b", preamble):
            table[flattened] = unreal

    for symbol in varyings(execution_mode):
        unreal = UNREAL_INPUTS.get(symbol.alias)
        if unreal is None:
            continue
        table[f"input_0.{symbol.name}_0"] = unreal
        table[f"input.{symbol.name}"] = unreal
        if re.search(rf"\bstatic\s+\w+\s+{re.escape(symbol.name)}\s*;", preamble):
            table[symbol.name] = unreal
    return table


def _helpers(preamble: str) -> str:
    """Keep the function definitions of a module preamble."""
    code = re.sub(r"\b(?:struct|cbuffer)\s+\w+[^{;]*\{[^{}]*\}\s*;?", "", preamble)
    code = re.sub(r"^\s*static\s+[^;(]*;\s*$", "", code, flags=re.MULTILINE)
    code = re.sub(
        r"^\s*(?:uniform\s+)?[\w<>]+\s+\w+\s*:\s*register\([^)]*\)\s*;\s*$",
        "",
        code,
        flags=re.MULTILINE,
    )
    return code.strip()


def _calls_any(body: str, helpers: str) -> bool:
    """Whether ``body`` calls a function defined in ``helpers``."""
    defined = re.findall(
        r"^\s*[\w<>]+\s+([A-Za-z_]\w*)\s*\([^;{]*\)[^;{]*\{", helpers, re.MULTILINE
    )
    return any(re.search(rf"\b{re.escape(name)}\s*\(", body) for name in defined)


def truncate_to_rgb(expression: str) -> str:
    """Reduce a 4-component color expression to its first 3 components.

    ``float4(rgb, a)`` drops the argument after the last top-level comma;
    anything else gets a ``.xyz`` swizzle.

    Args:
        expression: A float4 valued expression

    Returns:
        A float3 valued expression
    """
    expression = expression.strip()
    match = re.match(r"^(?:float4|half4)\s*\(", expression)
    if match:
        close_paren = find_matching(expression, match.end() - 1)
        if close_paren == len(expression) - 1:
            arguments = split_arguments(expression[match.end() : close_paren])
            if len(arguments) >= 2:
                color = arguments[:-1]
                if len(color) == 1:
                    return color[0]
                return f"float3({', '.join(color)})"
    if _ACCESS.match(expression):
        return f"{expression}.xyz"
    return f"({expression}).xyz"


def rewrite_output_as_return(body: str) -> str:
    """Turn the final write of the output color into a ``return``.

    Trailing write-outs (``return fragColor_0;``, ``outFragColor =
    fragColor;``) are dropped. When the last top-level statement before them
    assigns the output variable, the assignment itself becomes the return.
    Otherwise the output variable is returned after the body.

    Args:
        body: Function body text

    Returns:
        The rewritten body
    """
    statements = split_statements(body)
    tail = len(statements)
    while tail > 0 and _WRITE_OUT.match(statements[tail - 1].text):
        tail -= 1

    if tail > 0:
        last = statements[tail - 1]
        match = _ASSIGNMENT.match(last.text) or _RETURN.match(last.text)
        if match and match.group("expr").strip() not in OUTPUT_NAMES:
            replacement = f"return {truncate_to_rgb(match.group('expr'))};"
            return body[: last.start] + replacement + body[statements[-1].end :]

    if tail == len(statements):
        return body

    name = _output_name(statements[tail:])
    kept = body[: statements[tail].start].rstrip()
    return f"{kept}\nreturn {truncate_to_rgb(name)};\n"


def _output_name(write_outs: list[Statement]) -> str:
    for statement in write_outs:
        names = re.findall(rf"\b(?:{_OUTPUT})\b", statement.text)
        if names:
            return names[-1]
    return OUTPUT_NAMES[0]


def normalize_unreal(code: str, execution_mode: ExecutionMode) -> str:
    """Convert compiler HLSL output into a Custom node body.

    Args:
        code: HLSL output of Slang or spirv-cross
        execution_mode: Mode the module was wrapped in

    Returns:
        Custom node source: input header followed by the shader logic
    """
    code = normalize_newlines(code)
    code = strip_preprocessor_noise(code, GUARDED_MACROS)
    vectors = declared_vectors(_header(execution_mode) + code, HLSL_VECTOR_SIZES)

    span = find_function(code, ENTRY_FUNCTIONS)
    if span is None:
        # Already a node body
        code = rename_symbols(code, _input_table(code, execution_mode))
        code = expand_vector_shorthand(code, HLSL_VECTOR_SIZES, vectors)
        return finish(bound_unbounded_loops(code))

    preamble = code[: span.start]
    body = code[span.body_start : span.body_end]

    table = _input_table(preamble, execution_mode)
    body = rename_symbols(body, table)
    body = rename_temporaries(body)
    vectors |= declared_vectors(code[span.start : span.body_start] + body, HLSL_VECTOR_SIZES)
    body = expand_vector_shorthand(body, HLSL_VECTOR_SIZES, vectors)
    body = bound_unbounded_loops(body)
    body = rewrite_output_as_return(body)

    parts = [_header(execution_mode), "// Shader logic"]
    helpers = _helpers(preamble)
    if helpers and (execution_mode is ExecutionMode.SHADERTOY or _calls_any(body, helpers)):
        helpers = rename_temporaries(rename_symbols(helpers, table))
        vectors |= declared_vectors(helpers, HLSL_VECTOR_SIZES)
        helpers = expand_vector_shorthand(helpers, HLSL_VECTOR_SIZES, vectors)
        parts.append(bound_unbounded_loops(helpers))
    parts.append(dedent_body(body))
    return finish("\n".join(parts))
