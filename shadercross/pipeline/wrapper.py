"""
Embedding of user fragments into complete shader modules.

Every (source language, execution mode) pair has a fixed header and trailer.
The header declares the uniforms and varyings the user code can rely on; the
trailer writes the user's output value to the stage output. The number of
header lines is the line offset later used to remap compiler diagnostics.
"""

from dataclasses import dataclass
from enum import Enum, auto

from shadercross.pipeline.models import ExecutionMode, SourceLanguage, WrappedModule

USER_CODE_START_MARKER = "// ---- USER CODE START ----"
USER_CODE_END_MARKER = "// ---- USER CODE END ----"

# Names shared with the normalizers
OUTPUT_VARIABLE = "fragColor"
GLSL_OUTPUT_SLOT = "outFragColor"
GLSL_ENTRY_POINT = "main"
SLANG_ENTRY_POINT = "fragmentMain"
USER_ENTRY_POINT = "mainImage"


class SymbolKind(Enum):
    """Kind of a header-declared symbol."""

    UNIFORM = auto()
    VARYING = auto()


@dataclass(frozen=True)
class HeaderSymbol:
    """A symbol declared by a wrapper header.

    Attributes:
        name: Name as declared in the header
        alias: Convenience name the user code sees
        components: Number of float components (1 for scalars)
        kind: Uniform or varying
    """

    name: str
    alias: str
    components: int
    kind: SymbolKind


@dataclass(frozen=True)
class ModuleTemplate:
    """Header/trailer pair for one (language, mode) combination."""

    header: str
    trailer: str
    placeholder: str
    symbols: tuple[HeaderSymbol, ...]

    @property
    def line_offset(self) -> int:
        """Number of lines preceding the first user-code line."""
        return self.header.count("\n")


_MATERIAL_UNIFORMS = (
    HeaderSymbol("uResolution", "iResolution", 2, SymbolKind.UNIFORM),
    HeaderSymbol("uTime", "iTime", 1, SymbolKind.UNIFORM),
    HeaderSymbol("uTimeDelta", "iTimeDelta", 1, SymbolKind.UNIFORM),
    HeaderSymbol("uFrame", "iFrame", 1, SymbolKind.UNIFORM),
    HeaderSymbol("uFrameRate", "iFrameRate", 1, SymbolKind.UNIFORM),
)

_SHADERTOY_UNIFORMS = (
    HeaderSymbol("iResolution", "iResolution", 3, SymbolKind.UNIFORM),
    HeaderSymbol("iTime", "iTime", 1, SymbolKind.UNIFORM),
    HeaderSymbol("iTimeDelta", "iTimeDelta", 1, SymbolKind.UNIFORM),
    HeaderSymbol("iFrame", "iFrame", 1, SymbolKind.UNIFORM),
    HeaderSymbol("iFrameRate", "iFrameRate", 1, SymbolKind.UNIFORM),
)


_GLSL_MATERIAL = ModuleTemplate(
    header=f"""#version 450

layout(location = 0) in vec2 vUv;
layout(location = 1) in vec3 vNormal;
layout(location = 2) in vec3 vPosition;

layout(location = 0) out vec4 {GLSL_OUTPUT_SLOT};

layout(binding = 0) uniform Uniforms {{
  vec2 uResolution;
  float uTime;
  float uTimeDelta;
  float uFrame;
  float uFrameRate;
}};

void {GLSL_ENTRY_POINT}() {{
  // Pre-defined variables for user convenience (ShaderToy naming)
  vec2 iResolution = uResolution;
  float iTime = uTime;
  float iTimeDelta = uTimeDelta;
  float iFrame = uFrame;
  float iFrameRate = uFrameRate;
  vec2 iUV = vUv;
  vec3 iNormal = vNormal;
  vec3 iPosition = vPosition;

  // Default output (vec4 RGBA)
  vec4 {OUTPUT_VARIABLE} = vec4(1.0);

{USER_CODE_START_MARKER}
""",
    trailer=f"""{USER_CODE_END_MARKER}

  {GLSL_OUTPUT_SLOT} = {OUTPUT_VARIABLE};
}}
""",
    placeholder="",
    symbols=_MATERIAL_UNIFORMS
    + (
        HeaderSymbol("vUv", "iUV", 2, SymbolKind.VARYING),
        HeaderSymbol("vNormal", "iNormal", 3, SymbolKind.VARYING),
        HeaderSymbol("vPosition", "iPosition", 3, SymbolKind.VARYING),
    ),
)

_GLSL_SHADERTOY = ModuleTemplate(
    header=f"""#version 450

layout(location = 0) in vec2 vUv;

layout(location = 0) out vec4 {GLSL_OUTPUT_SLOT};

layout(binding = 0) uniform Uniforms {{
  vec3 iResolution;
  float iTime;
  float iTimeDelta;
  float iFrame;
  float iFrameRate;
}};

// Forward declaration for the user entry function
void {USER_ENTRY_POINT}(out vec4 fragColor, in vec2 fragCoord);

{USER_CODE_START_MARKER}
""",
    trailer=f"""{USER_CODE_END_MARKER}

void {GLSL_ENTRY_POINT}() {{
  vec2 fragCoord = vUv * iResolution.xy;
  vec4 {OUTPUT_VARIABLE} = vec4(0.0, 0.0, 0.0, 1.0);
  {USER_ENTRY_POINT}({OUTPUT_VARIABLE}, fragCoord);
  {GLSL_OUTPUT_SLOT} = {OUTPUT_VARIABLE};
}}
""",
    placeholder=(
        f"void {USER_ENTRY_POINT}(out vec4 fragColor, in vec2 fragCoord) "
        "{ fragColor = vec4(0.0, 0.0, 0.0, 1.0); }\n"
    ),
    symbols=_SHADERTOY_UNIFORMS + (HeaderSymbol("vUv", "uv", 2, SymbolKind.VARYING),),
)

_SLANG_MATERIAL = ModuleTemplate(
    header=f"""// Slang Fragment Shader - Material Library Mode

// Uniforms
uniform float2 uResolution;
uniform float uTime;
uniform float uTimeDelta;
uniform float uFrame;
uniform float uFrameRate;

// Varyings from vertex shader
struct VSInput
{{
    float2 uv : TEXCOORD0;
    float3 normal : NORMAL;
    float3 position : TEXCOORD1;
}};

[shader("fragment")]
float4 {SLANG_ENTRY_POINT}(VSInput input) : SV_Target
{{
    // Pre-defined variables for user convenience
    float2 iResolution = uResolution;
    float iTime = uTime;
    float iTimeDelta = uTimeDelta;
    float iFrame = uFrame;
    float iFrameRate = uFrameRate;
    float2 iUV = input.uv;
    float3 iNormal = input.normal;
    float3 iPosition = input.position;

    // Default output
    float4 {OUTPUT_VARIABLE} = float4(1.0, 1.0, 1.0, 1.0);

{USER_CODE_START_MARKER}
""",
    trailer=f"""{USER_CODE_END_MARKER}

    return {OUTPUT_VARIABLE};
}}
""",
    placeholder="",
    symbols=_MATERIAL_UNIFORMS
    + (
        HeaderSymbol("uv", "iUV", 2, SymbolKind.VARYING),
        HeaderSymbol("normal", "iNormal", 3, SymbolKind.VARYING),
        HeaderSymbol("position", "iPosition", 3, SymbolKind.VARYING),
    ),
)

_SLANG_SHADERTOY = ModuleTemplate(
    header=f"""// Slang Fragment Shader - ShaderToy Mode

// Uniforms
uniform float3 iResolution;
uniform float iTime;
uniform float iTimeDelta;
uniform float iFrame;
uniform float iFrameRate;

// Varyings
struct VSInput
{{
    float2 uv : TEXCOORD0;
}};

// Forward declaration for the user entry function
void {USER_ENTRY_POINT}(out float4 fragColor, in float2 fragCoord);

{USER_CODE_START_MARKER}
""",
    trailer=f"""{USER_CODE_END_MARKER}

[shader("fragment")]
float4 {SLANG_ENTRY_POINT}(VSInput input) : SV_Target
{{
    float2 fragCoord = input.uv * iResolution.xy;
    float4 {OUTPUT_VARIABLE} = float4(0.0, 0.0, 0.0, 1.0);
    {USER_ENTRY_POINT}({OUTPUT_VARIABLE}, fragCoord);
    return {OUTPUT_VARIABLE};
}}
""",
    placeholder=(
        f"void {USER_ENTRY_POINT}(out float4 fragColor, in float2 fragCoord) "
        "{ fragColor = float4(0.0, 0.0, 0.0, 1.0); }\n"
    ),
    symbols=_SHADERTOY_UNIFORMS + (HeaderSymbol("uv", "uv", 2, SymbolKind.VARYING),),
)

_TEMPLATES: dict[tuple[SourceLanguage, ExecutionMode], ModuleTemplate] = {
    (SourceLanguage.GLSL, ExecutionMode.MATERIAL_LIBRARY): _GLSL_MATERIAL,
    (SourceLanguage.GLSL, ExecutionMode.SHADERTOY): _GLSL_SHADERTOY,
    (SourceLanguage.SLANG, ExecutionMode.MATERIAL_LIBRARY): _SLANG_MATERIAL,
    (SourceLanguage.SLANG, ExecutionMode.SHADERTOY): _SLANG_SHADERTOY,
}


def get_template(
    source_language: SourceLanguage, execution_mode: ExecutionMode
) -> ModuleTemplate:
    """Get the module template for a language and execution mode.

    Args:
        source_language: Language of the user fragment
        execution_mode: Embedding convention

    Returns:
        The matching template

    Raises:
        ValueError: If the combination is not supported
    """
    key = (source_language, execution_mode)
    if key not in _TEMPLATES:
        raise ValueError(
            f"Unsupported combination: {source_language}, {execution_mode}"
        )
    return _TEMPLATES[key]


def header_symbols(
    source_language: SourceLanguage, execution_mode: ExecutionMode
) -> tuple[HeaderSymbol, ...]:
    """Get the uniforms and varyings a wrapper header declares."""
    return get_template(source_language, execution_mode).symbols


def count_lines(text: str) -> int:
    """Count the lines of a text, a missing final newline included."""
    if not text:
        return 0
    return text.count("\n") + (0 if text.endswith("\n") else 1)


def wrap(
    source_code: str,
    source_language: SourceLanguage,
    execution_mode: ExecutionMode,
) -> WrappedModule:
    """Embed a user fragment into a complete shader module.

    The fragment is inserted verbatim between the header and the trailer.
    An empty fragment still produces a valid module: material mode keeps the
    default output value, ShaderToy mode gets a placeholder entry function
    that writes the default output.

    Args:
        source_code: User-authored fragment
        source_language: Language of the fragment
        execution_mode: Embedding convention

    Returns:
        The wrapped module with its user-code line offset
    """
    template = get_template(source_language, execution_mode)

    user_code = source_code
    if not user_code.strip():
        user_code = template.placeholder
    if user_code and not user_code.endswith("\n"):
        user_code += "\n"

    return WrappedModule(
        full_source_text=template.header + user_code + template.trailer,
        user_code_line_offset=template.line_offset,
        user_line_count=count_lines(user_code),
    )
