"""Wrapper symbol tables as seen from compiler output."""

from shadercross.pipeline.models import ExecutionMode, SourceLanguage
from shadercross.pipeline.wrapper import (
    OUTPUT_VARIABLE,
    SLANG_ENTRY_POINT,
    USER_ENTRY_POINT,
    HeaderSymbol,
    SymbolKind,
    header_symbols,
)

# Names Slang gives the wrapper's structural declarations
STRUCTURAL_NAMES = (
    "GlobalParams",
    "GlobalParams_std140",
    "globalParams",
    "VSInput",
    "input",
    OUTPUT_VARIABLE,
    "fragCoord",
    USER_ENTRY_POINT,
)

# Entry functions: Slang keeps the requested name, spirv-cross HLSL emits frag_main
ENTRY_FUNCTIONS = (SLANG_ENTRY_POINT, "frag_main")

OUTPUT_NAMES = (OUTPUT_VARIABLE, f"{OUTPUT_VARIABLE}_0", "outFragColor", "_entryPointOutput")

# Wrapper alias -> Unreal material input
UNREAL_INPUTS = {
    "iResolution": "Resolution",
    "iTime": "Time",
    "iTimeDelta": "DeltaTime",
    "iFrame": "Frame",
    "iFrameRate": "FrameRate",
    "iUV": "UV",
    "iNormal": "Normal",
    "iPosition": "Position",
    "uv": "UV",
}


def symbols_for_mode(execution_mode: ExecutionMode) -> tuple[HeaderSymbol, ...]:
    """Header symbols of both source languages for an execution mode.

    Normalizers only see the artifact, not the source language, so they
    match against the union of both headers. Names never clash between
    the two languages.
    """
    seen: dict[str, HeaderSymbol] = {}
    for language in SourceLanguage:
        for symbol in header_symbols(language, execution_mode):
            seen.setdefault(symbol.name, symbol)
    return tuple(seen.values())


def slang_rename_table(execution_mode: ExecutionMode) -> dict[str, str]:
    """Map Slang-mangled (``_0``) wrapper names back to their declared names."""
    names = list(STRUCTURAL_NAMES)
    for symbol in symbols_for_mode(execution_mode):
        names.extend((symbol.name, symbol.alias))
    return {f"{name}_0": name for name in dict.fromkeys(names)}


def varyings(execution_mode: ExecutionMode) -> tuple[HeaderSymbol, ...]:
    return tuple(
        s for s in symbols_for_mode(execution_mode) if s.kind is SymbolKind.VARYING
    )


def uniforms(execution_mode: ExecutionMode) -> tuple[HeaderSymbol, ...]:
    return tuple(
        s for s in symbols_for_mode(execution_mode) if s.kind is SymbolKind.UNIFORM
    )
