"""Tests for embedding user fragments into shader modules."""

import pytest

from shadercross.pipeline.models import ExecutionMode, SourceLanguage
from shadercross.pipeline.wrapper import (
    USER_CODE_END_MARKER,
    USER_CODE_START_MARKER,
    SymbolKind,
    count_lines,
    get_template,
    header_symbols,
    wrap,
)

ALL_PAIRS = [
    (language, mode) for language in SourceLanguage for mode in ExecutionMode
]


@pytest.mark.parametrize("language, mode", ALL_PAIRS)
def test_offset_points_at_first_user_line(language, mode):
    """Test that the line offset is the number of lines before the user code."""
    module = wrap("first_user_line;\nsecond_user_line;\n", language, mode)

    lines = module.full_source_text.splitlines()
    assert lines[module.user_code_line_offset] == "first_user_line;"
    assert lines[module.user_code_line_offset - 1] == USER_CODE_START_MARKER
    assert module.user_line_count == 2


@pytest.mark.parametrize("language, mode", ALL_PAIRS)
def test_user_code_inserted_verbatim(language, mode):
    """Test that the fragment is inserted without re-indentation."""
    source = "  float a = 1.0;\n\n\tfloat b = a;"
    module = wrap(source, language, mode)

    start = module.full_source_text.index(USER_CODE_START_MARKER)
    end = module.full_source_text.index(USER_CODE_END_MARKER)
    section = module.full_source_text[start:end]
    assert source in section
    assert module.user_line_count == 3


@pytest.mark.parametrize("language", list(SourceLanguage))
def test_empty_material_source_keeps_default_output(language):
    """Test that empty material code leaves the default output untouched."""
    module = wrap("", language, ExecutionMode.MATERIAL_LIBRARY)

    assert "fragColor" in module.full_source_text
    assert module.user_line_count == 0


@pytest.mark.parametrize("language", list(SourceLanguage))
def test_empty_shadertoy_source_gets_placeholder(language):
    """Test that empty ShaderToy code gets a placeholder mainImage."""
    module = wrap("   \n", language, ExecutionMode.SHADERTOY)

    # Forward declaration plus the placeholder definition
    assert module.full_source_text.count("mainImage(out") == 2
    assert module.user_line_count == 1


def test_glsl_material_template_writes_output():
    """Test that the GLSL material trailer writes the stage output."""
    module = wrap("fragColor = vec4(1.0);", SourceLanguage.GLSL, ExecutionMode.MATERIAL_LIBRARY)

    assert module.full_source_text.startswith("#version 450")
    assert "outFragColor = fragColor;" in module.full_source_text


def test_slang_shadertoy_trailer_calls_main_image():
    """Test that the Slang ShaderToy trailer calls the user's entry function."""
    template = get_template(SourceLanguage.SLANG, ExecutionMode.SHADERTOY)

    assert "mainImage(fragColor, fragCoord);" in template.trailer
    assert "fragmentMain" in template.trailer


def test_header_symbols():
    """Test the symbol table exposed to normalizers."""
    symbols = header_symbols(SourceLanguage.SLANG, ExecutionMode.MATERIAL_LIBRARY)
    by_name = {symbol.name: symbol for symbol in symbols}

    assert by_name["uTime"].alias == "iTime"
    assert by_name["uResolution"].components == 2
    assert by_name["uv"].kind is SymbolKind.VARYING


def test_get_template_rejects_unknown_combination():
    """Test that unsupported combinations raise ValueError."""
    with pytest.raises(ValueError, match="Unsupported combination"):
        get_template("hlsl", ExecutionMode.MATERIAL_LIBRARY)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "text, expected",
    [("", 0), ("a", 1), ("a\n", 1), ("a\nb", 2), ("\n\n", 2)],
)
def test_count_lines(text, expected):
    assert count_lines(text) == expected
