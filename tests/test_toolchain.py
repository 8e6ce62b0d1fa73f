"""Tests for toolchain probing and the target catalogue."""

from shadercross.pipeline.config import ToolchainConfig
from shadercross.pipeline.models import TargetFormat, ToolKind
from shadercross.pipeline.toolchain import probe_tool, probe_toolchain, supported_targets


def test_probe_reports_version(fake_tool):
    """Test that glslang's banner becomes the version."""
    glslang = fake_tool(
        "glslangValidator",
        """
        print("Glslang Version: 11:14.0.0")
        print("ESSL Version: OpenGL ES GLSL 3.20 glslang Khronos. 14.0.0")
        """,
    )

    status = probe_tool(ToolKind.GLSLANG, str(glslang))

    assert status.available
    assert status.version == "Glslang Version: 11:14.0.0"
    assert status.error is None


def test_probe_accepts_usage_with_nonzero_exit(fake_tool):
    """Test that a tool printing its usage and failing is still available."""
    slangc = fake_tool(
        "slangc",
        """
        assert args == ["-h"]
        sys.stderr.write("Usage: slangc [options...] [--] <input files>\\n")
        sys.exit(1)
        """,
    )

    status = probe_tool(ToolKind.SLANG, str(slangc))

    assert status.available
    assert status.version is None


def test_probe_silent_tool_is_unavailable(fake_tool):
    spirv_cross = fake_tool("spirv-cross", "sys.exit(1)\n")

    status = probe_tool(ToolKind.SPIRV_CROSS, str(spirv_cross))

    assert not status.available
    assert status.error == "no output"


def test_probe_missing_tool(tmp_path):
    path = str(tmp_path / "missing" / "slangc")

    status = probe_tool(ToolKind.SLANG, path)

    assert not status.available
    assert status.path == path
    assert "not found" in status.error


def test_probe_toolchain_covers_every_tool(config):
    statuses = probe_toolchain(config)

    assert [s.tool for s in statuses] == [ToolKind.GLSLANG, ToolKind.SPIRV_CROSS, ToolKind.SLANG]
    assert [s.path for s in statuses] == [
        config.glslang_path,
        config.spirv_cross_path,
        config.slang_path,
    ]


def test_supported_targets():
    """Test the catalogue order and its configuration filter."""
    assert [t.target for t in supported_targets()] == list(TargetFormat)

    config = ToolchainConfig(enabled_targets=frozenset({TargetFormat.METAL, TargetFormat.GLSL}))
    infos = supported_targets(config)

    assert [t.target for t in infos] == [TargetFormat.GLSL, TargetFormat.METAL]
    assert infos[1].name == "Metal"
    assert "Apple" in infos[1].description
