"""Tests for pipeline orchestration with scripted compiler stages."""

import base64
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from shadercross.pipeline.config import ToolchainConfig
from shadercross.pipeline.errors import ToolchainUnavailableError
from shadercross.pipeline.models import (
    CompilationRequest,
    ExecutionMode,
    Severity,
    SourceLanguage,
    StageId,
    StageResult,
    TargetFormat,
)
from shadercross.pipeline.orchestrator import PipelineOrchestrator, compile_source, plan_stages
from shadercross.pipeline.wrapper import get_template, wrap

SPIRV_BYTES = b"\x03\x02\x23\x07\x00\x00\x01\x00"

GLSL_SOURCE = "vec3 col = vec3(iUV, 0.5);\nfragColor = vec4(col, 1.0);\n"
SLANG_SOURCE = "float3 col = float3(iUV, 0.5);\nfragColor = float4(col, 1.0);\n"


@dataclass
class Stage:
    """Scripted outcome of one fake stage."""

    exit_code: int | None = 0
    stdout: str = ""
    stderr: str = ""
    output: bytes | str | None = None
    timed_out: bool = False


@dataclass
class Call:
    executable: str
    arguments: tuple[str, ...]
    timeout_ms: int
    sources: dict[str, str]


@dataclass
class FakeInvoker:
    """Invoker returning scripted outcomes and recording every call."""

    stages: list[Stage | Exception]
    calls: list[Call] = field(default_factory=list)

    def run(self, executable, arguments, working_directory, timeout_ms, output_path=None):
        sources = {
            path.name: path.read_text()
            for path in Path(working_directory).iterdir()
            if path.suffix in (".frag", ".slang")
        }
        self.calls.append(Call(executable, tuple(arguments), timeout_ms, sources))

        stage = self.stages.pop(0)
        if isinstance(stage, Exception):
            raise stage

        produced = None
        if stage.output is not None and output_path is not None:
            if isinstance(stage.output, bytes):
                output_path.write_bytes(stage.output)
            else:
                output_path.write_text(stage.output)
            if stage.exit_code == 0:
                produced = output_path
        return StageResult(
            exited_cleanly=stage.exit_code == 0,
            stdout_text=stage.stdout,
            stderr_text=stage.stderr,
            produced_artifact_path=produced,
            exit_code=stage.exit_code,
            timed_out=stage.timed_out,
        )


def make_orchestrator(config, *stages):
    invoker = FakeInvoker(list(stages))
    return PipelineOrchestrator(config, invoker=invoker), invoker


def request(source, language, target, mode=ExecutionMode.MATERIAL_LIBRARY, clean=False):
    return CompilationRequest(
        source_code=source,
        source_language=language,
        target_format=target,
        execution_mode=mode,
        clean_export=clean,
    )


def offset(language, mode=ExecutionMode.MATERIAL_LIBRARY):
    return get_template(language, mode).line_offset


# Stage planning


def test_plan_glsl_to_hlsl():
    """Test that GLSL goes through glslang and spirv-cross for HLSL."""
    stages = plan_stages(SourceLanguage.GLSL, TargetFormat.HLSL)

    assert [s.stage for s in stages] == [StageId.GLSL_TO_SPIRV, StageId.SPIRV_CROSS]
    assert stages[0].arguments == ("-V", "-S", "frag", "-o", "shader.spv", "shader.frag")
    assert stages[1].arguments == (
        "shader.spv",
        "--hlsl",
        "--shader-model",
        "50",
        "--output",
        "output.hlsl",
    )
    assert not stages[1].consumes_module


def test_plan_glsl_to_wgsl_uses_slang():
    stages = plan_stages(SourceLanguage.GLSL, TargetFormat.WGSL)

    assert [s.stage for s in stages] == [StageId.GLSL_TO_SPIRV, StageId.GLSL_SLANG_COMPILATION]
    arguments = stages[1].arguments
    assert arguments[:4] == ("shader.frag", "-lang", "glsl", "-allow-glsl")
    assert arguments[arguments.index("-entry") + 1] == "main"
    assert arguments[arguments.index("-target") + 1] == "wgsl"


def test_plan_slang_to_glsl_goes_through_spirv():
    stages = plan_stages(SourceLanguage.SLANG, TargetFormat.GLSL)

    assert [s.stage for s in stages] == [StageId.SLANG_COMPILATION, StageId.SPIRV_CROSS]
    assert "--es" in stages[1].arguments
    assert stages[0].output_name == "shader.spv"


@pytest.mark.parametrize(
    "target, slang_target",
    [
        (TargetFormat.HLSL, "hlsl"),
        (TargetFormat.HLSL_UNREAL, "hlsl"),
        (TargetFormat.SPIRV, "spirv"),
        (TargetFormat.WGSL, "wgsl"),
        (TargetFormat.METAL, "metal"),
    ],
)
def test_plan_slang_single_stage(target, slang_target):
    """Test that Slang compiles straight to every target but GLSL."""
    stages = plan_stages(SourceLanguage.SLANG, target)

    assert len(stages) == 1
    arguments = stages[0].arguments
    assert arguments[arguments.index("-target") + 1] == slang_target
    assert arguments[arguments.index("-entry") + 1] == "fragmentMain"
    assert arguments[-2:] == ("-line-directive-mode", "none")
    assert ("-profile" in arguments) == (slang_target == "hlsl")


# Compilation


def test_disabled_target_spawns_nothing(workspace_root):
    """Test that a target this deployment does not accept fails validation."""
    config = ToolchainConfig(
        workspace_root=workspace_root, enabled_targets=frozenset({TargetFormat.GLSL})
    )
    orchestrator, invoker = make_orchestrator(config)

    result = orchestrator.compile(request("x", SourceLanguage.SLANG, TargetFormat.HLSL))

    assert not result.succeeded
    assert result.failed_stage is StageId.VALIDATION
    assert result.diagnostics[0].message == "Unsupported target: hlsl"
    assert invoker.calls == []


def test_glsl_syntax_error_maps_to_user_line(config, workspace_root):
    """Test that a glslang error on the second user line is reported as line 2."""
    source = "vec3 col = vec3(1.0);\nfloat x = undefinedVar;\nfragColor = vec4(col, 1.0);\n"
    raw_line = offset(SourceLanguage.GLSL) + 2
    glslang = Stage(
        exit_code=2,
        stdout=(
            "shader.frag\n"
            f"ERROR: shader.frag:{raw_line}: 'undefinedVar' : undeclared identifier\n"
            "ERROR: 1 compilation errors.  No code generated.\n"
        ),
    )
    orchestrator, invoker = make_orchestrator(config, glslang)

    result = orchestrator.compile(request(source, SourceLanguage.GLSL, TargetFormat.HLSL))

    assert not result.succeeded
    assert result.failed_stage is StageId.GLSL_TO_SPIRV
    assert len(result.diagnostics) == 1
    assert result.diagnostics[0].line == 2
    assert "undeclared identifier" in result.diagnostics[0].message
    assert len(invoker.calls) == 1
    assert list(workspace_root.iterdir()) == []


def test_slang_error_keeps_code(config):
    raw_line = offset(SourceLanguage.SLANG) + 1
    slang = Stage(
        exit_code=1,
        stderr=f"shader.slang({raw_line}): error 30015: undefined identifier 'x'.\n",
    )
    orchestrator, _ = make_orchestrator(config, slang)

    result = orchestrator.compile(request("float y = x;", SourceLanguage.SLANG, TargetFormat.HLSL))

    assert result.failed_stage is StageId.SLANG_COMPILATION
    assert result.diagnostics[0].code == "30015"
    assert result.diagnostics[0].line == 1
    assert result.target_format is TargetFormat.HLSL


def test_timeout_is_reported(config):
    """Test that a killed stage yields a timeout diagnostic."""
    orchestrator, _ = make_orchestrator(config, Stage(exit_code=None, timed_out=True))

    result = orchestrator.compile(request("x", SourceLanguage.SLANG, TargetFormat.WGSL))

    assert result.failed_stage is StageId.SLANG_COMPILATION
    assert result.diagnostics[0].code == "timeout"
    assert result.diagnostics[0].message == "slang timed out after 30000 ms"


def test_silent_failure_reports_exit_status(config):
    orchestrator, _ = make_orchestrator(config, Stage(exit_code=3))

    result = orchestrator.compile(request(GLSL_SOURCE, SourceLanguage.GLSL, TargetFormat.SPIRV))

    assert result.diagnostics[0].message == "glslang exited with status 3"


def test_missing_output_is_a_failure(config):
    orchestrator, _ = make_orchestrator(config, Stage(exit_code=0))

    result = orchestrator.compile(request(GLSL_SOURCE, SourceLanguage.GLSL, TargetFormat.SPIRV))

    assert result.failed_stage is StageId.GLSL_TO_SPIRV
    assert result.diagnostics[0].message == "glslang produced no output"


def test_spirv_is_base64(config):
    """Test that binary artifacts travel base64 encoded."""
    orchestrator, invoker = make_orchestrator(config, Stage(output=SPIRV_BYTES))

    result = orchestrator.compile(request(GLSL_SOURCE, SourceLanguage.GLSL, TargetFormat.SPIRV))

    assert result.succeeded
    assert result.artifact_text is None
    assert result.artifact_base64 == base64.b64encode(SPIRV_BYTES).decode("ascii")
    assert result.artifact_bytes == SPIRV_BYTES
    assert invoker.calls[0].executable == config.glslang_path
    assert invoker.calls[0].timeout_ms == config.direct_timeout_ms


def test_wrapped_module_is_written(config):
    """Test that the first stage sees the wrapped module."""
    orchestrator, invoker = make_orchestrator(config, Stage(output="float4 x;"))

    orchestrator.compile(request(SLANG_SOURCE, SourceLanguage.SLANG, TargetFormat.HLSL))

    module = wrap(SLANG_SOURCE, SourceLanguage.SLANG, ExecutionMode.MATERIAL_LIBRARY)
    assert invoker.calls[0].sources == {"shader.slang": module.full_source_text}
    assert invoker.calls[0].executable == config.slang_path
    assert invoker.calls[0].timeout_ms == config.multistage_timeout_ms


def test_two_stage_success(config, workspace_root):
    """Test Slang to GLSL through SPIR-V and spirv-cross."""
    orchestrator, invoker = make_orchestrator(
        config,
        Stage(output=SPIRV_BYTES),
        Stage(output="#version 100\nvoid main() {}\n"),
    )

    result = orchestrator.compile(request(SLANG_SOURCE, SourceLanguage.SLANG, TargetFormat.GLSL))

    assert result.succeeded
    assert result.artifact_text == "#version 100\nvoid main() {}\n"
    assert [call.executable for call in invoker.calls] == [
        config.slang_path,
        config.spirv_cross_path,
    ]
    assert list(workspace_root.iterdir()) == []


def test_second_stage_failure(config):
    """Test that intermediate-stage errors keep an unknown line."""
    orchestrator, _ = make_orchestrator(
        config,
        Stage(output=SPIRV_BYTES),
        Stage(exit_code=1, stderr="SPIRV-Cross threw an exception: Unsupported capability\n"),
    )

    result = orchestrator.compile(request(SLANG_SOURCE, SourceLanguage.SLANG, TargetFormat.GLSL))

    assert result.failed_stage is StageId.SPIRV_CROSS
    assert result.diagnostics[0].message == "Unsupported capability"
    assert result.diagnostics[0].line is None


def test_warnings_are_kept_on_success(config):
    raw_line = offset(SourceLanguage.SLANG) + 2
    orchestrator, _ = make_orchestrator(
        config,
        Stage(
            output="float4 x;",
            stderr=f"shader.slang({raw_line}): warning 41012: implicit truncation\n",
        ),
    )

    result = orchestrator.compile(request(SLANG_SOURCE, SourceLanguage.SLANG, TargetFormat.HLSL))

    assert result.succeeded
    assert len(result.diagnostics) == 1
    assert result.diagnostics[0].severity is Severity.WARNING
    assert result.diagnostics[0].line == 2


def test_glsl_to_glsl_returns_module(config):
    """Test that validated GLSL is returned as the wrapped module."""
    orchestrator, _ = make_orchestrator(config, Stage(output=SPIRV_BYTES))

    result = orchestrator.compile(request(GLSL_SOURCE, SourceLanguage.GLSL, TargetFormat.GLSL))

    module = wrap(GLSL_SOURCE, SourceLanguage.GLSL, ExecutionMode.MATERIAL_LIBRARY)
    assert result.artifact_text == module.full_source_text


def test_glsl_to_glsl_clean_export_returns_user_code(config):
    orchestrator, _ = make_orchestrator(config, Stage(output=SPIRV_BYTES))

    result = orchestrator.compile(
        request(GLSL_SOURCE, SourceLanguage.GLSL, TargetFormat.GLSL, clean=True)
    )

    assert result.artifact_text == GLSL_SOURCE


def test_unreal_is_always_normalized(config):
    """Test that Unreal output is a node body even without clean export."""
    hlsl = (
        "float4 fragmentMain(VSInput_0 input_0) : SV_TARGET\n"
        "{\n"
        "    float4 fragColor_0 = float4(input_0.uv_0, 0.0, 1.0);\n"
        "    return fragColor_0;\n"
        "}\n"
    )
    orchestrator, _ = make_orchestrator(config, Stage(output=hlsl))

    result = orchestrator.compile(
        request(SLANG_SOURCE, SourceLanguage.SLANG, TargetFormat.HLSL_UNREAL)
    )

    assert result.succeeded
    assert "return float3(UV, 0.0);" in result.artifact_text
    assert "fragmentMain" not in result.artifact_text


def test_raw_hlsl_without_clean_export(config):
    orchestrator, _ = make_orchestrator(config, Stage(output="float4 fragColor_0;\n"))

    result = orchestrator.compile(request(SLANG_SOURCE, SourceLanguage.SLANG, TargetFormat.HLSL))

    assert result.artifact_text == "float4 fragColor_0;\n"


def test_missing_tool_propagates(config, workspace_root):
    """Test that a missing executable raises and leaves no workspace behind."""
    error = ToolchainUnavailableError("slangc", config.slang_path)
    orchestrator, _ = make_orchestrator(config, error)

    with pytest.raises(ToolchainUnavailableError):
        orchestrator.compile(request(SLANG_SOURCE, SourceLanguage.SLANG, TargetFormat.HLSL))

    assert list(workspace_root.iterdir()) == []


def test_missing_tool_with_real_invoker(config, workspace_root):
    orchestrator = PipelineOrchestrator(config)

    with pytest.raises(ToolchainUnavailableError, match="glslangValidator"):
        orchestrator.compile(request(GLSL_SOURCE, SourceLanguage.GLSL, TargetFormat.SPIRV))

    assert list(workspace_root.iterdir()) == []


def test_stage_timeout_with_real_invoker(fake_tool, workspace_root):
    """Test that a hanging compiler is killed and its workspace removed."""
    glslang = fake_tool("glslangValidator", "time.sleep(30)\n")
    config = ToolchainConfig(
        glslang_path=str(glslang),
        workspace_root=workspace_root,
        stage_timeouts_ms={StageId.GLSL_TO_SPIRV: 200},
    )

    result = PipelineOrchestrator(config).compile(
        request(GLSL_SOURCE, SourceLanguage.GLSL, TargetFormat.SPIRV)
    )

    assert result.failed_stage is StageId.GLSL_TO_SPIRV
    assert result.diagnostics[0].code == "timeout"
    assert list(workspace_root.iterdir()) == []


def test_end_to_end_with_fake_tools(fake_tool, workspace_root):
    """Test GLSL to HLSL through real processes standing in for the tools."""
    glslang = fake_tool(
        "glslangValidator",
        """
        assert Path("shader.frag").read_text().startswith("#version 450")
        output.write_bytes(b"\\x03\\x02\\x23\\x07")
        """,
    )
    spirv_cross = fake_tool(
        "spirv-cross",
        """
        assert args[0] == "shader.spv" and "--hlsl" in args
        output.write_text("float4 main() : SV_Target { return 1; }\\n")
        """,
    )
    config = ToolchainConfig(
        glslang_path=str(glslang),
        spirv_cross_path=str(spirv_cross),
        workspace_root=workspace_root,
    )

    result = compile_source(
        GLSL_SOURCE,
        target_format=TargetFormat.HLSL,
        source_language=SourceLanguage.GLSL,
        config=config,
    )

    assert result.succeeded, result.diagnostics
    assert result.artifact_text == "float4 main() : SV_Target { return 1; }\n"
    assert list(workspace_root.iterdir()) == []
