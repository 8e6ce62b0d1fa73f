"""
Pipeline orchestration.

The orchestrator wraps the user fragment, runs the stage chain required for
the requested target inside a scoped workspace and turns the outcome into a
``CompilationResult``. Compile errors in user code are results, not
exceptions; only operational failures (missing tool, unusable workspace)
propagate to the caller.
"""

import base64
from dataclasses import dataclass
from typing import assert_never

from loguru import logger

from shadercross.pipeline.config import ToolchainConfig
from shadercross.pipeline.diagnostics import DiagnosticTranslator
from shadercross.pipeline.invoker import ToolchainInvoker
from shadercross.pipeline.models import (
    CompilationRequest,
    CompilationResult,
    Diagnostic,
    ExecutionMode,
    Outcome,
    Severity,
    SourceLanguage,
    StageId,
    StageResult,
    TargetFormat,
    ToolKind,
)
from shadercross.pipeline.normalizers import normalize, should_normalize
from shadercross.pipeline.workspace import Workspace
from shadercross.pipeline.wrapper import GLSL_ENTRY_POINT, SLANG_ENTRY_POINT, wrap

GLSL_SOURCE_FILE = "shader.frag"
SLANG_SOURCE_FILE = "shader.slang"
SPIRV_FILE = "shader.spv"

_OUTPUT_FILES = {
    TargetFormat.GLSL: "output.glsl",
    TargetFormat.HLSL: "output.hlsl",
    TargetFormat.HLSL_UNREAL: "output.hlsl",
    TargetFormat.SPIRV: SPIRV_FILE,
    TargetFormat.WGSL: "output.wgsl",
    TargetFormat.METAL: "output.metal",
}

_SLANG_TARGETS = {
    TargetFormat.GLSL: "spirv",
    TargetFormat.HLSL: "hlsl",
    TargetFormat.HLSL_UNREAL: "hlsl",
    TargetFormat.SPIRV: "spirv",
    TargetFormat.WGSL: "wgsl",
    TargetFormat.METAL: "metal",
}


@dataclass(frozen=True)
class StagePlan:
    """One planned tool invocation.

    Attributes:
        stage: Identifier reported when the stage fails
        tool: Tool to run
        arguments: Argument vector, paths relative to the workspace
        output_name: File the stage must produce
        consumes_module: Whether the input is the wrapped module (diagnostics
            are then remapped with its line offset) or an intermediate
    """

    stage: StageId
    tool: ToolKind
    arguments: tuple[str, ...]
    output_name: str
    consumes_module: bool = True


def _slang_arguments(
    source: str, target: str, entry: str, output: str, *extra: str
) -> tuple[str, ...]:
    return (
        source,
        *extra,
        "-target",
        target,
        "-entry",
        entry,
        "-stage",
        "fragment",
        "-o",
        output,
        "-line-directive-mode",
        "none",
    )


def _spirv_cross_stage(target_format: TargetFormat) -> StagePlan:
    output = _OUTPUT_FILES[target_format]
    match target_format:
        case TargetFormat.GLSL:
            flags = ("--version", "100", "--es")
        case TargetFormat.HLSL | TargetFormat.HLSL_UNREAL:
            flags = ("--hlsl", "--shader-model", "50")
        case TargetFormat.METAL:
            flags = ("--msl",)
        case _:
            raise ValueError(f"spirv-cross does not produce {target_format.value}")
    return StagePlan(
        StageId.SPIRV_CROSS,
        ToolKind.SPIRV_CROSS,
        (SPIRV_FILE, *flags, "--output", output),
        output,
        consumes_module=False,
    )


def plan_stages(
    source_language: SourceLanguage, target_format: TargetFormat
) -> list[StagePlan]:
    """Plan the stage chain for a source language and target.

    GLSL sources are always validated by glslang first so that user errors
    are reported against the module the user wrote. Slang to GLSL goes
    through SPIR-V and spirv-cross, which yields portable GLSL ES.

    Args:
        source_language: Language of the user fragment
        target_format: Requested output

    Returns:
        Stages in execution order
    """
    if source_language is SourceLanguage.GLSL:
        glslang = StagePlan(
            StageId.GLSL_TO_SPIRV,
            ToolKind.GLSLANG,
            ("-V", "-S", "frag", "-o", SPIRV_FILE, GLSL_SOURCE_FILE),
            SPIRV_FILE,
        )
        match target_format:
            case TargetFormat.GLSL | TargetFormat.SPIRV:
                return [glslang]
            case TargetFormat.HLSL | TargetFormat.HLSL_UNREAL | TargetFormat.METAL:
                return [glslang, _spirv_cross_stage(target_format)]
            case TargetFormat.WGSL:
                output = _OUTPUT_FILES[target_format]
                slang = StagePlan(
                    StageId.GLSL_SLANG_COMPILATION,
                    ToolKind.SLANG,
                    _slang_arguments(
                        GLSL_SOURCE_FILE,
                        "wgsl",
                        GLSL_ENTRY_POINT,
                        output,
                        "-lang",
                        "glsl",
                        "-allow-glsl",
                    ),
                    output,
                )
                return [glslang, slang]
            case _:
                assert_never(target_format)

    if target_format is TargetFormat.GLSL:
        compile_spirv = StagePlan(
            StageId.SLANG_COMPILATION,
            ToolKind.SLANG,
            _slang_arguments(SLANG_SOURCE_FILE, "spirv", SLANG_ENTRY_POINT, SPIRV_FILE),
            SPIRV_FILE,
        )
        return [compile_spirv, _spirv_cross_stage(target_format)]

    output = _OUTPUT_FILES[target_format]
    extra: tuple[str, ...] = ()
    if target_format in (TargetFormat.HLSL, TargetFormat.HLSL_UNREAL):
        extra = ("-profile", "sm_5_0")
    return [
        StagePlan(
            StageId.SLANG_COMPILATION,
            ToolKind.SLANG,
            _slang_arguments(
                SLANG_SOURCE_FILE,
                _SLANG_TARGETS[target_format],
                SLANG_ENTRY_POINT,
                output,
                *extra,
            ),
            output,
        )
    ]


class PipelineOrchestrator:
    """Runs compilation requests against the configured toolchain."""

    def __init__(
        self,
        config: ToolchainConfig | None = None,
        invoker: ToolchainInvoker | None = None,
        translator: DiagnosticTranslator | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: Toolchain configuration, defaults when None
            invoker: Stage runner, one bounded by the config when None
            translator: Diagnostic translator
        """
        self.config = config or ToolchainConfig()
        self.invoker = invoker or ToolchainInvoker(self.config.output_limit_bytes)
        self.translator = translator or DiagnosticTranslator()

    def executable(self, tool: ToolKind) -> str:
        """Get the configured executable of a tool."""
        match tool:
            case ToolKind.GLSLANG:
                return self.config.glslang_path
            case ToolKind.SPIRV_CROSS:
                return self.config.spirv_cross_path
            case ToolKind.SLANG:
                return self.config.slang_path
            case _:
                assert_never(tool)

    def compile(self, request: CompilationRequest) -> CompilationResult:
        """Compile one request.

        Args:
            request: The compilation request

        Returns:
            Success with the artifact, or failure with at least one diagnostic

        Raises:
            ToolchainUnavailableError: If a stage's executable cannot be launched
            WorkspaceError: If the workspace cannot be created, used or removed
        """
        target = request.target_format
        language = request.source_language
        logger.info(
            f"Compiling {language.value} -> {target.value} "
            f"({request.execution_mode.value})"
        )

        if target not in self.config.enabled_targets:
            logger.warning(f"Rejected disabled target: {target.value}")
            return CompilationResult.failure(
                StageId.VALIDATION,
                [Diagnostic(f"Unsupported target: {target.value}")],
                request,
            )

        module = wrap(request.source_code, language, request.execution_mode)
        stages = plan_stages(language, target)
        multistage = language is SourceLanguage.SLANG
        source_name = GLSL_SOURCE_FILE if language is SourceLanguage.GLSL else SLANG_SOURCE_FILE

        warnings: list[Diagnostic] = []
        with Workspace(self.config.workspace_root) as workspace:
            workspace.write_text(source_name, module.full_source_text)

            for plan in stages:
                timeout_ms = self.config.timeout_for(plan.stage, multistage)
                result = self.invoker.run(
                    self.executable(plan.tool),
                    plan.arguments,
                    workspace.path,
                    timeout_ms,
                    workspace.file(plan.output_name),
                )
                offset = module.user_code_line_offset if plan.consumes_module else 0
                user_lines = module.user_line_count if plan.consumes_module else None

                if not result.exited_cleanly:
                    diagnostics = self._failure_diagnostics(
                        plan, result, timeout_ms, offset, user_lines
                    )
                    logger.info(
                        f"Stage {plan.stage.value} failed with "
                        f"{len(diagnostics)} diagnostic(s)"
                    )
                    return CompilationResult.failure(plan.stage, diagnostics, request)

                if result.produced_artifact_path is None:
                    return CompilationResult.failure(
                        plan.stage,
                        [Diagnostic(f"{plan.tool.value} produced no output")],
                        request,
                    )

                warnings.extend(
                    d
                    for d in self.translator.translate(
                        result.diagnostic_text, plan.tool, offset, user_lines
                    )
                    if d.severity is Severity.WARNING
                )

            final = stages[-1]
            if target.is_binary:
                data = workspace.read_bytes(final.output_name)
                logger.info(f"Produced {len(data)} bytes of {target.value}")
                return CompilationResult(
                    outcome=Outcome.SUCCESS,
                    artifact_base64=base64.b64encode(data).decode("ascii"),
                    diagnostics=tuple(warnings),
                    target_format=target,
                    execution_mode=request.execution_mode,
                )

            if language is SourceLanguage.GLSL and target is TargetFormat.GLSL:
                # glslang only validates; the module itself is the artifact
                artifact = module.full_source_text
            else:
                artifact = workspace.read_text(final.output_name)

        if should_normalize(target, request.clean_export):
            artifact = normalize(artifact, target, request.execution_mode)

        logger.info(f"Produced {len(artifact)} characters of {target.value}")
        return CompilationResult(
            outcome=Outcome.SUCCESS,
            artifact_text=artifact,
            diagnostics=tuple(warnings),
            target_format=target,
            execution_mode=request.execution_mode,
        )

    def _failure_diagnostics(
        self,
        plan: StagePlan,
        result: StageResult,
        timeout_ms: int,
        offset: int,
        user_lines: int | None,
    ) -> list[Diagnostic]:
        if result.timed_out:
            return [
                Diagnostic(
                    f"{plan.tool.value} timed out after {timeout_ms} ms",
                    code="timeout",
                )
            ]

        diagnostics = self.translator.translate(
            result.diagnostic_text, plan.tool, offset, user_lines
        )
        if not diagnostics:
            diagnostics = [
                Diagnostic(f"{plan.tool.value} exited with status {result.exit_code}")
            ]
        return diagnostics


def compile_source(
    source_code: str,
    target_format: TargetFormat = TargetFormat.GLSL,
    source_language: SourceLanguage = SourceLanguage.SLANG,
    execution_mode: ExecutionMode = ExecutionMode.MATERIAL_LIBRARY,
    clean_export: bool = False,
    config: ToolchainConfig | None = None,
) -> CompilationResult:
    """Compile a shader fragment with a default orchestrator.

    Args:
        source_code: User-authored fragment
        target_format: Requested output
        source_language: Language of the fragment
        execution_mode: Embedding convention
        clean_export: Whether to normalize the artifact
        config: Toolchain configuration, read from the environment when None

    Returns:
        The compilation result
    """
    request = CompilationRequest(
        source_code=source_code,
        source_language=source_language,
        target_format=target_format,
        execution_mode=execution_mode,
        clean_export=clean_export,
    )
    return PipelineOrchestrator(config or ToolchainConfig.from_env()).compile(request)
