"""
Data models for the shader cross-compilation pipeline.

This module contains the enums and frozen dataclasses that flow through the
pipeline: the inbound request, the wrapped module, per-stage results, the
structured diagnostics and the terminal compilation result.
"""

import base64
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class SourceLanguage(Enum):
    """Shading language the user fragment is written in."""

    SLANG = "slang"
    GLSL = "glsl"


class TargetFormat(Enum):
    """Output dialects the pipeline can produce.

    The values are the identifiers used on the wire.
    """

    GLSL = "glsl"
    HLSL = "hlsl"
    HLSL_UNREAL = "unrealHlsl"
    SPIRV = "spirv"
    WGSL = "wgsl"
    METAL = "metal"

    @property
    def is_binary(self) -> bool:
        """Whether the artifact is binary and travels base64 encoded."""
        return self is TargetFormat.SPIRV


class ExecutionMode(Enum):
    """Convention used to embed the user fragment into a module."""

    MATERIAL_LIBRARY = "materialLibrary"
    SHADERTOY = "shaderToy"


class ToolKind(Enum):
    """External executables driven by the pipeline."""

    GLSLANG = "glslang"
    SPIRV_CROSS = "spirv-cross"
    SLANG = "slang"


class StageId(Enum):
    """Identifiers reported in ``CompilationResult.failed_stage``."""

    VALIDATION = "validation"
    GLSL_TO_SPIRV = "glsl-to-spirv"
    SLANG_COMPILATION = "slang-compilation"
    GLSL_SLANG_COMPILATION = "glsl-slang-compilation"
    SPIRV_CROSS = "spirv-cross"


class Severity(Enum):
    """Diagnostic severity."""

    ERROR = "error"
    WARNING = "warning"


class Outcome(Enum):
    """Terminal outcome of a pipeline run."""

    SUCCESS = "success"
    FAILURE = "failure"


# Target catalogue: identifier -> (display name, description)
TARGET_DESCRIPTIONS: dict[TargetFormat, tuple[str, str]] = {
    TargetFormat.GLSL: ("GLSL", "OpenGL Shading Language (WebGL/OpenGL)"),
    TargetFormat.HLSL: ("HLSL", "High-Level Shading Language (DirectX)"),
    TargetFormat.HLSL_UNREAL: (
        "Unreal HLSL",
        "HLSL body for an Unreal Engine Custom material node",
    ),
    TargetFormat.SPIRV: (
        "SPIR-V",
        "Standard Portable Intermediate Representation (Vulkan)",
    ),
    TargetFormat.WGSL: ("WGSL", "WebGPU Shading Language"),
    TargetFormat.METAL: ("Metal", "Metal Shading Language (Apple)"),
}


@dataclass(frozen=True)
class CompilationRequest:
    """A single pipeline run request.

    Attributes:
        source_code: The user-authored fragment
        source_language: Language of the fragment
        target_format: Requested output dialect
        execution_mode: How the fragment is embedded into the module
        clean_export: Whether to normalize the artifact for human export
    """

    source_code: str
    source_language: SourceLanguage = SourceLanguage.SLANG
    target_format: TargetFormat = TargetFormat.GLSL
    execution_mode: ExecutionMode = ExecutionMode.MATERIAL_LIBRARY
    clean_export: bool = False


@dataclass(frozen=True)
class WrappedModule:
    """A complete shader module with the user fragment embedded.

    Attributes:
        full_source_text: Module text handed to the first compiler stage
        user_code_line_offset: Number of synthetic lines before the first user line
        user_line_count: Number of lines occupied by the user fragment
    """

    full_source_text: str
    user_code_line_offset: int
    user_line_count: int


@dataclass(frozen=True)
class StageResult:
    """Outcome of one external tool invocation.

    Attributes:
        exited_cleanly: True when the process exited with status 0 in time
        stdout_text: Captured (size-bounded) standard output
        stderr_text: Captured (size-bounded) standard error
        produced_artifact_path: Output file written by the stage, if any
        exit_code: Process exit status, None when the process was killed
        timed_out: Whether the stage was killed after exceeding its timeout
    """

    exited_cleanly: bool
    stdout_text: str = ""
    stderr_text: str = ""
    produced_artifact_path: Path | None = None
    exit_code: int | None = None
    timed_out: bool = False

    @property
    def diagnostic_text(self) -> str:
        """Text carrying the tool's diagnostics.

        Most tools report on stderr; glslangValidator reports on stdout.
        """
        if self.stderr_text.strip():
            return self.stderr_text
        return self.stdout_text


@dataclass(frozen=True)
class Diagnostic:
    """A tool-reported problem mapped to user-source coordinates.

    Attributes:
        message: Human-readable message, verbatim from the tool when possible
        line: 1-based user-source line, or None when unknown
        severity: Error or warning
        code: Tool-specific diagnostic code, if reported
    """

    message: str
    line: int | None = None
    severity: Severity = Severity.ERROR
    code: str | None = None

    def format(self) -> str:
        """Render the diagnostic on one line for logs and terminals."""
        location = f"line {self.line}" if self.line is not None else "line ?"
        code = f" {self.code}" if self.code else ""
        return f"{self.severity.value}{code} ({location}): {self.message}"


@dataclass(frozen=True)
class CompilationResult:
    """Terminal value of a pipeline run.

    Attributes:
        outcome: Success or failure
        artifact_text: Textual artifact for source-dialect targets
        artifact_base64: Base64 encoded artifact for binary targets
        diagnostics: Ordered diagnostics (warnings on success, errors on failure)
        failed_stage: Stage that failed, None on success
        target_format: Target that was requested
        execution_mode: Execution mode that was requested
    """

    outcome: Outcome
    artifact_text: str | None = None
    artifact_base64: str | None = None
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)
    failed_stage: StageId | None = None
    target_format: TargetFormat | None = None
    execution_mode: ExecutionMode | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    @property
    def artifact_bytes(self) -> bytes | None:
        """Decoded binary artifact, or the UTF-8 encoded text artifact."""
        if self.artifact_base64 is not None:
            return base64.b64decode(self.artifact_base64)
        if self.artifact_text is not None:
            return self.artifact_text.encode("utf-8")
        return None

    @classmethod
    def failure(
        cls,
        stage: StageId,
        diagnostics: list[Diagnostic] | tuple[Diagnostic, ...],
        request: CompilationRequest | None = None,
    ) -> "CompilationResult":
        """Build a failure result.

        Args:
            stage: Stage that failed
            diagnostics: Diagnostics explaining the failure, at least one
            request: Originating request, used to echo target and mode

        Returns:
            A failure result

        Raises:
            ValueError: If no diagnostics are given
        """
        if not diagnostics:
            raise ValueError("A failure result needs at least one diagnostic")
        return cls(
            outcome=Outcome.FAILURE,
            diagnostics=tuple(diagnostics),
            failed_stage=stage,
            target_format=request.target_format if request else None,
            execution_mode=request.execution_mode if request else None,
        )
