"""
Shader cross-compilation pipeline.

This package provides the top-level interface for compiling user shader
fragments to other shading languages through the external toolchain.
"""

from shadercross.pipeline.config import ToolchainConfig
from shadercross.pipeline.errors import (
    ShaderCrossError,
    ToolchainUnavailableError,
    WorkspaceError,
)
from shadercross.pipeline.models import (
    CompilationRequest,
    CompilationResult,
    Diagnostic,
    ExecutionMode,
    Outcome,
    Severity,
    SourceLanguage,
    StageId,
    TargetFormat,
    ToolKind,
)
from shadercross.pipeline.orchestrator import PipelineOrchestrator, compile_source

__all__ = [
    "CompilationRequest",
    "CompilationResult",
    "Diagnostic",
    "ExecutionMode",
    "Outcome",
    "PipelineOrchestrator",
    "Severity",
    "ShaderCrossError",
    "SourceLanguage",
    "StageId",
    "TargetFormat",
    "ToolKind",
    "ToolchainConfig",
    "ToolchainUnavailableError",
    "WorkspaceError",
    "compile_source",
]
