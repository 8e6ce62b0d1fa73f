from shadercross.pipeline import (
    CompilationRequest,
    CompilationResult,
    ExecutionMode,
    PipelineOrchestrator,
    SourceLanguage,
    TargetFormat,
    ToolchainConfig,
    compile_source,
)

__version__ = "0.1.0"


__all__ = [
    "CompilationRequest",
    "CompilationResult",
    "ExecutionMode",
    "PipelineOrchestrator",
    "SourceLanguage",
    "TargetFormat",
    "ToolchainConfig",
    "compile_source",
]
