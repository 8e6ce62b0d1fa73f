"""
Target normalizers.

A normalizer turns a compiler artifact into clean source for human export.
Every normalizer is a pure, idempotent ``str -> str`` function.
"""

from typing import assert_never

from shadercross.pipeline.models import ExecutionMode, TargetFormat
from shadercross.pipeline.normalizers.glsl import normalize_glsl
from shadercross.pipeline.normalizers.hlsl import normalize_hlsl
from shadercross.pipeline.normalizers.metal import normalize_metal
from shadercross.pipeline.normalizers.unreal import normalize_unreal
from shadercross.pipeline.normalizers.wgsl import normalize_wgsl


def normalize(
    artifact_text: str, target_format: TargetFormat, execution_mode: ExecutionMode
) -> str:
    """Normalize an artifact for the given target.

    Args:
        artifact_text: Compiler output
        target_format: Target the artifact was produced for
        execution_mode: Mode the module was wrapped in

    Returns:
        The normalized artifact; SPIR-V is returned unchanged
    """
    match target_format:
        case TargetFormat.GLSL:
            return normalize_glsl(artifact_text, execution_mode)
        case TargetFormat.HLSL:
            return normalize_hlsl(artifact_text, execution_mode)
        case TargetFormat.HLSL_UNREAL:
            return normalize_unreal(artifact_text, execution_mode)
        case TargetFormat.SPIRV:
            return artifact_text
        case TargetFormat.WGSL:
            return normalize_wgsl(artifact_text, execution_mode)
        case TargetFormat.METAL:
            return normalize_metal(artifact_text, execution_mode)
        case _:
            assert_never(target_format)


def should_normalize(target_format: TargetFormat, clean_export: bool) -> bool:
    """Whether the artifact of a run goes through its normalizer.

    The Unreal target is always normalized: raw HLSL is not a valid Custom
    node body. Binary targets never are.
    """
    if target_format.is_binary:
        return False
    return clean_export or target_format is TargetFormat.HLSL_UNREAL


__all__ = ["normalize", "should_normalize"]
