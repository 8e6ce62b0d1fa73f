"""
Toolchain configuration.

The configuration is built once at process start and passed explicitly into
the orchestrator; pipeline code never reads the environment itself.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from shadercross.pipeline.models import StageId, TargetFormat

DEFAULT_DIRECT_TIMEOUT_MS = 10_000
DEFAULT_MULTISTAGE_TIMEOUT_MS = 30_000
DEFAULT_OUTPUT_LIMIT_BYTES = 1024 * 1024


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e


@dataclass(frozen=True)
class ToolchainConfig:
    """Read-only configuration shared by all pipeline runs.

    Attributes:
        glslang_path: glslangValidator executable
        spirv_cross_path: spirv-cross executable
        slang_path: slangc executable
        direct_timeout_ms: Per-stage timeout for GLSL sources
        multistage_timeout_ms: Per-stage timeout for Slang sources
        stage_timeouts_ms: Per-stage overrides of the two defaults above
        output_limit_bytes: Ceiling on captured stdout/stderr per stream
        workspace_root: Parent directory for workspaces (system temp if None)
        enabled_targets: Targets this deployment accepts
    """

    glslang_path: str = "glslangValidator"
    spirv_cross_path: str = "spirv-cross"
    slang_path: str = "slangc"
    direct_timeout_ms: int = DEFAULT_DIRECT_TIMEOUT_MS
    multistage_timeout_ms: int = DEFAULT_MULTISTAGE_TIMEOUT_MS
    stage_timeouts_ms: Mapping[StageId, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    output_limit_bytes: int = DEFAULT_OUTPUT_LIMIT_BYTES
    workspace_root: Path | None = None
    enabled_targets: frozenset[TargetFormat] = frozenset(TargetFormat)

    def __post_init__(self) -> None:
        # Freeze the overrides so the config stays read-only
        if not isinstance(self.stage_timeouts_ms, MappingProxyType):
            object.__setattr__(
                self, "stage_timeouts_ms", MappingProxyType(dict(self.stage_timeouts_ms))
            )
        object.__setattr__(self, "enabled_targets", frozenset(self.enabled_targets))

    def timeout_for(self, stage: StageId, multistage: bool) -> int:
        """Get the timeout for a stage.

        Args:
            stage: Stage about to run
            multistage: Whether the stage belongs to a Slang pipeline

        Returns:
            Timeout in milliseconds
        """
        if stage in self.stage_timeouts_ms:
            return self.stage_timeouts_ms[stage]
        return self.multistage_timeout_ms if multistage else self.direct_timeout_ms

    @classmethod
    def from_env(cls) -> "ToolchainConfig":
        """Build the configuration from environment variables.

        Recognised variables: ``GLSLANG_PATH``, ``SPIRV_CROSS_PATH``,
        ``SLANG_PATH``, ``SHADERCROSS_WORKSPACE_ROOT``,
        ``SHADERCROSS_DIRECT_TIMEOUT_MS``, ``SHADERCROSS_MULTISTAGE_TIMEOUT_MS``.

        Returns:
            Configuration with defaults for anything unset
        """
        workspace_root = os.environ.get("SHADERCROSS_WORKSPACE_ROOT")
        return cls(
            glslang_path=os.environ.get("GLSLANG_PATH", "glslangValidator"),
            spirv_cross_path=os.environ.get("SPIRV_CROSS_PATH", "spirv-cross"),
            slang_path=os.environ.get("SLANG_PATH", "slangc"),
            direct_timeout_ms=_env_int(
                "SHADERCROSS_DIRECT_TIMEOUT_MS", DEFAULT_DIRECT_TIMEOUT_MS
            ),
            multistage_timeout_ms=_env_int(
                "SHADERCROSS_MULTISTAGE_TIMEOUT_MS", DEFAULT_MULTISTAGE_TIMEOUT_MS
            ),
            workspace_root=Path(workspace_root) if workspace_root else None,
        )
