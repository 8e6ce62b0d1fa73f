"""
Toolchain health and target catalogue.

A tool counts as available when it can be launched with a harmless flag and
produces any output, whatever its exit status: spirv-cross and slangc print
their usage and exit nonzero.
"""

import tempfile
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from shadercross.pipeline.config import ToolchainConfig
from shadercross.pipeline.errors import ToolchainUnavailableError
from shadercross.pipeline.invoker import ToolchainInvoker
from shadercross.pipeline.models import TARGET_DESCRIPTIONS, TargetFormat, ToolKind

PROBE_TIMEOUT_MS = 5000

_PROBE_FLAGS: dict[ToolKind, tuple[str, ...]] = {
    ToolKind.GLSLANG: ("--version",),
    ToolKind.SPIRV_CROSS: ("--help",),
    ToolKind.SLANG: ("-h",),
}


@dataclass(frozen=True)
class ToolStatus:
    """Availability of one external tool.

    Attributes:
        tool: Tool identity
        path: Configured executable
        available: Whether the tool could be launched and answered
        version: First line of the version banner, when the tool prints one
        error: Why the tool is unavailable
    """

    tool: ToolKind
    path: str
    available: bool
    version: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class TargetInfo:
    """Catalogue entry of a supported target."""

    target: TargetFormat
    name: str
    description: str


def probe_tool(
    tool: ToolKind, executable: str, invoker: ToolchainInvoker | None = None
) -> ToolStatus:
    """Check whether a tool can be launched.

    Args:
        tool: Tool identity, selects the probe flag
        executable: Configured executable
        invoker: Stage runner

    Returns:
        The tool status
    """
    invoker = invoker or ToolchainInvoker()
    try:
        result = invoker.run(
            executable, _PROBE_FLAGS[tool], Path(tempfile.gettempdir()), PROBE_TIMEOUT_MS
        )
    except ToolchainUnavailableError as e:
        logger.debug(f"Probe of {tool.value} failed: {e.message}")
        return ToolStatus(tool, executable, available=False, error=e.message)

    if result.timed_out:
        return ToolStatus(tool, executable, available=False, error="probe timed out")

    output = (result.stdout_text + "\n" + result.stderr_text).strip()
    if not output:
        return ToolStatus(tool, executable, available=False, error="no output")

    version = None
    if tool is ToolKind.GLSLANG:
        version = output.splitlines()[0].strip()
    return ToolStatus(tool, executable, available=True, version=version)


def probe_toolchain(
    config: ToolchainConfig, invoker: ToolchainInvoker | None = None
) -> list[ToolStatus]:
    """Probe every configured tool."""
    return [
        probe_tool(ToolKind.GLSLANG, config.glslang_path, invoker),
        probe_tool(ToolKind.SPIRV_CROSS, config.spirv_cross_path, invoker),
        probe_tool(ToolKind.SLANG, config.slang_path, invoker),
    ]


def supported_targets(config: ToolchainConfig | None = None) -> list[TargetInfo]:
    """List the targets a deployment accepts, in declaration order."""
    enabled = config.enabled_targets if config else frozenset(TargetFormat)
    return [
        TargetInfo(target, *TARGET_DESCRIPTIONS[target])
        for target in TargetFormat
        if target in enabled
    ]
