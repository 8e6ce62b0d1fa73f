"""Fixtures and configuration for pytest."""

import shutil
import stat
import sys
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest

from shadercross.pipeline.config import ToolchainConfig

TOOLCHAIN_EXECUTABLES = ("glslangValidator", "spirv-cross", "slangc")

# Preamble of every fake compiler: finds the output path the way the real
# tools receive it (-o for glslang/slangc, --output for spirv-cross)
_FAKE_TOOL_PREAMBLE = """\
import json
import sys
import time
from pathlib import Path

args = sys.argv[1:]
output = None
for flag in ("-o", "--output"):
    if flag in args:
        output = Path(args[args.index(flag) + 1])
"""


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "toolchain: mark test as requiring glslang, spirv-cross and slangc"
    )


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Skip toolchain tests when the compilers are not installed."""
    if all(shutil.which(name) for name in TOOLCHAIN_EXECUTABLES):
        return
    skip = pytest.mark.skip(reason="glslangValidator, spirv-cross or slangc not on PATH")
    for item in items:
        if "toolchain" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def fake_tool(tmp_path: Path) -> Callable[[str, str], Path]:
    """Factory writing executable Python scripts that stand in for compilers.

    The script body runs after a preamble defining ``args`` (argv without the
    program) and ``output`` (the ``-o``/``--output`` path or None).
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()

    def make(name: str, body: str) -> Path:
        path = bin_dir / name
        path.write_text(
            f"#!{sys.executable}\n{_FAKE_TOOL_PREAMBLE}{textwrap.dedent(body)}",
            encoding="utf-8",
        )
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return make


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    """Parent directory for pipeline workspaces, checked for leaks by tests."""
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


@pytest.fixture
def config(workspace_root: Path, tmp_path: Path) -> ToolchainConfig:
    """Configuration whose tools do not exist."""
    missing = tmp_path / "missing"
    return ToolchainConfig(
        glslang_path=str(missing / "glslangValidator"),
        spirv_cross_path=str(missing / "spirv-cross"),
        slang_path=str(missing / "slangc"),
        workspace_root=workspace_root,
    )
