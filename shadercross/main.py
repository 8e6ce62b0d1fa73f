"""Command line interface for shadercross.

This module provides a command-line interface for cross-compiling shader
fragments, watching them for changes, inspecting the toolchain and serving
the HTTP API.
"""

import os
import sys
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar, cast

import arrow
import typer
import watchdog.events
import watchdog.observers
from loguru import logger
from watchdog.events import FileSystemEventHandler

from shadercross.pipeline.config import ToolchainConfig
from shadercross.pipeline.errors import ShaderCrossError
from shadercross.pipeline.models import (
    TARGET_DESCRIPTIONS,
    CompilationRequest,
    CompilationResult,
    ExecutionMode,
    Severity,
    SourceLanguage,
    TargetFormat,
)
from shadercross.pipeline.orchestrator import PipelineOrchestrator
from shadercross.pipeline.toolchain import probe_toolchain, supported_targets

# Exit status for compile failures caused by the shader source
EXIT_COMPILE_FAILURE = 1
# Exit status for usage and environment problems
EXIT_OPERATIONAL_ERROR = 2

# Define type variables for TypedCallable
F = TypeVar("F", bound=Callable[..., Any])


# TypedCommand decorator helper
def typed_command(app_command: Any) -> Callable[[F], F]:
    """Wrap typer command with proper typing for mypy."""

    def decorator(func: F) -> F:
        return cast(F, app_command(func))

    return decorator


app = typer.Typer(
    name="shadercross",
    help=(
        "Cross-compile Slang and GLSL shader fragments. "
        "Commands: compile, watch, tools, targets, serve."
    ),
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log stage command lines and workspaces"
    ),
) -> None:
    """Configure logging for every command."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _parse_target(target: str) -> TargetFormat:
    try:
        return TargetFormat(target)
    except ValueError as e:
        choices = ", ".join(t.value for t in TargetFormat)
        logger.error(f"Unknown target: {target}. Choose one of: {choices}")
        raise typer.Exit(EXIT_OPERATIONAL_ERROR) from e


def _parse_mode(mode: str) -> ExecutionMode:
    try:
        return ExecutionMode(mode)
    except ValueError as e:
        choices = ", ".join(m.value for m in ExecutionMode)
        logger.error(f"Unknown mode: {mode}. Choose one of: {choices}")
        raise typer.Exit(EXIT_OPERATIONAL_ERROR) from e


def _resolve_language(shader_file: str, language: str) -> SourceLanguage:
    """Get the source language, inferred from the file extension if not given.

    Args:
        shader_file: Path of the shader fragment
        language: Explicit language, empty to infer

    Returns:
        ``.slang`` files are Slang, anything else GLSL
    """
    if language:
        try:
            return SourceLanguage(language)
        except ValueError as e:
            logger.error(f"Unknown language: {language}. Choose one of: slang, glsl")
            raise typer.Exit(EXIT_OPERATIONAL_ERROR) from e
    if Path(shader_file).suffix.lower() == ".slang":
        return SourceLanguage.SLANG
    return SourceLanguage.GLSL


def _read_source(shader_file: str) -> str:
    try:
        return Path(shader_file).read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to read shader file: {e}")
        raise typer.Exit(EXIT_OPERATIONAL_ERROR) from e


def _add_header_comments(
    code: str, source_file: str, target: TargetFormat, mode: ExecutionMode
) -> str:
    """Add header comments to the code.

    Args:
        code: Compiled shader code
        source_file: Source shader file
        target: Target format
        mode: Execution mode

    Returns:
        Code with header comments
    """
    timestamp = arrow.utcnow().format("YYYY-MM-DD HH:mm:ss UTC")
    header = f"// Generated by shadercross v{__import__('shadercross').__version__}\n"
    header += f"// Generation time: {timestamp}\n"
    header += f"// Source file: {os.path.basename(source_file)}\n"
    header += f"// Target: {TARGET_DESCRIPTIONS[target][0]}\n"
    header += f"// Mode: {mode.value}\n"
    header += "\n"
    return header + code


def _report(result: CompilationResult) -> None:
    for diagnostic in result.diagnostics:
        if diagnostic.severity is Severity.WARNING:
            logger.warning(diagnostic.format())
        else:
            logger.error(diagnostic.format())


def _write_artifact(
    result: CompilationResult,
    output: Path | None,
    format_type: str,
    shader_file: str,
) -> None:
    """Write the artifact to a file, or to stdout when no file is given."""
    target = result.target_format or TargetFormat.GLSL
    mode = result.execution_mode or ExecutionMode.MATERIAL_LIBRARY

    if target.is_binary:
        data = result.artifact_bytes or b""
        if output is None:
            typer.echo(result.artifact_base64 or "")
            return
        output.write_bytes(data)
        logger.info(f"Wrote {len(data)} bytes to {output}")
        return

    code = result.artifact_text or ""
    if format_type == "commented":
        code = _add_header_comments(code, shader_file, target, mode)
    if output is None:
        typer.echo(code, nl=not code.endswith("\n"))
        return
    output.write_text(code, encoding="utf-8")
    logger.info(f"Shader code exported to {output}")


def _compile_file(
    orchestrator: PipelineOrchestrator,
    shader_file: str,
    target: TargetFormat,
    language: SourceLanguage,
    mode: ExecutionMode,
    clean: bool,
) -> CompilationResult:
    request = CompilationRequest(
        source_code=_read_source(shader_file),
        source_language=language,
        target_format=target,
        execution_mode=mode,
        clean_export=clean,
    )
    result = orchestrator.compile(request)
    _report(result)
    return result


@typed_command(app.command("compile"))
def compile_shader(
    shader_file: str = typer.Argument(..., help="Shader fragment to compile"),
    output: Path | None = typer.Argument(
        None, help="Output file path (stdout if omitted)"
    ),
    target: str = typer.Option(
        "glsl",
        "--target",
        "-t",
        help="Target format (glsl, hlsl, unrealHlsl, spirv, wgsl, metal)",
    ),
    language: str = typer.Option(
        "",
        "--language",
        "-l",
        help="Source language (slang, glsl); inferred from the extension if omitted",
    ),
    mode: str = typer.Option(
        "materialLibrary", "--mode", "-m", help="Execution mode (materialLibrary, shaderToy)"
    ),
    clean: bool = typer.Option(
        False, "--clean", "-c", help="Normalize the output for human export"
    ),
    format_type: str = typer.Option(
        "plain", "--format", "-f", help="Code format (plain, commented)"
    ),
) -> None:
    """Compile a shader fragment to another shading language.

    Example: shadercross compile material.slang out.hlsl --target hlsl --clean
    """
    target_format = _parse_target(target)
    execution_mode = _parse_mode(mode)
    source_language = _resolve_language(shader_file, language)
    if format_type not in ("plain", "commented"):
        logger.error(f"Unknown format: {format_type}. Choose one of: plain, commented")
        raise typer.Exit(EXIT_OPERATIONAL_ERROR)

    orchestrator = PipelineOrchestrator(ToolchainConfig.from_env())
    try:
        result = _compile_file(
            orchestrator, shader_file, target_format, source_language, execution_mode, clean
        )
    except ShaderCrossError as e:
        logger.error(e.message)
        raise typer.Exit(EXIT_OPERATIONAL_ERROR) from e

    if not result.succeeded:
        stage = result.failed_stage.value if result.failed_stage else "unknown"
        logger.error(f"Compilation failed at stage {stage}")
        raise typer.Exit(EXIT_COMPILE_FAILURE)

    _write_artifact(result, output, format_type, shader_file)


class ShaderChangeHandler(FileSystemEventHandler):  # type: ignore
    """Event handler recompiling a shader file when it changes."""

    def __init__(
        self,
        shader_file: str,
        output: Path | None,
        orchestrator: PipelineOrchestrator,
        target: TargetFormat,
        language: SourceLanguage,
        mode: ExecutionMode,
        clean: bool,
    ):
        """Initialize shader change handler.

        Args:
            shader_file: Absolute path of the watched shader file
            output: Output file, stdout if None
            orchestrator: Pipeline used for every recompilation
            target: Target format
            language: Source language
            mode: Execution mode
            clean: Whether to normalize the output
        """
        self.shader_file = shader_file
        self.output = output
        self.orchestrator = orchestrator
        self.target = target
        self.language = language
        self.mode = mode
        self.clean = clean
        self.needs_rebuild = False

    def on_modified(self, event: watchdog.events.FileSystemEvent) -> None:
        """Handle file modified event.

        Args:
            event: File system event
        """
        if os.path.abspath(str(event.src_path)) == self.shader_file:
            logger.info(f"Detected changes in {self.shader_file}")
            self.needs_rebuild = True

    def rebuild(self) -> bool:
        """Recompile the shader and write the artifact.

        Returns:
            Whether the compilation succeeded
        """
        self.needs_rebuild = False
        try:
            result = _compile_file(
                self.orchestrator,
                self.shader_file,
                self.target,
                self.language,
                self.mode,
                self.clean,
            )
        except ShaderCrossError as e:
            logger.error(e.message)
            return False
        except typer.Exit:
            return False

        if not result.succeeded:
            logger.error("Compilation failed, waiting for changes...")
            return False
        _write_artifact(result, self.output, "plain", self.shader_file)
        return True


@typed_command(app.command("watch"))
def watch_shader(
    shader_file: str = typer.Argument(..., help="Shader fragment to watch"),
    output: Path | None = typer.Argument(
        None, help="Output file path (stdout if omitted)"
    ),
    target: str = typer.Option("glsl", "--target", "-t", help="Target format"),
    language: str = typer.Option(
        "", "--language", "-l", help="Source language (slang, glsl)"
    ),
    mode: str = typer.Option("materialLibrary", "--mode", "-m", help="Execution mode"),
    clean: bool = typer.Option(
        False, "--clean", "-c", help="Normalize the output for human export"
    ),
) -> None:
    """Watch a shader file and recompile it on changes.

    Example: shadercross watch material.slang out.glsl --target glsl
    """
    abs_shader_file = os.path.abspath(shader_file)
    handler = ShaderChangeHandler(
        abs_shader_file,
        output,
        PipelineOrchestrator(ToolchainConfig.from_env()),
        _parse_target(target),
        _resolve_language(shader_file, language),
        _parse_mode(mode),
        clean,
    )

    # Watch the file's directory, not the file itself
    observer = watchdog.observers.Observer()
    observer.schedule(handler, path=os.path.dirname(abs_shader_file), recursive=False)
    observer.start()

    logger.info(f"Watching {shader_file} (press Ctrl+C to exit)...")
    handler.rebuild()
    try:
        while True:
            if handler.needs_rebuild:
                handler.rebuild()
            time.sleep(0.1)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, stopping...")
    finally:
        observer.stop()
        observer.join()


@typed_command(app.command("tools"))
def show_tools() -> None:
    """Show availability and version of the external compilers."""
    statuses = probe_toolchain(ToolchainConfig.from_env())
    for status in statuses:
        if status.available:
            detail = status.version or "available"
            typer.echo(f"{status.tool.value}: {detail} ({status.path})")
        else:
            typer.echo(f"{status.tool.value}: not available ({status.error})")
    if not all(status.available for status in statuses):
        raise typer.Exit(EXIT_COMPILE_FAILURE)


@typed_command(app.command("targets"))
def show_targets() -> None:
    """List the supported target formats."""
    for info in supported_targets(ToolchainConfig.from_env()):
        typer.echo(f"{info.target.value}\t{info.name}\t{info.description}")


@typed_command(app.command("serve"))
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(3001, "--port", "-p", help="Bind port"),
) -> None:
    """Start the HTTP API server."""
    import uvicorn

    from shadercross.api.app import create_app

    logger.info(f"Starting API server on {host}:{port}")
    uvicorn.run(create_app(ToolchainConfig.from_env()), host=host, port=port)


if __name__ == "__main__":
    app()
