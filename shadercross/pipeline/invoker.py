"""
External compiler stage execution.

A stage is one child process run with an argument vector (never through a
shell) inside the request workspace. A nonzero exit status is an ordinary
outcome and is returned as data; only launch failures raise.
"""

import shlex
import subprocess
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import IO

from loguru import logger

from shadercross.pipeline.config import DEFAULT_OUTPUT_LIMIT_BYTES
from shadercross.pipeline.errors import ToolchainUnavailableError, WorkspaceError
from shadercross.pipeline.models import StageResult


class ToolchainInvoker:
    """Runs one external compiler stage and captures its outcome."""

    def __init__(self, output_limit_bytes: int = DEFAULT_OUTPUT_LIMIT_BYTES):
        """Initialize the invoker.

        Args:
            output_limit_bytes: Maximum number of bytes kept per output stream
        """
        self.output_limit_bytes = output_limit_bytes

    def run(
        self,
        executable: str,
        arguments: Sequence[str],
        working_directory: Path,
        timeout_ms: int,
        output_path: Path | None = None,
    ) -> StageResult:
        """Run an executable and wait for it to exit or time out.

        Args:
            executable: Path or name of the executable
            arguments: Argument vector, passed without shell interpretation
            working_directory: Directory the process runs in
            timeout_ms: Hard timeout; the process is killed when exceeded
            output_path: File the stage is expected to produce, if any

        Returns:
            The stage result

        Raises:
            WorkspaceError: If the working directory is not usable
            ToolchainUnavailableError: If the executable cannot be launched
        """
        cwd = Path(working_directory)
        if not cwd.is_dir():
            raise WorkspaceError("Working directory does not exist", cwd)

        command = [executable, *arguments]
        tool = Path(executable).name
        logger.debug(f"Running {shlex.join(command)} in {cwd}")

        with tempfile.TemporaryFile() as out, tempfile.TemporaryFile() as err:
            try:
                process = subprocess.Popen(
                    command,
                    cwd=cwd,
                    stdin=subprocess.DEVNULL,
                    stdout=out,
                    stderr=err,
                )
            except FileNotFoundError as e:
                raise ToolchainUnavailableError(tool, executable, "not found") from e
            except PermissionError as e:
                raise ToolchainUnavailableError(
                    tool, executable, "not executable"
                ) from e
            except OSError as e:
                raise ToolchainUnavailableError(tool, executable, str(e)) from e

            timed_out = False
            exit_code: int | None
            try:
                exit_code = process.wait(timeout=timeout_ms / 1000)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
                timed_out = True
                exit_code = None

            stdout_text = self._read_bounded(out)
            stderr_text = self._read_bounded(err)

        if timed_out:
            logger.warning(f"{tool} timed out after {timeout_ms} ms")
            message = f"{tool} timed out after {timeout_ms} ms"
            stderr_text = f"{message}\n{stderr_text}" if stderr_text else message

        exited_cleanly = exit_code == 0
        produced = None
        if exited_cleanly and output_path is not None and output_path.exists():
            produced = output_path

        logger.debug(f"{tool} finished with exit code {exit_code}")
        return StageResult(
            exited_cleanly=exited_cleanly,
            stdout_text=stdout_text,
            stderr_text=stderr_text,
            produced_artifact_path=produced,
            exit_code=exit_code,
            timed_out=timed_out,
        )

    def _read_bounded(self, stream: IO[bytes]) -> str:
        """Read back at most ``output_limit_bytes`` of a spooled stream."""
        stream.seek(0)
        data = stream.read(self.output_limit_bytes + 1)
        text = data[: self.output_limit_bytes].decode("utf-8", errors="replace")
        if len(data) > self.output_limit_bytes:
            text += f"\n[output truncated at {self.output_limit_bytes} bytes]"
        return text
