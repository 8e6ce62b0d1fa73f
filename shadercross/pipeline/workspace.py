"""Scoped scratch directories for pipeline runs."""

import shutil
import tempfile
from pathlib import Path
from types import TracebackType

from loguru import logger

from shadercross.pipeline.errors import WorkspaceError

WORKSPACE_PREFIX = "shadercross-"


class Workspace:
    """A uniquely named directory owned by exactly one pipeline run.

    The directory is created on ``__enter__`` and removed on ``__exit__``,
    whatever the outcome of the run. A removal failure is raised as a
    ``WorkspaceError`` unless another exception is already propagating, in
    which case it is logged and the original exception wins.

    Examples:
        >>> with Workspace() as ws:
        ...     ws.write_text("shader.slang", source)
    """

    def __init__(self, root: Path | None = None):
        """Initialize the workspace.

        Args:
            root: Parent directory, the system temp directory if None
        """
        self.root = root
        self._path: Path | None = None

    @property
    def path(self) -> Path:
        if self._path is None:
            raise WorkspaceError("Workspace is not active")
        return self._path

    def __enter__(self) -> "Workspace":
        try:
            self._path = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=self.root))
        except OSError as e:
            raise WorkspaceError(f"Cannot create workspace: {e}", self.root) from e
        logger.debug(f"Created workspace {self._path}")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        path, self._path = self._path, None
        if path is None:
            return
        try:
            shutil.rmtree(path)
        except OSError as e:
            if exc_type is None:
                raise WorkspaceError(f"Cannot remove workspace: {e}", path) from e
            logger.warning(f"Failed to remove workspace {path}: {e}")
            return
        logger.debug(f"Removed workspace {path}")

    def file(self, name: str) -> Path:
        """Get the path of a file inside the workspace."""
        return self.path / name

    def write_text(self, name: str, text: str) -> Path:
        """Write a text file into the workspace.

        Args:
            name: File name relative to the workspace
            text: Content to write

        Returns:
            Path of the written file

        Raises:
            WorkspaceError: If the file cannot be written
        """
        target = self.file(name)
        try:
            target.write_text(text, encoding="utf-8")
        except OSError as e:
            raise WorkspaceError(f"Cannot write {name}: {e}", self.path) from e
        return target

    def read_text(self, name: str) -> str:
        """Read a text file from the workspace.

        Raises:
            WorkspaceError: If the file cannot be read
        """
        try:
            return self.file(name).read_text(encoding="utf-8")
        except OSError as e:
            raise WorkspaceError(f"Cannot read {name}: {e}", self.path) from e

    def read_bytes(self, name: str) -> bytes:
        """Read a binary file from the workspace.

        Raises:
            WorkspaceError: If the file cannot be read
        """
        try:
            return self.file(name).read_bytes()
        except OSError as e:
            raise WorkspaceError(f"Cannot read {name}: {e}", self.path) from e
