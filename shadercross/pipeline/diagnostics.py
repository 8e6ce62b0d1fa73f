"""
Parsing of compiler diagnostics and remapping to user-source lines.

Each external tool prints diagnostics in its own convention. Line numbers
reported by the tools refer to the wrapped module; they are shifted by the
wrapper's line offset so that they point at the line the user wrote. Lines
falling in the synthetic header or trailer are reported as unknown rather
than dropped, and text that no matcher understands is surfaced verbatim.
"""

import re
from dataclasses import dataclass

from shadercross.pipeline.models import Diagnostic, Severity, ToolKind


@dataclass(frozen=True)
class _Pattern:
    """One line pattern of a tool matcher.

    Named groups ``severity``, ``line``, ``code`` and ``message`` are read
    when present. Patterns marked ``ignore`` consume the line without
    producing a diagnostic (summaries, notes).
    """

    regex: re.Pattern[str]
    ignore: bool = False


_MATCHERS: dict[ToolKind, tuple[_Pattern, ...]] = {
    ToolKind.GLSLANG: (
        _Pattern(re.compile(r"^ERROR:\s*\d+\s+compilation errors?\.", re.IGNORECASE), ignore=True),
        _Pattern(re.compile(r"^ERROR:\s*No code generated", re.IGNORECASE), ignore=True),
        _Pattern(
            re.compile(
                r"^(?P<severity>ERROR|WARNING):\s*(?P<file>.*?):(?P<line>\d+):\s*(?P<message>.*)$"
            )
        ),
        _Pattern(re.compile(r"^(?P<severity>ERROR|WARNING):\s*(?P<message>.+)$")),
    ),
    ToolKind.SLANG: (
        _Pattern(re.compile(r"^.*?\(\d+(?:,\s*\d+)?\):\s*note\b", re.IGNORECASE), ignore=True),
        _Pattern(
            re.compile(
                r"^(?P<file>.*?)\((?P<line>\d+)(?:,\s*\d+)?\):\s*"
                r"(?P<severity>error|warning)\s*(?P<code>\d+)?\s*:\s*(?P<message>.*)$",
                re.IGNORECASE,
            )
        ),
        _Pattern(
            re.compile(
                r"^(?P<severity>error|warning)\s*(?P<code>\d+)?\s*:\s*(?P<message>.+)$",
                re.IGNORECASE,
            )
        ),
    ),
    ToolKind.SPIRV_CROSS: (
        _Pattern(re.compile(r"^SPIRV-Cross threw an exception:\s*(?P<message>.+)$")),
        _Pattern(re.compile(r"^(?P<severity>error|warning)\s*:\s*(?P<message>.+)$", re.IGNORECASE)),
    ),
}


def remap_line(
    raw_line: int, line_offset: int, user_line_count: int | None = None
) -> int | None:
    """Map a wrapped-module line to a user-source line.

    Args:
        raw_line: 1-based line reported by the tool
        line_offset: Number of synthetic lines preceding the user code
        user_line_count: Number of user lines, when known

    Returns:
        The user line, or None when the line lies in the header or trailer
    """
    line = raw_line - line_offset
    if line <= 0:
        return None
    if user_line_count is not None and line > user_line_count:
        return None
    return line


class DiagnosticTranslator:
    """Turns raw tool output into ordered, user-relative diagnostics."""

    def translate(
        self,
        raw_text: str,
        tool_kind: ToolKind,
        user_code_line_offset: int,
        user_line_count: int | None = None,
    ) -> list[Diagnostic]:
        """Parse a tool's diagnostic text.

        Args:
            raw_text: stderr (or stdout) of the failing stage
            tool_kind: Tool that produced the text
            user_code_line_offset: Line offset of the module the tool consumed
            user_line_count: Number of user lines, used to detect trailer lines

        Returns:
            Diagnostics in the order the tool emitted them. Non-empty text
            always yields at least one diagnostic.
        """
        diagnostics: list[Diagnostic] = []
        for text_line in raw_text.splitlines():
            text_line = text_line.strip()
            if not text_line:
                continue
            diagnostic = self._match_line(
                text_line, tool_kind, user_code_line_offset, user_line_count
            )
            if diagnostic is not None:
                diagnostics.append(diagnostic)

        if not diagnostics and raw_text.strip():
            diagnostics.append(Diagnostic(message=raw_text.strip()))
        return diagnostics

    def _match_line(
        self,
        text_line: str,
        tool_kind: ToolKind,
        line_offset: int,
        user_line_count: int | None,
    ) -> Diagnostic | None:
        for pattern in _MATCHERS[tool_kind]:
            match = pattern.regex.match(text_line)
            if match is None:
                continue
            if pattern.ignore:
                return None

            groups = match.groupdict()
            line = None
            if groups.get("line"):
                line = remap_line(int(groups["line"]), line_offset, user_line_count)

            severity = Severity.ERROR
            if (groups.get("severity") or "").lower() == "warning":
                severity = Severity.WARNING

            message = (groups.get("message") or "").strip() or text_line
            return Diagnostic(
                message=message,
                line=line,
                severity=severity,
                code=groups.get("code") or None,
            )
        return None
