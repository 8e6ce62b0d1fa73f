"""
Text transforms shared by the target normalizers.

All transforms are pure ``str -> str`` functions and idempotent: applying
one to its own output returns the output unchanged.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

LOOP_ITERATION_CEILING = 10000

_BRACKETS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {v: k for k, v in _BRACKETS.items()}

_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?[fFhHlLuU]?$")
_ACCESS_CHAIN = re.compile(r"^[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*$")
_MULTI_SWIZZLE = re.compile(r"^(?:[xyzw]{2,4}|[rgba]{2,4})$")
_WORD = re.compile(r"\b[A-Za-z_]\w*\b")


@dataclass(frozen=True)
class Statement:
    """A top-level statement of a function body.

    Attributes:
        start: Offset of the first character (leading whitespace excluded)
        end: Offset just past the terminating ``;`` or ``}``
        text: Statement source without comments
    """

    start: int
    end: int
    text: str


@dataclass(frozen=True)
class FunctionSpan:
    """Location of a function definition inside a source text.

    Attributes:
        start: Offset of the line holding the signature
        body_start: Offset just past the opening brace
        body_end: Offset of the closing brace
        end: Offset just past the closing brace
    """

    start: int
    body_start: int
    body_end: int
    end: int


def normalize_newlines(code: str) -> str:
    return code.replace("\r\n", "\n").replace("\r", "\n")


def collapse_blank_lines(code: str) -> str:
    """Drop trailing whitespace and squeeze runs of blank lines to one."""
    code = re.sub(r"[ \t]+$", "", code, flags=re.MULTILINE)
    return re.sub(r"\n{3,}", "\n\n", code)


def finish(code: str) -> str:
    """Final tidy-up shared by every normalizer."""
    return collapse_blank_lines(code).strip() + "\n"


def _skip_comment(text: str, index: int) -> int:
    """Return the offset after a comment starting at ``index``, or ``index``."""
    if text.startswith("//", index):
        newline = text.find("\n", index)
        return len(text) if newline == -1 else newline
    if text.startswith("/*", index):
        close = text.find("*/", index + 2)
        return len(text) if close == -1 else close + 2
    return index


def strip_comments(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments."""
    text = re.sub(r"/\*.*?\*/", "", text, flags=re.DOTALL)
    return re.sub(r"//[^\n]*", "", text)


def find_matching(text: str, open_index: int) -> int | None:
    """Find the bracket closing the one at ``open_index``.

    Nested brackets of every kind are counted; comments are skipped.

    Args:
        text: Source text
        open_index: Offset of an opening ``(``, ``[`` or ``{``

    Returns:
        Offset of the matching closing bracket, or None when unbalanced
    """
    if text[open_index] not in _BRACKETS:
        raise ValueError(f"No opening bracket at offset {open_index}")

    depth = 0
    index = open_index
    while index < len(text):
        skipped = _skip_comment(text, index)
        if skipped != index:
            index = skipped
            continue
        char = text[index]
        if char in _BRACKETS:
            depth += 1
        elif char in _CLOSERS:
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return None


def split_arguments(text: str) -> list[str]:
    """Split an argument list on its top-level commas.

    Args:
        text: Text between the parentheses of a call

    Returns:
        Stripped arguments; an empty list for an empty argument list
    """
    if not text.strip():
        return []

    arguments = []
    depth = 0
    current = 0
    for index, char in enumerate(text):
        if char in _BRACKETS:
            depth += 1
        elif char in _CLOSERS:
            depth -= 1
        elif char == "," and depth == 0:
            arguments.append(text[current:index].strip())
            current = index + 1
    arguments.append(text[current:].strip())
    return arguments


def split_statements(body: str) -> list[Statement]:
    """Split a function body into its top-level statements.

    A statement ends at a top-level ``;`` or at the ``}`` closing a
    top-level block (``if``/``for``/... bodies). Braced initializers followed
    by ``;`` stay part of their declaration.

    Args:
        body: Text between the braces of a function

    Returns:
        Statements in source order
    """
    statements = []
    depth = 0
    start: int | None = None
    index = 0
    while index < len(body):
        skipped = _skip_comment(body, index)
        if skipped != index:
            index = skipped
            continue

        char = body[index]
        if start is None:
            if char.isspace():
                index += 1
                continue
            start = index

        if char in _BRACKETS:
            depth += 1
        elif char in _CLOSERS:
            depth -= 1
            if depth == 0 and char == "}":
                following = body[index + 1 :].lstrip()
                if not following.startswith((";", ",")):
                    end = index + 1
                    statements.append(
                        Statement(start, end, strip_comments(body[start:end]).strip())
                    )
                    start = None
        elif char == ";" and depth == 0:
            end = index + 1
            statements.append(
                Statement(start, end, strip_comments(body[start:end]).strip())
            )
            start = None
        index += 1

    if start is not None and strip_comments(body[start:]).strip():
        statements.append(
            Statement(start, len(body), strip_comments(body[start:]).strip())
        )
    return statements


def find_function(code: str, names: Iterable[str]) -> FunctionSpan | None:
    """Locate the first definition of any of the named functions.

    Args:
        code: Source text
        names: Candidate function names, tried in order

    Returns:
        The span of the definition, or None when no candidate is defined
    """
    for name in names:
        signature = re.compile(
            rf"^[ \t]*(?:[\w:<>]+[ \t]+)+{re.escape(name)}\s*\(", re.MULTILINE
        )
        for match in signature.finditer(code):
            close_paren = find_matching(code, match.end() - 1)
            if close_paren is None:
                continue
            # Anything but a body (e.g. a prototype) ends with ';' first
            brace = re.compile(r"\s*(?::\s*\w+\s*)?\{").match(code, close_paren + 1)
            if brace is None:
                continue
            body_start = brace.end()
            body_end = find_matching(code, body_start - 1)
            if body_end is None:
                continue
            return FunctionSpan(match.start(), body_start, body_end, body_end + 1)
    return None


def rename_symbols(code: str, mapping: Mapping[str, str]) -> str:
    """Rename whole identifiers in one pass.

    An entry whose new name is already used in the code is skipped so that
    two distinct symbols never collapse into one.

    Args:
        code: Source text
        mapping: Old name (or dotted access) -> new text

    Returns:
        The renamed text
    """
    used = set(_WORD.findall(code))
    active = {
        old: new
        for old, new in mapping.items()
        if old != new and (not _WORD.fullmatch(new) or new not in used)
    }
    if not active:
        return code

    alternatives = "|".join(re.escape(old) for old in sorted(active, key=len, reverse=True))
    pattern = re.compile(rf"(?<!\w)(?:{alternatives})(?!\w)")
    return pattern.sub(lambda m: active[m.group(0)], code)


def rename_temporaries(code: str) -> str:
    """Rename compiler temporaries ``_S<n>`` to ``t<n>`` where free."""
    used = set(_WORD.findall(code))
    mapping = {
        f"_S{number}": f"t{number}"
        for number in set(re.findall(r"\b_S(\d+)\b", code))
        if f"t{number}" not in used
    }
    return rename_symbols(code, mapping)


def is_simple_scalar(argument: str) -> bool:
    """Whether an argument can be repeated without changing meaning or cost.

    Accepts numeric literals, identifiers and member accesses that do not end
    in a multi-component swizzle.
    """
    argument = argument.strip()
    if _NUMBER.match(argument):
        return True
    if not _ACCESS_CHAIN.match(argument):
        return False
    last = argument.rsplit(".", 1)[-1]
    return "." not in argument or not _MULTI_SWIZZLE.match(last)


def declared_vectors(code: str, type_sizes: Mapping[str, int]) -> set[str]:
    """Names of variables, parameters and members declared with a vector type."""
    if not type_sizes:
        return set()
    names = "|".join(re.escape(name) for name in sorted(type_sizes, key=len, reverse=True))
    return set(re.findall(rf"(?<![\w.])(?:{names})\s+([A-Za-z_]\w*)\b(?!\s*\()", code))


def expand_vector_shorthand(
    code: str,
    type_sizes: Mapping[str, int],
    vector_names: Iterable[str] | None = None,
) -> str:
    """Expand single-argument vector constructors into explicit form.

    ``float3(x)`` becomes ``float3(x, x, x)``. Calls that already pass more
    than one argument, calls whose single argument is not a simple scalar
    expression, and calls whose argument names a vector (a copy or a
    conversion such as ``float3(n)`` with ``int3 n``) are left untouched.

    Args:
        code: Source text
        type_sizes: Vector type name -> component count
        vector_names: Names known to hold vectors; defaults to the names
            declared with a vector type in ``code``

    Returns:
        The expanded text
    """
    if not type_sizes:
        return code
    if vector_names is None:
        vectors = declared_vectors(code, type_sizes)
    else:
        vectors = set(vector_names)

    names = "|".join(re.escape(name) for name in sorted(type_sizes, key=len, reverse=True))
    pattern = re.compile(rf"(?<![\w.])({names})\s*\(")
    position = 0
    while True:
        match = pattern.search(code, position)
        if match is None:
            return code
        open_paren = match.end() - 1
        close_paren = find_matching(code, open_paren)
        position = match.end()
        if close_paren is None:
            continue

        arguments = split_arguments(code[open_paren + 1 : close_paren])
        size = type_sizes[match.group(1)]
        if (
            len(arguments) == 1
            and size > 1
            and is_simple_scalar(arguments[0])
            and arguments[0].strip().rsplit(".", 1)[-1] not in vectors
        ):
            expanded = ", ".join([arguments[0]] * size)
            code = code[: open_paren + 1] + expanded + code[close_paren:]


def bound_unbounded_loops(code: str, ceiling: int = LOOP_ITERATION_CEILING) -> str:
    """Rewrite ``for(;;)`` and ``while (true)`` as bounded ``for`` loops.

    ``do { } while (true);`` tails are left alone.

    Args:
        code: Source text
        ceiling: Maximum number of iterations of the rewritten loops

    Returns:
        The rewritten text
    """
    pattern = re.compile(
        r"\bfor\s*\(\s*;\s*;\s*\)|\bwhile\s*\(\s*(?:true|1)\s*\)(?!\s*;)"
    )
    taken = [int(n) for n in re.findall(r"\b_loopIdx(\d+)\b", code)]
    counter = max(taken, default=-1) + 1

    def replace(_match: re.Match[str]) -> str:
        nonlocal counter
        name = f"_loopIdx{counter}"
        counter += 1
        return f"for (int {name} = 0; {name} < {ceiling}; {name}++)"

    return pattern.sub(replace, code)


def strip_preprocessor_noise(code: str, guarded_macros: Iterable[str] = ()) -> str:
    """Remove tool bookkeeping directives.

    Drops ``#line`` markers, ``#pragma pack_matrix`` and whole conditional
    blocks whose condition mentions one of ``guarded_macros``. Nested
    conditionals inside a removed block are removed with it.

    Args:
        code: Source text
        guarded_macros: Macros guarding platform-specific blocks

    Returns:
        The cleaned text
    """
    macros = list(guarded_macros)
    guard = None
    if macros:
        alternatives = "|".join(re.escape(m) for m in macros)
        guard = re.compile(rf"^\s*#\s*if(?:n?def)?\b.*\b(?:{alternatives})\b")

    kept = []
    depth = 0
    for line in code.split("\n"):
        directive = line.strip()
        if depth:
            if re.match(r"#\s*if", directive):
                depth += 1
            elif re.match(r"#\s*endif\b", directive):
                depth -= 1
            continue
        if guard is not None and guard.match(line):
            depth = 1
            continue
        if re.match(r"#\s*line\b", directive):
            continue
        if re.match(r"#\s*pragma\s+pack_matrix\b", directive):
            continue
        kept.append(line)
    return "\n".join(kept)


def dedent_body(body: str) -> str:
    """Strip blank edges and the indentation shared by all lines."""
    lines = body.strip("\n").split("\n")
    indents = [len(line) - len(line.lstrip()) for line in lines if line.strip()]
    common = min(indents, default=0)
    return "\n".join(line[common:] if line.strip() else "" for line in lines)


def indent(text: str, prefix: str = "    ") -> str:
    return "\n".join(prefix + line if line.strip() else "" for line in text.split("\n"))
