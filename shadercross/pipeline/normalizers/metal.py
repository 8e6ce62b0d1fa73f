"""Readable Metal Shading Language export."""

import re

from shadercross.pipeline.models import ExecutionMode
from shadercross.pipeline.normalizers.symbols import slang_rename_table
from shadercross.pipeline.normalizers.text import (
    finish,
    normalize_newlines,
    rename_symbols,
    rename_temporaries,
)


def normalize_metal(code: str, execution_mode: ExecutionMode) -> str:
    """Restore wrapper names in Slang or spirv-cross MSL output.

    Slang passes the parameter block by pointer (``globalParams_0->``),
    which the rename handles like a member access.
    """
    code = normalize_newlines(code)
    code = re.sub(r"^\s*#line\b.*$", "", code, flags=re.MULTILINE)
    code = rename_symbols(code, slang_rename_table(execution_mode))
    return finish(rename_temporaries(code))
