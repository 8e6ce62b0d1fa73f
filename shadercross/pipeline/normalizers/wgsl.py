"""Readable WGSL export."""

from shadercross.pipeline.models import ExecutionMode
from shadercross.pipeline.normalizers.symbols import slang_rename_table
from shadercross.pipeline.normalizers.text import (
    finish,
    normalize_newlines,
    rename_symbols,
    rename_temporaries,
)


def normalize_wgsl(code: str, execution_mode: ExecutionMode) -> str:
    """Restore wrapper names in Slang WGSL output.

    Slang appends ``_0`` to every declaration; the wrapper's own names get
    their declared spelling back and ``_S<n>`` temporaries become ``t<n>``.
    """
    code = normalize_newlines(code)
    code = rename_symbols(code, slang_rename_table(execution_mode))
    return finish(rename_temporaries(code))
