# stampflow/grid/paste.py

from __future__ import annotations

import re
from typing import Dict, List, NamedTuple

# Newline outside of a quoted cell: the rest of the text holds an even number of quotes.
_ROW_SPLIT = re.compile(r'\r?\n(?=(?:[^"]*"[^"]*")*[^"]*$)')


class PasteWrite(NamedTuple):
    row: int
    col: int
    field: str
    value: str


def is_tabular(text: str) -> bool:
    return "\t" in text or "\n" in text


def _unquote(cell: str) -> str:
    if len(cell) >= 2 and cell.startswith('"') and cell.endswith('"'):
        return cell[1:-1].replace('""', '"')
    return cell


def parse_clipboard_matrix(text: str) -> List[List[str]]:
    """Splits spreadsheet clipboard text into rows of cells."""
    lines = [line for line in _ROW_SPLIT.split(text or "") if line]
    return [[_unquote(cell) for cell in line.split("\t")] for line in lines]


def plan_paste(
    matrix: List[List[str]],
    start_row: int,
    start_col: int,
    navigable: List[int],
    column_map: Dict[int, str],
    max_rows: int,
) -> List[PasteWrite]:
    """Maps matrix cells onto grid cells starting at (start_row, start_col).

    Column offsets walk the navigable columns, so hidden and non-text columns
    are skipped; cells past the last navigable column are dropped, as are
    rows at or past ``max_rows``.
    """
    if start_col not in navigable:
        return []
    first = navigable.index(start_col)
    writes: List[PasteWrite] = []
    for r_offset, cells in enumerate(matrix):
        row = start_row + r_offset
        if row >= max_rows:
            break
        for c_offset, value in enumerate(cells):
            idx = first + c_offset
            if idx >= len(navigable):
                break
            col = navigable[idx]
            field = column_map.get(col)
            if field is None:
                continue
            writes.append(PasteWrite(row, col, field, value))
    return writes
