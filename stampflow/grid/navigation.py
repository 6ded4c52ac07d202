# stampflow/grid/navigation.py

from __future__ import annotations

from enum import Enum
from typing import List, NamedTuple, Optional


class Key(str, Enum):
    ENTER = "Enter"
    UP = "ArrowUp"
    DOWN = "ArrowDown"
    LEFT = "ArrowLeft"
    RIGHT = "ArrowRight"


class FocusMove(NamedTuple):
    row: int
    col: int
    append_row: bool = False


def next_focus(
    key: Key | str,
    row: int,
    col: int,
    navigable: List[int],
    row_count: int,
    *,
    shift: bool = False,
    can_grow: bool = False,
) -> Optional[FocusMove]:
    """Where focus goes after ``key`` in cell (row, col); None means stay put.

    ``append_row`` asks the caller to add an empty row before moving focus
    into it (Enter on the last column of the last row of an editable grid).
    """
    try:
        key = Key(key)
    except ValueError:
        return None
    if col not in navigable or not 0 <= row < row_count:
        return None
    idx = navigable.index(col)

    if key == Key.ENTER:
        if shift:
            return None
        if idx < len(navigable) - 1:
            return FocusMove(row, navigable[idx + 1])
        if row + 1 < row_count:
            return FocusMove(row + 1, navigable[0])
        if can_grow:
            return FocusMove(row + 1, navigable[0], append_row=True)
        return None

    if key == Key.UP:
        return FocusMove(row - 1, col) if row > 0 else None
    if key == Key.DOWN:
        return FocusMove(row + 1, col) if row + 1 < row_count else None
    if key == Key.LEFT:
        return FocusMove(row, navigable[idx - 1]) if idx > 0 else None
    return FocusMove(row, navigable[idx + 1]) if idx < len(navigable) - 1 else None
