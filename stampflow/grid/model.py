# stampflow/grid/model.py

from __future__ import annotations

from enum import Enum
from typing import Callable, List, Optional, Tuple

from stampflow.core.doc_schema import DocumentSchema
from stampflow.core.models import Align, BorderSides, BorderStyle, CellSpan, GridRow, Weight
from stampflow.grid.overlays import CellPos, OverlayMaps, Selection


class BorderMode(str, Enum):
    OUTER = "outer"
    INNER = "inner"


class GridModel:
    """Row sequence plus sparse cell overlays. Knows nothing about approval."""

    def __init__(
        self,
        schema: DocumentSchema,
        rows: Optional[List[GridRow]] = None,
        overlays: Optional[OverlayMaps] = None,
    ) -> None:
        self.schema = schema
        self.rows: List[GridRow] = list(rows) if rows is not None else schema.initial_rows()
        self.overlays = overlays if overlays is not None else OverlayMaps()

    # --- rows -----------------------------------------------------------

    def row_index(self, row_id: str) -> Optional[int]:
        for idx, row in enumerate(self.rows):
            if row.id == row_id:
                return idx
        return None

    def find_row(self, row_id: str) -> Optional[GridRow]:
        idx = self.row_index(row_id)
        return self.rows[idx] if idx is not None else None

    def row_at(self, index: int) -> Optional[GridRow]:
        if 0 <= index < len(self.rows):
            return self.rows[index]
        return None

    def set_field(self, row_id: str, field: str, value: str) -> GridRow:
        if field not in self.schema.fields():
            raise ValueError(f"Unknown field '{field}' for {self.schema.doc_type.value}")
        row = self.find_row(row_id)
        if row is None:
            raise KeyError(row_id)
        row.cells[field] = value
        return row

    def append_row(self, after_lock: bool = False) -> GridRow:
        row = self.schema.new_row(after_lock)
        self.rows.append(row)
        return row

    def insert_row(self, index: int, row: Optional[GridRow] = None) -> GridRow:
        index = max(0, min(index, len(self.rows)))
        row = row if row is not None else self.schema.new_row()
        self.rows.insert(index, row)
        self.overlays.shift_for_insert(index)
        return row

    def remove_row(self, index: int) -> Optional[GridRow]:
        if not 0 <= index < len(self.rows):
            return None
        row = self.rows.pop(index)
        self.overlays.shift_for_delete(index)
        return row

    def ensure_row_count(self, count: int, max_rows: int) -> None:
        target = min(count, max_rows)
        while len(self.rows) < target:
            self.append_row()

    def clear_range(
        self,
        selection: Selection,
        editable: Optional[Callable[[GridRow], bool]] = None,
    ) -> List[Tuple[GridRow, str]]:
        """Empties every mapped cell in the selection and returns what was touched."""
        bounds = selection.bounds
        touched: List[Tuple[GridRow, str]] = []
        for r in range(bounds.r_min, bounds.r_max + 1):
            row = self.row_at(r)
            if row is None or (editable is not None and not editable(row)):
                continue
            for c in range(bounds.c_min, bounds.c_max + 1):
                field = self.schema.field_for_column(c)
                if field is None:
                    continue
                row.cells[field] = ""
                touched.append((row, field))
        return touched

    # --- overlays -------------------------------------------------------

    def merge_range(self, selection: Selection) -> bool:
        bounds = selection.bounds
        if bounds.is_single_cell:
            return False
        for pos in bounds.positions():
            self.overlays.merges.pop(pos, None)
        self.overlays.merges[CellPos(bounds.r_min, bounds.c_min)] = CellSpan(
            row_span=bounds.r_max - bounds.r_min + 1,
            col_span=bounds.c_max - bounds.c_min + 1,
        )
        return True

    def unmerge_range(self, selection: Selection) -> bool:
        removed = False
        for pos in selection.bounds.positions():
            if self.overlays.merges.pop(pos, None) is not None:
                removed = True
        return removed

    def apply_align(self, selection: Selection, align: Align) -> None:
        for pos in selection.bounds.positions():
            self.overlays.aligns[pos] = Align(align)

    def apply_weight(self, selection: Selection, weight: Weight) -> None:
        for pos in selection.bounds.positions():
            self.overlays.weights[pos] = Weight(weight)

    def apply_border(self, selection: Selection, mode: BorderMode, style: BorderStyle) -> None:
        b = selection.bounds
        style = BorderStyle(style)
        if BorderMode(mode) == BorderMode.OUTER:
            for c in range(b.c_min, b.c_max + 1):
                self._set_border_side(CellPos(b.r_min, c), "top", style)
                self._set_border_side(CellPos(b.r_max, c), "bottom", style)
            for r in range(b.r_min, b.r_max + 1):
                self._set_border_side(CellPos(r, b.c_min), "left", style)
                self._set_border_side(CellPos(r, b.c_max), "right", style)
            return

        # Inner edges are written on both cells so either side renders the same line.
        for r in range(b.r_min, b.r_max):
            for c in range(b.c_min, b.c_max + 1):
                self._set_border_side(CellPos(r, c), "bottom", style)
                self._set_border_side(CellPos(r + 1, c), "top", style)
        for c in range(b.c_min, b.c_max):
            for r in range(b.r_min, b.r_max + 1):
                self._set_border_side(CellPos(r, c), "right", style)
                self._set_border_side(CellPos(r, c + 1), "left", style)

    def _set_border_side(self, pos: CellPos, side: str, style: BorderStyle) -> None:
        current = self.overlays.borders.get(pos) or BorderSides()
        self.overlays.borders[pos] = current.model_copy(update={side: style})

    # --- queries --------------------------------------------------------

    def merge_at(self, row: int, col: int) -> Optional[CellSpan]:
        return self.overlays.merges.get(CellPos(row, col))

    def covering_anchor(self, row: int, col: int) -> Optional[CellPos]:
        for anchor, span in self.overlays.merges.items():
            if anchor.row <= row < anchor.row + span.row_span and anchor.col <= col < anchor.col + span.col_span:
                return anchor
        return None

    def is_covered(self, row: int, col: int) -> bool:
        """True when a merge covers the cell and the cell is not its anchor."""
        anchor = self.covering_anchor(row, col)
        return anchor is not None and anchor != CellPos(row, col)

    def effective_align(self, row: int, col: int) -> Align:
        return self.overlays.aligns.get(CellPos(row, col)) or self.schema.default_align(col)

    def effective_weight(self, row: int, col: int) -> Weight:
        return self.overlays.weights.get(CellPos(row, col)) or Weight.NORMAL

    def effective_border(self, row: int, col: int) -> BorderSides:
        sides = self.overlays.borders.get(CellPos(row, col))
        return sides.model_copy() if sides is not None else BorderSides()
