# stampflow/grid/overlays.py

from __future__ import annotations

from typing import Any, Dict, Iterator, NamedTuple, Optional

from stampflow.core.models import Align, BorderSides, CellSpan, Document, Weight


class CellPos(NamedTuple):
    row: int
    col: int


def cell_key(pos: CellPos) -> str:
    return f"{pos.row}-{pos.col}"


def parse_cell_key(key: str) -> Optional[CellPos]:
    head, sep, tail = str(key).partition("-")
    if not sep:
        return None
    try:
        return CellPos(int(head), int(tail))
    except ValueError:
        return None


class CellRange(NamedTuple):
    r_min: int
    r_max: int
    c_min: int
    c_max: int

    def positions(self) -> Iterator[CellPos]:
        for r in range(self.r_min, self.r_max + 1):
            for c in range(self.c_min, self.c_max + 1):
                yield CellPos(r, c)

    def contains(self, pos: CellPos) -> bool:
        return self.r_min <= pos.row <= self.r_max and self.c_min <= pos.col <= self.c_max

    @property
    def is_single_cell(self) -> bool:
        return self.r_min == self.r_max and self.c_min == self.c_max


class Selection:
    """Drag selection between two anchor cells, normalized on every read."""

    def __init__(self, start: CellPos, end: Optional[CellPos] = None) -> None:
        self.start = CellPos(*start)
        self.end = CellPos(*(end if end is not None else start))

    def extend_to(self, pos: CellPos) -> None:
        self.end = CellPos(*pos)

    @property
    def bounds(self) -> CellRange:
        return CellRange(
            min(self.start.row, self.end.row),
            max(self.start.row, self.end.row),
            min(self.start.col, self.end.col),
            max(self.start.col, self.end.col),
        )


def _parse_map(raw: Dict[str, Any], convert) -> Dict[CellPos, Any]:
    parsed: Dict[CellPos, Any] = {}
    for key, value in (raw or {}).items():
        pos = parse_cell_key(key)
        if pos is None or value is None:
            continue
        parsed[pos] = convert(value)
    return parsed


def _as_span(value: Any) -> CellSpan:
    return value.model_copy() if isinstance(value, CellSpan) else CellSpan.model_validate(value)


def _as_border(value: Any) -> BorderSides:
    return value.model_copy() if isinstance(value, BorderSides) else BorderSides.model_validate(value)


class OverlayMaps:
    """Sparse per-cell formatting: merge spans, alignment, weight and borders."""

    def __init__(
        self,
        merges: Optional[Dict[CellPos, CellSpan]] = None,
        aligns: Optional[Dict[CellPos, Align]] = None,
        weights: Optional[Dict[CellPos, Weight]] = None,
        borders: Optional[Dict[CellPos, BorderSides]] = None,
    ) -> None:
        self.merges: Dict[CellPos, CellSpan] = dict(merges or {})
        self.aligns: Dict[CellPos, Align] = dict(aligns or {})
        self.weights: Dict[CellPos, Weight] = dict(weights or {})
        self.borders: Dict[CellPos, BorderSides] = dict(borders or {})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OverlayMaps):
            return NotImplemented
        return self.to_payload() == other.to_payload()

    def copy(self) -> "OverlayMaps":
        return OverlayMaps.from_payload(self.to_payload())

    def to_payload(self) -> Dict[str, Dict[str, Any]]:
        return {
            "merges": {cell_key(pos): span.model_dump() for pos, span in sorted(self.merges.items())},
            "aligns": {cell_key(pos): Align(value).value for pos, value in sorted(self.aligns.items())},
            "weights": {cell_key(pos): Weight(value).value for pos, value in sorted(self.weights.items())},
            "borders": {
                cell_key(pos): sides.model_dump(mode="json", exclude_none=True)
                for pos, sides in sorted(self.borders.items())
            },
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "OverlayMaps":
        payload = payload or {}
        return cls(
            merges=_parse_map(payload.get("merges"), _as_span),
            aligns=_parse_map(payload.get("aligns"), Align),
            weights=_parse_map(payload.get("weights"), Weight),
            borders=_parse_map(payload.get("borders"), _as_border),
        )

    @classmethod
    def from_document(cls, document: Document) -> "OverlayMaps":
        return cls(
            merges=_parse_map(document.merges, _as_span),
            aligns=_parse_map(document.aligns, Align),
            weights=_parse_map(document.weights, Weight),
            borders=_parse_map(document.borders, _as_border),
        )

    def write_to(self, document: Document) -> None:
        document.merges = {cell_key(pos): span.model_copy() for pos, span in sorted(self.merges.items())}
        document.aligns = {cell_key(pos): value for pos, value in sorted(self.aligns.items())}
        document.weights = {cell_key(pos): value for pos, value in sorted(self.weights.items())}
        document.borders = {cell_key(pos): sides.model_copy() for pos, sides in sorted(self.borders.items())}

    def shift_for_insert(self, index: int) -> None:
        """A row was inserted at ``index``; rows at or below it moved down by one."""
        merges: Dict[CellPos, CellSpan] = {}
        for pos, span in self.merges.items():
            if pos.row >= index:
                merges[CellPos(pos.row + 1, pos.col)] = span
            elif pos.row + span.row_span - 1 >= index:
                merges[pos] = CellSpan(row_span=span.row_span + 1, col_span=span.col_span)
            else:
                merges[pos] = span
        self.merges = merges
        self.aligns = _shift_keys_down(self.aligns, index)
        self.weights = _shift_keys_down(self.weights, index)
        self.borders = _shift_keys_down(self.borders, index)

    def shift_for_delete(self, index: int) -> None:
        """The row at ``index`` was removed; rows below it moved up by one."""
        merges: Dict[CellPos, CellSpan] = {}
        for pos, span in self.merges.items():
            last = pos.row + span.row_span - 1
            if pos.row > index:
                merges[CellPos(pos.row - 1, pos.col)] = span
            elif last < index:
                merges[pos] = span
            else:
                # The removed row lies inside this span (anchor row included).
                shrunk = CellSpan(row_span=span.row_span - 1, col_span=span.col_span)
                if shrunk.row_span >= 1 and (shrunk.row_span > 1 or shrunk.col_span > 1):
                    merges[pos] = shrunk
        self.merges = merges
        self.aligns = _shift_keys_up(self.aligns, index)
        self.weights = _shift_keys_up(self.weights, index)
        self.borders = _shift_keys_up(self.borders, index)


def _shift_keys_down(values: Dict[CellPos, Any], index: int) -> Dict[CellPos, Any]:
    return {(CellPos(pos.row + 1, pos.col) if pos.row >= index else pos): value for pos, value in values.items()}


def _shift_keys_up(values: Dict[CellPos, Any], index: int) -> Dict[CellPos, Any]:
    shifted: Dict[CellPos, Any] = {}
    for pos, value in values.items():
        if pos.row == index:
            continue
        shifted[CellPos(pos.row - 1, pos.col) if pos.row > index else pos] = value
    return shifted
