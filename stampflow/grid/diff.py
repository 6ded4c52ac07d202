from __future__ import annotations

from typing import Any, Dict, Optional

from stampflow.core.models import Document, GridRow, RejectionSnapshot

SCALAR_HEADER_FIELDS = ("title", "date", "recipient")


def _norm(value: Any) -> str:
    return str(value if value is not None else "").strip()


def values_differ(current: Any, original: Any) -> bool:
    return _norm(current) != _norm(original)


class DiffBaseline:
    """Content of a document as it was when rejected."""

    def __init__(self, snapshot: RejectionSnapshot) -> None:
        self.snapshot = snapshot
        self._rows: Dict[str, GridRow] = {row.id: row for row in snapshot.rows}

    @classmethod
    def from_document(cls, document: Document) -> Optional["DiffBaseline"]:
        if document.rejection_snapshot is None:
            return None
        return cls(document.rejection_snapshot)

    def field_changed(self, row_id: str, field: str, value: Any) -> bool:
        original = self._rows.get(row_id)
        if original is None:
            return False
        return values_differ(value, original.get(field))

    def header_changed(self, name: str, value: Any) -> bool:
        if name in SCALAR_HEADER_FIELDS:
            return values_differ(value, getattr(self.snapshot, name))
        return values_differ(value, self.snapshot.header.get(name))

    def note_changed(self, index: int, part: str, value: Any) -> bool:
        notes = self.snapshot.notes
        original = getattr(notes[index], part, "") if 0 <= index < len(notes) else ""
        return values_differ(value, original)


def track_field_change(row: GridRow, field: str, baseline: Optional[DiffBaseline]) -> bool:
    """Adds or removes ``field`` in ``row.changed_fields``; returns the new flag."""
    if baseline is None:
        return False
    changed = baseline.field_changed(row.id, field, row.get(field))
    if changed and field not in row.changed_fields:
        row.changed_fields.append(field)
    elif not changed and field in row.changed_fields:
        row.changed_fields.remove(field)
    return changed
