# stampflow/editor/session.py

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional, Tuple

from stampflow.approval.identity import Actor
from stampflow.approval.workflow import ApprovalWorkflow
from stampflow.core.config import config
from stampflow.core.doctypes.factory import schema_factory
from stampflow.core.errors import TransitionError, ValidationError
from stampflow.core.models import (
    Align,
    BorderStyle,
    Document,
    DocumentStatus,
    DocumentType,
    GridRow,
    ModLog,
    ModLogType,
    Note,
    Weight,
    utc_now_iso,
)
from stampflow.grid.amounts import Totals, compute_totals, derive_amount, format_amount
from stampflow.grid.diff import SCALAR_HEADER_FIELDS, DiffBaseline, track_field_change
from stampflow.grid.history import UndoStack
from stampflow.grid.model import BorderMode, GridModel
from stampflow.grid.navigation import Key, next_focus
from stampflow.grid.overlays import CellPos, OverlayMaps, Selection
from stampflow.grid.paste import is_tabular, parse_clipboard_matrix, plan_paste


class EditorSession:
    """Editing state for one open document.

    Owns the working copy, the grid, the undo stack, the current selection and
    (for rejected or resubmitted documents) the diff baseline. Every public
    mutator records one undo snapshot before it changes anything.
    """

    def __init__(
        self,
        document: Document,
        actor: Actor,
        *,
        workflow: Optional[ApprovalWorkflow] = None,
        undo_capacity: Optional[int] = None,
        max_rows: Optional[int] = None,
    ) -> None:
        self.document = document.model_copy(deep=True)
        self.actor = actor
        self.schema = schema_factory(document.doc_type)
        self.workflow = workflow or ApprovalWorkflow()
        self.max_rows = max_rows or config.editor.max_rows
        self.grid = GridModel(self.schema, rows=self.document.rows, overlays=OverlayMaps.from_document(self.document))
        self.history = UndoStack(undo_capacity)
        self.baseline: Optional[DiffBaseline] = None
        # Rejected and resubmitted documents compare against their stored snapshot.
        if self.document.status == DocumentStatus.REJECTED or self.document.is_resubmitted:
            self.baseline = DiffBaseline.from_document(self.document)
        self.selection: Optional[Selection] = None
        self.focus: Optional[CellPos] = None

    @classmethod
    def new_draft(cls, doc_type: DocumentType | str, actor: Actor, **kwargs: Any) -> "EditorSession":
        schema = schema_factory(doc_type)
        document = Document(
            id=str(uuid.uuid4()),
            doc_type=schema.doc_type,
            date=utc_now_iso()[:10],
            rows=schema.initial_rows(),
            author_id=actor.user_id,
        )
        return cls(document, actor, **kwargs)

    @classmethod
    def edit_existing(cls, document: Document, actor: Actor, **kwargs: Any) -> "EditorSession":
        session = cls(document, actor, **kwargs)
        if session.workflow.can_grow(session.document):
            session.grid.ensure_row_count(session.schema.default_row_count, session.max_rows)
        return session

    # --- state ----------------------------------------------------------

    @property
    def locked(self) -> bool:
        return self.workflow.is_locked(self.document)

    @property
    def diff_mode(self) -> bool:
        return self.baseline is not None

    @property
    def rows(self) -> List[GridRow]:
        return self.grid.rows

    @property
    def navigable_columns(self) -> List[int]:
        return self.schema.navigable_columns(self.document.hidden_columns)

    def state(self) -> Dict[str, Any]:
        return {
            "rows": [row.model_dump(mode="json") for row in self.grid.rows],
            "overlays": self.grid.overlays.to_payload(),
            "title": self.document.title,
            "date": self.document.date,
            "recipient": self.document.recipient,
            "header": dict(self.document.header),
            "notes": [note.model_dump() for note in self.document.notes],
        }

    def _restore(self, state: Dict[str, Any]) -> None:
        self.grid.rows = [GridRow.model_validate(row) for row in state.get("rows") or []]
        self.grid.overlays = OverlayMaps.from_payload(state.get("overlays") or {})
        self.document.title = state.get("title", "")
        self.document.date = state.get("date", "")
        self.document.recipient = state.get("recipient", "")
        self.document.header = dict(state.get("header") or {})
        self.document.notes = [Note.model_validate(note) for note in state.get("notes") or []]

    def take_snapshot(self) -> bool:
        return self.history.take_snapshot(self.state())

    def undo(self) -> bool:
        state = self.history.undo()
        if state is None:
            return False
        self._restore(state)
        return True

    def _ensure_document_editable(self) -> None:
        if self.document.status == DocumentStatus.ARCHIVED:
            raise TransitionError("Archived documents are read-only")

    def _row_editable(self, row: GridRow) -> bool:
        return self.workflow.can_edit_row(self.document, row)

    def _ensure_row_editable(self, row: GridRow) -> None:
        if not self._row_editable(row):
            raise TransitionError(f"Row '{row.id}' is read-only")

    def _require_row(self, row_id: str) -> GridRow:
        row = self.grid.find_row(row_id)
        if row is None:
            raise KeyError(row_id)
        return row

    # --- header and notes -------------------------------------------------

    def set_header(self, name: str, value: str) -> bool:
        """Writes one header field; returns its changed-since-rejection flag."""
        self._ensure_document_editable()
        if name not in SCALAR_HEADER_FIELDS and name not in self.schema.header_fields:
            raise ValueError(f"Unknown header field '{name}' for {self.schema.doc_type.value}")
        self.take_snapshot()
        if name in SCALAR_HEADER_FIELDS:
            setattr(self.document, name, value)
        else:
            self.document.header[name] = value
        return self.header_changed(name)

    def header_value(self, name: str) -> str:
        if name in SCALAR_HEADER_FIELDS:
            return getattr(self.document, name)
        return self.document.header.get(name, "")

    def header_changed(self, name: str) -> bool:
        if self.baseline is None:
            return False
        return self.baseline.header_changed(name, self.header_value(name))

    def header_flags(self) -> Dict[str, bool]:
        return {name: self.header_changed(name) for name in SCALAR_HEADER_FIELDS + self.schema.header_fields}

    def add_note(self, label: str = "", content: str = "") -> int:
        self._ensure_document_editable()
        self.take_snapshot()
        self.document.notes.append(Note(label=label, content=content))
        return len(self.document.notes) - 1

    def set_note(self, index: int, *, label: Optional[str] = None, content: Optional[str] = None) -> Tuple[bool, bool]:
        self._ensure_document_editable()
        note = self.document.notes[index]
        self.take_snapshot()
        if label is not None:
            note.label = label
        if content is not None:
            note.content = content
        return self.note_changed(index)

    def remove_note(self, index: int) -> None:
        self._ensure_document_editable()
        self.take_snapshot()
        del self.document.notes[index]

    def note_changed(self, index: int) -> Tuple[bool, bool]:
        if self.baseline is None:
            return False, False
        note = self.document.notes[index]
        return (
            self.baseline.note_changed(index, "label", note.label),
            self.baseline.note_changed(index, "content", note.content),
        )

    # --- cells ----------------------------------------------------------

    def _after_write(self, row: GridRow, field: str) -> None:
        if self.locked:
            row.mod_log = ModLog(user_id=self.actor.user_id, timestamp=utc_now_iso(), type=ModLogType.EDIT)
        track_field_change(row, field, self.baseline)
        if field in (self.schema.quantity_field, self.schema.unit_price_field):
            self._refresh_amount(row)

    def _refresh_amount(self, row: GridRow) -> None:
        amount = derive_amount(row, self.schema)
        if amount is None or isinstance(amount, str):
            return
        row.cells[self.schema.amount_field] = format_amount(amount)
        track_field_change(row, self.schema.amount_field, self.baseline)

    def _write(self, row: GridRow, field: str, value: str) -> None:
        self.grid.set_field(row.id, field, value)
        self._after_write(row, field)

    def edit_field(self, row_id: str, field: str, value: str) -> GridRow:
        row = self._require_row(row_id)
        self._ensure_row_editable(row)
        if field not in self.schema.fields():
            raise ValueError(f"Unknown field '{field}' for {self.schema.doc_type.value}")
        self.take_snapshot()
        self._write(row, field, value)
        return row

    def apply_suggestion(self, row_id: str, cells: Dict[str, str]) -> List[str]:
        """Fills the row's empty fields from a library item; returns the fields written."""
        row = self._require_row(row_id)
        self._ensure_row_editable(row)
        fill = [
            field
            for field in self.schema.fields()
            if str(cells.get(field) or "").strip() and not row.get(field).strip()
        ]
        if not fill:
            return []
        self.take_snapshot()
        for field in fill:
            self._write(row, field, str(cells[field]))
        return fill

    # --- selection and formatting ----------------------------------------

    def select(self, start: CellPos, end: Optional[CellPos] = None) -> Selection:
        self.selection = Selection(start, end)
        self.focus = CellPos(*start)
        return self.selection

    def extend_selection(self, pos: CellPos) -> Optional[Selection]:
        if self.selection is None:
            return None
        self.selection.extend_to(pos)
        return self.selection

    def _formatting_selection(self) -> Optional[Selection]:
        self._ensure_document_editable()
        return self.selection

    def merge_selection(self) -> bool:
        selection = self._formatting_selection()
        if selection is None or selection.bounds.is_single_cell:
            return False
        self.take_snapshot()
        return self.grid.merge_range(selection)

    def unmerge_selection(self) -> bool:
        selection = self._formatting_selection()
        if selection is None:
            return False
        self.take_snapshot()
        return self.grid.unmerge_range(selection)

    def align_selection(self, align: Align) -> bool:
        selection = self._formatting_selection()
        if selection is None:
            return False
        self.take_snapshot()
        self.grid.apply_align(selection, align)
        return True

    def weight_selection(self, weight: Weight) -> bool:
        selection = self._formatting_selection()
        if selection is None:
            return False
        self.take_snapshot()
        self.grid.apply_weight(selection, weight)
        return True

    def border_selection(self, mode: BorderMode, style: BorderStyle) -> bool:
        selection = self._formatting_selection()
        if selection is None:
            return False
        self.take_snapshot()
        self.grid.apply_border(selection, mode, style)
        return True

    def clear_selection_text(self) -> int:
        if self.selection is None:
            return 0
        self.take_snapshot()
        touched = self.grid.clear_range(self.selection, self._row_editable)
        for row, field in touched:
            self._after_write(row, field)
        return len(touched)

    # --- keyboard and clipboard -------------------------------------------

    def handle_key(self, key: Key | str, shift: bool = False) -> Optional[CellPos]:
        """Moves focus for a navigation key; returns the new focus or None when it stays."""
        if self.focus is None:
            return None
        can_grow = self.workflow.can_grow(self.document) and len(self.grid.rows) < self.max_rows
        move = next_focus(
            key,
            self.focus.row,
            self.focus.col,
            self.navigable_columns,
            len(self.grid.rows),
            shift=shift,
            can_grow=can_grow,
        )
        if move is None:
            return None
        if move.append_row:
            self.take_snapshot()
            self.grid.append_row()
        self.focus = CellPos(move.row, move.col)
        self.selection = Selection(self.focus)
        return self.focus

    def paste(self, text: str) -> bool:
        """Spreads tabular clipboard text from the focused cell; False when not intercepted."""
        if self.focus is None or not is_tabular(text or ""):
            return False
        matrix = parse_clipboard_matrix(text)
        limit = self.max_rows if self.workflow.can_grow(self.document) else len(self.grid.rows)
        writes = plan_paste(
            matrix,
            self.focus.row,
            self.focus.col,
            self.navigable_columns,
            self.schema.get_column_map(),
            limit,
        )
        if not writes:
            return False
        self.take_snapshot()
        needed = max(write.row for write in writes) + 1
        self.grid.ensure_row_count(needed, self.max_rows)
        for write in writes:
            row = self.grid.rows[write.row]
            if not self._row_editable(row):
                continue
            self._write(row, write.field, write.value)
        return True

    # --- rows -----------------------------------------------------------

    def insert_row(self, index: int) -> Optional[GridRow]:
        if len(self.grid.rows) >= self.max_rows:
            return None
        self.take_snapshot()
        return self.grid.insert_row(index, self.schema.new_row(after_lock=self.locked))

    def delete_row(self, row_id: str) -> Optional[GridRow]:
        """Removes a row; on a locked document the row is soft-deleted and a fresh row takes its place.

        Returns the replacement row, if one was inserted.
        """
        row = self._require_row(row_id)
        self._ensure_row_editable(row)
        idx = self.grid.row_index(row_id)
        self.take_snapshot()
        if self.locked and not row.is_inserted_after_lock():
            row.is_deleted = True
            row.mod_log = ModLog(user_id=self.actor.user_id, timestamp=utc_now_iso(), type=ModLogType.DELETE)
            return self.grid.insert_row(idx + 1, self.schema.new_row(after_lock=True))
        self.grid.remove_row(idx)
        return None

    def set_column_hidden(self, col: int, hidden: bool) -> None:
        if col not in self.schema.optional_columns:
            raise ValidationError(f"Column {col} cannot be hidden", field="hidden_columns")
        columns = [c for c in self.document.hidden_columns if c != col]
        if hidden:
            columns.append(col)
        self.document.hidden_columns = sorted(columns)
        if self.focus is not None and hidden and self.focus.col == col:
            self.focus = None

    # --- output ---------------------------------------------------------

    def totals(self) -> Optional[Totals]:
        rate = self.schema.get_vat_rate(self.document)
        if rate is None:
            return None
        return compute_totals(self.grid.rows, self.schema, rate)

    def to_document(self) -> Document:
        """The working copy with blank rows dropped and overlays re-indexed to match."""
        overlays = self.grid.overlays.copy()
        rows: List[GridRow] = []
        for idx in range(len(self.grid.rows) - 1, -1, -1):
            row = self.grid.rows[idx]
            if row.is_deleted or row.mod_log is not None or not self.schema.is_blank_row(row):
                rows.append(row.model_copy(deep=True))
            else:
                overlays.shift_for_delete(idx)
        rows.reverse()

        document = self.document.model_copy(deep=True)
        document.rows = rows
        overlays.write_to(document)
        return document

    def close(self) -> None:
        self.history.clear()
        self.selection = None
        self.focus = None
