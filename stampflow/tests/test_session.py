import pytest

from stampflow.approval.identity import Actor
from stampflow.approval.workflow import ApprovalWorkflow
from stampflow.core.errors import TransitionError, ValidationError
from stampflow.core.models import (
    Align,
    BorderStyle,
    Document,
    DocumentStatus,
    DocumentType,
    GridRow,
    ModLogType,
    Note,
    Weight,
)
from stampflow.editor.session import EditorSession
from stampflow.grid.amounts import Totals
from stampflow.grid.model import BorderMode
from stampflow.grid.navigation import Key
from stampflow.grid.overlays import CellPos

WRITER = Actor(user_id="kim", initials="KIM")
HEAD = Actor(user_id="park", slot_claims=["head"])


def _stored(status: DocumentStatus, doc_type: DocumentType = DocumentType.SHIPMENT_ORDER) -> Document:
    return Document(
        id="doc-1",
        doc_type=doc_type,
        title="Widget",
        recipient="DAECHEON",
        status=status,
        author_id="kim",
        rows=[
            GridRow(id="r1", cells={"dept": "A", "model": "M1", "item_name": "Bolt", "price": "", "unit_price": "", "remarks": ""}),
            GridRow(id="r2", cells={"dept": "B", "model": "M2", "item_name": "Nut", "price": "", "unit_price": "", "remarks": ""}),
        ],
    )


def _rejected() -> Document:
    wf = ApprovalWorkflow()
    doc = _stored(DocumentStatus.DRAFT)
    doc.notes = [Note(label="Payment", content="Net 30")]
    wf.submit(doc, WRITER)
    return wf.reject(doc, "wrong model", HEAD)


def test_new_draft_starts_with_default_rows():
    session = EditorSession.new_draft("purchase_order", WRITER)
    assert len(session.rows) == 10
    assert session.document.status == DocumentStatus.DRAFT
    assert session.document.author_id == "kim"
    assert session.diff_mode is False


def test_edit_field_then_undo_restores_previous_value():
    session = EditorSession.new_draft("purchase_order", WRITER)
    row_id = session.rows[0].id

    session.edit_field(row_id, "item_name", "Bolt")
    assert session.rows[0].get("item_name") == "Bolt"

    assert session.undo() is True
    assert session.rows[0].get("item_name") == ""
    assert session.undo() is False


def test_editing_qty_or_price_derives_amount():
    session = EditorSession.new_draft("purchase_order", WRITER)
    row_id = session.rows[0].id
    session.edit_field(row_id, "qty", "3")
    session.edit_field(row_id, "unit_price", "1000")
    assert session.rows[0].get("amount") == "3000"

    session.edit_field(row_id, "unit_price", "0")
    session.edit_field(row_id, "amount", "quote later")
    assert session.rows[0].get("amount") == "quote later"


def test_merge_is_undone_in_one_step():
    session = EditorSession.new_draft("purchase_order", WRITER)
    session.select(CellPos(0, 0), CellPos(1, 1))
    assert session.merge_selection() is True
    assert session.grid.merge_at(0, 0) is not None

    session.undo()
    assert session.grid.overlays.merges == {}


def test_enter_on_last_cell_appends_row_on_draft():
    session = EditorSession.new_draft("payment_request", WRITER)
    session.select(CellPos(2, 7))
    assert session.handle_key(Key.ENTER) == CellPos(3, 1)
    assert len(session.rows) == 4


def test_enter_on_last_cell_never_grows_locked_document():
    session = EditorSession.edit_existing(_stored(DocumentStatus.PENDING), HEAD)
    session.select(CellPos(1, 5))
    assert session.handle_key(Key.ENTER) is None
    assert len(session.rows) == 2


def test_paste_spreads_matrix_and_creates_rows_in_one_snapshot():
    session = EditorSession.new_draft("purchase_order", WRITER)
    session.select(CellPos(9, 0))

    assert session.paste("M1\tBolt\nM2\tNut\nM3\tWasher") is True
    assert len(session.rows) == 12
    assert session.rows[11].get("model") == "M3"
    assert session.rows[11].get("item_name") == "Washer"

    session.undo()
    assert len(session.rows) == 10
    assert session.rows[9].get("model") == ""


def test_paste_respects_max_rows_and_ignores_plain_text():
    session = EditorSession.new_draft("purchase_order", WRITER, max_rows=11)
    session.select(CellPos(9, 0))
    assert session.paste("plain") is False
    assert session.paste("a\nb\nc") is True
    assert len(session.rows) == 11


def test_locked_delete_soft_deletes_and_inserts_new_row():
    session = EditorSession.edit_existing(_stored(DocumentStatus.PENDING), HEAD)
    replacement = session.delete_row("r1")

    assert len(session.rows) == 3
    deleted = session.rows[0]
    assert deleted.is_deleted is True
    assert deleted.mod_log.type == ModLogType.DELETE
    assert deleted.mod_log.user_id == "park"
    assert replacement is session.rows[1]
    assert replacement.id.startswith("NEW-")


def test_locked_edit_records_mod_log():
    session = EditorSession.edit_existing(_stored(DocumentStatus.PENDING), HEAD)
    row = session.edit_field("r2", "remarks", "urgent")
    assert row.mod_log.type == ModLogType.EDIT


def test_draft_delete_removes_row():
    session = EditorSession.edit_existing(_stored(DocumentStatus.TEMPORARY), WRITER)
    assert len(session.rows) == 6
    session.delete_row("r1")
    assert len(session.rows) == 5
    assert session.grid.find_row("r1") is None


def test_archived_document_only_accepts_new_rows():
    session = EditorSession.edit_existing(_stored(DocumentStatus.ARCHIVED), WRITER)
    with pytest.raises(TransitionError):
        session.edit_field("r1", "remarks", "x")
    with pytest.raises(TransitionError):
        session.set_header("title", "Other")

    new_row = session.insert_row(2)
    assert new_row.is_inserted_after_lock()
    session.edit_field(new_row.id, "item_name", "Spare")
    assert session.rows[2].get("item_name") == "Spare"


def test_rejected_document_tracks_changed_fields():
    session = EditorSession.edit_existing(_rejected(), WRITER)
    assert session.diff_mode is True

    row = session.edit_field("r1", "item_name", "Bolt M4")
    assert row.changed_fields == ["item_name"]
    session.edit_field("r1", "item_name", " Bolt ")
    assert row.changed_fields == []

    padded = session.rows[-1]
    session.edit_field(padded.id, "item_name", "Fresh")
    assert padded.changed_fields == []


def test_rejected_document_header_and_note_flags():
    session = EditorSession.edit_existing(_rejected(), WRITER)
    assert session.set_header("recipient", "SEOUL") is True
    assert session.set_header("recipient", "DAECHEON") is False
    assert session.header_flags()["title"] is False
    assert session.set_note(0, content="Net 60") == (False, True)


def test_clear_selection_runs_change_comparison():
    session = EditorSession.edit_existing(_rejected(), WRITER)
    session.select(CellPos(0, 1), CellPos(0, 2))
    assert session.clear_selection_text() == 2
    assert session.rows[0].changed_fields == ["model", "item_name"]


def test_apply_suggestion_fills_only_empty_fields():
    session = EditorSession.new_draft("purchase_order", WRITER)
    row_id = session.rows[0].id
    session.edit_field(row_id, "item_name", "Bolt")

    filled = session.apply_suggestion(row_id, {"model": "M1", "item_name": "Other", "unit_price": "500", "qty": "2"})
    assert filled == ["model", "qty", "unit_price"]
    assert session.rows[0].get("item_name") == "Bolt"
    assert session.rows[0].get("amount") == "1000"

    session.undo()
    assert session.rows[0].get("model") == ""


def test_vendor_column_can_be_hidden():
    session = EditorSession.new_draft("purchase_order", WRITER)
    session.set_column_hidden(3, True)
    assert 3 not in session.navigable_columns
    session.set_column_hidden(3, False)
    assert 3 in session.navigable_columns
    with pytest.raises(ValidationError):
        session.set_column_hidden(0, True)


def test_to_document_drops_blank_rows_and_reindexes_overlays():
    session = EditorSession.new_draft("purchase_order", WRITER)
    session.set_header("title", "Steel order")
    session.edit_field(session.rows[2].id, "item_name", "Plate")
    session.select(CellPos(2, 0))
    session.weight_selection(Weight.BOLD)

    document = session.to_document()
    assert [row.get("item_name") for row in document.rows] == ["Plate"]
    assert document.weights == {"0-0": Weight.BOLD}
    assert document.title == "Steel order"
    assert len(session.rows) == 10


def test_totals_follow_grid_rows():
    session = EditorSession.new_draft("purchase_order", WRITER)
    row_id = session.rows[0].id
    session.edit_field(row_id, "qty", "10")
    session.edit_field(row_id, "unit_price", "1000")
    assert session.totals() == Totals(10000, 1000, 11000)
    assert EditorSession.new_draft("invoice", WRITER).totals() is None


def test_close_clears_history_and_selection():
    session = EditorSession.new_draft("invoice", WRITER)
    session.edit_field(session.rows[0].id, "model", "M1")
    session.select(CellPos(0, 0))
    session.close()
    assert session.history.can_undo is False
    assert session.selection is None


def test_resubmitted_document_keeps_diff_flags_for_corrections():
    wf = ApprovalWorkflow()
    rejected = _rejected()
    edited = rejected.model_copy(deep=True)
    edited.recipient = "SEOUL"
    resubmitted = wf.resubmit(rejected, edited, WRITER)

    session = EditorSession.edit_existing(resubmitted, HEAD)
    assert session.document.status == DocumentStatus.PENDING
    assert session.diff_mode is True
    assert session.header_flags()["recipient"] is True
    assert session.header_flags()["title"] is False

    row = session.edit_field("r2", "item_name", "Washer")
    assert row.changed_fields == ["item_name"]
    assert row.mod_log.type == ModLogType.EDIT


def test_fresh_pending_document_has_no_diff_baseline():
    session = EditorSession.edit_existing(_stored(DocumentStatus.PENDING), HEAD)
    assert session.diff_mode is False


def test_undo_walks_a_mixed_edit_sequence_back_to_the_start():
    session = EditorSession.new_draft("purchase_order", WRITER)
    start = session.state()

    session.edit_field(session.rows[0].id, "item_name", "Bolt")
    session.select(CellPos(0, 0), CellPos(1, 1))
    assert session.merge_selection() is True
    assert session.border_selection(BorderMode.INNER, BorderStyle.SOLID) is True
    assert session.align_selection(Align.CENTER) is True
    assert session.insert_row(2) is not None
    session.select(CellPos(5, 0))
    assert session.paste("M1\tBolt\nM2\tNut") is True
    assert session.state() != start

    for _ in range(len(session.history)):
        assert session.undo() is True

    assert session.state() == start
    assert session.undo() is False


def test_derived_amount_is_rounded_before_it_is_written():
    session = EditorSession.new_draft("purchase_order", WRITER)
    row_id = session.rows[0].id
    session.edit_field(row_id, "qty", "3")
    session.edit_field(row_id, "unit_price", "0.1")

    assert session.rows[0].get("amount") == "0.3"
