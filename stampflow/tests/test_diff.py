from stampflow.core.models import GridRow, Note, RejectionSnapshot
from stampflow.grid.diff import DiffBaseline, track_field_change, values_differ


def _baseline() -> DiffBaseline:
    return DiffBaseline(
        RejectionSnapshot(
            title="Widget (1)",
            recipient="AJIN",
            header={"reference": "R-1"},
            notes=[Note(label="Payment", content="Net 30")],
            rows=[GridRow(id="r1", cells={"item_name": "Bolt", "qty": "3"})],
        )
    )


def test_values_differ_trims_and_treats_none_as_empty():
    assert values_differ(" Bolt ", "Bolt") is False
    assert values_differ(None, "") is False
    assert values_differ("4", "3") is True


def test_changed_field_flag_is_added_once_and_removed_on_revert():
    baseline = _baseline()
    row = GridRow(id="r1", cells={"item_name": "Bolt", "qty": "4"})

    assert track_field_change(row, "qty", baseline) is True
    assert track_field_change(row, "qty", baseline) is True
    assert row.changed_fields == ["qty"]

    row.cells["qty"] = " 3 "
    assert track_field_change(row, "qty", baseline) is False
    assert row.changed_fields == []


def test_row_missing_from_baseline_reports_no_change():
    baseline = _baseline()
    row = GridRow(id="NEW-abc", cells={"item_name": "Nut"}, changed_fields=["item_name"])
    assert track_field_change(row, "item_name", baseline) is False
    assert row.changed_fields == []


def test_without_baseline_nothing_is_tracked():
    row = GridRow(id="r1", cells={"qty": "9"})
    assert track_field_change(row, "qty", None) is False
    assert row.changed_fields == []


def test_header_fields_compare_scalars_and_header_map():
    baseline = _baseline()
    assert baseline.header_changed("title", "Widget (1)") is False
    assert baseline.header_changed("recipient", "ACME") is True
    assert baseline.header_changed("reference", " R-1") is False
    assert baseline.header_changed("reference", "R-2") is True
    assert baseline.header_changed("sender_name", "") is False


def test_notes_compare_positionally():
    baseline = _baseline()
    assert baseline.note_changed(0, "label", "Payment") is False
    assert baseline.note_changed(0, "content", "Net 60") is True
    assert baseline.note_changed(1, "label", "") is False
    assert baseline.note_changed(1, "label", "New") is True
