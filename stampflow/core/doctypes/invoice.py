# stampflow/core/doctypes/invoice.py

from __future__ import annotations

from typing import Dict, List

from stampflow.core.doc_schema import DocumentSchema
from stampflow.core.models import Document, DocumentType

UNTITLED_INVOICE = "Untitled invoice"


class InvoiceSchema(DocumentSchema):
    doc_type: DocumentType = DocumentType.INVOICE
    default_row_count = 5
    required_fields = ("recipient",)
    header_fields = ("cargo_info", "weight", "box_qty")
    identifying_fields = ("model", "item_name")
    left_aligned_fields = ("model", "item_name", "remarks")
    right_aligned_fields = ()

    def get_column_map(self) -> Dict[int, str]:
        return {
            0: "model",
            1: "drawing_no",
            2: "item_name",
            3: "qty",
            4: "qty_extra",
            5: "completion_extra",
            6: "completion_status",
            7: "remarks",
        }

    def get_navigable_columns(self) -> List[int]:
        return [0, 1, 2, 3, 4, 5, 6, 7]

    def get_approval_slots(self, document: Document) -> List[str]:
        return ["writer"]

    def derive_title(self, document: Document) -> str:
        """Invoices are titled after the first filled row's model and item name."""
        for row in document.active_rows():
            if self.is_blank_row(row):
                continue
            return f"{row.get('model')} {row.get('item_name')}".strip() or UNTITLED_INVOICE
        return document.title.strip() or UNTITLED_INVOICE
